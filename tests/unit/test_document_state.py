import pytest

from docintake.documents.applicants import ApplicantDirectory
from docintake.documents.exceptions import OptionalSelectionError, UnknownApplicantError
from docintake.documents.models import FormProgress, PersonFacts, RequiredDocumentSet
from docintake.documents.state import (
    build_state,
    with_form_progress,
    with_optional_document,
    with_uploaded_files,
    without_optional_document,
)


def _state(uploaded=None, optional=None):
    return build_state(
        directory=ApplicantDirectory(additional=(PersonFacts("u1"),)),
        requirements=RequiredDocumentSet(general=["meldebescheinigung"], per_applicant={"u1": []}),
        optional_selections=optional or {},
        uploaded_files=uploaded or {},
    )


class TestBuildState:
    def test_materializes_slots_and_score(self) -> None:
        state = _state()
        assert [section.applicant_key for section in state.sections] == ["general", "applicant_u1"]
        assert [slot.slot_id for slot in state.slots] == ["general_meldebescheinigung_0"]
        assert state.progress == 0


class TestUploadedFilesReducer:
    def test_upload_refreshes_slots_and_progress(self, make_file) -> None:
        state = with_uploaded_files(_state(), {"general": {"meldebescheinigung": [make_file()]}})
        assert [slot.has_file for slot in state.slots] == [True, False]
        assert state.progress == 30

    def test_form_progress_reducer(self) -> None:
        state = with_form_progress(_state(), FormProgress(hauptantrag=100))
        assert state.progress == 20


class TestOptionalDocumentReducers:
    def test_select_adds_optional_slot(self) -> None:
        state = with_optional_document(_state(), "applicant_u1", "sonstige_dokumente")
        assert state.optional_selections == {"applicant_u1": ["sonstige_dokumente"]}
        assert state.sections[1].is_placeholder is False
        assert state.sections[1].slots[0].is_required is False

    def test_selecting_required_document_is_noop(self) -> None:
        state = _state()
        assert with_optional_document(state, "general", "meldebescheinigung") is state

    def test_select_rejects_unknown_applicant(self) -> None:
        with pytest.raises(UnknownApplicantError):
            with_optional_document(_state(), "applicant_gone", "sonstige_dokumente")

    def test_select_rejects_unknown_document_type(self) -> None:
        with pytest.raises(OptionalSelectionError):
            with_optional_document(_state(), "general", "made_up")

    def test_deselect_removes_slot(self) -> None:
        state = without_optional_document(_state(optional={"general": ["lageplan"]}), "general", "lageplan")
        assert state.optional_selections == {"general": []}
        assert [slot.document_type_id for slot in state.slots] == ["meldebescheinigung"]

    def test_deselect_refused_while_files_exist(self, make_file) -> None:
        state = _state(
            optional={"general": ["lageplan"]},
            uploaded={"general": {"lageplan": [make_file(doc_id="lageplan")]}},
        )
        with pytest.raises(OptionalSelectionError):
            without_optional_document(state, "general", "lageplan")

    def test_reducers_do_not_mutate_input(self) -> None:
        state = _state(optional={"general": ["lageplan"]})
        with_optional_document(state, "general", "sonstige_dokumente")
        assert state.optional_selections == {"general": ["lageplan"]}
