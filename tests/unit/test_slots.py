from docintake.documents.applicants import ApplicantDirectory
from docintake.documents.models import PersonFacts, RequiredDocumentSet
from docintake.documents.slots import find_slot, flatten, materialize_document_slots, materialize_slots, slot_id


class TestMaterializeDocumentSlots:
    def test_empty_type_has_one_main_slot(self) -> None:
        slots = materialize_document_slots("general", "meldebescheinigung", {}, True)
        assert len(slots) == 1
        assert slots[0].slot_id == "general_meldebescheinigung_0"
        assert slots[0].is_main_slot is True
        assert slots[0].file is None

    def test_repeatable_type_orders_files_and_adds_trailing_slot(self, make_file) -> None:
        later = make_file(name="later.pdf", minute=2)
        earlier = make_file(name="earlier.pdf", minute=1)
        uploaded = {"general": {"meldebescheinigung": [later, earlier]}}

        slots = materialize_document_slots("general", "meldebescheinigung", uploaded, True)

        assert [slot.file for slot in slots] == [earlier, later, None]
        assert [slot.is_main_slot for slot in slots] == [True, False, False]
        assert slots[-1].slot_id == "general_meldebescheinigung_2"

    def test_non_repeatable_type_keeps_single_slot(self, make_file) -> None:
        uploaded = {"general": {"lageplan": [make_file(doc_id="lageplan", minute=1), make_file(doc_id="lageplan", name="b.pdf", minute=2)]}}
        slots = materialize_document_slots("general", "lageplan", uploaded, False)
        assert len(slots) == 1
        assert slots[0].file.file_name == "scan.pdf"
        assert slots[0].is_required is False


class TestMaterializeSlots:
    def test_required_before_optional(self) -> None:
        required = RequiredDocumentSet(general=["meldebescheinigung", "eigenkapital_nachweis"])
        optional = {"general": ["sonstige_dokumente", "lageplan", "meldebescheinigung"]}

        sections = materialize_slots(ApplicantDirectory(), required, optional, {})

        general = sections[0]
        assert general.display_name == "Allgemeine Dokumente"
        assert [slot.document_type_id for slot in general.slots] == [
            "meldebescheinigung",
            "eigenkapital_nachweis",
            "lageplan",
            "sonstige_dokumente",
        ]
        assert [slot.is_required for slot in general.slots] == [True, True, False, False]

    def test_empty_general_and_main_sections_are_omitted(self) -> None:
        sections = materialize_slots(ApplicantDirectory(), RequiredDocumentSet(), {}, {})
        assert sections == []

    def test_additional_applicant_without_documents_gets_placeholder(self) -> None:
        directory = ApplicantDirectory(additional=(PersonFacts("u1"),))
        sections = materialize_slots(directory, RequiredDocumentSet(per_applicant={"u1": []}), {}, {})
        assert len(sections) == 1
        assert sections[0].applicant_key == "applicant_u1"
        assert sections[0].display_name == "Person 2"
        assert sections[0].is_placeholder is True

    def test_slots_of_removed_applicants_are_not_materialized(self, make_file) -> None:
        uploaded = {"applicant_gone": {"rentenbescheid": [make_file(doc_id="rentenbescheid", applicant_key="applicant_gone")]}}
        sections = materialize_slots(ApplicantDirectory(), RequiredDocumentSet(), {"applicant_gone": ["rentenbescheid"]}, uploaded)
        assert sections == []


class TestSlotLookup:
    def test_find_slot(self) -> None:
        required = RequiredDocumentSet(general=["meldebescheinigung"], main=["rentenbescheid"])
        sections = materialize_slots(ApplicantDirectory(), required, {}, {})
        target = slot_id("hauptantragsteller", "rentenbescheid", 0)
        assert find_slot(sections, target).document_type_id == "rentenbescheid"
        assert find_slot(sections, "missing") is None
        assert len(flatten(sections)) == 2
