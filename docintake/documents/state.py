"""Immutable document state and the pure reducers that advance it.

Every reducer returns a new ``DocumentState`` with slots and the overall
score recomputed, so callers never observe a state whose slots disagree
with its uploaded files.
"""

from dataclasses import dataclass, field, replace

from docintake.documents.applicants import ApplicantDirectory
from docintake.documents.exceptions import OptionalSelectionError, UnknownApplicantError
from docintake.documents.models import (
    FormProgress,
    OptionalSelection,
    RequiredDocumentSet,
    Slot,
    SlotSection,
    UploadedFiles,
)
from docintake.documents.progress import score
from docintake.documents.registry import get_document_type
from docintake.documents.slots import flatten, materialize_slots
from docintake.documents.status import files_for


@dataclass(frozen=True)
class DocumentState:
    directory: ApplicantDirectory
    requirements: RequiredDocumentSet
    optional_selections: OptionalSelection
    uploaded_files: UploadedFiles
    form_progress: FormProgress = field(default_factory=FormProgress)
    sections: tuple[SlotSection, ...] = ()
    progress: int = 0
    persisted_progress: int | None = None
    locale: str = "de_DE"

    @property
    def slots(self) -> list[Slot]:
        return flatten(list(self.sections))


def _refresh(state: DocumentState) -> DocumentState:
    sections = tuple(
        materialize_slots(
            state.directory,
            state.requirements,
            state.optional_selections,
            state.uploaded_files,
            state.locale,
        )
    )
    progress = score(state.form_progress, flatten(list(sections)), state.requirements)
    return replace(state, sections=sections, progress=progress)


def build_state(
    directory: ApplicantDirectory,
    requirements: RequiredDocumentSet,
    optional_selections: OptionalSelection,
    uploaded_files: UploadedFiles,
    form_progress: FormProgress | None = None,
    persisted_progress: int | None = None,
    locale: str = "de_DE",
) -> DocumentState:
    return _refresh(
        DocumentState(
            directory=directory,
            requirements=requirements,
            optional_selections=optional_selections,
            uploaded_files=uploaded_files,
            form_progress=form_progress or FormProgress(),
            persisted_progress=persisted_progress,
            locale=locale,
        )
    )


def with_uploaded_files(state: DocumentState, uploaded_files: UploadedFiles) -> DocumentState:
    return _refresh(replace(state, uploaded_files=uploaded_files))


def with_form_progress(state: DocumentState, form_progress: FormProgress) -> DocumentState:
    return _refresh(replace(state, form_progress=form_progress))


def with_optional_document(state: DocumentState, applicant_key: str, doc_id: str) -> DocumentState:
    """Add ``doc_id`` to the applicant's optional documents.

    Selecting a required or already selected document is a no-op.

    Raises:
        UnknownApplicantError: if the applicant is not part of the application.
        OptionalSelectionError: if the document type is unknown.
    """
    if not state.directory.contains_key(applicant_key):
        raise UnknownApplicantError(f"Unknown applicant key '{applicant_key}'")
    if get_document_type(doc_id) is None:
        raise OptionalSelectionError(f"Unknown document type '{doc_id}'")

    current = state.optional_selections.get(applicant_key, [])
    if doc_id in current or doc_id in state.requirements.for_key(applicant_key):
        return state

    selections = {key: list(ids) for key, ids in state.optional_selections.items()}
    selections[applicant_key] = [*current, doc_id]
    return _refresh(replace(state, optional_selections=selections))


def without_optional_document(state: DocumentState, applicant_key: str, doc_id: str) -> DocumentState:
    """Drop ``doc_id`` from the applicant's optional documents.

    Raises:
        OptionalSelectionError: if files are still uploaded for the document,
            since deselecting would hide them.
    """
    if files_for(state.uploaded_files, applicant_key, doc_id):
        raise OptionalSelectionError(
            f"Document '{doc_id}' still has uploaded files and cannot be deselected"
        )
    current = state.optional_selections.get(applicant_key, [])
    if doc_id not in current:
        return state

    selections = {key: list(ids) for key, ids in state.optional_selections.items()}
    selections[applicant_key] = [selected for selected in current if selected != doc_id]
    return _refresh(replace(state, optional_selections=selections))
