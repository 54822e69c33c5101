from docintake.documents.applicants import ApplicantDirectory
from docintake.documents.models import (
    ApplicantKind,
    OptionalSelection,
    RequiredDocumentSet,
    Slot,
    SlotSection,
    UploadedFiles,
)
from docintake.documents.registry import is_repeatable, sort_by_title
from docintake.documents.status import files_for


def slot_id(applicant_key: str, doc_id: str, index: int) -> str:
    """Stable slot identifier, e.g. ``general_meldebescheinigung_0``."""
    return f"{applicant_key}_{doc_id}_{index}"


def materialize_document_slots(
    applicant_key: str,
    doc_id: str,
    uploaded: UploadedFiles,
    is_required: bool,
) -> list[Slot]:
    """Slots for one document type of one applicant.

    The oldest file occupies the main slot. Repeatable types get one extra
    slot per further file and, once anything is uploaded, one trailing
    empty slot for the next file.
    """
    files = files_for(uploaded, applicant_key, doc_id)
    main = Slot(
        slot_id=slot_id(applicant_key, doc_id, 0),
        document_type_id=doc_id,
        applicant_key=applicant_key,
        is_main_slot=True,
        is_required=is_required,
        file=files[0] if files else None,
    )
    if not is_repeatable(doc_id):
        return [main]

    slots = [main]
    for index, file in enumerate(files[1:], start=1):
        slots.append(
            Slot(
                slot_id=slot_id(applicant_key, doc_id, index),
                document_type_id=doc_id,
                applicant_key=applicant_key,
                is_main_slot=False,
                is_required=is_required,
                file=file,
            )
        )
    if files:
        slots.append(
            Slot(
                slot_id=slot_id(applicant_key, doc_id, len(files)),
                document_type_id=doc_id,
                applicant_key=applicant_key,
                is_main_slot=False,
                is_required=is_required,
            )
        )
    return slots


def materialize_slots(
    directory: ApplicantDirectory,
    required: RequiredDocumentSet,
    optional: OptionalSelection,
    uploaded: UploadedFiles,
    locale: str = "de_DE",
) -> list[SlotSection]:
    """Project reconciled state into per-applicant slot sections.

    Required document types come first, then optional ones, each in title
    order. Sections for the general bucket and the main applicant are
    omitted when empty; an additional applicant without any document still
    gets an empty placeholder section so the person is visibly listed.
    """
    sections: list[SlotSection] = []
    for entry in directory.entries():
        applicant_key = entry.ref.key
        required_ids = required.for_key(applicant_key)
        optional_ids = sort_by_title(
            (doc_id for doc_id in dict.fromkeys(optional.get(applicant_key, [])) if doc_id not in required_ids),
            locale,
        )

        slots: list[Slot] = []
        for doc_id in required_ids:
            slots.extend(materialize_document_slots(applicant_key, doc_id, uploaded, True))
        for doc_id in optional_ids:
            slots.extend(materialize_document_slots(applicant_key, doc_id, uploaded, False))

        if not slots and entry.ref.kind is not ApplicantKind.ADDITIONAL:
            continue
        sections.append(SlotSection(applicant_key, entry.display_name, tuple(slots)))
    return sections


def flatten(sections: list[SlotSection]) -> list[Slot]:
    return [slot for section in sections for slot in section.slots]


def find_slot(sections: list[SlotSection], target_slot_id: str) -> Slot | None:
    for slot in flatten(sections):
        if slot.slot_id == target_slot_id:
            return slot
    return None
