from dataclasses import dataclass

from docintake.documents.registry import document_title, sort_by_title
from docintake.documents.state import DocumentState


@dataclass(frozen=True)
class MissingDocuments:
    applicant_key: str
    display_name: str
    titles: tuple[str, ...]


def missing_documents(state: DocumentState) -> list[MissingDocuments]:
    """Required documents without any uploaded file, per applicant section.

    Sections with nothing missing are left out.
    """
    report = []
    for section in state.sections:
        missing: dict[str, bool] = {}
        for slot in section.slots:
            if not slot.is_required:
                continue
            missing[slot.document_type_id] = missing.get(slot.document_type_id, True) and not slot.has_file
        doc_ids = [doc_id for doc_id, is_missing in missing.items() if is_missing]
        if doc_ids:
            titles = tuple(document_title(doc_id) for doc_id in sort_by_title(doc_ids, state.locale))
            report.append(MissingDocuments(section.applicant_key, section.display_name, titles))
    return report
