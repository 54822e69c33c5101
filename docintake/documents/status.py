"""Pure helpers over the nested ``applicant key -> doc type -> files`` map."""

from datetime import datetime
from typing import Any

from docintake.documents.models import UploadedFile, UploadedFiles
from docintake.logging.logger import Log


def _read_entry(doc_id: str, entry: Any) -> UploadedFile:
    if not isinstance(entry, dict):
        raise ValueError("entry is not an object")
    if entry.get("uploaded") is False:
        raise ValueError("entry is not marked as uploaded")
    return UploadedFile.from_dict({"documentTypeId": doc_id, **entry})


def parse_status(raw: Any) -> UploadedFiles:
    """Read the persisted document status JSON.

    Unreadable file entries are skipped with a warning rather than failing
    the whole load; ``carry_unparsed`` puts them back on write. Files come
    back sorted by upload time, oldest first.
    """
    result: UploadedFiles = {}
    if not isinstance(raw, dict):
        return result
    for applicant_key, documents in raw.items():
        if not isinstance(documents, dict):
            continue
        parsed_docs: dict[str, list[UploadedFile]] = {}
        for doc_id, entries in documents.items():
            if not isinstance(entries, list):
                continue
            files: list[UploadedFile] = []
            for entry in entries:
                try:
                    files.append(_read_entry(doc_id, entry))
                except ValueError as exc:
                    Log.warning(
                        f"Skipping unreadable uploaded file entry: {exc}",
                        applicant_key=applicant_key,
                        document_type_id=doc_id,
                    )
            parsed_docs[doc_id] = sort_chronologically(files)
        result[applicant_key] = parsed_docs
    return result


def carry_unparsed(payload: dict[str, Any], raw: Any) -> dict[str, Any]:
    """Re-attach stored values ``parse_status`` could not read.

    ``payload`` is a serialized status about to overwrite ``raw``. Entries
    and document lists the parser skipped are kept as stored, but only for
    applicant sections still present in ``payload``: dropping a whole
    section drops its leftovers too.
    """
    if not isinstance(raw, dict):
        return payload
    result = {
        applicant_key: {doc_id: list(entries) for doc_id, entries in documents.items()}
        for applicant_key, documents in payload.items()
    }
    for applicant_key, documents in raw.items():
        if applicant_key not in result or not isinstance(documents, dict):
            continue
        target = result[applicant_key]
        for doc_id, entries in documents.items():
            if not isinstance(entries, list):
                target.setdefault(doc_id, entries)
                continue
            leftovers = []
            for entry in entries:
                try:
                    _read_entry(doc_id, entry)
                except ValueError:
                    leftovers.append(entry)
            if leftovers and isinstance(target.get(doc_id, []), list):
                target[doc_id] = [*target.get(doc_id, []), *leftovers]
    return result


def serialize_status(uploaded: UploadedFiles) -> dict[str, dict[str, list[dict[str, Any]]]]:
    return {
        applicant_key: {
            doc_id: [file.to_dict() for file in files] for doc_id, files in documents.items()
        }
        for applicant_key, documents in uploaded.items()
    }


def sort_chronologically(files: list[UploadedFile]) -> list[UploadedFile]:
    """Oldest first; ties keep their stored order."""
    return sorted(files, key=lambda file: file.uploaded_at)


def files_for(uploaded: UploadedFiles, applicant_key: str, doc_id: str) -> list[UploadedFile]:
    return sort_chronologically(uploaded.get(applicant_key, {}).get(doc_id, []))


def add_file(uploaded: UploadedFiles, applicant_key: str, file: UploadedFile) -> UploadedFiles:
    """Return a copy with ``file`` appended under its document type."""
    result = copy_status(uploaded)
    documents = result.setdefault(applicant_key, {})
    documents[file.document_type_id] = sort_chronologically(
        [*documents.get(file.document_type_id, []), file]
    )
    return result


def remove_file(
    uploaded: UploadedFiles,
    applicant_key: str,
    doc_id: str,
    file_name: str,
    uploaded_at: datetime,
) -> tuple[UploadedFiles, bool]:
    """Return a copy without the entry matching name and timestamp.

    Matching by identity rather than list position keeps removal correct
    even if another session appended files in the meantime.
    """
    result = copy_status(uploaded)
    files = result.get(applicant_key, {}).get(doc_id)
    if not files:
        return result, False
    remaining = [file for file in files if not file.matches(file_name, uploaded_at)]
    if len(remaining) == len(files):
        return result, False
    result[applicant_key][doc_id] = remaining
    return result, True


def copy_status(uploaded: UploadedFiles) -> UploadedFiles:
    return {
        applicant_key: {doc_id: list(files) for doc_id, files in documents.items()}
        for applicant_key, documents in uploaded.items()
    }
