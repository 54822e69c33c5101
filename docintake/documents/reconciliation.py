from docintake.database.repositories.optional_selection_repository import OptionalSelectionRepository
from docintake.documents.models import OptionalSelection, RequiredDocumentSet, UploadedFiles
from docintake.logging.logger import Log


def reconcile_selection(
    required: RequiredDocumentSet,
    optional: OptionalSelection,
    uploaded: UploadedFiles,
) -> tuple[OptionalSelection, bool]:
    """Bring optional selections in line with requirements and uploads.

    Promotion: an optional id that is now required is dropped from the
    optional list. Grandfathering: a document type that has files but is
    neither required nor optional is added to the optional list, so that
    earlier evidence stays visible after its requirement disappears.

    Returns the corrected selection and whether anything changed. The input
    is not mutated; running the function on its own output is a no-op.
    """
    corrected: OptionalSelection = {}
    changed = False

    for applicant_key, doc_ids in optional.items():
        required_ids = set(required.for_key(applicant_key))
        kept = [doc_id for doc_id in dict.fromkeys(doc_ids) if doc_id not in required_ids]
        if kept != list(doc_ids):
            changed = True
        corrected[applicant_key] = kept

    for applicant_key, documents in uploaded.items():
        required_ids = set(required.for_key(applicant_key))
        for doc_id, files in documents.items():
            if not files or doc_id in required_ids:
                continue
            selected = corrected.setdefault(applicant_key, [])
            if doc_id not in selected:
                selected.append(doc_id)
                changed = True

    return corrected, changed


class Reconciler:
    """Runs reconciliation and writes corrections back to the selection store."""

    def __init__(self, optional_repo: OptionalSelectionRepository) -> None:
        self._optional_repo = optional_repo

    def reconcile(
        self,
        user_id: str,
        required: RequiredDocumentSet,
        optional: OptionalSelection,
        uploaded: UploadedFiles,
    ) -> tuple[OptionalSelection, bool]:
        """Reconcile and persist. Callers must continue with the returned map.

        Raises:
            Whatever the optional-selection store raises on write.
        """
        corrected, changed = reconcile_selection(required, optional, uploaded)
        if changed:
            self._optional_repo.save(user_id, corrected)
            Log.info("Optional document selection corrected", user_id=user_id)
        return corrected, changed
