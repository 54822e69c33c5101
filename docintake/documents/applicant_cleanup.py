from dataclasses import dataclass, field

from docintake.database.repositories.document_status_repository import DocumentStatusRepository
from docintake.database.repositories.optional_selection_repository import OptionalSelectionRepository
from docintake.documents.models import ApplicantRef
from docintake.logging.logger import Log
from docintake.storage.base import BaseBlobStore


@dataclass
class CleanupResult:
    deleted_paths: list[str] = field(default_factory=list)
    failed_paths: list[str] = field(default_factory=list)


class ApplicantCleanup:
    """Removes every document trace of an additional applicant.

    Blobs are deleted in batches; a failed batch is logged and the cleanup
    carries on, so one unreachable blob never blocks removing a person.
    Store sections are dropped afterwards regardless of blob failures.
    """

    def __init__(
        self,
        status_repo: DocumentStatusRepository,
        optional_repo: OptionalSelectionRepository,
        blob_store: BaseBlobStore,
        batch_size: int = 10,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._status_repo = status_repo
        self._optional_repo = optional_repo
        self._blob_store = blob_store
        self._batch_size = batch_size

    def remove_applicant_documents(self, user_id: str, applicant_uuid: str) -> CleanupResult:
        """Delete blobs and stored entries of one additional applicant.

        Raises:
            ValueError: if ``applicant_uuid`` is empty.
            ApplicantNotFoundError: if the user has no application record.
        """
        applicant_key = ApplicantRef.additional(applicant_uuid).key
        uploaded = self._status_repo.get(user_id)

        paths = [
            file.storage_path
            for files in uploaded.get(applicant_key, {}).values()
            for file in files
        ]
        paths.extend(
            path for path in self._list_orphans(user_id, applicant_key) if path not in paths
        )

        result = CleanupResult()
        for start in range(0, len(paths), self._batch_size):
            batch = paths[start:start + self._batch_size]
            try:
                self._blob_store.delete(batch)
                result.deleted_paths.extend(batch)
            except Exception as exc:
                Log.error(
                    f"Failed to delete blob batch: {exc}",
                    user_id=user_id,
                    applicant_key=applicant_key,
                    batch_size=len(batch),
                )
                result.failed_paths.extend(batch)

        # Re-read: uploads may have landed while blobs were being deleted.
        latest = self._status_repo.get(user_id)
        if applicant_key in latest:
            remaining = {key: docs for key, docs in latest.items() if key != applicant_key}
            self._status_repo.save(user_id, remaining)

        optional = self._optional_repo.get(user_id)
        if applicant_key in optional:
            self._optional_repo.save(
                user_id,
                {key: doc_ids for key, doc_ids in optional.items() if key != applicant_key},
            )

        Log.info(
            f"Applicant documents removed: {len(result.deleted_paths)} deleted, "
            f"{len(result.failed_paths)} failed",
            user_id=user_id,
            applicant_key=applicant_key,
        )
        return result

    def _list_orphans(self, user_id: str, applicant_key: str) -> list[str]:
        # Blobs can exist without a status entry after a failed rollback.
        try:
            return self._blob_store.list_paths(f"{user_id}/{applicant_key}")
        except Exception as exc:
            Log.warning(f"Could not list applicant blobs: {exc}", user_id=user_id, applicant_key=applicant_key)
            return []
