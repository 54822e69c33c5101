from abc import ABC, abstractmethod


def blob_path(user_id: str, applicant_key: str, document_type_id: str, file_name: str) -> str:
    """Build a blob path: {user_id}/{applicant_key}/{document_type_id}/{file_name}"""
    return f"{user_id}/{applicant_key}/{document_type_id}/{file_name}"


class BaseBlobStore(ABC):
    """Contract for all document blob storage adapters."""

    @abstractmethod
    def put(self, path: str, content: bytes) -> None:
        """Store ``content`` under ``path``, replacing any existing blob.

        Raises:
            BlobStoreError: if the blob cannot be written.
        """

    @abstractmethod
    def delete(self, paths: list[str]) -> None:
        """Delete the given blobs. Paths that do not exist are ignored.

        Raises:
            BlobStoreError: if any existing blob cannot be deleted.
        """

    @abstractmethod
    def list_paths(self, prefix: str) -> list[str]:
        """Return all blob paths below ``prefix``, sorted.

        Raises:
            BlobStoreError: if the listing fails.
        """
