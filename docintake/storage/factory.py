from docintake.config.settings import Settings
from docintake.storage.base import BaseBlobStore
from docintake.storage.local_blob_store import LocalBlobStore
from docintake.storage.memory_blob_store import MemoryBlobStore


class BlobStoreFactory:
    """Creates the blob store adapter selected in settings."""

    BACKENDS: tuple[str, ...] = ("local", "memory")

    @classmethod
    def create(cls, settings: Settings) -> BaseBlobStore:
        backend = settings.storage_backend.lower()
        if backend == "local":
            return LocalBlobStore(files_root=settings.files_root)
        if backend == "memory":
            return MemoryBlobStore()
        raise ValueError(
            f"Unknown storage backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
        )
