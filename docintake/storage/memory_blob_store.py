from docintake.storage.base import BaseBlobStore


class MemoryBlobStore(BaseBlobStore):
    """Keeps blobs in a dict. For local development and tests."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}

    def put(self, path: str, content: bytes) -> None:
        self.blobs[path] = content

    def delete(self, paths: list[str]) -> None:
        for path in paths:
            self.blobs.pop(path, None)

    def list_paths(self, prefix: str) -> list[str]:
        normalized = prefix.rstrip("/") + "/"
        return sorted(path for path in self.blobs if path.startswith(normalized))
