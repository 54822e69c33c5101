from pathlib import Path

from docintake.storage.base import BaseBlobStore
from docintake.storage.exceptions import BlobStoreError, InvalidBlobPathError


class LocalBlobStore(BaseBlobStore):
    """Stores blobs as files below a root directory."""

    FILES_ROOT = Path("/app/files")

    def __init__(self, files_root: Path | None = None) -> None:
        self._files_root = files_root if files_root is not None else self.FILES_ROOT

    def put(self, path: str, content: bytes) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as exc:
            raise BlobStoreError(f"Failed to write blob {path}: {exc}") from exc

    def delete(self, paths: list[str]) -> None:
        failed: list[str] = []
        for path in paths:
            target = self._resolve(path)
            try:
                target.unlink(missing_ok=True)
            except OSError:
                failed.append(path)
        if failed:
            raise BlobStoreError(f"Failed to delete blobs: {', '.join(failed)}")

    def list_paths(self, prefix: str) -> list[str]:
        base = self._resolve(prefix)
        if not base.exists():
            return []
        try:
            return sorted(
                file.relative_to(self._files_root.resolve()).as_posix()
                for file in base.rglob("*")
                if file.is_file()
            )
        except OSError as exc:
            raise BlobStoreError(f"Failed to list blobs under {prefix}: {exc}") from exc

    def _resolve(self, path: str) -> Path:
        if not path or not path.strip("/"):
            raise InvalidBlobPathError("Blob path must not be empty")
        root = self._files_root.resolve()
        target = (root / path).resolve()
        if root not in target.parents:
            raise InvalidBlobPathError(f"Blob path escapes storage root: {path}")
        return target
