class BlobStoreError(Exception):
    """Raised when a blob cannot be written, listed or deleted."""


class InvalidBlobPathError(BlobStoreError):
    """Raised when a blob path escapes the storage root or is empty."""
