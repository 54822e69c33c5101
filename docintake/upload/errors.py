from collections.abc import Iterator
from dataclasses import dataclass


class UploadError(Exception):
    """Base exception for all upload and removal failures shown to users."""


class UploadValidationError(UploadError):
    """Raised when a file is rejected before any network activity (e.g. too large)."""


class TransferError(UploadError):
    """Raised when the blob transfer or blob deletion fails or times out."""


class PersistenceError(UploadError):
    """Raised when the document status cannot be written after a transfer."""


class FetchError(UploadError):
    """Raised when the latest document status cannot be loaded before a merge."""


class SlotBusyError(UploadError):
    """Raised when a slot is acted on while its upload is still running."""


@dataclass(frozen=True)
class SlotError:
    slot_id: str
    message: str


class UploadErrorList:
    """User-visible upload errors, at most one per slot.

    A new error for a slot replaces the previous one and moves it to the
    end of the list. Errors stay until dismissed or until the slot succeeds.
    """

    def __init__(self) -> None:
        self._errors: dict[str, SlotError] = {}

    def add(self, slot_id: str, message: str) -> None:
        self._errors.pop(slot_id, None)
        self._errors[slot_id] = SlotError(slot_id, message)

    def dismiss(self, slot_id: str) -> None:
        self._errors.pop(slot_id, None)

    def clear(self) -> None:
        self._errors.clear()

    def get(self, slot_id: str) -> SlotError | None:
        return self._errors.get(slot_id)

    def __iter__(self) -> Iterator[SlotError]:
        return iter(list(self._errors.values()))

    def __len__(self) -> int:
        return len(self._errors)
