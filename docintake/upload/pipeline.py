"""Upload pipeline for document slots.

Per slot: Idle -> SizeChecked -> (Queued) -> Uploading -> Persisting ->
Settled, or Failed from any active state. At most
``Settings.max_concurrent_uploads`` slots hold a transfer permit at once;
further requests wait in FIFO order.

After a successful transfer the latest document status is fetched from
the store (not the cached copy), the new file is appended and the merged
map is written back. Fetch, merge and write run under one lock per
pipeline, so concurrent uploads and removals of a session never overwrite
each other. If the merge fails, the just-uploaded blob is deleted on a
best-effort basis so no untracked file is left behind. A transfer that
times out is deleted as soon as its worker thread finishes.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath

from docintake.config.settings import Settings
from docintake.database.repositories.document_status_repository import DocumentStatusRepository
from docintake.documents.models import ApplicantRef, Slot, UploadedFile, UploadedFiles
from docintake.documents.status import add_file, remove_file
from docintake.logging.logger import Log
from docintake.storage.base import BaseBlobStore, blob_path
from docintake.upload.errors import (
    FetchError,
    PersistenceError,
    SlotBusyError,
    TransferError,
    UploadError,
    UploadErrorList,
    UploadValidationError,
)
from docintake.upload.limiter import UploadLimiter
from docintake.upload.progress import SimulatedProgress


class SlotState(str, Enum):
    IDLE = "idle"
    SIZE_CHECKED = "size_checked"
    QUEUED = "queued"
    UPLOADING = "uploading"
    PERSISTING = "persisting"
    SETTLED = "settled"
    FAILED = "failed"


BUSY_STATES = frozenset({SlotState.SIZE_CHECKED, SlotState.QUEUED, SlotState.UPLOADING, SlotState.PERSISTING})


@dataclass(frozen=True)
class UploadRequest:
    slot_id: str
    applicant_key: str
    document_type_id: str
    file_name: str
    content: bytes


@dataclass(frozen=True)
class UploadOutcome:
    file: UploadedFile
    uploaded_files: UploadedFiles


StateListener = Callable[[str, SlotState, float], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _safe_file_name(file_name: str) -> str:
    name = PurePosixPath(file_name.replace("\\", "/")).name
    if not name or name in {".", ".."}:
        raise UploadValidationError("Die Datei muss einen Dateinamen haben.")
    return name


class UploadPipeline:
    """Uploads and removes files for one user session."""

    def __init__(
        self,
        user_id: str,
        status_repo: DocumentStatusRepository,
        blob_store: BaseBlobStore,
        settings: Settings,
        listener: StateListener | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._user_id = user_id
        self._status_repo = status_repo
        self._blob_store = blob_store
        self._settings = settings
        self._listener = listener
        self._clock = clock
        self._limiter = UploadLimiter(settings.max_concurrent_uploads)
        self._states: dict[str, SlotState] = {}
        self._progress: dict[str, float] = {}
        self._removing: set[str] = set()
        self._status_lock = asyncio.Lock()
        self._background: set[asyncio.Task[None]] = set()
        self.errors = UploadErrorList()

    def state_of(self, slot_id: str) -> SlotState:
        return self._states.get(slot_id, SlotState.IDLE)

    def progress_of(self, slot_id: str) -> float:
        return self._progress.get(slot_id, 0.0)

    def is_busy(self, slot_id: str) -> bool:
        return self.state_of(slot_id) in BUSY_STATES or slot_id in self._removing

    @property
    def active_uploads(self) -> int:
        return self._limiter.active

    @property
    def queued_uploads(self) -> int:
        return self._limiter.queued

    async def upload(self, request: UploadRequest) -> UploadOutcome:
        """Run one upload through the full state machine.

        Raises:
            SlotBusyError: if the slot already has an upload or removal running.
            UploadValidationError: if the file is rejected before transfer.
            TransferError: if the blob transfer fails or times out.
            FetchError: if the latest status cannot be loaded for the merge.
            PersistenceError: if the merged status cannot be written.
        """
        slot_id = request.slot_id
        if self.is_busy(slot_id):
            raise SlotBusyError(f"Slot {slot_id} is busy")

        try:
            file_name, applicant = self._check(request)
        except UploadValidationError as exc:
            self._fail(slot_id, exc)
            raise

        if not self._limiter.has_capacity():
            self._set_state(slot_id, SlotState.QUEUED)
            Log.debug("Upload queued", user_id=self._user_id, slot_id=slot_id)
        await self._limiter.acquire()
        try:
            outcome = await self._transfer_and_persist(request, file_name, applicant)
        except UploadError as exc:
            self._fail(slot_id, exc)
            raise
        finally:
            self._limiter.release()

        self._set_state(slot_id, SlotState.SETTLED, 100.0)
        self.errors.dismiss(slot_id)
        Log.info(
            "Upload settled",
            user_id=self._user_id,
            slot_id=slot_id,
            path=outcome.file.storage_path,
        )
        return outcome

    async def remove(self, slot: Slot) -> UploadedFiles:
        """Delete a slot's file from blob storage and the document status.

        Returns the document status as written (or as found, if the entry
        was already gone).

        Raises:
            ValueError: if the slot holds no file.
            SlotBusyError: if the slot has an upload or removal running.
            TransferError: if the blob cannot be deleted.
            FetchError: if the latest status cannot be loaded.
            PersistenceError: if the updated status cannot be written.
        """
        if slot.file is None:
            raise ValueError(f"Slot {slot.slot_id} has no file to remove")
        if self.is_busy(slot.slot_id):
            raise SlotBusyError(f"Slot {slot.slot_id} is busy")

        self._removing.add(slot.slot_id)
        try:
            uploaded = await self._remove_file(slot, slot.file)
        except UploadError as exc:
            self.errors.add(slot.slot_id, str(exc))
            Log.error(f"Removal failed: {exc}", user_id=self._user_id, slot_id=slot.slot_id)
            raise
        finally:
            self._removing.discard(slot.slot_id)

        self._states.pop(slot.slot_id, None)
        self._progress.pop(slot.slot_id, None)
        self.errors.dismiss(slot.slot_id)
        return uploaded

    def _check(self, request: UploadRequest) -> tuple[str, ApplicantRef]:
        self._set_state(request.slot_id, SlotState.IDLE)
        try:
            applicant = ApplicantRef.from_key(request.applicant_key)
        except ValueError as exc:
            raise UploadValidationError(str(exc)) from exc
        file_name = _safe_file_name(request.file_name)
        size = len(request.content)
        limit = self._settings.max_upload_size_bytes
        if size > limit:
            raise UploadValidationError(
                f"Die Datei ist zu groß. Maximale Größe: {limit / 1024 / 1024:.0f}MB. "
                f"Ihre Datei: {size / 1024 / 1024:.1f}MB"
            )
        self._set_state(request.slot_id, SlotState.SIZE_CHECKED)
        return file_name, applicant

    async def _transfer_and_persist(
        self,
        request: UploadRequest,
        file_name: str,
        applicant: ApplicantRef,
    ) -> UploadOutcome:
        slot_id = request.slot_id
        now = self._clock()
        # Stored timestamps carry milliseconds only.
        uploaded_at = now.replace(microsecond=now.microsecond // 1000 * 1000)
        millis = int(uploaded_at.timestamp()) * 1000 + uploaded_at.microsecond // 1000
        stored_name = f"{millis}_{file_name}"
        path = blob_path(self._user_id, request.applicant_key, request.document_type_id, stored_name)

        self._set_state(slot_id, SlotState.UPLOADING, 0.0)
        async with SimulatedProgress(
            lambda value: self._set_progress(slot_id, value),
            self._settings.progress_tick_seconds,
        ) as progress:
            await self._put_blob(path, request.content)
        progress.complete()

        self._set_state(slot_id, SlotState.PERSISTING, 100.0)
        file = UploadedFile(
            file_name=file_name,
            storage_path=path,
            uploaded_at=uploaded_at,
            document_type_id=request.document_type_id,
            applicant_type=applicant.kind.value,
            applicant_uuid=applicant.uuid,
        )
        try:
            uploaded = await self._append_file(request.applicant_key, file)
        except UploadError:
            await self._rollback_blob(path)
            raise

        # Hold 100% briefly so the bar does not vanish the moment it fills.
        await asyncio.sleep(self._settings.progress_hold_seconds)
        return UploadOutcome(file=file, uploaded_files=uploaded)

    async def _put_blob(self, path: str, content: bytes) -> None:
        put = asyncio.ensure_future(asyncio.to_thread(self._blob_store.put, path, content))
        try:
            await asyncio.wait_for(asyncio.shield(put), timeout=self._settings.upload_timeout_seconds)
        except asyncio.TimeoutError as exc:
            # The worker thread cannot be stopped; delete the blob once it lands.
            put.add_done_callback(lambda done: self._discard_late_blob(path, done))
            raise TransferError(
                "Zeitüberschreitung beim Hochladen des Dokuments."
            ) from exc
        except Exception as exc:
            Log.error(f"Blob transfer failed: {exc}", user_id=self._user_id, path=path)
            raise TransferError("Fehler beim Hochladen des Dokuments.") from exc

    async def _append_file(self, applicant_key: str, file: UploadedFile) -> UploadedFiles:
        async with self._status_lock:
            return await self._merge_file(applicant_key, file)

    async def _merge_file(self, applicant_key: str, file: UploadedFile) -> UploadedFiles:
        try:
            current = await asyncio.to_thread(self._status_repo.get, self._user_id)
        except Exception as exc:
            Log.error(f"Could not load document status before merge: {exc}", user_id=self._user_id)
            raise FetchError("Fehler beim Laden des aktuellen Dokumentenstatus.") from exc

        merged = add_file(current, applicant_key, file)
        try:
            await asyncio.to_thread(self._status_repo.save, self._user_id, merged)
        except Exception as exc:
            Log.error(f"Could not write document status: {exc}", user_id=self._user_id)
            raise PersistenceError("Fehler beim Speichern des Dokumentenstatus.") from exc
        return merged

    async def _rollback_blob(self, path: str) -> None:
        try:
            await asyncio.to_thread(self._blob_store.delete, [path])
            Log.warning("Rolled back uploaded blob", user_id=self._user_id, path=path)
        except Exception as exc:
            Log.error(f"Rollback of uploaded blob failed: {exc}", user_id=self._user_id, path=path)

    async def _remove_file(self, slot: Slot, file: UploadedFile) -> UploadedFiles:
        try:
            await asyncio.to_thread(self._blob_store.delete, [file.storage_path])
        except Exception as exc:
            raise TransferError("Fehler beim Löschen des Dokuments.") from exc

        async with self._status_lock:
            return await self._drop_entry(slot, file)

    async def _drop_entry(self, slot: Slot, file: UploadedFile) -> UploadedFiles:
        try:
            current = await asyncio.to_thread(self._status_repo.get, self._user_id)
        except Exception as exc:
            raise FetchError("Fehler beim Laden des aktuellen Dokumentenstatus.") from exc

        updated, removed = remove_file(
            current,
            slot.applicant_key,
            slot.document_type_id,
            file.file_name,
            file.uploaded_at,
        )
        if not removed:
            Log.warning(
                "File entry already absent from document status",
                user_id=self._user_id,
                slot_id=slot.slot_id,
            )
            return current

        try:
            await asyncio.to_thread(self._status_repo.save, self._user_id, updated)
        except Exception as exc:
            raise PersistenceError("Fehler beim Speichern des Dokumentenstatus.") from exc
        Log.info("File removed", user_id=self._user_id, slot_id=slot.slot_id)
        return updated

    def _discard_late_blob(self, path: str, put: asyncio.Future[None]) -> None:
        if put.cancelled():
            return
        if put.exception() is not None:
            Log.warning(f"Timed out blob transfer failed later: {put.exception()}", user_id=self._user_id, path=path)
            return
        task = asyncio.ensure_future(self._rollback_blob(path))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _fail(self, slot_id: str, exc: UploadError) -> None:
        self._set_state(slot_id, SlotState.FAILED, 0.0)
        self.errors.add(slot_id, str(exc))
        Log.error(f"Upload failed: {exc}", user_id=self._user_id, slot_id=slot_id)

    def _set_state(self, slot_id: str, state: SlotState, progress: float | None = None) -> None:
        self._states[slot_id] = state
        if progress is not None:
            self._progress[slot_id] = progress
        self._notify(slot_id)

    def _set_progress(self, slot_id: str, value: float) -> None:
        self._progress[slot_id] = value
        self._notify(slot_id)

    def _notify(self, slot_id: str) -> None:
        if self._listener is not None:
            self._listener(slot_id, self.state_of(slot_id), self.progress_of(slot_id))
