import asyncio
import threading
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from docintake.documents.models import Slot
from docintake.documents.status import copy_status
from docintake.storage.exceptions import BlobStoreError
from docintake.storage.memory_blob_store import MemoryBlobStore
from docintake.upload.errors import (
    FetchError,
    PersistenceError,
    SlotBusyError,
    TransferError,
    UploadValidationError,
)
from docintake.upload.pipeline import SlotState, UploadPipeline, UploadRequest


class _SlowBlobStore(MemoryBlobStore):
    """Memory store whose writes block for a while and record concurrency."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self._delay = delay
        self._lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0
        self.started: list[str] = []

    def put(self, path: str, content: bytes) -> None:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            self.started.append(path.rsplit("_", 1)[-1])
        time.sleep(self._delay)
        with self._lock:
            self.in_flight -= 1
        super().put(path, content)


class _SlowStatusRepo:
    """In-memory document status whose reads and writes take a while."""

    def __init__(self, delay: float, uploaded: dict | None = None) -> None:
        self._delay = delay
        self.uploaded = uploaded or {}

    def get(self, user_id: str) -> dict:
        snapshot = copy_status(self.uploaded)
        time.sleep(self._delay)
        return snapshot

    def save(self, user_id: str, uploaded: dict) -> None:
        time.sleep(self._delay)
        self.uploaded = copy_status(uploaded)


def _request(index: int = 0, content: bytes = b"%PDF-1.4", doc_id: str = "meldebescheinigung") -> UploadRequest:
    return UploadRequest(
        slot_id=f"general_{doc_id}_{index}",
        applicant_key="general",
        document_type_id=doc_id,
        file_name=f"{index}.pdf",
        content=content,
    )


def _make_pipeline(settings, blob_store=None, status_repo=None, listener=None) -> tuple[UploadPipeline, MagicMock, MemoryBlobStore]:
    repo = status_repo or MagicMock()
    if status_repo is None:
        repo.get.return_value = {}
    store = blob_store if blob_store is not None else MemoryBlobStore()
    pipeline = UploadPipeline("u1", repo, store, settings, listener=listener)
    return pipeline, repo, store


class TestSuccessfulUpload:
    @pytest.mark.asyncio
    async def test_stores_blob_and_merges_status(self, fast_settings) -> None:
        pipeline, repo, store = _make_pipeline(fast_settings)

        outcome = await pipeline.upload(_request())

        assert outcome.file.file_name == "0.pdf"
        assert outcome.file.storage_path.startswith("u1/general/meldebescheinigung/")
        assert store.blobs[outcome.file.storage_path] == b"%PDF-1.4"
        saved_user, saved_map = repo.save.call_args.args
        assert saved_user == "u1"
        assert saved_map["general"]["meldebescheinigung"] == [outcome.file]
        assert outcome.uploaded_files == saved_map
        assert pipeline.state_of("general_meldebescheinigung_0") is SlotState.SETTLED
        assert pipeline.progress_of("general_meldebescheinigung_0") == 100.0

    @pytest.mark.asyncio
    async def test_merges_into_latest_store_state(self, fast_settings, make_file) -> None:
        existing = make_file(name="other-session.pdf")
        repo = MagicMock()
        repo.get.return_value = {"general": {"meldebescheinigung": [existing]}}
        pipeline, _, _ = _make_pipeline(fast_settings, status_repo=repo)

        outcome = await pipeline.upload(_request(1))

        saved = repo.save.call_args.args[1]["general"]["meldebescheinigung"]
        assert saved == [existing, outcome.file]

    @pytest.mark.asyncio
    async def test_records_applicant_of_additional_person(self, fast_settings) -> None:
        pipeline, _, _ = _make_pipeline(fast_settings)
        request = UploadRequest("applicant_u7_rentenbescheid_0", "applicant_u7", "rentenbescheid", "r.pdf", b"x")

        outcome = await pipeline.upload(request)

        assert outcome.file.applicant_type == "applicant"
        assert outcome.file.applicant_uuid == "u7"
        assert outcome.file.storage_path.startswith("u1/applicant_u7/rentenbescheid/")

    @pytest.mark.asyncio
    async def test_notifies_state_transitions_in_order(self, fast_settings) -> None:
        seen: list[SlotState] = []
        pipeline, _, _ = _make_pipeline(fast_settings, listener=lambda _slot, state, _p: seen.append(state))

        await pipeline.upload(_request())

        transitions = [state for index, state in enumerate(seen) if index == 0 or seen[index - 1] is not state]
        assert transitions == [
            SlotState.IDLE,
            SlotState.SIZE_CHECKED,
            SlotState.UPLOADING,
            SlotState.PERSISTING,
            SlotState.SETTLED,
        ]

    @pytest.mark.asyncio
    async def test_success_dismisses_previous_error(self, fast_settings) -> None:
        pipeline, _, _ = _make_pipeline(fast_settings)
        pipeline.errors.add("general_meldebescheinigung_0", "old failure")

        await pipeline.upload(_request())

        assert pipeline.errors.get("general_meldebescheinigung_0") is None

    @pytest.mark.asyncio
    async def test_strips_directories_from_file_name(self, fast_settings) -> None:
        pipeline, _, _ = _make_pipeline(fast_settings)
        request = UploadRequest("general_lageplan_0", "general", "lageplan", "../../etc/plan.pdf", b"x")

        outcome = await pipeline.upload(request)

        assert outcome.file.file_name == "plan.pdf"


class TestConcurrencyCap:
    @pytest.mark.asyncio
    async def test_five_uploads_run_at_most_three_at_once_in_fifo_order(self, fast_settings) -> None:
        store = _SlowBlobStore(delay=0.1)
        pipeline, _, _ = _make_pipeline(fast_settings, blob_store=store)

        tasks = [asyncio.create_task(pipeline.upload(_request(i))) for i in range(5)]
        await asyncio.sleep(0.03)

        states = [pipeline.state_of(f"general_meldebescheinigung_{i}") for i in range(5)]
        assert states[:3] == [SlotState.UPLOADING] * 3
        assert states[3:] == [SlotState.QUEUED] * 2
        assert pipeline.active_uploads == 3
        assert pipeline.queued_uploads == 2

        await asyncio.gather(*tasks)

        assert store.max_in_flight == 3
        assert store.started.index("3.pdf") < store.started.index("4.pdf")
        assert pipeline.active_uploads == 0
        assert all(pipeline.state_of(f"general_meldebescheinigung_{i}") is SlotState.SETTLED for i in range(5))


class TestStatusMerge:
    @pytest.mark.asyncio
    async def test_concurrent_uploads_keep_every_entry(self, fast_settings) -> None:
        repo = _SlowStatusRepo(delay=0.03)
        pipeline, _, _ = _make_pipeline(fast_settings, status_repo=repo)
        doc_ids = ["meldebescheinigung", "eigenkapital_nachweis", "lageplan"]

        await asyncio.gather(*(pipeline.upload(_request(doc_id=doc_id)) for doc_id in doc_ids))

        assert sorted(repo.uploaded["general"]) == sorted(doc_ids)
        assert all(len(files) == 1 for files in repo.uploaded["general"].values())

    @pytest.mark.asyncio
    async def test_removal_does_not_overwrite_concurrent_upload(self, fast_settings, make_file) -> None:
        existing = make_file(doc_id="lageplan", name="plan.pdf")
        repo = _SlowStatusRepo(delay=0.03, uploaded={"general": {"lageplan": [existing]}})
        pipeline, _, store = _make_pipeline(fast_settings, status_repo=repo)
        store.put(existing.storage_path, b"x")
        slot = Slot("general_lageplan_0", "lageplan", "general", True, False, existing)

        await asyncio.gather(pipeline.upload(_request()), pipeline.remove(slot))

        assert repo.uploaded["general"]["lageplan"] == []
        assert len(repo.uploaded["general"]["meldebescheinigung"]) == 1

    @pytest.mark.asyncio
    async def test_uploaded_at_is_stored_at_millisecond_precision(self, fast_settings) -> None:
        def clock() -> datetime:
            return datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)

        repo = MagicMock()
        repo.get.return_value = {}
        pipeline = UploadPipeline("u1", repo, MemoryBlobStore(), fast_settings, clock=clock)

        outcome = await pipeline.upload(_request())

        assert outcome.file.uploaded_at.microsecond == 123000
        assert outcome.file.storage_path.endswith("/1714564800123_0.pdf")


class TestSizeCheck:
    @pytest.mark.asyncio
    async def test_oversized_file_is_rejected_before_any_io(self, fast_settings) -> None:
        pipeline, repo, store = _make_pipeline(fast_settings)
        content = b"\0" * (51 * 1024 * 1024)

        with pytest.raises(UploadValidationError, match="zu groß"):
            await pipeline.upload(_request(content=content))

        assert store.blobs == {}
        repo.get.assert_not_called()
        repo.save.assert_not_called()
        assert pipeline.state_of("general_meldebescheinigung_0") is SlotState.FAILED
        assert pipeline.errors.get("general_meldebescheinigung_0") is not None
        assert pipeline.active_uploads == 0
        assert pipeline.queued_uploads == 0

    @pytest.mark.asyncio
    async def test_file_at_limit_is_accepted(self, fast_settings) -> None:
        fast_settings.max_upload_size_bytes = 10
        pipeline, _, _ = _make_pipeline(fast_settings)

        outcome = await pipeline.upload(_request(content=b"0123456789"))

        assert outcome.file.file_name == "0.pdf"

    @pytest.mark.asyncio
    async def test_unknown_applicant_key_fails_without_holding_the_slot(self, fast_settings) -> None:
        pipeline, repo, store = _make_pipeline(fast_settings)
        request = UploadRequest("bogus_x_0", "bogus", "meldebescheinigung", "a.pdf", b"x")

        with pytest.raises(UploadValidationError):
            await pipeline.upload(request)

        assert store.blobs == {}
        repo.save.assert_not_called()
        assert not pipeline.is_busy("bogus_x_0")
        assert pipeline.state_of("bogus_x_0") is SlotState.FAILED


class TestFailures:
    @pytest.mark.asyncio
    async def test_transfer_failure_frees_the_slot(self, fast_settings) -> None:
        store = MagicMock()
        store.put.side_effect = BlobStoreError("disk full")
        pipeline, repo, _ = _make_pipeline(fast_settings, blob_store=store)

        with pytest.raises(TransferError):
            await pipeline.upload(_request())

        repo.get.assert_not_called()
        assert pipeline.active_uploads == 0
        assert pipeline.state_of("general_meldebescheinigung_0") is SlotState.FAILED

    @pytest.mark.asyncio
    async def test_transfer_timeout(self, fast_settings) -> None:
        fast_settings.upload_timeout_seconds = 0.02
        pipeline, repo, _ = _make_pipeline(fast_settings, blob_store=_SlowBlobStore(delay=0.2))

        with pytest.raises(TransferError, match="Zeitüberschreitung"):
            await pipeline.upload(_request())

        repo.save.assert_not_called()
        assert pipeline.active_uploads == 0
        # Let the late write finish before the loop closes.
        await asyncio.sleep(0.3)

    @pytest.mark.asyncio
    async def test_blob_finishing_after_timeout_is_deleted(self, fast_settings) -> None:
        fast_settings.upload_timeout_seconds = 0.02
        store = _SlowBlobStore(delay=0.1)
        pipeline, repo, _ = _make_pipeline(fast_settings, blob_store=store)

        with pytest.raises(TransferError):
            await pipeline.upload(_request())
        await asyncio.sleep(0.4)

        assert len(store.started) == 1
        assert store.blobs == {}
        repo.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_persistence_failure_rolls_back_blob(self, fast_settings) -> None:
        repo = MagicMock()
        repo.get.return_value = {}
        repo.save.side_effect = RuntimeError("db down")
        pipeline, _, store = _make_pipeline(fast_settings, status_repo=repo)

        with pytest.raises(PersistenceError):
            await pipeline.upload(_request())

        assert store.blobs == {}
        assert pipeline.state_of("general_meldebescheinigung_0") is SlotState.FAILED
        assert pipeline.errors.get("general_meldebescheinigung_0").message.startswith("Fehler beim Speichern")

    @pytest.mark.asyncio
    async def test_fetch_failure_rolls_back_blob(self, fast_settings) -> None:
        repo = MagicMock()
        repo.get.side_effect = RuntimeError("db down")
        pipeline, _, store = _make_pipeline(fast_settings, status_repo=repo)

        with pytest.raises(FetchError):
            await pipeline.upload(_request())

        assert store.blobs == {}
        repo.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_rollback_failure_keeps_original_error(self, fast_settings) -> None:
        store = MemoryBlobStore()
        store.delete = MagicMock(side_effect=BlobStoreError("gone"))
        repo = MagicMock()
        repo.get.return_value = {}
        repo.save.side_effect = RuntimeError("db down")
        pipeline, _, _ = _make_pipeline(fast_settings, blob_store=store, status_repo=repo)

        with pytest.raises(PersistenceError):
            await pipeline.upload(_request())

        store.delete.assert_called_once()


class TestRemoval:
    def _slot(self, file) -> Slot:
        return Slot(
            slot_id="general_meldebescheinigung_0",
            document_type_id="meldebescheinigung",
            applicant_key="general",
            is_main_slot=True,
            is_required=True,
            file=file,
        )

    @pytest.mark.asyncio
    async def test_deletes_blob_and_status_entry(self, fast_settings, make_file) -> None:
        keep = make_file(name="keep.pdf", minute=1)
        drop = make_file(name="drop.pdf", minute=2)
        repo = MagicMock()
        repo.get.return_value = {"general": {"meldebescheinigung": [keep, drop]}}
        store = MemoryBlobStore()
        store.put(drop.storage_path, b"x")
        pipeline, _, _ = _make_pipeline(fast_settings, blob_store=store, status_repo=repo)

        result = await pipeline.remove(self._slot(drop))

        assert store.blobs == {}
        repo.save.assert_called_once_with("u1", {"general": {"meldebescheinigung": [keep]}})
        assert result == {"general": {"meldebescheinigung": [keep]}}

    @pytest.mark.asyncio
    async def test_entry_already_gone_skips_write(self, fast_settings, make_file) -> None:
        repo = MagicMock()
        repo.get.return_value = {}
        pipeline, _, _ = _make_pipeline(fast_settings, status_repo=repo)

        result = await pipeline.remove(self._slot(make_file()))

        assert result == {}
        repo.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_slot_without_file_raises(self, fast_settings) -> None:
        pipeline, _, _ = _make_pipeline(fast_settings)
        with pytest.raises(ValueError):
            await pipeline.remove(self._slot(None))

    @pytest.mark.asyncio
    async def test_rejected_while_slot_is_uploading(self, fast_settings, make_file) -> None:
        pipeline, _, _ = _make_pipeline(fast_settings, blob_store=_SlowBlobStore(delay=0.1))
        task = asyncio.create_task(pipeline.upload(_request()))
        await asyncio.sleep(0.02)

        with pytest.raises(SlotBusyError):
            await pipeline.remove(self._slot(make_file()))

        await task

    @pytest.mark.asyncio
    async def test_blob_delete_failure_is_reported(self, fast_settings, make_file) -> None:
        store = MagicMock()
        store.delete.side_effect = BlobStoreError("denied")
        pipeline, repo, _ = _make_pipeline(fast_settings, blob_store=store)

        with pytest.raises(TransferError):
            await pipeline.remove(self._slot(make_file()))

        repo.save.assert_not_called()
        assert pipeline.errors.get("general_meldebescheinigung_0") is not None

    @pytest.mark.asyncio
    async def test_persist_failure_is_reported(self, fast_settings, make_file) -> None:
        file = make_file()
        repo = MagicMock()
        repo.get.return_value = {"general": {"meldebescheinigung": [file]}}
        repo.save.side_effect = RuntimeError("db down")
        pipeline, _, _ = _make_pipeline(fast_settings, status_repo=repo)

        with pytest.raises(PersistenceError):
            await pipeline.remove(self._slot(file))
