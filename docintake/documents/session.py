import asyncio

from docintake.config.settings import Settings
from docintake.database.repositories.document_status_repository import DocumentStatusRepository
from docintake.database.repositories.fact_repository import FactRepository
from docintake.database.repositories.optional_selection_repository import OptionalSelectionRepository
from docintake.database.repositories.progress_repository import ProgressRepository
from docintake.documents.applicant_cleanup import ApplicantCleanup
from docintake.documents.exceptions import SlotNotFoundError
from docintake.documents.models import Slot
from docintake.documents.progress import DebouncedProgressWriter
from docintake.documents.service import DocumentService
from docintake.documents.slots import find_slot
from docintake.documents.state import (
    DocumentState,
    with_optional_document,
    with_uploaded_files,
    without_optional_document,
)
from docintake.logging.logger import Log
from docintake.storage.base import BaseBlobStore
from docintake.storage.factory import BlobStoreFactory
from docintake.upload.errors import UploadValidationError
from docintake.upload.pipeline import StateListener, UploadPipeline, UploadRequest


class DocumentSession:
    """Document page of one user: current state plus the actions on it.

    Every action replaces the held ``DocumentState`` and schedules a
    debounced write of the overall score.
    """

    def __init__(
        self,
        user_id: str,
        service: DocumentService,
        optional_repo: OptionalSelectionRepository,
        pipeline: UploadPipeline,
        progress_writer: DebouncedProgressWriter,
        cleanup: ApplicantCleanup,
    ) -> None:
        self._user_id = user_id
        self._service = service
        self._optional_repo = optional_repo
        self._pipeline = pipeline
        self._progress_writer = progress_writer
        self._cleanup = cleanup
        self._state: DocumentState | None = None

    @property
    def state(self) -> DocumentState:
        if self._state is None:
            raise RuntimeError("Session not opened. Call open() first.")
        return self._state

    @property
    def pipeline(self) -> UploadPipeline:
        return self._pipeline

    async def open(self) -> DocumentState:
        """Load and reconcile the user's documents."""
        state = await asyncio.to_thread(self._service.load, self._user_id)
        self._progress_writer.last_persisted = state.persisted_progress
        self._set_state(state)
        return state

    async def upload(self, slot_id: str, file_name: str, content: bytes) -> DocumentState:
        """Upload a file into an empty slot.

        Raises:
            SlotNotFoundError: if the slot does not exist.
            UploadValidationError: if the slot already holds a file.
            UploadError: any pipeline failure, see ``UploadPipeline.upload``.
        """
        slot = self._slot(slot_id)
        if slot.has_file:
            raise UploadValidationError(f"Slot {slot_id} already holds a file")
        outcome = await self._pipeline.upload(
            UploadRequest(
                slot_id=slot.slot_id,
                applicant_key=slot.applicant_key,
                document_type_id=slot.document_type_id,
                file_name=file_name,
                content=content,
            )
        )
        self._set_state(with_uploaded_files(self.state, outcome.uploaded_files))
        return self.state

    async def remove(self, slot_id: str) -> DocumentState:
        """Remove the file held by a slot.

        Raises:
            SlotNotFoundError: if the slot does not exist.
            UploadError: any pipeline failure, see ``UploadPipeline.remove``.
        """
        uploaded = await self._pipeline.remove(self._slot(slot_id))
        self._set_state(with_uploaded_files(self.state, uploaded))
        return self.state

    async def select_optional_document(self, applicant_key: str, doc_id: str) -> DocumentState:
        """Add an optional document for an applicant and persist the selection."""
        state = with_optional_document(self.state, applicant_key, doc_id)
        if state is not self.state:
            await asyncio.to_thread(self._optional_repo.save, self._user_id, state.optional_selections)
            Log.info("Optional document selected", user_id=self._user_id, document_type_id=doc_id)
            self._set_state(state)
        return self.state

    async def deselect_optional_document(self, applicant_key: str, doc_id: str) -> DocumentState:
        """Drop an optional document. Refused while files are uploaded for it."""
        state = without_optional_document(self.state, applicant_key, doc_id)
        if state is not self.state:
            await asyncio.to_thread(self._optional_repo.save, self._user_id, state.optional_selections)
            Log.info("Optional document deselected", user_id=self._user_id, document_type_id=doc_id)
            self._set_state(state)
        return self.state

    async def remove_applicant(self, applicant_uuid: str) -> DocumentState:
        """Delete every stored document of an additional applicant and reload.

        Raises:
            ValueError: if ``applicant_uuid`` is empty.
            ApplicantNotFoundError: if the user has no application record.
        """
        await asyncio.to_thread(self._cleanup.remove_applicant_documents, self._user_id, applicant_uuid)
        return await self.open()

    async def close(self) -> None:
        """Write any pending score immediately."""
        await self._progress_writer.flush()

    def _slot(self, slot_id: str) -> Slot:
        slot = find_slot(list(self.state.sections), slot_id)
        if slot is None:
            raise SlotNotFoundError(f"Slot {slot_id} not found")
        return slot

    def _set_state(self, state: DocumentState) -> None:
        self._state = state
        if state.progress != self._progress_writer.last_persisted:
            self._progress_writer.schedule(state.progress)


def build_document_session(
    user_id: str,
    settings: Settings,
    blob_store: BaseBlobStore | None = None,
    listener: StateListener | None = None,
) -> DocumentSession:
    """Build a DocumentSession with all required adapters."""
    status_repo = DocumentStatusRepository()
    optional_repo = OptionalSelectionRepository()
    progress_repo = ProgressRepository()
    service = DocumentService(
        fact_repo=FactRepository(),
        status_repo=status_repo,
        optional_repo=optional_repo,
        progress_repo=progress_repo,
        settings=settings,
    )
    blob_store = blob_store or BlobStoreFactory.create(settings)
    pipeline = UploadPipeline(
        user_id=user_id,
        status_repo=status_repo,
        blob_store=blob_store,
        settings=settings,
        listener=listener,
    )
    progress_writer = DebouncedProgressWriter(
        progress_repo,
        user_id,
        delay_seconds=settings.progress_debounce_seconds,
        min_delta=settings.progress_min_delta,
    )
    cleanup = ApplicantCleanup(status_repo, optional_repo, blob_store)
    return DocumentSession(user_id, service, optional_repo, pipeline, progress_writer, cleanup)
