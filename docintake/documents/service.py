from docintake.config.settings import Settings
from docintake.database.models import ProgressRecord
from docintake.database.repositories.document_status_repository import DocumentStatusRepository
from docintake.database.repositories.fact_repository import FactRepository
from docintake.database.repositories.optional_selection_repository import OptionalSelectionRepository
from docintake.database.repositories.progress_repository import ProgressRepository
from docintake.documents.applicants import ApplicantDirectory
from docintake.documents.exceptions import ApplicantNotFoundError
from docintake.documents.models import (
    ApplicationFacts,
    OptionalSelection,
    RequiredDocumentSet,
    UploadedFiles,
)
from docintake.documents.reconciliation import Reconciler, reconcile_selection
from docintake.documents.requirements import derive_requirements
from docintake.documents.state import DocumentState, build_state
from docintake.logging.logger import Log


class DocumentService:
    """Loads everything a document page needs and reconciles it.

    Load: facts -> derive requirements -> read optional selection and
    document status -> reconcile (writing corrections) -> slots + score.
    """

    def __init__(
        self,
        fact_repo: FactRepository,
        status_repo: DocumentStatusRepository,
        optional_repo: OptionalSelectionRepository,
        progress_repo: ProgressRepository,
        settings: Settings,
    ) -> None:
        self._fact_repo = fact_repo
        self._status_repo = status_repo
        self._optional_repo = optional_repo
        self._progress_repo = progress_repo
        self._reconciler = Reconciler(optional_repo)
        self._settings = settings

    def load(self, user_id: str) -> DocumentState:
        """Build the reconciled document state of a user.

        If the facts cannot be loaded or requirements cannot be derived, the
        requirement set is empty and no correction is written back. The same
        holds when the stored selection or uploads cannot be read: the state
        is built from empty maps. A transient error can never rewrite stored
        selections.

        Raises:
            ApplicantNotFoundError: if the user has no application record.
        """
        Log.info("Loading documents", user_id=user_id)
        facts = self._load_facts(user_id)
        requirements = self._derive(user_id, facts) if facts is not None else None

        stores_loaded = True
        try:
            optional = self._optional_repo.get(user_id)
            uploaded = self._status_repo.get(user_id)
        except ApplicantNotFoundError:
            raise
        except Exception as exc:
            Log.error(f"Failed to load stored documents: {exc}", user_id=user_id)
            optional, uploaded = {}, {}
            stores_loaded = False

        if stores_loaded and requirements is not None:
            optional = self._reconcile(user_id, requirements, optional, uploaded)

        progress = self._load_progress(user_id)
        state = build_state(
            directory=ApplicantDirectory.from_facts(facts or ApplicationFacts()),
            requirements=requirements or RequiredDocumentSet(),
            optional_selections=optional,
            uploaded_files=uploaded,
            form_progress=progress.forms,
            persisted_progress=progress.application_progress,
            locale=self._settings.collation_locale,
        )
        Log.info(
            f"Documents loaded: {len(state.slots)} slots, progress {state.progress}%",
            user_id=user_id,
        )
        return state

    def _load_facts(self, user_id: str) -> ApplicationFacts | None:
        try:
            return self._fact_repo.load(user_id)
        except ApplicantNotFoundError:
            raise
        except Exception as exc:
            Log.error(f"Failed to load application facts: {exc}", user_id=user_id)
            return None

    def _derive(self, user_id: str, facts: ApplicationFacts) -> RequiredDocumentSet | None:
        try:
            return derive_requirements(facts, self._settings.collation_locale)
        except Exception as exc:
            Log.error(f"Requirement derivation failed: {exc}", user_id=user_id)
            return None

    def _reconcile(
        self,
        user_id: str,
        requirements: RequiredDocumentSet,
        optional: OptionalSelection,
        uploaded: UploadedFiles,
    ) -> OptionalSelection:
        try:
            corrected, _ = self._reconciler.reconcile(user_id, requirements, optional, uploaded)
        except Exception as exc:
            Log.warning(f"Could not persist corrected selection: {exc}", user_id=user_id)
            corrected, _ = reconcile_selection(requirements, optional, uploaded)
        return corrected

    def _load_progress(self, user_id: str) -> ProgressRecord:
        try:
            return self._progress_repo.get(user_id)
        except Exception as exc:
            Log.warning(f"Failed to load form progress: {exc}", user_id=user_id)
            return ProgressRecord()
