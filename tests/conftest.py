from datetime import datetime, timezone

import pytest

from docintake.config.settings import Settings
from docintake.documents.models import UploadedFile


@pytest.fixture()
def fast_settings() -> Settings:
    """Settings with timings shrunk so async tests finish quickly."""
    return Settings(
        storage_backend="memory",
        progress_tick_seconds=0.001,
        progress_hold_seconds=0,
        progress_debounce_seconds=0.01,
        upload_timeout_seconds=1.0,
    )


@pytest.fixture()
def make_file():
    """Factory for UploadedFile entries with sensible defaults."""

    def _make(
        doc_id: str = "meldebescheinigung",
        applicant_key: str = "general",
        name: str = "scan.pdf",
        minute: int = 0,
        uuid: str | None = None,
    ) -> UploadedFile:
        return UploadedFile(
            file_name=name,
            storage_path=f"user-1/{applicant_key}/{doc_id}/{name}",
            uploaded_at=datetime(2024, 5, 1, 12, minute, tzinfo=timezone.utc),
            document_type_id=doc_id,
            applicant_type=applicant_key if not applicant_key.startswith("applicant_") else "applicant",
            applicant_uuid=uuid,
        )

    return _make
