from dataclasses import dataclass, field

from docintake.documents.models import FormProgress


@dataclass
class ProgressRecord:
    """Progress columns of a user_data row."""

    forms: FormProgress = field(default_factory=FormProgress)
    application_progress: int | None = None
