class DocumentsError(Exception):
    """Base exception for document requirement and status errors."""


class ApplicantNotFoundError(DocumentsError):
    """Raised when no application record exists for a user id."""


class UnknownApplicantError(DocumentsError):
    """Raised when an applicant key does not belong to the current application."""


class OptionalSelectionError(DocumentsError):
    """Raised when an optional document cannot be selected or deselected."""


class SlotNotFoundError(DocumentsError):
    """Raised when a slot id is not part of the current slot layout."""
