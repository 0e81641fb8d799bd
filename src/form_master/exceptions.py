"""
Exception hierarchy for Form Master.

Local constraint violations are not exceptions: they are reported through
ValidationResult. Rejected structural edits are no-ops. Everything else that
can fail is scoped to a field, a table, or a single document.
"""

from typing import Any


class FormMasterError(Exception):
    """Base class for all Form Master errors."""


class FormMasterTransportError(FormMasterError):
    """Network failure or 5xx response from the backend. Safe to retry."""

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class BackendRequestError(FormMasterError):
    """Backend refused a request (4xx) for a reason unrelated to record constraints."""

    def __init__(self, message: str, status_code: int, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class ServerConstraintError(FormMasterError):
    """Backend rejected a record; carries field-scoped messages."""

    def __init__(
        self,
        table_name: str,
        field_errors: dict[str, str],
        payload: Any = None,
        status_code: int | None = None,
    ):
        summary = "; ".join(field_errors.values()) or f"Request rejected for {table_name}"
        super().__init__(summary)
        self.table_name = table_name
        self.field_errors = field_errors
        self.payload = payload
        self.status_code = status_code


class ProcessingError(FormMasterError):
    """Document extraction failed for one document."""

    def __init__(self, document_type: str, message: str):
        super().__init__(message)
        self.document_type = document_type


class InvalidTransitionError(FormMasterError):
    """A processing document was asked to move to a status it cannot reach."""


class UploadRejectedError(FormMasterError):
    """Upload refused locally, before any network call."""

    def __init__(self, document_type: str, message: str):
        super().__init__(message)
        self.document_type = document_type


class UploadInProgressError(UploadRejectedError):
    """Another upload for the same document type is still uploading."""


class ModelNotReadyError(UploadRejectedError):
    """The AI extraction model is not loaded yet."""


class FileValidationError(UploadRejectedError):
    """File is too large or of a type the field does not accept."""
