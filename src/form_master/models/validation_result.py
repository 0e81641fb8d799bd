"""
Validation result models for form input validation.

Errors are keyed by ``"{table}.{column}"`` so a renderer can route each
message to its field; table-wide messages use ``"{table}._general"``.
"""

from typing import Any

from pydantic import BaseModel, Field

GENERAL_FIELD = "_general"


def field_key(table_name: str, field_name: str) -> str:
    """Build the display-routing key for a field."""
    return f"{table_name}.{field_name}"


def general_key(table_name: str) -> str:
    """Build the table-wide error key."""
    return field_key(table_name, GENERAL_FIELD)


class FieldValidationError(BaseModel):
    """Validation error for a specific field."""

    field_key: str = Field(..., description="'{table}.{column}' of the field with error")
    error_type: str = Field(..., description="Type of validation error")
    message: str = Field(..., description="Human-readable error message")
    expected: Any | None = Field(default=None, description="Expected value/format")
    received: Any | None = Field(default=None, description="Received value")

    @property
    def table_name(self) -> str:
        return self.field_key.split(".", 1)[0]

    @property
    def field_name(self) -> str:
        return self.field_key.split(".", 1)[-1]


class ValidationResult(BaseModel):
    """Result of form validation."""

    is_valid: bool = Field(default=True, description="Whether the form data is valid")
    errors: list[FieldValidationError] = Field(
        default_factory=list, description="List of validation errors"
    )
    warnings: list[str] = Field(
        default_factory=list, description="Non-blocking warnings"
    )

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(is_valid=True)

    def add_error(
        self,
        key: str,
        error_type: str,
        message: str,
        expected: Any | None = None,
        received: Any | None = None,
    ) -> None:
        """Record an error and mark the result invalid."""
        self.errors.append(
            FieldValidationError(
                field_key=key,
                error_type=error_type,
                message=message,
                expected=expected,
                received=received,
            )
        )
        self.is_valid = False

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Fold another result into this one."""
        for error in other.errors:
            self.errors.append(error)
        self.warnings.extend(other.warnings)
        self.is_valid = self.is_valid and other.is_valid
        return self

    @property
    def error_count(self) -> int:
        """Get the number of validation errors."""
        return len(self.errors)

    def get_field_errors(self, key: str) -> list[FieldValidationError]:
        """Get all errors for a specific field key."""
        return [e for e in self.errors if e.field_key == key]

    def to_error_dict(self) -> dict[str, str]:
        """
        Convert errors to a dict mapping field keys to one message each.

        When a field collected several messages, the last one wins, matching
        how inline error slots are overwritten.
        """
        result: dict[str, str] = {}
        for error in self.errors:
            result[error.field_key] = error.message
        return result

    def to_error_lists(self) -> dict[str, list[str]]:
        """Convert errors to a dict mapping field keys to all their messages."""
        result: dict[str, list[str]] = {}
        for error in self.errors:
            if error.field_key not in result:
                result[error.field_key] = []
            result[error.field_key].append(error.message)
        return result
