"""
Server-Error Translator.

The backend reports storage failures without knowing which form field they
came from. These functions map its error payloads back to field keys
(``"{table}.{column}"``) so messages can be shown inline, falling back to the
table-wide ``"{table}._general"`` key when no column can be identified.
"""

import re
from typing import Any, Iterable, Mapping

from form_master.engine.classifier import format_field_name
from form_master.models.validation_result import field_key, general_key

VALIDATION_ERROR = "VALIDATION_ERROR"
UNIQUE_CONSTRAINT = "UNIQUE_CONSTRAINT"
CHECK_CONSTRAINT = "CHECK_CONSTRAINT"
FOREIGN_KEY_CONSTRAINT = "FOREIGN_KEY_CONSTRAINT"

ERROR_TYPES = frozenset({
    VALIDATION_ERROR,
    UNIQUE_CONSTRAINT,
    CHECK_CONSTRAINT,
    FOREIGN_KEY_CONSTRAINT,
})

# Tried in order; the first match names the field.
FIELD_NAME_PATTERNS = [
    re.compile(r"Column '(\w+)'"),
    re.compile(r"Invalid .* for (\w+)"),
    re.compile(r"(\w+) must be"),
    re.compile(r"(\w+) cannot be"),
]

CHECK_FAILED = re.compile(r"CHECK constraint failed: (\w+)")
UNIQUE_FAILED = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")
NOT_NULL_FAILED = re.compile(r"NOT NULL constraint failed: \w+\.(\w+)")

RAW_CONSTRAINT_MARKER = "SQLITE_CONSTRAINT"


def extract_field_name(message: str) -> str | None:
    """Find the column a backend validation message is about."""
    for pattern in FIELD_NAME_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


def translate_validation_details(table_name: str, details: str) -> dict[str, str]:
    """
    Parse an itemized ``VALIDATION_ERROR`` detail text.

    Only bullet lines (``• ...``) of an ``Error in ...`` report are read. When
    none of them names a field the whole text becomes a general error.
    """
    errors: dict[str, str] = {}

    if "Error in" in details:
        for line in details.split("\n"):
            if not line.strip().startswith("•"):
                continue
            message = line.replace("•", "", 1).strip()
            field_name = extract_field_name(message)
            if field_name:
                errors[field_key(table_name, field_name)] = message

    if not errors:
        errors[general_key(table_name)] = details
    return errors


def translate_constraint_text(table_name: str, message: str) -> dict[str, str]:
    """Recover the offending column from a raw database constraint message."""
    if "CHECK constraint failed" in message:
        match = CHECK_FAILED.search(message)
        if match:
            label = format_field_name(match.group(1))
            return {
                field_key(table_name, match.group(1)):
                    f"Invalid value for {label}. Please check the allowed values."
            }
    elif "UNIQUE constraint failed" in message:
        match = UNIQUE_FAILED.search(message)
        if match:
            label = format_field_name(match.group(1))
            return {
                field_key(table_name, match.group(1)):
                    f"This {label} already exists. Please use a different value."
            }
    elif "NOT NULL constraint failed" in message:
        match = NOT_NULL_FAILED.search(message)
        if match:
            label = format_field_name(match.group(1))
            return {field_key(table_name, match.group(1)): f"{label} is required."}

    return {general_key(table_name): message}


def typed_error_message(table_name: str, error_type: str) -> str | None:
    """Generic message for the constraint classes that never name a column."""
    if error_type == UNIQUE_CONSTRAINT:
        return f"Duplicate data found in {table_name}. Please check for existing records."
    if error_type == CHECK_CONSTRAINT:
        return f"Invalid data format in {table_name}. Please check your entries."
    if error_type == FOREIGN_KEY_CONSTRAINT:
        return f"Referenced data does not exist for {table_name}. Please check related information."
    return None


def is_constraint_payload(payload: Any) -> bool:
    """Whether a backend error body describes a rejected record."""
    if isinstance(payload, str):
        return RAW_CONSTRAINT_MARKER in payload or "constraint failed" in payload
    if not isinstance(payload, Mapping):
        return False
    if payload.get("type") in ERROR_TYPES:
        return True
    if isinstance(payload.get("errors"), list):
        return True
    details = payload.get("details")
    return isinstance(details, str) and RAW_CONSTRAINT_MARKER in details


def translate(table_name: str, payload: Mapping[str, Any] | str) -> dict[str, str]:
    """
    Map a backend error payload to field-scoped messages.

    Args:
        table_name: Table the failed request targeted.
        payload: The JSON error body (``{type?, error?, details?, errors?}``)
            or the raw response text.

    Returns:
        Dict of field key to message. Never empty.
    """
    if isinstance(payload, str):
        return translate_constraint_text(table_name, payload)

    error_type = payload.get("type")
    details = payload.get("details")

    if error_type == VALIDATION_ERROR:
        return translate_validation_details(table_name, str(details or payload.get("error") or ""))

    message = typed_error_message(table_name, error_type) if error_type else None
    if message:
        return {general_key(table_name): message}

    if isinstance(details, str) and RAW_CONSTRAINT_MARKER in details:
        return translate_constraint_text(table_name, details)

    errors = payload.get("errors")
    if isinstance(errors, list) and errors:
        return translate_validation_errors(table_name, errors)

    fallback = details or payload.get("error") or payload.get("message") or "Request failed"
    return {general_key(table_name): str(fallback)}


def translate_validation_errors(table_name: str, errors: Iterable[Any]) -> dict[str, str]:
    """
    Map the error list of a pre-submit validation response.

    Messages that name no field go to the general key; the last one wins.
    """
    result: dict[str, str] = {}
    for error in errors:
        if isinstance(error, Mapping):
            message = str(error.get("message", error))
        else:
            message = str(error)
        field_name = extract_field_name(message)
        if field_name:
            result[field_key(table_name, field_name)] = message
        else:
            result[general_key(table_name)] = message
    return result
