"""
Constraint Validator.

Evaluates submitted values against the declarative constraints carried by
each ColumnDefinition. Errors are collected per field and keyed by
``"{table}.{column}"``. Within one field, a blocking failure (missing required
value, non-numeric integer, failed dropdown membership, missing ``@``) stops
the remaining checks for that field.
"""

import re
from typing import Any, Iterable, Mapping

from form_master.engine.classifier import (
    PresentationKind,
    file_accept_types,
    format_field_name,
    resolve_kind,
)
from form_master.models.schema import ColumnDefinition, TableSchema
from form_master.models.validation_result import ValidationResult, field_key

SYSTEM_COLUMNS = frozenset({"client_id", "created_at", "updated_at"})

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[a-zA-Z]{2,}$")
LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def is_blank(value: Any) -> bool:
    """None, empty and whitespace-only values count as missing."""
    return value is None or _to_text(value).strip() == ""


def parse_integer(value: str) -> int | None:
    """
    Parse the leading integer of a string.

    ``"42"`` and ``"42abc"`` give 42; ``"abc"`` gives None.
    """
    match = LEADING_INTEGER.match(value)
    if match is None:
        return None
    return int(match.group(1))


def _format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def validate_value(
    column: ColumnDefinition,
    raw_value: Any,
    table_name: str,
) -> ValidationResult:
    """
    Validate one value against one column's constraints.

    Args:
        column: Column definition carrying the constraints.
        raw_value: Submitted value; None and blank strings count as empty.
        table_name: Owning table, used to build the error key.

    Returns:
        ValidationResult with one error per violated rule.
    """
    result = ValidationResult.ok()
    if column.name in SYSTEM_COLUMNS:
        return result

    key = field_key(table_name, column.name)
    label = format_field_name(column.name)

    if is_blank(raw_value):
        if column.required:
            result.add_error(key, "required", f"{label} is required")
        return result

    value = _to_text(raw_value)

    if column.type == "TEXT":
        if column.has_active_dropdown:
            if value not in column.dropdown_options:
                allowed = ", ".join(column.dropdown_options)
                result.add_error(
                    key, "dropdown", f"{label} must be one of: {allowed}",
                    expected=list(column.dropdown_options), received=value,
                )
                return result

        if not column.has_dropdown:
            length = len(value)
            if column.exact_length is not None:
                if length != column.exact_length:
                    result.add_error(
                        key, "exact_length",
                        f"{label} must be exactly {column.exact_length} characters",
                        expected=column.exact_length, received=length,
                    )
            else:
                if column.min_length is not None and length < column.min_length:
                    result.add_error(
                        key, "min_length",
                        f"{label} must be at least {column.min_length} characters",
                        expected=column.min_length, received=length,
                    )
                if column.max_length is not None and length > column.max_length:
                    result.add_error(
                        key, "max_length",
                        f"{label} must be at most {column.max_length} characters",
                        expected=column.max_length, received=length,
                    )

    if column.type == "INTEGER":
        number = parse_integer(value)
        if number is None:
            result.add_error(key, "type", f"{label} must be a valid number", received=value)
            return result

        if column.exact_value is not None:
            if number != column.exact_value:
                result.add_error(
                    key, "exact_value",
                    f"{label} must be exactly {_format_number(column.exact_value)}",
                    expected=column.exact_value, received=number,
                )
        else:
            if column.min_value is not None and number < column.min_value:
                result.add_error(
                    key, "min_value",
                    f"{label} must be at least {_format_number(column.min_value)}",
                    expected=column.min_value, received=number,
                )
            if column.max_value is not None and number > column.max_value:
                result.add_error(
                    key, "max_value",
                    f"{label} must be at most {_format_number(column.max_value)}",
                    expected=column.max_value, received=number,
                )

    if column.is_email:
        if "@" not in value:
            result.add_error(key, "email", f"{label} must contain @ symbol", received=value)
            return result
        if not EMAIL_PATTERN.match(value):
            result.add_error(
                key, "email",
                f"{label} must have a valid domain (e.g., .com, .in)",
                received=value,
            )

    return result


def validate_record(table: TableSchema, record: Mapping[str, Any]) -> ValidationResult:
    """Validate every column of one table against a submitted record."""
    result = ValidationResult.ok()
    for column in table.columns:
        result.merge(validate_value(column, record.get(column.name), table.table_name))
    return result


def validate_required_files(
    schemas: Iterable[TableSchema],
    form_data: Mapping[str, Mapping[str, Any]],
    documents_table: str = "documents",
    skip_keys: set[str] | None = None,
) -> ValidationResult:
    """
    Check that every required file field holds a stored path.

    A file field is required when its column is not nullable and its table
    is marked required.
    """
    result = ValidationResult.ok()
    skip_keys = skip_keys or set()

    for table in schemas:
        if not table.is_required:
            continue
        table_data = form_data.get(table.table_name) or {}
        for column in table.columns:
            if column.nullable:
                continue
            kind = resolve_kind(column, table.table_name, documents_table)
            if kind != PresentationKind.FILE:
                continue
            key = field_key(table.table_name, column.name)
            if key in skip_keys:
                continue
            if is_blank(table_data.get(column.name)):
                result.add_error(key, "required_file", f"{format_field_name(column.name)} is required")

    return result


def validate_form(
    schemas: Iterable[TableSchema],
    form_data: Mapping[str, Mapping[str, Any]],
    documents_table: str = "documents",
) -> ValidationResult:
    """
    Validate a whole multi-table form before submission.

    Tables without submitted data are skipped by the constraint pass but are
    still checked for required file fields.
    """
    schemas = list(schemas)
    result = ValidationResult.ok()

    for table in schemas:
        table_data = form_data.get(table.table_name)
        if not table_data:
            continue
        result.merge(validate_record(table, table_data))

    already_reported = {error.field_key for error in result.errors}
    result.merge(
        validate_required_files(
            schemas, form_data, documents_table, skip_keys=already_reported
        )
    )
    return result


def validate_upload(
    file_name: str,
    size: int,
    content_type: str | None,
    column_name: str,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> str | None:
    """
    Check a file locally before uploading it.

    Returns:
        An error message, or None when the file may be uploaded.
    """
    if size > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        return f"File size exceeds {limit_mb}MB limit"

    allowed_types = file_accept_types(column_name)
    if allowed_types == "*/*":
        return None

    mime = (content_type or "").lower()
    extension = "." + file_name.rsplit(".", 1)[-1].lower()

    for accepted in allowed_types.split(","):
        accepted = accepted.strip()
        if "*" in accepted:
            category = accepted.split("/")[0]
            if mime.startswith(category):
                return None
        elif accepted == extension or accepted == mime:
            return None

    return f"File type not allowed. Accepted types: {allowed_types}"
