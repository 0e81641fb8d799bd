"""
Field Classifier.

Maps a column to the presentation kind a renderer should use. Classification
is a fixed, ordered rule table: the first matching rule wins, so the order
of CLASSIFICATION_RULES is part of the contract. ``contact_number`` is a
``tel`` field, not a ``number`` field, because the phone rule runs first.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from form_master.models.schema import ColumnDefinition


class PresentationKind(str, Enum):
    EMAIL = "email"
    TEL = "tel"
    DATE = "date"
    URL = "url"
    PASSWORD = "password"
    NUMBER = "number"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"
    FILE = "file"
    TEXT = "text"


# Columns of the documents table that hold metadata rather than files
DOCUMENT_SYSTEM_FIELDS = frozenset({
    "document_id",
    "student_id",
    "upload_date",
    "verification_status",
    "verified_by",
    "verified_at",
    "notes",
    "is_required",
    "created_at",
    "updated_at",
})

EMAIL_MARKERS = ("email", "e_mail", "mail_id")
PHONE_MARKERS = ("phone", "mobile", "contact", "tel")
DATE_NAME_MARKERS = ("date", "birth", "dob", "created", "updated", "issued", "expiry", "valid", "year")
DATE_TYPE_MARKERS = ("date", "datetime", "timestamp")
URL_MARKERS = ("url", "website", "link")
PASSWORD_MARKERS = ("password", "pwd", "pin")
NUMERIC_TYPE_MARKERS = ("integer", "int", "real", "numeric", "decimal", "float", "double")
NUMERIC_NAME_MARKERS = (
    "amount", "price", "cost", "fee", "salary", "income",
    "age", "count", "quantity", "weight", "height",
)
LONG_TEXT_MARKERS = (
    "address", "description", "details", "notes", "comment", "remark",
    "message", "content", "bio", "summary", "reason", "qualification",
)
BOOLEAN_TYPE_MARKERS = ("boolean", "bool")
BOOLEAN_NAME_MARKERS = (
    "is_", "has_", "can_", "should_",
    "enabled", "active", "verified", "approved", "completed",
)
FILE_MARKERS = ("file", "document", "image", "photo", "picture", "attachment", "upload")


@dataclass(frozen=True)
class ClassificationInput:
    """Lower-cased view of the column being classified."""

    name: str
    column_type: str
    table_name: str | None
    documents_table: str


def _contains_any(text: str, markers: tuple[str, ...]) -> bool:
    return any(marker in text for marker in markers)


def _is_document_upload(item: ClassificationInput) -> bool:
    return (
        item.table_name == item.documents_table
        and item.name not in DOCUMENT_SYSTEM_FIELDS
    )


def _is_phone(item: ClassificationInput) -> bool:
    name = item.name
    return _contains_any(name, PHONE_MARKERS) or (
        "number" in name and ("phone" in name or "mobile" in name)
    )


def _is_date(item: ClassificationInput) -> bool:
    return _contains_any(item.name, DATE_NAME_MARKERS) or _contains_any(
        item.column_type, DATE_TYPE_MARKERS
    )


def _is_number(item: ClassificationInput) -> bool:
    return _contains_any(item.column_type, NUMERIC_TYPE_MARKERS) or _contains_any(
        item.name, NUMERIC_NAME_MARKERS
    )


def _is_boolean(item: ClassificationInput) -> bool:
    return _contains_any(item.column_type, BOOLEAN_TYPE_MARKERS) or _contains_any(
        item.name, BOOLEAN_NAME_MARKERS
    )


def _is_file(item: ClassificationInput) -> bool:
    name = item.name
    return _contains_any(name, FILE_MARKERS) or (
        "path" in name and ("file" in name or "doc" in name)
    )


Rule = tuple[str, Callable[[ClassificationInput], bool], PresentationKind]

# Do not reorder: precedence is load-bearing.
CLASSIFICATION_RULES: list[Rule] = [
    ("documents_table", _is_document_upload, PresentationKind.FILE),
    ("email", lambda item: _contains_any(item.name, EMAIL_MARKERS), PresentationKind.EMAIL),
    ("phone", _is_phone, PresentationKind.TEL),
    ("date", _is_date, PresentationKind.DATE),
    ("url", lambda item: _contains_any(item.name, URL_MARKERS), PresentationKind.URL),
    ("password", lambda item: _contains_any(item.name, PASSWORD_MARKERS), PresentationKind.PASSWORD),
    ("number", _is_number, PresentationKind.NUMBER),
    ("long_text", lambda item: _contains_any(item.name, LONG_TEXT_MARKERS), PresentationKind.TEXTAREA),
    ("boolean", _is_boolean, PresentationKind.CHECKBOX),
    ("file", _is_file, PresentationKind.FILE),
]


def classify(
    column_type: str,
    column_name: str,
    table_name: str | None = None,
    documents_table: str = "documents",
) -> PresentationKind:
    """
    Infer the presentation kind of a column from its name and declared type.

    Args:
        column_type: Declared SQL type (any case).
        column_name: Column name (any case).
        table_name: Owning table, used only by the documents-table rule.
        documents_table: Name of the table whose columns are file uploads.

    Returns:
        The kind of the first matching rule, or ``PresentationKind.TEXT``.
    """
    item = ClassificationInput(
        name=column_name.lower(),
        column_type=(column_type or "").lower(),
        table_name=table_name,
        documents_table=documents_table,
    )
    for _name, predicate, kind in CLASSIFICATION_RULES:
        if predicate(item):
            return kind
    return PresentationKind.TEXT


def resolve_kind(
    column: ColumnDefinition,
    table_name: str | None = None,
    documents_table: str = "documents",
) -> PresentationKind:
    """Classify a column, then force ``email`` when the column is flagged as one."""
    if column.is_email:
        return PresentationKind.EMAIL
    return classify(column.type, column.name, table_name, documents_table)


def file_accept_types(column_name: str) -> str:
    """Resolve the accepted upload types for a file field."""
    lower_name = column_name.lower()

    if "photo" in lower_name or "image" in lower_name or "picture" in lower_name:
        return "image/*"

    if "document" in lower_name or "certificate" in lower_name or "marksheet" in lower_name:
        return ".pdf,.jpg,.jpeg,.png"

    if "signature" in lower_name:
        return "image/jpeg,image/png"

    return "*/*"


def format_field_name(name: str) -> str:
    """Turn ``date_of_birth`` into ``Date Of Birth``."""
    return re.sub(r"\b\w", lambda match: match.group().upper(), name.replace("_", " "))


def is_rendered_column(column: ColumnDefinition) -> bool:
    """Whether a renderer should show an input for this column."""
    if column.primary_key and "_id" in column.name:
        return False
    if column.name == "student_id":
        return False
    if column.name in ("created_at", "updated_at"):
        return False
    return True
