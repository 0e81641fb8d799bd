"""
Pure form engine: classification, validation, form definitions, server-error
translation and document-to-field mapping. Nothing here performs I/O.
"""

from form_master.engine.classifier import (
    PresentationKind,
    classify,
    file_accept_types,
    format_field_name,
    is_rendered_column,
    resolve_kind,
)
from form_master.engine.document_mapper import DocumentFieldMapper
from form_master.engine.error_translator import translate, translate_validation_errors
from form_master.engine.form_definition import (
    FormDesigner,
    add_card,
    add_field_to_card,
    ensure_document_cards_last,
    move_card,
    move_field,
    new_form,
    remove_card,
    remove_field,
    update_card,
)
from form_master.engine.validator import (
    validate_form,
    validate_record,
    validate_upload,
    validate_value,
)

__all__ = [
    # Classification
    "PresentationKind",
    "classify",
    "resolve_kind",
    "file_accept_types",
    "format_field_name",
    "is_rendered_column",
    # Validation
    "validate_value",
    "validate_record",
    "validate_form",
    "validate_upload",
    # Form definitions
    "FormDesigner",
    "new_form",
    "add_card",
    "remove_card",
    "move_card",
    "update_card",
    "add_field_to_card",
    "remove_field",
    "move_field",
    "ensure_document_cards_last",
    # Server errors
    "translate",
    "translate_validation_errors",
    # Documents
    "DocumentFieldMapper",
]
