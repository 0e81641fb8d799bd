"""
Data models for Form Master.

This module contains Pydantic models for:
- Table schemas and the field palette
- Form templates (cards and field instances)
- Validation results
- Document processing state
"""

from form_master.models.documents import (
    DocumentParsingConfig,
    DocumentStatus,
    DocumentTypeInfo,
    DocumentTypeSchema,
    ModelStatus,
    ProcessingDocument,
    SchemaField,
    StatusEvent,
)
from form_master.models.form_template import (
    CardStyling,
    CardTemplate,
    CardType,
    FieldInstance,
    FieldStyling,
    FieldValidation,
    FormMetadata,
    FormTemplate,
    ValidationRule,
)
from form_master.models.schema import (
    AvailableField,
    ColumnDefinition,
    FieldConstraints,
    FieldMetadata,
    TableRelationship,
    TableSchema,
)
from form_master.models.validation_result import (
    FieldValidationError,
    ValidationResult,
)

__all__ = [
    # Schema
    "TableSchema",
    "ColumnDefinition",
    "TableRelationship",
    "AvailableField",
    "FieldConstraints",
    "FieldMetadata",
    # Form templates
    "FormTemplate",
    "CardTemplate",
    "CardType",
    "CardStyling",
    "FieldInstance",
    "FieldValidation",
    "FieldStyling",
    "FormMetadata",
    "ValidationRule",
    # Validation
    "ValidationResult",
    "FieldValidationError",
    # Documents
    "DocumentStatus",
    "ModelStatus",
    "ProcessingDocument",
    "StatusEvent",
    "SchemaField",
    "DocumentTypeSchema",
    "DocumentParsingConfig",
    "DocumentTypeInfo",
]
