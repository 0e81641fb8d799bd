"""
Document upload and extraction models.

A ProcessingDocument tracks one uploaded file per document type through the
upload and AI-extraction workflow.
"""

import time
from enum import Enum
from typing import Any

from pydantic import Field

from form_master.models.schema import CamelModel


class DocumentStatus(str, Enum):
    UPLOADING = "uploading"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.COMPLETED, DocumentStatus.ERROR)

    @property
    def is_active(self) -> bool:
        return not self.is_terminal


class ModelStatus(str, Enum):
    """Lifecycle of the AI extraction model on the backend."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    UNLOADING = "unloading"
    ERROR = "error"


def _now_ms() -> int:
    return int(time.time() * 1000)


class ProcessingDocument(CamelModel):
    """One document moving through upload and extraction."""

    document_id: str
    document_type: str
    file_name: str
    file_size: int = 0
    content_type: str | None = None
    status: DocumentStatus = DocumentStatus.UPLOADING
    queue_position: int | None = None
    extracted_data: dict[str, Any] | None = None
    error: str | None = None
    timestamp: int = Field(default_factory=_now_ms)
    temp_path: str | None = None


class StatusEvent(CamelModel):
    """Emitted whenever a processing document changes."""

    document_type: str
    previous_status: DocumentStatus | None = None
    status: DocumentStatus
    document: ProcessingDocument


class SchemaField(CamelModel):
    """A field the extraction model should fill for a document type."""

    column_name: str
    table_name: str
    display_name: str
    description: str | None = None


class DocumentTypeSchema(CamelModel):
    """Extraction schema configured for one document type."""

    document_type: str = Field(..., description="Column name in the documents table")
    display_name: str
    fields: list[SchemaField] = Field(default_factory=list)


class DocumentParsingConfig(CamelModel):
    """All configured extraction schemas."""

    version: str = "1.0"
    schemas: list[DocumentTypeSchema] = Field(default_factory=list)
    last_modified: str | None = None

    def schema_for(self, document_type: str) -> DocumentTypeSchema | None:
        for schema in self.schemas:
            if schema.document_type == document_type:
                return schema
        return None


class DocumentTypeInfo(CamelModel):
    """A document type offered for upload, with its extraction schema if any."""

    column_name: str
    display_name: str
    extraction_schema: DocumentTypeSchema | None = Field(default=None, alias="schema")

    @property
    def has_schema(self) -> bool:
        return self.extraction_schema is not None
