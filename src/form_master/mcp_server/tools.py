"""
MCP Tool definitions for Form Master.

Wraps the form engine as MCP tools. The pure tools take schemas in their
arguments; ``process_document`` drives the backend through a FormSession.
"""

import logging
from pathlib import Path
from typing import Any

from form_master.engine.classifier import resolve_kind
from form_master.engine.document_mapper import DocumentFieldMapper
from form_master.engine.error_translator import translate
from form_master.engine.validator import validate_record
from form_master.exceptions import UploadRejectedError
from form_master.mcp_server.session_store import close_form_session, get_form_session
from form_master.models.schema import ColumnDefinition, TableSchema

logger = logging.getLogger("form-master-mcp")


async def mcp_classify_columns(
    columns: list[dict[str, Any]],
    table_name: str | None = None,
    documents_table: str = "documents",
) -> dict[str, Any]:
    """
    Classify columns into presentation kinds.

    Args:
        columns: Column definitions (at least ``name`` and ``type``).
        table_name: Owning table; columns of the documents table are files.

    Returns:
        {"kinds": {"email": "email", "date_of_birth": "date", ...}}
    """
    kinds = {}
    for raw in columns:
        column = ColumnDefinition.model_validate(raw)
        kinds[column.name] = resolve_kind(column, table_name, documents_table).value
    return {"kinds": kinds}


async def mcp_validate_record(table: dict[str, Any], record: dict[str, Any]) -> dict[str, Any]:
    """Validate one record against a table schema."""
    schema = TableSchema.model_validate(table)
    result = validate_record(schema, record)
    return {
        "is_valid": result.is_valid,
        "errors": result.to_error_dict(),
        "error_count": result.error_count,
    }


async def mcp_translate_server_error(table_name: str, payload: dict[str, Any] | str) -> dict[str, Any]:
    """Map a backend error payload to field-scoped messages."""
    return {"errors": translate(table_name, payload)}


async def mcp_map_extracted_data(
    schemas: list[dict[str, Any]],
    extracted_data: dict[str, dict[str, Any]],
    document_files: dict[str, str] | None = None,
    documents_table: str = "documents",
) -> dict[str, Any]:
    """Place extracted document data under the tables that own each key."""
    mapper = DocumentFieldMapper(
        [TableSchema.model_validate(schema) for schema in schemas],
        documents_table=documents_table,
    )
    return {"form_data": mapper.map(extracted_data, document_files)}


async def mcp_process_document(
    document_type: str,
    file_path: str,
    content_type: str | None = None,
    session_id: str | None = None,
) -> dict[str, Any]:
    """
    Upload a local file as a document and wait for extraction.

    Opens the session on first use and loads the AI model when the document
    type has an extraction schema.

    Returns:
        The final document state and the form data pre-filled so far.
    """
    session = get_form_session(session_id)
    if not session.is_open:
        await session.open()

    tracker = session.documents
    if not tracker.document_types:
        await tracker.load_document_types()

    info = tracker.document_types.get(document_type)
    if info is not None and info.has_schema and not session.model.is_loaded:
        await session.model.load()

    path = Path(file_path)
    try:
        document = await tracker.submit(document_type, path.name, path.read_bytes(), content_type)
    except UploadRejectedError as e:
        logger.warning(f"Upload rejected for {document_type}: {e}")
        return {"error": str(e), "document_type": document_type}

    await tracker.wait(document_type)
    document = tracker.documents.get(document_type, document)

    return {
        "document": document.to_payload(),
        "form_data": session.prefill_form_data(),
    }


async def mcp_close_session(session_id: str | None = None) -> dict[str, Any]:
    """Clean up temp files, unload the model and drop the session."""
    closed = await close_form_session(session_id)
    return {"closed": closed}


TOOL_HANDLERS = {
    "classify_columns": mcp_classify_columns,
    "validate_record": mcp_validate_record,
    "translate_server_error": mcp_translate_server_error,
    "map_extracted_data": mcp_map_extracted_data,
    "process_document": mcp_process_document,
    "close_session": mcp_close_session,
}


_COLUMN_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "type": {"type": "string"},
        "nullable": {"type": "boolean"},
        "isEmail": {"type": "boolean"},
    },
    "required": ["name"],
}

_TABLE_SCHEMA = {
    "type": "object",
    "properties": {
        "tableName": {"type": "string"},
        "columns": {"type": "array", "items": _COLUMN_SCHEMA},
        "isRequired": {"type": "boolean"},
    },
    "required": ["tableName", "columns"],
}


def get_mcp_tools() -> list[dict]:
    """
    Get MCP tool definitions for registration with MCP server.

    Returns list of tool schemas compatible with MCP protocol.
    """
    return [
        {
            "name": "classify_columns",
            "description": "Infer the input kind (email, tel, date, url, password, number, "
                           "textarea, checkbox, file, text) of each column.",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "columns": {"type": "array", "items": _COLUMN_SCHEMA},
                    "table_name": {
                        "type": "string",
                        "description": "Owning table; every non-system column of the documents table is a file",
                    },
                },
                "required": ["columns"],
            },
        },
        {
            "name": "validate_record",
            "description": "Validate a record against a table schema's column constraints. "
                           "Errors are keyed by 'table.column'.",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "table": _TABLE_SCHEMA,
                    "record": {"type": "object"},
                },
                "required": ["table", "record"],
            },
        },
        {
            "name": "translate_server_error",
            "description": "Map a backend error response to field-scoped messages.",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "table_name": {"type": "string"},
                    "payload": {
                        "description": "Error JSON body ({type, error, details, errors}) or raw text",
                    },
                },
                "required": ["table_name", "payload"],
            },
        },
        {
            "name": "map_extracted_data",
            "description": "Map extracted document data (column name to value, per document type) "
                           "onto the tables that own each column.",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "schemas": {"type": "array", "items": _TABLE_SCHEMA},
                    "extracted_data": {"type": "object"},
                    "document_files": {"type": "object"},
                },
                "required": ["schemas", "extracted_data"],
            },
        },
        {
            "name": "process_document",
            "description": "Upload a local file as a document of the given type, wait for AI "
                           "extraction to finish, and return the pre-filled form data.",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "document_type": {"type": "string", "description": "Column name in the documents table"},
                    "file_path": {"type": "string"},
                    "content_type": {"type": "string"},
                },
                "required": ["document_type", "file_path"],
            },
        },
        {
            "name": "close_session",
            "description": "Discard uploaded temp files, unload the AI model and end the session.",
            "inputSchema": {"type": "object", "properties": {}},
        },
    ]
