"""
Async HTTP client for the Form Master backend.

Every endpoint the engine consumes is a method here. Failures are mapped onto
the package's exception taxonomy:

- network errors and 5xx responses raise FormMasterTransportError;
- a rejected record (typed constraint payload) raises ServerConstraintError
  with its messages already translated to field keys;
- any other 4xx raises BackendRequestError.
"""

import logging
from typing import Any

import httpx

from form_master.config import FormMasterConfig, get_config
from form_master.engine.error_translator import is_constraint_payload, translate
from form_master.exceptions import (
    BackendRequestError,
    FormMasterTransportError,
    ServerConstraintError,
)
from form_master.models.documents import DocumentParsingConfig, DocumentTypeSchema, SchemaField
from form_master.models.form_template import FieldInstance, FormTemplate
from form_master.models.schema import AvailableField, TableSchema

logger = logging.getLogger("form-master.client")


def _read_payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        return str(payload.get("details") or payload.get("error") or payload.get("message") or fallback)
    if isinstance(payload, str) and payload.strip():
        return payload
    return fallback


class FormMasterClient:
    """
    Thin async wrapper over ``httpx.AsyncClient``.

    Args:
        base_url: Backend root URL. Defaults to the configured API URL.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        config: Configuration to read defaults from.

    Example:
        >>> async with FormMasterClient() as client:
        ...     schemas = await client.get_compatible_tables()
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        config: FormMasterConfig | None = None,
    ):
        self.config = config or get_config()
        self.base_url = (base_url or self.config.api_base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else self.config.request_timeout,
            transport=transport,
            headers=self.config.extra_headers or None,
        )

    async def __aenter__(self) -> "FormMasterClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request; raise only for network failures and 5xx."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {type(e).__name__}: {e}")
            raise FormMasterTransportError(
                f"Could not reach backend: {e}", url=f"{self.base_url}{path}"
            ) from e

        logger.debug(f"{method} {path} -> {response.status_code}")
        return response

    async def _request(
        self,
        method: str,
        path: str,
        table_name: str | None = None,
        **kwargs,
    ) -> Any:
        """Send a request and return its JSON body, raising on any failure."""
        response = await self._send(method, path, **kwargs)
        if response.is_success:
            return _read_payload(response)

        payload = _read_payload(response)
        if table_name is not None and is_constraint_payload(payload):
            raise ServerConstraintError(
                table_name,
                translate(table_name, payload),
                payload=payload,
                status_code=response.status_code,
            )

        message = _error_message(payload, f"Request failed with status {response.status_code}")
        if response.status_code >= 500:
            raise FormMasterTransportError(
                message, status_code=response.status_code, url=f"{self.base_url}{path}"
            )
        raise BackendRequestError(message, status_code=response.status_code, payload=payload)

    # Schemas

    async def get_compatible_tables(self) -> list[TableSchema]:
        """GET /api/database/tables/compatible"""
        data = await self._request("GET", "/api/database/tables/compatible")
        return [TableSchema.model_validate(table) for table in data]

    async def get_table_schema(self, table_name: str) -> TableSchema:
        """GET /api/database/tables/{table}/schema"""
        data = await self._request("GET", f"/api/database/tables/{table_name}/schema")
        return TableSchema.model_validate(data)

    # Records

    async def insert_row(self, table_name: str, record: dict[str, Any]) -> dict[str, Any]:
        """POST /api/database/tables/{table}/rows"""
        return await self._request(
            "POST", f"/api/database/tables/{table_name}/rows", table_name=table_name, json=record
        )

    async def validate_table(self, table_name: str, record: dict[str, Any]) -> list[Any]:
        """
        POST /api/validate/{table}

        Returns:
            The backend's error list; empty when the record is valid.
        """
        response = await self._send("POST", f"/api/validate/{table_name}", json=record)
        payload = _read_payload(response)
        if response.is_success:
            return []
        if isinstance(payload, dict) and isinstance(payload.get("errors"), list):
            return payload["errors"]
        message = _error_message(payload, f"Validation request failed with status {response.status_code}")
        if response.status_code >= 500:
            raise FormMasterTransportError(message, status_code=response.status_code)
        raise BackendRequestError(message, status_code=response.status_code, payload=payload)

    # Uploads

    async def upload_field_file(
        self,
        table_name: str,
        column_name: str,
        client_id: str,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
    ) -> str:
        """POST /api/upload/document; returns the stored file path."""
        data = await self._request(
            "POST",
            "/api/upload/document",
            files={"file": (file_name, content, content_type or "application/octet-stream")},
            data={
                "fieldName": column_name,
                "columnName": column_name,
                "tableName": table_name,
                "clientId": str(client_id),
            },
        )
        return data["filePath"]

    async def _upload_document(
        self,
        path: str,
        document_type: str,
        file_name: str,
        content: bytes,
        content_type: str | None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            path,
            files={"file": (file_name, content, content_type or "application/octet-stream")},
            data={"documentType": document_type},
        )

    async def upload_and_process(
        self, document_type: str, file_name: str, content: bytes, content_type: str | None = None
    ) -> dict[str, Any]:
        """POST /api/document-processor/upload-and-process"""
        return await self._upload_document(
            "/api/document-processor/upload-and-process", document_type, file_name, content, content_type
        )

    async def upload_simple(
        self, document_type: str, file_name: str, content: bytes, content_type: str | None = None
    ) -> dict[str, Any]:
        """POST /api/document-processor/upload-simple"""
        return await self._upload_document(
            "/api/document-processor/upload-simple", document_type, file_name, content, content_type
        )

    async def get_document_status(self, document_id: str) -> dict[str, Any]:
        """GET /api/document-processor/status/{id}"""
        return await self._request("GET", f"/api/document-processor/status/{document_id}")

    async def cleanup_documents(self, document_ids: list[str], move_to_final: bool = False) -> dict[str, Any]:
        """POST /api/document-processor/cleanup"""
        return await self._request(
            "POST",
            "/api/document-processor/cleanup",
            json={"documentIds": document_ids, "moveToFinal": move_to_final},
        )

    async def move_temp_files(self, temp_client_id: str, real_client_id: str) -> dict[str, Any]:
        """POST /api/documents/move-temp-files"""
        return await self._request(
            "POST",
            "/api/documents/move-temp-files",
            json={"tempClientId": temp_client_id, "realClientId": real_client_id},
        )

    async def organize_documents(self, client_id: str, document_files: dict[str, str]) -> dict[str, Any]:
        """POST /api/documents/organize/{client_id}"""
        return await self._request(
            "POST", f"/api/documents/organize/{client_id}", json={"documentFiles": document_files}
        )

    # AI model lifecycle

    async def get_processor_status(self) -> dict[str, Any]:
        """GET /api/document-processor/status"""
        return await self._request("GET", "/api/document-processor/status")

    async def load_model(self) -> dict[str, Any]:
        """POST /api/document-processor/load-model"""
        return await self._request("POST", "/api/document-processor/load-model")

    async def unload_model(self) -> dict[str, Any]:
        """POST /api/document-processor/unload-model"""
        return await self._request("POST", "/api/document-processor/unload-model")

    # Extraction configuration

    async def get_parsing_config(self) -> DocumentParsingConfig:
        """GET /api/document-parsing/config"""
        data = await self._request("GET", "/api/document-parsing/config")
        return DocumentParsingConfig.model_validate(data)

    async def save_parsing_schema(self, schema: DocumentTypeSchema) -> dict[str, Any]:
        """POST /api/document-parsing/config/schema"""
        return await self._request(
            "POST", "/api/document-parsing/config/schema", json=schema.to_payload()
        )

    async def delete_parsing_schema(self, document_type: str) -> dict[str, Any]:
        """DELETE /api/document-parsing/config/schema/{document_type}"""
        return await self._request("DELETE", f"/api/document-parsing/config/schema/{document_type}")

    async def get_available_extraction_fields(self) -> list[SchemaField]:
        """GET /api/document-parsing/available-fields"""
        data = await self._request("GET", "/api/document-parsing/available-fields")
        return [SchemaField.model_validate(item) for item in data.get("availableFields", [])]

    # Designer

    async def get_field_palette(self) -> dict[str, list[AvailableField]]:
        """GET /api/fields/grouped/table"""
        data = await self._request("GET", "/api/fields/grouped/table")
        return {
            table_name: [AvailableField.model_validate(item) for item in fields]
            for table_name, fields in data.get("fields_by_table", {}).items()
        }

    async def get_document_fields(self) -> list[FieldInstance]:
        """GET /api/forms/document-fields"""
        data = await self._request("GET", "/api/forms/document-fields")
        return [FieldInstance.model_validate(item) for item in data.get("data", [])]

    async def list_forms(self) -> list[FormTemplate]:
        """GET /api/forms"""
        data = await self._request("GET", "/api/forms")
        return [FormTemplate.model_validate(item) for item in data.get("forms", [])]

    async def get_form(self, form_id: str) -> FormTemplate:
        """GET /api/forms/{form_id}"""
        data = await self._request("GET", f"/api/forms/{form_id}")
        return FormTemplate.model_validate(data["form"])

    async def create_form(self, form: FormTemplate) -> FormTemplate:
        """POST /api/forms"""
        payload = form.to_payload()
        data = await self._request(
            "POST",
            "/api/forms",
            json={"name": form.name, "cards": payload["cards"], "created_by": form.created_by},
        )
        return FormTemplate.model_validate(data["form"])

    async def update_form(self, form: FormTemplate, updated_by: str | None = None) -> FormTemplate:
        """PUT /api/forms/{form_id}"""
        payload = form.to_payload()
        data = await self._request(
            "PUT",
            f"/api/forms/{form.id}",
            json={
                "name": form.name,
                "cards": payload["cards"],
                "updated_by": updated_by or form.created_by,
            },
        )
        return FormTemplate.model_validate(data["form"])
