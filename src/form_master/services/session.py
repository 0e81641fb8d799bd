"""
Form session context.

A FormSession holds everything one form-filling session needs: the schema
snapshot, the document mapper, the upload tracker and AI model, and the
temporary client id used to store files before the profile exists. It is
built by ``open()`` and torn down by ``close()`` (on submit or cancel).
"""

import logging
import time
import uuid
from typing import Any, Mapping

from form_master.config import FormMasterConfig, get_config
from form_master.engine.classifier import PresentationKind, resolve_kind
from form_master.engine.document_mapper import DocumentFieldMapper
from form_master.engine.validator import validate_form, validate_upload
from form_master.exceptions import FileValidationError, FormMasterError
from form_master.models.documents import DocumentParsingConfig
from form_master.models.schema import TableSchema
from form_master.models.validation_result import ValidationResult
from form_master.services.document_processing import DocumentProcessingTracker, ModelLifecycle

logger = logging.getLogger("form-master.session")

TEMP_CLIENT_ID_BASE = 999000000


def generate_temp_client_id(now_ms: int | None = None) -> str:
    """Temporary client id for files uploaded before the profile exists."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return str(TEMP_CLIENT_ID_BASE + now_ms % 1000000)


def rewrite_temp_path(value: str, temp_id: str, real_id: str) -> str:
    """
    Point one stored path at the real client folder.

    Handles Windows and POSIX separators, absolute paths and ``Data/``
    relative paths, plus the ``{temp_id}_`` filename prefix (first one only).
    """
    updated = value.replace(f"\\{temp_id}\\", f"\\{real_id}\\")
    updated = updated.replace(f"/{temp_id}/", f"/{real_id}/")
    updated = updated.replace(f"Data\\{temp_id}\\", f"Data\\{real_id}\\")
    updated = updated.replace(f"Data/{temp_id}/", f"Data/{real_id}/")
    return updated.replace(f"{temp_id}_", f"{real_id}_", 1)


def rewrite_temp_paths(
    form_data: Mapping[str, Mapping[str, Any]],
    temp_id: str,
    real_id: str,
) -> dict[str, dict[str, Any]]:
    """Rewrite every string value that mentions the temp id or a ``Data`` folder."""
    temp_id = str(temp_id)
    real_id = str(real_id)
    rewritten: dict[str, dict[str, Any]] = {}

    for table_name, table_data in form_data.items():
        if not table_data:
            rewritten[table_name] = dict(table_data or {})
            continue
        updated = {}
        for key, value in table_data.items():
            if isinstance(value, str) and (temp_id in value or "Data" in value):
                new_value = rewrite_temp_path(value, temp_id, real_id)
                if new_value != value:
                    logger.debug(f"Updated path: {value} -> {new_value}")
                updated[key] = new_value
            else:
                updated[key] = value
        rewritten[table_name] = updated

    return rewritten


class FormSession:
    """
    Scoped context for one form-filling session.

    Example:
        >>> session = FormSession(client)
        >>> await session.open()
        >>> session.field_kinds()["personal_details"]["email"]
        <PresentationKind.EMAIL: 'email'>
        >>> await session.close()
    """

    def __init__(
        self,
        client,
        config: FormMasterConfig | None = None,
        session_id: str | None = None,
    ):
        self.client = client
        self.config = config or get_config()
        self.session_id = session_id or uuid.uuid4().hex
        self.schemas: list[TableSchema] = []
        self.parsing_config = DocumentParsingConfig()
        self.mapper: DocumentFieldMapper | None = None
        self.temp_client_id: str | None = None
        self.model = ModelLifecycle(client)
        self.documents = DocumentProcessingTracker(client, model=self.model, config=self.config)
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def documents_table(self) -> str:
        return self.config.documents_table

    async def open(self) -> "FormSession":
        """Fetch the schema snapshot and extraction configuration once."""
        if self._open:
            return self

        self.schemas = await self.client.get_compatible_tables()
        try:
            self.parsing_config = await self.client.get_parsing_config()
        except FormMasterError as e:
            logger.warning(f"Could not load document parsing config: {e}")
            self.parsing_config = DocumentParsingConfig()

        self.mapper = DocumentFieldMapper(self.schemas, self.parsing_config, self.documents_table)
        self._open = True
        logger.info(f"Session {self.session_id} opened with {len(self.schemas)} tables")
        return self

    async def close(self, cleanup: bool = True) -> None:
        """Release backend resources and forget all session state."""
        if cleanup:
            await self.documents.cleanup()
        self.documents.close()
        await self.model.unload()

        self.schemas = []
        self.parsing_config = DocumentParsingConfig()
        self.mapper = None
        self.temp_client_id = None
        self._open = False
        logger.info(f"Session {self.session_id} closed")

    def get_schema(self, table_name: str) -> TableSchema | None:
        for table in self.schemas:
            if table.table_name == table_name:
                return table
        return None

    def field_kinds(self) -> dict[str, dict[str, PresentationKind]]:
        """Presentation kind of every column, by table."""
        return {
            table.table_name: {
                column.name: resolve_kind(column, table.table_name, self.documents_table)
                for column in table.columns
            }
            for table in self.schemas
        }

    def ensure_temp_client_id(self) -> str:
        """Generate the temp client id on first use, then reuse it."""
        if self.temp_client_id is None:
            self.temp_client_id = generate_temp_client_id()
            logger.info(f"Using temp client id {self.temp_client_id}")
        return self.temp_client_id

    async def upload_field_file(
        self,
        table_name: str,
        column_name: str,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
        client_id: str | None = None,
    ) -> str:
        """
        Upload the file of a file field and return its stored path.

        Without an existing client id the session's temp id is used.

        Raises:
            FileValidationError: If the file is too large or of a type the
                field does not accept. Raised before any network call.
        """
        error = validate_upload(
            file_name, len(content), content_type, column_name, self.config.max_upload_bytes
        )
        if error:
            raise FileValidationError(column_name, error)

        owner_id = str(client_id) if client_id else self.ensure_temp_client_id()
        return await self.client.upload_field_file(
            table_name, column_name, owner_id, file_name, content, content_type
        )

    def prefill_form_data(self) -> dict[str, dict[str, Any]]:
        """Form data pre-filled from every completed document."""
        if self.mapper is None:
            return {}
        return self.documents.mapped_form_data(self.mapper)

    def validate(self, form_data: Mapping[str, Mapping[str, Any]]) -> ValidationResult:
        return validate_form(self.schemas, form_data, self.documents_table)
