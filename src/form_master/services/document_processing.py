"""
Document upload and processing.

Each document type holds at most one ProcessingDocument. Its status moves
through a fixed transition table:

    uploading  -> queued | completed | error
    queued     -> queued | processing | completed | error
    processing -> processing | completed | error

``completed`` and ``error`` are terminal; a new upload replaces the entry.
The tracker only observes backend progress by polling; it never drives
extraction itself.
"""

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Iterable

from form_master.config import FormMasterConfig, get_config
from form_master.engine.classifier import format_field_name
from form_master.engine.document_mapper import DocumentFieldMapper
from form_master.engine.validator import validate_upload
from form_master.exceptions import (
    FileValidationError,
    FormMasterError,
    InvalidTransitionError,
    ModelNotReadyError,
    ProcessingError,
    UploadInProgressError,
    UploadRejectedError,
)
from form_master.models.documents import (
    DocumentParsingConfig,
    DocumentStatus,
    DocumentTypeInfo,
    ModelStatus,
    ProcessingDocument,
    StatusEvent,
)
from form_master.models.schema import TableSchema

logger = logging.getLogger("form-master.documents")

TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.UPLOADING: frozenset({
        DocumentStatus.QUEUED,
        DocumentStatus.COMPLETED,
        DocumentStatus.ERROR,
    }),
    DocumentStatus.QUEUED: frozenset({
        DocumentStatus.QUEUED,
        DocumentStatus.PROCESSING,
        DocumentStatus.COMPLETED,
        DocumentStatus.ERROR,
    }),
    DocumentStatus.PROCESSING: frozenset({
        DocumentStatus.PROCESSING,
        DocumentStatus.COMPLETED,
        DocumentStatus.ERROR,
    }),
    DocumentStatus.COMPLETED: frozenset(),
    DocumentStatus.ERROR: frozenset(),
}

# Columns of the documents table that are not document types
NON_DOCUMENT_COLUMNS = frozenset({
    "document_id", "client_id", "created_at", "updated_at", "upload_date",
    "verification_status", "verified_by", "verified_at", "notes", "is_required",
    "document_name", "file_path", "file_size", "mime_type",
})

MODEL_NOT_READY_MESSAGE = (
    "Please wait for the AI model to load before uploading documents for processing."
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def can_transition(current: DocumentStatus, new: DocumentStatus) -> bool:
    return new in TRANSITIONS[current]


def transition(document: ProcessingDocument, status: DocumentStatus, **changes: Any) -> ProcessingDocument:
    """
    Move a document to a new status.

    Returns:
        An updated copy carrying ``status`` and ``changes``.

    Raises:
        InvalidTransitionError: If the transition table does not allow it.
    """
    if not can_transition(document.status, status):
        raise InvalidTransitionError(
            f"{document.document_type}: cannot move from {document.status.value} to {status.value}"
        )
    return document.model_copy(update={"status": status, **changes})


def build_document_types(
    documents_schema: TableSchema,
    parsing_config: DocumentParsingConfig | None = None,
) -> list[DocumentTypeInfo]:
    """Derive the uploadable document types from the documents table schema."""
    parsing_config = parsing_config or DocumentParsingConfig()
    return [
        DocumentTypeInfo(
            column_name=column.name,
            display_name=format_field_name(column.name),
            extraction_schema=parsing_config.schema_for(column.name),
        )
        for column in documents_schema.columns
        if column.name not in NON_DOCUMENT_COLUMNS
    ]


class ModelLifecycle:
    """
    Tracks the backend's AI extraction model.

    ``load()`` runs as a cancellable task; ``unload()`` during a load cancels
    it and still asks the backend to release the model.
    """

    def __init__(self, client):
        self.client = client
        self.status = ModelStatus.UNLOADED
        self.error: str | None = None
        self._load_task: asyncio.Task | None = None

    @property
    def is_loaded(self) -> bool:
        return self.status == ModelStatus.LOADED

    def _set_status(self, status: ModelStatus) -> None:
        if status != self.status:
            logger.info(f"AI model: {self.status.value} -> {status.value}")
        self.status = status

    async def _load(self) -> None:
        try:
            await self.client.get_processor_status()
            await self.client.load_model()
        except asyncio.CancelledError:
            logger.info("AI model load cancelled")
            self._set_status(ModelStatus.UNLOADED)
            raise
        except FormMasterError as e:
            logger.error(f"Failed to load AI model: {e}")
            self.error = str(e)
            self._set_status(ModelStatus.ERROR)
            return
        self._set_status(ModelStatus.LOADED)

    def start_load(self) -> asyncio.Task | None:
        """Start loading in the background; returns the running load task."""
        if self.status == ModelStatus.LOADED:
            return None
        if self._load_task is not None and not self._load_task.done():
            return self._load_task

        self.error = None
        self._set_status(ModelStatus.LOADING)
        self._load_task = asyncio.create_task(self._load())
        return self._load_task

    async def load(self) -> ModelStatus:
        """Load the model and wait for the outcome."""
        task = self.start_load()
        if task is not None:
            await asyncio.wait({task})
        return self.status

    async def unload(self) -> ModelStatus:
        """Release the model. Always ends unloaded once a load was attempted."""
        if self.status == ModelStatus.LOADING:
            if self._load_task is not None and not self._load_task.done():
                self._load_task.cancel()
                await asyncio.wait({self._load_task})
            try:
                await self.client.unload_model()
            except FormMasterError as e:
                logger.warning(f"Failed to send unload request during cancelled load: {e}")
            self._set_status(ModelStatus.UNLOADED)
            return self.status

        if self.status != ModelStatus.LOADED:
            return self.status

        self._set_status(ModelStatus.UNLOADING)
        try:
            await self.client.unload_model()
        except FormMasterError as e:
            logger.warning(f"Failed to unload AI model gracefully: {e}")
        self._set_status(ModelStatus.UNLOADED)
        return self.status


class DocumentProcessingTracker:
    """
    Uploads documents and follows their processing, one entry per type.

    Uploads of different document types run independently. A second upload
    of a type is refused while the first is still uploading. Extracted data
    of completed documents is collected per document type.

    Args:
        client: FormMasterClient used for uploads and status polls.
        document_types: Known document types with their extraction schemas.
        model: AI model lifecycle; typed-schema uploads require it loaded.
        config: Polling interval, timeout and upload size limit.
    """

    def __init__(
        self,
        client,
        document_types: Iterable[DocumentTypeInfo] = (),
        model: ModelLifecycle | None = None,
        config: FormMasterConfig | None = None,
    ):
        self.client = client
        self.model = model
        self.config = config or get_config()
        self.document_types: dict[str, DocumentTypeInfo] = {
            info.column_name: info for info in document_types
        }
        self.documents: dict[str, ProcessingDocument] = {}
        self.extracted_data: dict[str, dict[str, Any]] = {}
        self._poll_tasks: dict[str, asyncio.Task] = {}
        self._subscribers: list[asyncio.Queue] = []

    # Document types

    async def load_document_types(self) -> list[DocumentTypeInfo]:
        """Fetch document types from the documents table and the parsing config."""
        schema = await self.client.get_table_schema(self.config.documents_table)
        try:
            parsing_config = await self.client.get_parsing_config()
        except FormMasterError as e:
            logger.warning(f"Could not load document parsing config: {e}")
            parsing_config = DocumentParsingConfig()

        types = build_document_types(schema, parsing_config)
        self.document_types = {info.column_name: info for info in types}
        logger.info(f"Loaded {len(types)} document types")
        return types

    @property
    def has_configured_schemas(self) -> bool:
        return any(info.has_schema for info in self.document_types.values())

    def display_name(self, document_type: str) -> str:
        info = self.document_types.get(document_type)
        return info.display_name if info else format_field_name(document_type)

    # Events

    def events(self) -> AsyncIterator[StatusEvent]:
        """
        Subscribe to status changes.

        The subscription starts when this is called, so no event emitted
        afterwards is missed. Iteration ends when the tracker is closed.
        """
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue) -> AsyncIterator[StatusEvent]:
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    def _set(self, document: ProcessingDocument, previous: DocumentStatus | None) -> None:
        self.documents[document.document_type] = document
        if previous != document.status:
            logger.info(
                f"{document.document_type}: "
                f"{previous.value if previous else 'new'} -> {document.status.value}"
            )
        event = StatusEvent(
            document_type=document.document_type,
            previous_status=previous,
            status=document.status,
            document=document,
        )
        for queue in self._subscribers:
            queue.put_nowait(event)

    def _is_current(self, document_type: str, document_id: str) -> bool:
        current = self.documents.get(document_type)
        return current is not None and current.document_id == document_id

    # Upload

    def _check_upload(
        self,
        document_type: str,
        file_name: str,
        size: int,
        content_type: str | None,
    ) -> DocumentTypeInfo | None:
        info = self.document_types.get(document_type)
        if self.document_types and info is None:
            raise UploadRejectedError(document_type, f"Unknown document type: {document_type}")

        if info is not None and info.has_schema and not (self.model and self.model.is_loaded):
            raise ModelNotReadyError(document_type, MODEL_NOT_READY_MESSAGE)

        existing = self.documents.get(document_type)
        if existing is not None and existing.status == DocumentStatus.UPLOADING:
            raise UploadInProgressError(
                document_type,
                f"{self.display_name(document_type)} is already being uploaded. Please wait.",
            )

        error = validate_upload(
            file_name, size, content_type, document_type, self.config.max_upload_bytes
        )
        if error:
            raise FileValidationError(document_type, error)
        return info

    async def submit(
        self,
        document_type: str,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
    ) -> ProcessingDocument:
        """
        Upload a document for a type, replacing any previous entry.

        Types with an extraction schema go to ``upload-and-process`` and are
        then polled; other types use ``upload-simple`` and complete at once.
        Upload failures are recorded on the document rather than raised.

        Raises:
            UploadRejectedError: If the upload is refused before any network
                call (in progress, model not ready, or file rejected).
        """
        info = self._check_upload(document_type, file_name, len(content), content_type)
        has_schema = info is not None and info.has_schema

        self._cancel_polling(document_type)
        self.extracted_data.pop(document_type, None)

        previous = self.documents.get(document_type)
        document = ProcessingDocument(
            document_id=f"uploading_{_now_ms()}",
            document_type=document_type,
            file_name=file_name,
            file_size=len(content),
            content_type=content_type,
        )
        self._set(document, previous.status if previous else None)
        uploading_id = document.document_id

        try:
            if has_schema:
                result = await self.client.upload_and_process(document_type, file_name, content, content_type)
            else:
                result = await self.client.upload_simple(document_type, file_name, content, content_type)
            if not isinstance(result, dict):
                raise ProcessingError(document_type, f"Unexpected upload response: {result!r}")
            if has_schema and not result.get("documentId"):
                raise ProcessingError(
                    document_type, result.get("error") or "Upload response did not include a document id"
                )
        except FormMasterError as e:
            logger.error(f"Failed to upload {document_type}: {e}")
            if not self._is_current(document_type, uploading_id):
                return document
            failed = transition(
                document, DocumentStatus.ERROR,
                document_id=f"error_{_now_ms()}", error=str(e), timestamp=_now_ms(),
            )
            self._set(failed, DocumentStatus.UPLOADING)
            return failed

        if not self._is_current(document_type, uploading_id):
            logger.info(f"Discarding upload result for {document_type}: entry was replaced")
            return document

        if has_schema:
            updated = transition(
                document, DocumentStatus.QUEUED,
                document_id=result["documentId"],
                queue_position=result.get("queuePosition"),
                timestamp=_now_ms(),
            )
            self._set(updated, DocumentStatus.UPLOADING)
            self._poll_tasks[document_type] = asyncio.create_task(
                self._poll(document_type, updated.document_id)
            )
        else:
            updated = transition(
                document, DocumentStatus.COMPLETED,
                document_id=result.get("documentId", uploading_id),
                temp_path=result.get("filePath"),
                timestamp=_now_ms(),
            )
            self._set(updated, DocumentStatus.UPLOADING)
        return updated

    # Polling

    async def _poll(self, document_type: str, document_id: str) -> None:
        interval = self.config.poll_interval
        elapsed = 0.0

        while elapsed < self.config.poll_timeout:
            await asyncio.sleep(interval)
            elapsed += interval

            try:
                result = await self.client.get_document_status(document_id)
            except FormMasterError as e:
                logger.error(f"Stopped polling {document_type}: {e}")
                return

            try:
                status = DocumentStatus(result.get("status"))
            except (AttributeError, ValueError):
                logger.error(f"Stopped polling {document_type}: unexpected status response {result!r}")
                return

            current = self.documents.get(document_type)
            if current is None or current.document_id != document_id:
                return

            try:
                updated = transition(
                    current, status,
                    queue_position=result.get("queuePosition"),
                    extracted_data=result.get("extractedData"),
                    error=result.get("error"),
                    temp_path=result.get("tempPath"),
                )
            except InvalidTransitionError as e:
                logger.error(f"Stopped polling {document_type}: {e}")
                return

            self._set(updated, current.status)

            if status == DocumentStatus.COMPLETED:
                if updated.extracted_data:
                    self.extracted_data[document_type] = updated.extracted_data
                return
            if status == DocumentStatus.ERROR:
                logger.warning(f"Processing failed for {document_type}: {updated.error}")
                return

            logger.debug(f"{document_type} still {status.value} after {elapsed:.0f}s")

        logger.warning(f"Stopped polling {document_type} after {self.config.poll_timeout:.0f} seconds")

    def _cancel_polling(self, document_type: str) -> None:
        task = self._poll_tasks.pop(document_type, None)
        if task is not None and not task.done():
            task.cancel()

    async def wait(self, document_type: str | None = None) -> None:
        """Wait until polling has stopped for one type, or for all types."""
        if document_type is not None:
            tasks = [self._poll_tasks[document_type]] if document_type in self._poll_tasks else []
        else:
            tasks = list(self._poll_tasks.values())
        if tasks:
            await asyncio.wait(tasks)

    # State

    def remove(self, document_type: str) -> None:
        """Forget a document type's upload and extracted data."""
        self._cancel_polling(document_type)
        self.documents.pop(document_type, None)
        self.extracted_data.pop(document_type, None)

    @property
    def is_complete(self) -> bool:
        """True when at least one document exists and none is still active."""
        return bool(self.documents) and all(
            doc.status.is_terminal for doc in self.documents.values()
        )

    @property
    def in_progress(self) -> bool:
        return any(doc.status.is_active for doc in self.documents.values())

    def extracted_for(self, document_type: str) -> dict[str, Any] | None:
        """
        Extracted data of one document type, if any.

        Raises:
            ProcessingError: If that document failed to upload or process.
        """
        document = self.documents.get(document_type)
        if document is not None and document.status == DocumentStatus.ERROR:
            raise ProcessingError(document_type, document.error or "Processing failed")
        return self.extracted_data.get(document_type)

    def document_files(self) -> dict[str, str]:
        """Stored paths of completed documents, keyed by document type."""
        return {
            document_type: doc.temp_path
            for document_type, doc in self.documents.items()
            if doc.status == DocumentStatus.COMPLETED and doc.temp_path
        }

    def mapped_form_data(self, mapper: DocumentFieldMapper) -> dict[str, dict[str, Any]]:
        """Pre-fill form data built from everything extracted so far."""
        return mapper.map(self.extracted_data, self.document_files())

    async def cleanup(self) -> None:
        """Ask the backend to delete temp files, then reset all state."""
        document_ids = [doc.document_id for doc in self.documents.values()]
        if document_ids:
            try:
                await self.client.cleanup_documents(document_ids, move_to_final=False)
            except FormMasterError as e:
                logger.warning(f"Failed to cleanup temp files: {e}")
        self.reset()

    def reset(self) -> None:
        for document_type in list(self._poll_tasks):
            self._cancel_polling(document_type)
        self.documents.clear()
        self.extracted_data.clear()

    def close(self) -> None:
        """Stop polling and end every event subscription."""
        for document_type in list(self._poll_tasks):
            self._cancel_polling(document_type)
        for queue in self._subscribers:
            queue.put_nowait(None)
        self._subscribers.clear()
