"""
Form Master: schema-driven forms over a relational backend.

Column schemas drive input kinds and validation; form templates arrange
fields into cards; uploaded documents are AI-parsed to pre-fill forms.

Simple Usage:
    from form_master import classify, validate_record

    kind = classify("TEXT", "contact_number")        # PresentationKind.TEL
    result = validate_record(table_schema, {"age": "abc"})
    result.to_error_dict()
    # {"personal_details.age": "Age must be a valid number"}

Session Usage:
    from form_master import FormMasterClient, FormSession, ProfileSubmitter

    async with FormMasterClient() as client:
        session = await FormSession(client).open()

        await session.model.load()
        await session.documents.load_document_types()
        await session.documents.submit("aadhar_card", "aadhar.pdf", content, "application/pdf")
        await session.documents.wait()

        form_data = session.prefill_form_data()
        result = await ProfileSubmitter(session).submit(form_data)
        await session.close()

Designer Usage:
    from form_master import CardType, FormDesigner

    designer = FormDesigner()
    await designer.load_document_fields(client)
    designer.add_card("Personal Details")
    designer.add_card(None, CardType.DOCUMENT)
    await designer.save(client)
"""

from form_master.config import FormMasterConfig, get_config
from form_master.engine import (
    DocumentFieldMapper,
    FormDesigner,
    PresentationKind,
    classify,
    resolve_kind,
    translate,
    validate_form,
    validate_record,
    validate_upload,
    validate_value,
)
from form_master.exceptions import (
    BackendRequestError,
    FileValidationError,
    FormMasterError,
    FormMasterTransportError,
    InvalidTransitionError,
    ModelNotReadyError,
    ProcessingError,
    ServerConstraintError,
    UploadInProgressError,
    UploadRejectedError,
)
from form_master.models import (
    CardTemplate,
    CardType,
    ColumnDefinition,
    DocumentStatus,
    FieldInstance,
    FormTemplate,
    ProcessingDocument,
    TableSchema,
    ValidationResult,
)
from form_master.services import (
    DocumentProcessingTracker,
    FormMasterClient,
    FormSession,
    ModelLifecycle,
    ProfileSubmitter,
    SubmissionResult,
)

__all__ = [
    # Configuration
    "FormMasterConfig",
    "get_config",
    # Engine
    "PresentationKind",
    "classify",
    "resolve_kind",
    "validate_value",
    "validate_record",
    "validate_form",
    "validate_upload",
    "translate",
    "DocumentFieldMapper",
    "FormDesigner",
    # Models
    "TableSchema",
    "ColumnDefinition",
    "FormTemplate",
    "CardTemplate",
    "CardType",
    "FieldInstance",
    "ValidationResult",
    "ProcessingDocument",
    "DocumentStatus",
    # Services
    "FormMasterClient",
    "FormSession",
    "DocumentProcessingTracker",
    "ModelLifecycle",
    "ProfileSubmitter",
    "SubmissionResult",
    # Errors
    "FormMasterError",
    "FormMasterTransportError",
    "BackendRequestError",
    "ServerConstraintError",
    "ProcessingError",
    "InvalidTransitionError",
    "UploadRejectedError",
    "UploadInProgressError",
    "ModelNotReadyError",
    "FileValidationError",
]

__version__ = "0.1.0"
