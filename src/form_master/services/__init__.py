"""
Backend-facing services: the HTTP client, session context, document
processing and profile submission.
"""

from form_master.services.api_client import FormMasterClient
from form_master.services.document_processing import (
    DocumentProcessingTracker,
    ModelLifecycle,
    build_document_types,
    transition,
)
from form_master.services.session import FormSession, generate_temp_client_id, rewrite_temp_paths
from form_master.services.submission import ProfileSubmitter, SubmissionResult

__all__ = [
    "FormMasterClient",
    "FormSession",
    "generate_temp_client_id",
    "rewrite_temp_paths",
    "DocumentProcessingTracker",
    "ModelLifecycle",
    "build_document_types",
    "transition",
    "ProfileSubmitter",
    "SubmissionResult",
]
