"""
Profile submission.

Creates the profile record first, then every related record under the new
client id. Files uploaded under a temporary client id are moved to the real
client folder and their stored paths rewritten before related records are
inserted.
"""

import logging
from typing import Any, Mapping

from pydantic import BaseModel, Field

from form_master.engine.error_translator import translate_validation_errors
from form_master.exceptions import BackendRequestError, FormMasterError, ServerConstraintError
from form_master.models.form_template import utc_now_iso
from form_master.models.validation_result import field_key
from form_master.services.session import FormSession, rewrite_temp_paths

logger = logging.getLogger("form-master.submission")


class SubmissionResult(BaseModel):
    """Outcome of a profile submission."""

    success: bool
    client_id: str | None = Field(default=None, description="Id of the created profile")
    errors: dict[str, str] = Field(
        default_factory=dict, description="Field key to message, for inline display"
    )
    inserted_tables: list[str] = Field(default_factory=list)
    form_data: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="Submitted data after path rewriting"
    )

    @classmethod
    def failed(cls, errors: dict[str, str], **kwargs) -> "SubmissionResult":
        return cls(success=False, errors=errors, **kwargs)


def _has_data(table_data: Mapping[str, Any] | None) -> bool:
    return bool(table_data)


class ProfileSubmitter:
    """
    Validates and submits multi-table form data.

    Args:
        session: Open FormSession providing schemas, temp client id and
            document state.
        pre_validate: Also run backend pre-submit validation per table.
    """

    def __init__(self, session: FormSession, pre_validate: bool = True):
        self.session = session
        self.client = session.client
        self.pre_validate = pre_validate

    @property
    def profile_table(self) -> str:
        return self.session.config.profile_table

    async def _server_validate(self, form_data: Mapping[str, Mapping[str, Any]]) -> dict[str, str]:
        errors: dict[str, str] = {}
        for table_name, table_data in form_data.items():
            if not _has_data(table_data) or table_name == self.session.documents_table:
                continue
            try:
                server_errors = await self.client.validate_table(table_name, dict(table_data))
            except FormMasterError as e:
                logger.warning(f"Server-side validation failed for {table_name}: {e}")
                continue
            if server_errors:
                errors.update(translate_validation_errors(table_name, server_errors))
        return errors

    async def validate(self, form_data: Mapping[str, Mapping[str, Any]]) -> dict[str, str]:
        """
        Run every pre-submit check.

        Returns:
            Field-scoped error messages; empty when the data may be submitted.
        """
        profile = form_data.get(self.profile_table) or {}
        if not profile.get("first_name"):
            return {field_key(self.profile_table, "first_name"): "First name is required"}

        result = self.session.validate(form_data)
        if not result.is_valid:
            return result.to_error_dict()

        if self.pre_validate:
            return await self._server_validate(form_data)
        return {}

    async def _move_temp_files(
        self,
        form_data: dict[str, dict[str, Any]],
        client_id: str,
    ) -> dict[str, dict[str, Any]]:
        temp_id = self.session.temp_client_id
        profile = form_data.get(self.profile_table) or {}
        if not temp_id or profile.get("client_id") is not None:
            return form_data

        try:
            moved = await self.client.move_temp_files(temp_id, client_id)
        except FormMasterError as e:
            logger.warning(f"Failed to move temp files: {e}")
            return form_data

        logger.info(f"Moved temp files from {temp_id} to {client_id}: {moved}")
        return rewrite_temp_paths(form_data, temp_id, client_id)

    async def submit(self, form_data: Mapping[str, Mapping[str, Any]]) -> SubmissionResult:
        """
        Validate, then insert the profile and its related records.

        Constraint rejections come back translated in
        ``SubmissionResult.errors``; transport failures raise.

        Raises:
            FormMasterTransportError: If the backend cannot be reached.
        """
        form_data = {table: dict(data or {}) for table, data in form_data.items()}

        errors = await self.validate(form_data)
        if errors:
            logger.info(f"Submission blocked by {len(errors)} validation errors")
            return SubmissionResult.failed(errors, form_data=form_data)

        now = utc_now_iso()
        profile_payload = {**form_data[self.profile_table], "created_at": now, "updated_at": now}

        try:
            created = await self.client.insert_row(self.profile_table, profile_payload)
        except ServerConstraintError as e:
            logger.warning(f"Profile rejected: {e.field_errors}")
            return SubmissionResult.failed(e.field_errors, form_data=form_data)
        except BackendRequestError as e:
            return SubmissionResult.failed({field_key(self.profile_table, "_general"): str(e)}, form_data=form_data)

        inserted_id = created.get("insertedId") if isinstance(created, dict) else None
        if inserted_id is None:
            return SubmissionResult.failed(
                {field_key(self.profile_table, "_general"): "Failed to get client ID from server response"},
                form_data=form_data,
            )

        client_id = str(inserted_id)
        logger.info(f"Created client with ID: {client_id}")
        inserted_tables = [self.profile_table]

        form_data = await self._move_temp_files(form_data, client_id)

        for table_name, table_data in form_data.items():
            if table_name == self.profile_table or not _has_data(table_data):
                continue
            record = {"client_id": inserted_id, **table_data}
            try:
                await self.client.insert_row(table_name, record)
            except ServerConstraintError as e:
                logger.warning(f"{table_name} record rejected: {e.field_errors}")
                return SubmissionResult.failed(
                    e.field_errors,
                    client_id=client_id,
                    inserted_tables=inserted_tables,
                    form_data=form_data,
                )
            except BackendRequestError as e:
                return SubmissionResult.failed(
                    {field_key(table_name, "_general"): str(e)},
                    client_id=client_id,
                    inserted_tables=inserted_tables,
                    form_data=form_data,
                )
            inserted_tables.append(table_name)

        document_files = self.session.documents.document_files()
        if document_files:
            try:
                await self.client.organize_documents(client_id, document_files)
            except FormMasterError as e:
                logger.error(f"Failed to organize documents for {client_id}: {e}")

        logger.info(f"Profile {client_id} created across {len(inserted_tables)} tables")
        return SubmissionResult(
            success=True,
            client_id=client_id,
            inserted_tables=inserted_tables,
            form_data=form_data,
        )
