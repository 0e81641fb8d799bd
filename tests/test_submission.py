"""Tests for profile submission."""

import json

import httpx
import pytest

from form_master.exceptions import FormMasterTransportError
from form_master.services.session import FormSession
from form_master.services.submission import ProfileSubmitter

ROWS = "/api/database/tables/{}/rows"


def valid_form_data(photo_path: str = "uploads/42/aadhar.pdf") -> dict:
    return {
        "personal_details": {"first_name": "Asha", "email": "asha@example.com", "age": "19"},
        "address_details": {"address": "12 MG Road", "city": "Pune"},
        "documents": {"aadhar_card": photo_path},
    }


@pytest.fixture
async def session(client, seeded_backend, test_config):
    session = await FormSession(client, config=test_config).open()
    yield session
    session.documents.close()


@pytest.fixture
def accepting_backend(seeded_backend):
    """Backend that accepts every record and validates everything."""
    for table in ("address_details", "documents"):
        seeded_backend.add("POST", ROWS.format(table), json={"success": True, "insertedId": 7})
        seeded_backend.add("POST", f"/api/validate/{table}", json={"valid": True})
    seeded_backend.add("POST", "/api/validate/personal_details", json={"valid": True})
    seeded_backend.add("POST", ROWS.format("personal_details"), json={"success": True, "insertedId": 42})
    seeded_backend.add("POST", "/api/documents/move-temp-files", json={"success": True, "moved": 1})
    seeded_backend.add("POST", "/api/documents/organize/42", json={"success": True})
    return seeded_backend


def posted(backend, table):
    return [json.loads(r.content) for r in backend.calls("POST", ROWS.format(table))]


class TestValidate:
    """Tests for pre-submit checks."""

    @pytest.mark.asyncio
    async def test_first_name_required(self, session):
        """Test the profile needs a first name before anything else."""
        errors = await ProfileSubmitter(session).validate({"personal_details": {"email": "bad"}})
        assert errors == {"personal_details.first_name": "First name is required"}

    @pytest.mark.asyncio
    async def test_local_errors_block_server_validation(self, session, accepting_backend):
        """Test the backend is not asked when local checks fail."""
        form_data = valid_form_data()
        form_data["personal_details"]["age"] = "abc"
        errors = await ProfileSubmitter(session).validate(form_data)
        assert errors == {"personal_details.age": "Age must be a valid number"}
        assert not accepting_backend.calls("POST", "/api/validate/personal_details")

    @pytest.mark.asyncio
    async def test_server_errors_translated(self, session, accepting_backend):
        """Test backend validation errors are routed to fields."""
        accepting_backend.add(
            "POST", "/api/validate/address_details",
            json={"errors": ["city must be a known city"]}, status_code=400,
        )
        errors = await ProfileSubmitter(session).validate(valid_form_data())
        assert errors == {"address_details.city": "city must be a known city"}
        assert not accepting_backend.calls("POST", "/api/validate/documents")

    @pytest.mark.asyncio
    async def test_unreachable_validation_is_skipped(self, session, accepting_backend):
        """Test transport failures during validation do not block submission."""
        accepting_backend.add("POST", "/api/validate/personal_details", json={}, status_code=502)
        assert await ProfileSubmitter(session).validate(valid_form_data()) == {}


class TestSubmit:
    """Tests for ProfileSubmitter.submit()."""

    @pytest.mark.asyncio
    async def test_profile_first_then_related(self, session, accepting_backend):
        """Test related records carry the new client id."""
        result = await ProfileSubmitter(session).submit(valid_form_data())

        assert result.success
        assert result.client_id == "42"
        assert result.inserted_tables == ["personal_details", "address_details", "documents"]

        profile = posted(accepting_backend, "personal_details")[0]
        assert profile["first_name"] == "Asha"
        assert "created_at" in profile and "updated_at" in profile
        assert posted(accepting_backend, "address_details")[0] == {
            "client_id": 42, "address": "12 MG Road", "city": "Pune"
        }
        profile_index = accepting_backend.requests.index(
            accepting_backend.calls("POST", ROWS.format("personal_details"))[0]
        )
        address_index = accepting_backend.requests.index(
            accepting_backend.calls("POST", ROWS.format("address_details"))[0]
        )
        assert profile_index < address_index

    @pytest.mark.asyncio
    async def test_temp_files_moved_and_paths_rewritten(self, session, accepting_backend):
        """Test files stored under the temp id follow the new client id."""
        temp_id = session.ensure_temp_client_id()
        form_data = valid_form_data(photo_path=f"uploads/{temp_id}/aadhar.pdf")

        result = await ProfileSubmitter(session).submit(form_data)

        assert result.success
        move = json.loads(accepting_backend.calls("POST", "/api/documents/move-temp-files")[0].content)
        assert move == {"tempClientId": temp_id, "realClientId": "42"}
        assert posted(accepting_backend, "documents")[0]["aadhar_card"] == "uploads/42/aadhar.pdf"
        assert result.form_data["documents"]["aadhar_card"] == "uploads/42/aadhar.pdf"

    @pytest.mark.asyncio
    async def test_failed_move_keeps_paths(self, session, accepting_backend):
        """Test a failed move is tolerated and paths stay as uploaded."""
        temp_id = session.ensure_temp_client_id()
        accepting_backend.add("POST", "/api/documents/move-temp-files", json={"error": "io"}, status_code=500)
        path = f"uploads/{temp_id}/aadhar.pdf"

        result = await ProfileSubmitter(session).submit(valid_form_data(photo_path=path))

        assert result.success
        assert posted(accepting_backend, "documents")[0]["aadhar_card"] == path

    @pytest.mark.asyncio
    async def test_no_move_without_temp_id(self, session, accepting_backend):
        """Test nothing is moved when no file used a temp id."""
        await ProfileSubmitter(session).submit(valid_form_data())
        assert not accepting_backend.calls("POST", "/api/documents/move-temp-files")

    @pytest.mark.asyncio
    async def test_profile_rejected(self, session, accepting_backend):
        """Test a duplicate profile comes back as a general table error."""
        accepting_backend.add(
            "POST", ROWS.format("personal_details"),
            json={"type": "UNIQUE_CONSTRAINT", "error": "duplicate"}, status_code=409,
        )
        result = await ProfileSubmitter(session).submit(valid_form_data())

        assert not result.success
        assert result.client_id is None
        assert list(result.errors) == ["personal_details._general"]
        assert "personal_details" in result.errors["personal_details._general"]
        assert not posted(accepting_backend, "address_details")

    @pytest.mark.asyncio
    async def test_missing_inserted_id(self, session, accepting_backend):
        """Test a profile response without an id stops the submission."""
        accepting_backend.add("POST", ROWS.format("personal_details"), json={"success": True})
        result = await ProfileSubmitter(session).submit(valid_form_data())
        assert result.errors == {
            "personal_details._general": "Failed to get client ID from server response"
        }

    @pytest.mark.asyncio
    async def test_related_table_rejected(self, session, accepting_backend):
        """Test a rejected related record reports what was already created."""
        accepting_backend.add(
            "POST", ROWS.format("address_details"),
            handler=lambda request: httpx.Response(
                400, json={"details": "SQLITE_CONSTRAINT: CHECK constraint failed: city"}
            ),
        )
        result = await ProfileSubmitter(session).submit(valid_form_data())

        assert not result.success
        assert result.client_id == "42"
        assert result.inserted_tables == ["personal_details"]
        assert result.errors == {
            "address_details.city": "Invalid value for City. Please check the allowed values."
        }

    @pytest.mark.asyncio
    async def test_validation_errors_block_inserts(self, session, accepting_backend):
        """Test nothing is inserted when validation fails."""
        form_data = valid_form_data()
        form_data["documents"] = {}
        result = await ProfileSubmitter(session).submit(form_data)

        assert result.errors == {"documents.aadhar_card": "Aadhar Card is required"}
        assert not posted(accepting_backend, "personal_details")

    @pytest.mark.asyncio
    async def test_transport_failure_raises(self, session, accepting_backend):
        """Test an unreachable backend surfaces as a transport error."""
        accepting_backend.add("POST", ROWS.format("personal_details"), json={}, status_code=503)
        with pytest.raises(FormMasterTransportError):
            await ProfileSubmitter(session, pre_validate=False).submit(valid_form_data())

    @pytest.mark.asyncio
    async def test_completed_documents_organized(self, session, accepting_backend):
        """Test uploaded document files are filed under the new client."""
        accepting_backend.add("POST", "/api/document-processor/upload-simple", json={
            "documentId": "simple-1", "filePath": "temp/photo.png",
        })
        await session.documents.load_document_types()
        await session.documents.submit("photo", "photo.png", b"\x89PNG", "image/png")

        result = await ProfileSubmitter(session).submit(valid_form_data())

        assert result.success
        organize = json.loads(accepting_backend.calls("POST", "/api/documents/organize/42")[0].content)
        assert organize == {"documentFiles": {"photo": "temp/photo.png"}}
