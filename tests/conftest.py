"""Pytest configuration and shared fixtures."""

import inspect
from typing import Any, Callable

import httpx
import pytest

from form_master.config import FormMasterConfig
from form_master.models import (
    ColumnDefinition,
    DocumentParsingConfig,
    DocumentTypeSchema,
    SchemaField,
    TableSchema,
)
from form_master.services.api_client import FormMasterClient


class FakeBackend:
    """
    In-memory stand-in for the REST backend.

    Routes are keyed by (method, path). A route is either a canned JSON
    response or a handler taking the request; handlers may be async, which
    lets a test hold a request open until it releases an event.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json: Any = None,
        status_code: int = 200,
        handler: Callable[[httpx.Request], Any] | None = None,
    ) -> None:
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status_code, json=json)
        self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": f"No route for {request.method} {request.url.path}"})
        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response


@pytest.fixture
def test_config() -> FormMasterConfig:
    """Configuration with fast polling for tests."""
    return FormMasterConfig(
        api_base_url="http://backend.test",
        poll_interval=0.01,
        poll_timeout=1.0,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def client(backend, test_config):
    """FormMasterClient wired to the fake backend."""
    api = FormMasterClient(transport=httpx.MockTransport(backend), config=test_config)
    yield api
    await api.aclose()


@pytest.fixture
def personal_details() -> TableSchema:
    return TableSchema(
        table_name="personal_details",
        display_name="Personal Details",
        is_required=True,
        columns=[
            ColumnDefinition(name="client_id", type="INTEGER", nullable=False, primary_key=True),
            ColumnDefinition(name="first_name", type="TEXT", nullable=False, required=True, min_length=2),
            ColumnDefinition(name="full_name", type="TEXT"),
            ColumnDefinition(name="email", type="TEXT", is_email=True),
            ColumnDefinition(name="age", type="INTEGER", min_value=1, max_value=120),
            ColumnDefinition(
                name="gender", type="TEXT", has_dropdown=True, dropdown_options=["Male", "Female"]
            ),
            ColumnDefinition(name="contact_number", type="TEXT", exact_length=10),
            ColumnDefinition(name="date_of_birth", type="DATE"),
        ],
    )


@pytest.fixture
def address_details() -> TableSchema:
    return TableSchema(
        table_name="address_details",
        columns=[
            ColumnDefinition(name="client_id", type="INTEGER"),
            ColumnDefinition(name="address", type="TEXT"),
            ColumnDefinition(name="city", type="TEXT"),
        ],
    )


@pytest.fixture
def documents_table() -> TableSchema:
    return TableSchema(
        table_name="documents",
        is_required=True,
        columns=[
            ColumnDefinition(name="document_id", type="INTEGER", primary_key=True),
            ColumnDefinition(name="client_id", type="INTEGER"),
            ColumnDefinition(name="aadhar_card", type="TEXT", nullable=False),
            ColumnDefinition(name="photo", type="TEXT"),
            ColumnDefinition(name="tenth_marksheet", type="TEXT"),
            ColumnDefinition(name="created_at", type="DATETIME"),
        ],
    )


@pytest.fixture
def schemas(personal_details, address_details, documents_table) -> list[TableSchema]:
    return [personal_details, address_details, documents_table]


@pytest.fixture
def parsing_config() -> DocumentParsingConfig:
    """Extraction schema for aadhar cards only."""
    return DocumentParsingConfig(
        schemas=[
            DocumentTypeSchema(
                document_type="aadhar_card",
                display_name="Aadhar Card",
                fields=[
                    SchemaField(
                        column_name="full_name",
                        table_name="personal_details",
                        display_name="Full Name",
                    ),
                    SchemaField(
                        column_name="address",
                        table_name="address_details",
                        display_name="Address",
                    ),
                ],
            ),
        ],
    )


@pytest.fixture
def seeded_backend(backend, schemas, documents_table, parsing_config) -> FakeBackend:
    """Backend serving schemas, parsing config and the model endpoints."""
    backend.add("GET", "/api/database/tables/compatible", json=[s.to_payload() for s in schemas])
    backend.add("GET", "/api/database/tables/documents/schema", json=documents_table.to_payload())
    backend.add("GET", "/api/document-parsing/config", json=parsing_config.to_payload())
    backend.add("GET", "/api/document-processor/status", json={"status": "ready"})
    backend.add("POST", "/api/document-processor/load-model", json={"success": True})
    backend.add("POST", "/api/document-processor/unload-model", json={"success": True})
    backend.add("POST", "/api/document-processor/cleanup", json={"success": True})
    return backend
