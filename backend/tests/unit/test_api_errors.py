"""Tests for API error classes and the error envelope handlers."""

import pytest
from httpx import ASGITransport, AsyncClient

from parley.core.errors import (
    APIError,
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    ServiceUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from parley.main import create_app
from parley.storage.memory import MemoryStorage


class TestAPIError:
    """Tests for base APIError class."""

    def test_api_error_has_required_attributes(self):
        error = APIError(
            code="TEST_ERROR",
            message="Test message",
            status_code=418,
            details=[{"field": "test"}],
        )
        assert error.code == "TEST_ERROR"
        assert error.message == "Test message"
        assert error.status_code == 418
        assert error.details == [{"field": "test"}]

    def test_api_error_defaults_to_500(self):
        error = APIError(code="TEST", message="Test")
        assert error.status_code == 500
        assert error.details is None
        assert str(error) == "Test"


class TestErrorSubclasses:
    """Each subclass carries its status and code."""

    @pytest.mark.parametrize(
        ("error", "status_code", "code"),
        [
            (ValidationError("bad"), 400, "VALIDATION_ERROR"),
            (UnauthorizedError(), 401, "UNAUTHORIZED"),
            (ForbiddenError(), 403, "FORBIDDEN"),
            (NotFoundError("Session"), 404, "NOT_FOUND"),
            (ConflictError("EMAIL_ALREADY_EXISTS", "dup"), 409, "EMAIL_ALREADY_EXISTS"),
            (InvalidStateError("done"), 422, "INVALID_STATE_TRANSITION"),
            (ServiceUnavailableError(), 503, "SERVICE_UNAVAILABLE"),
            (InternalError(), 500, "INTERNAL_ERROR"),
        ],
    )
    def test_status_and_code(self, error, status_code, code):
        assert error.status_code == status_code
        assert error.code == code

    def test_not_found_message_includes_id(self):
        error = NotFoundError("Session", "abc")
        assert error.message == "Session with id 'abc' not found"

    def test_unauthorized_message_is_generic_by_default(self):
        assert UnauthorizedError().message == "Authentication required"


class TestErrorEnvelope:
    """Handlers registered by create_app produce {"error": {...}}."""

    @pytest.fixture
    async def raising_client(self):
        app = create_app(storage=MemoryStorage())

        @app.get("/boom/api-error")
        async def api_error():
            raise ConflictError("EMAIL_ALREADY_EXISTS", "Email already registered")

        @app.get("/boom/unhandled")
        async def unhandled():
            raise RuntimeError("connection string postgres://secret@db leaked")

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac

    async def test_api_error_envelope(self, raising_client):
        response = await raising_client.get("/boom/api-error")

        assert response.status_code == 409
        assert response.json() == {
            "error": {
                "code": "EMAIL_ALREADY_EXISTS",
                "message": "Email already registered",
                "details": None,
            }
        }

    async def test_unhandled_exception_is_generic_500(self, raising_client):
        response = await raising_client.get("/boom/unhandled")

        assert response.status_code == 500
        body = response.json()
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert body["error"]["message"] == "An unexpected error occurred"
        assert "postgres" not in response.text

    async def test_request_validation_is_400(self, client):
        response = await client.post("/api/v1/chat/completions", json={"mode": "chat"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"][0]["loc"] == ["body", "messages"]

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
        assert response.headers["X-Content-Type-Options"] == "nosniff"
