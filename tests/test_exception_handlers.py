"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ratewindow.core.errors import (
    AppError,
    ConfigurationAppError,
    RateLimitExceededAppError,
    StoreClosedAppError,
    ValidationAppError,
)
from ratewindow.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def endpoint():
            raise ValidationAppError(
                code="invalid_rate_limit_key",
                message="key must be a non-empty string",
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "invalid_rate_limit_key"
        assert data["error"]["message"] == "key must be a non-empty string"
        assert "request_id" in data["error"]
        assert "details" not in data["error"]

    def test_rate_limit_error_uses_policy_status_and_headers(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.get("/test-throttled")
        async def endpoint():
            raise RateLimitExceededAppError(
                code="rate_limit_exceeded",
                message="Too many requests",
                details={"policy": "global", "limit": 5, "retry_after": 12},
                status_code=429,
                headers={"Retry-After": "12", "X-RateLimit-Remaining": "0"},
            )

        response = client.get("/test-throttled")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "12"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        details = response.json()["error"]["details"]
        assert details == {"policy": "global", "limit": 5, "retry_after": 12}

    def test_rate_limit_error_without_headers(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-throttled-bare")
        async def endpoint():
            raise RateLimitExceededAppError(
                code="rate_limit_exceeded",
                message="Too many requests",
                status_code=503,
            )

        response = client.get("/test-throttled-bare")

        assert response.status_code == 503
        assert "Retry-After" not in response.headers

    def test_store_closed_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-closed")
        async def endpoint():
            raise StoreClosedAppError(
                code="rate_limit_store_closed",
                message="Rate limit store has been shut down",
            )

        response = client.get("/test-closed")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "rate_limit_store_closed"

    def test_configuration_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-config")
        async def endpoint():
            raise ConfigurationAppError(code="unknown_policy", message="not registered")

        response = client.get("/test-config")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "unknown_policy"

    def test_error_str_is_message(self):
        error = ValidationAppError(code="c", message="readable")
        assert str(error) == "readable"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        assert Exception in app_with_handlers.exception_handlers

    def test_general_exception_handler_hides_internals(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("lock poisoned in compactor thread")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "compactor" not in data["error"]["message"]
        assert "RuntimeError" not in bytes(response.body).decode()
        assert "request_id" in data["error"]


def test_setup_exception_handlers_is_repeatable():
    app = FastAPI()

    setup_exception_handlers(app)
    setup_exception_handlers(app)

    assert AppError in app.exception_handlers
    assert Exception in app.exception_handlers
