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

from quota_gateway.core.errors import (
    AppError,
    AuthenticationAppError,
    ConfigurationMissingError,
    ErrorDetails,
    LimitExceededError,
    LLMAppError,
    StoreUnavailableError,
    ValidationAppError,
)
from quota_gateway.core.exception_handlers import (
    general_exception_handler,
    setup_exception_handlers,
    status_code_for,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ValidationAppError(code="bad_input", message="bad"), 400),
        (AuthenticationAppError(code="invalid_api_key", message="no"), 403),
        (LimitExceededError("identity_tpd"), 429),
        (LLMAppError(code="downstream_call_failed", message="boom"), 502),
        (StoreUnavailableError(), 503),
        (ConfigurationMissingError(code="llm_missing_api_key", message="missing"), 503),
        (AppError(code="other", message="other"), 400),
    ],
)
def test_status_code_for(error: AppError, expected: int) -> None:
    assert status_code_for(error) == expected


class TestAppErrorHandler:
    def test_validation_error_returns_400_with_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="prompt_too_long",
                message="Prompt exceeds the maximum allowed length",
                details={"limit": 50000},
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "prompt_too_long"
        assert data["error"]["details"] == {"limit": 50000}
        assert "request_id" in data["error"]

    def test_limit_exceeded_names_the_dimension(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-limit")
        async def test_endpoint():
            raise LimitExceededError(
                "global_rpm",
                message="Global requests per minute limit exceeded",
                details={"context": {"remaining_quota": {"rpm": 0}}},
            )

        response = client.get("/test-limit")

        assert response.status_code == 429
        error = response.json()["error"]
        assert error["code"] == "limit_exceeded"
        assert error["message"] == "Global requests per minute limit exceeded"
        assert error["details"]["dimension"] == "global_rpm"
        assert error["details"]["context"]["remaining_quota"] == {"rpm": 0}

    def test_llm_error_returns_502(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-llm")
        async def test_endpoint():
            raise LLMAppError(code="downstream_call_failed", message="Provider returned an error")

        response = client.get("/test-llm")

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "downstream_call_failed"

    def test_store_unavailable_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-store")
        async def test_endpoint():
            raise StoreUnavailableError()

        response = client.get("/test-store")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "store_unavailable"
        assert "details" not in response.json()["error"]

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-crash")
        async def test_endpoint():
            raise RuntimeError("database password is hunter2")

        response = client.get("/test-crash")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "hunter2" not in response.text


class TestGeneralExceptionHandler:
    def test_general_exception_handler_never_leaks_details(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("Unexpected error: redis connection failed")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "redis" not in response_text
        assert "ValueError" not in response_text
        assert "Traceback" not in response_text


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers


def test_error_details_keys_are_the_ones_errors_carry() -> None:
    assert ErrorDetails.__optional_keys__ == frozenset(
        {"hint", "dimension", "limit", "model", "setting", "context"}
    )
    assert ErrorDetails.__required_keys__ == frozenset()
