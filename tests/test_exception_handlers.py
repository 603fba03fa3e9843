"""Tests for global exception handlers.

Validates that domain errors map to consistent HTTP status codes and bodies,
and that unexpected errors never leak details.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from market_guard.core.errors import (
    AppError,
    AuthenticationAppError,
    AuthorizationAppError,
    InvalidArgumentAppError,
    ValidationAppError,
)
from market_guard.core.exception_handlers import (
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
        (ValidationAppError(code="v", message="v"), 400),
        (InvalidArgumentAppError(code="invalid_argument", message="bad"), 400),
        (AuthenticationAppError(code="invalid_token", message="Invalid token"), 401),
        (AuthorizationAppError(code="forbidden", message="nope"), 403),
        (AppError(code="generic", message="generic"), 400),
    ],
)
def test_status_code_mapping(error: AppError, expected: int) -> None:
    assert status_code_for(error) == expected


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_invalid_argument_returns_400_with_details(
        self, client: TestClient, app_with_handlers: FastAPI
    ) -> None:
        @app_with_handlers.get("/invalid")
        async def endpoint():
            raise InvalidArgumentAppError(
                code="invalid_argument",
                message="max_requests must be a positive integer",
                details={"argument": "max_requests", "actual_value": 0},
            )

        response = client.get("/invalid")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalid_argument"
        assert error["details"] == {"argument": "max_requests", "actual_value": 0}
        assert "request_id" in error

    def test_authentication_error_returns_401(
        self, client: TestClient, app_with_handlers: FastAPI
    ) -> None:
        @app_with_handlers.get("/auth")
        async def endpoint():
            raise AuthenticationAppError(code="token_expired", message="Token expired")

        response = client.get("/auth")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"]["code"] == "token_expired"

    def test_authorization_error_returns_403(
        self, client: TestClient, app_with_handlers: FastAPI
    ) -> None:
        @app_with_handlers.get("/admin")
        async def endpoint():
            raise AuthorizationAppError(code="forbidden", message="The 'admin' role is required")

        response = client.get("/admin")

        assert response.status_code == 403
        assert "WWW-Authenticate" not in response.headers
        assert "details" not in response.json()["error"]


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(
        self, client: TestClient, app_with_handlers: FastAPI
    ) -> None:
        @app_with_handlers.get("/boom")
        async def endpoint():
            raise RuntimeError("registry corrupted at 0xdeadbeef")

        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "0xdeadbeef" not in response.text

    def test_never_leaks_stack_trace(self) -> None:
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "POST"

        response = asyncio.run(general_exception_handler(request, ValueError("secret detail")))

        body = bytes(response.body).decode()
        data = json.loads(body)
        assert response.status_code == 500
        assert "secret detail" not in body
        assert "Traceback" not in body
        assert "ValueError" not in body
        assert "request_id" in data["error"]


def test_setup_registers_handlers(app_with_handlers: FastAPI) -> None:
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
