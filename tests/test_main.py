"""
Test suite for the FastAPI application shell.

Tests cover health endpoints, the request id middleware, the mapping of
domain errors to HTTP responses, CORS and the OpenAPI schema.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient
from pydantic import BaseModel

from piiquante.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    UnauthenticatedError,
    UnavailableError,
)
from piiquante.database.connection import Database
from piiquante.main import app


def app_raising(exc: Exception) -> TestClient:
    """Small app sharing the real exception handlers with one failing route."""
    test_app = FastAPI()

    class Body(BaseModel):
        value: int

    @test_app.get("/error")
    async def error_endpoint():
        raise exc

    @test_app.post("/validate")
    async def validate_endpoint(body: Body):
        return body

    for handler in app.exception_handlers:
        test_app.add_exception_handler(handler, app.exception_handlers[handler])

    return TestClient(test_app, raise_server_exceptions=False)


# ============================================================================
# Health Endpoints
# ============================================================================


class TestHealthEndpoints:
    def test_health_check_returns_200(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "healthy"

    def test_liveness(self, client: TestClient):
        assert client.get("/live").json()["status"] == "alive"

    def test_ready_when_database_answers(self, client: TestClient):
        with patch.object(Database, "ping", AsyncMock(return_value=True)):
            response = client.get("/ready")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["database"] == "healthy"

    def test_not_ready_when_database_down(self, client: TestClient):
        with patch.object(Database, "ping", AsyncMock(return_value=False)):
            response = client.get("/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["status"] == "not_ready"


# ============================================================================
# Middleware
# ============================================================================


class TestRequestIdMiddleware:
    def test_generates_request_id(self, client: TestClient):
        response = client.get("/health")
        assert response.headers["X-Request-ID"]

    def test_preserves_custom_request_id(self, client: TestClient):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_error_body_carries_request_id(self, client: TestClient):
        response = client.get("/api/sauces", headers={"X-Request-ID": "req-456"})

        assert response.status_code == 401
        assert response.json()["request_id"] == "req-456"


# ============================================================================
# Exception Handlers
# ============================================================================


class TestExceptionHandlers:
    @pytest.mark.parametrize(
        "exc,expected_status",
        [
            (InvalidInputError("bad"), 400),
            (UnauthenticatedError("expired token"), 401),
            (ForbiddenError("not owner"), 403),
            (NotFoundError("missing"), 404),
            (ConflictError("taken"), 409),
            (UnavailableError("db down"), 503),
        ],
    )
    def test_domain_errors_map_to_status(self, exc, expected_status):
        response = app_raising(exc).get("/error")

        assert response.status_code == expected_status
        assert response.json()["code"] == exc.code

    def test_unavailable_hides_internal_detail(self):
        exc = UnavailableError("connection to 10.0.0.5 refused", host="10.0.0.5")

        body = app_raising(exc).get("/error").json()

        assert "10.0.0.5" not in str(body)
        assert body["error"] == "Service temporarily unavailable"

    def test_unauthenticated_message_is_constant(self):
        first = app_raising(UnauthenticatedError("token expired")).get("/error")
        second = app_raising(UnauthenticatedError("bad password")).get("/error")

        assert first.json()["error"] == second.json()["error"]

    def test_validation_error_is_400(self):
        response = app_raising(ValueError()).post("/validate", json={"value": "x"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "INVALID_INPUT"

    def test_unexpected_error_is_generic_500(self):
        response = app_raising(RuntimeError("secret stack detail")).get("/error")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert "secret" not in response.text


# ============================================================================
# Application Configuration
# ============================================================================


class TestApplication:
    def test_cors_preflight(self, client: TestClient):
        response = client.options(
            "/api/sauces",
            headers={
                "Origin": "http://localhost:4200",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == status.HTTP_200_OK
        assert "access-control-allow-origin" in response.headers

    def test_openapi_lists_routes(self, client: TestClient):
        paths = client.get("/openapi.json").json()["paths"]

        assert "/api/auth/signup" in paths
        assert "/api/auth/login" in paths
        assert "/api/sauces/{sauce_id}/like" in paths

    def test_unknown_route_is_404(self, client: TestClient):
        assert client.get("/nonexistent").status_code == status.HTTP_404_NOT_FOUND
