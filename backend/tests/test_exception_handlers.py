"""Tests for the domain error and catch-all exception handlers."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.exceptions import (
    BusinessRuleError,
    InvalidStateError,
    NotFoundError,
    PaymentGatewayError,
    PermissionDeniedError,
    setup_exception_handlers,
)


@pytest.fixture
def error_client():
    app = FastAPI()
    setup_exception_handlers(app)

    errors = {
        "not-found": NotFoundError("Package not found"),
        "forbidden": PermissionDeniedError("Not yours"),
        "conflict": InvalidStateError("Already finished"),
        "rule": BusinessRuleError("Voucher has expired"),
        "gateway": PaymentGatewayError("Midtrans unavailable"),
    }

    @app.get("/raise/{name}")
    async def raise_error(name: str):
        raise errors[name]

    @app.get("/crash")
    async def crash():
        raise RuntimeError("boom")

    return TestClient(app, raise_server_exceptions=False)


class TestExceptionHandlers:
    @pytest.mark.parametrize(
        "name, status_code, detail",
        [
            ("not-found", 404, "Package not found"),
            ("forbidden", 403, "Not yours"),
            ("conflict", 409, "Already finished"),
            ("rule", 400, "Voucher has expired"),
            ("gateway", 502, "Midtrans unavailable"),
        ],
    )
    def test_domain_errors(self, error_client, name, status_code, detail):
        response = error_client.get(f"/raise/{name}")
        assert response.status_code == status_code
        assert response.json() == {"detail": detail}

    def test_unhandled_error_returns_500(self, error_client):
        response = error_client.get("/crash")

        assert response.status_code == 500
        body = response.json()
        assert body["detail"] == "Internal server error"
        assert body["error_type"] == "RuntimeError"
        assert isinstance(body["error_id"], int)

    def test_status_code_override(self):
        error = BusinessRuleError("Too many requests", status_code=429)
        assert error.status_code == 429
        assert BusinessRuleError("x").status_code == 400


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
