"""
Tests for the error taxonomy, settings parsing and the application shell
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.common.exceptions import (
    DependencyUnavailable, InvalidStatusTransition, InvoiceValidationError, NotFound,
    classify_dependency_error
)
from app.core.config import Settings, parse_bool


class TestClassifyDependencyError:
    @pytest.mark.parametrize("raw, category", [
        ('duplicate key value violates unique constraint "invoices_invoice_number_key"', "duplicate"),
        ("UNIQUE constraint failed: invoices.invoice_number", "duplicate"),
        ("insert or update violates foreign key constraint", "invalid_reference"),
        ("new row violates check constraint", "invalid_data"),
        ("connection refused", "network"),
        ("statement timed out", "timeout"),
        ("permission denied for table invoices", "permission"),
    ])
    def test_categories(self, raw, category):
        error = classify_dependency_error(Exception(raw), "save invoice")
        assert isinstance(error, DependencyUnavailable)
        assert error.category == category
        assert error.status_code == 503

    def test_uses_driver_error(self):
        wrapped = IntegrityError("INSERT INTO invoices", {}, Exception("UNIQUE constraint failed"))
        assert classify_dependency_error(wrapped, "save invoice").category == "duplicate"

    def test_fallback_keeps_raw_message(self):
        error = classify_dependency_error(
            OperationalError("SELECT 1", {}, Exception("disk I/O error")), "load invoice"
        )
        assert error.category == "unknown"
        assert error.detail == "Failed to load invoice: disk I/O error"


class TestErrors:
    def test_validation_collects_messages(self):
        error = InvoiceValidationError(["Please select a customer", "At least one line item is required"])
        assert error.status_code == 400
        assert error.detail == {"errors": ["Please select a customer", "At least one line item is required"]}
        assert error.message == "Please select a customer; At least one line item is required"

    def test_transition_message(self):
        error = InvalidStatusTransition("paid", "draft")
        assert error.status_code == 409
        assert error.detail == "Cannot change invoice status from paid to draft"

    def test_not_found(self):
        assert NotFound("Invoice", 7).detail == "Invoice 7 not found"
        assert NotFound("Company settings").detail == "Company settings not found"


class TestSettings:
    @pytest.mark.parametrize("raw, expected", [
        ("true", True), ('"TRUE"', True), ("1", True), ("on", True),
        ("false", False), ("0", False), ("", False), (False, False),
    ])
    def test_parse_bool(self, raw, expected):
        assert parse_bool(raw) is expected

    def test_cors_origins(self):
        config = Settings(FRONTEND_URL="https://billing.example.com/", CORS_ORIGINS="https://admin.example.com, ,https://billing.example.com")
        assert config.cors_origins == ["https://billing.example.com", "https://admin.example.com"]

    def test_strict_patterns_uppercased(self):
        config = Settings(STRICT_TAX_REGISTRATION_PATTERNS={" gbr ": r"^GB[0-9]{9}$"})
        assert config.STRICT_TAX_REGISTRATION_PATTERNS == {"GBR": r"^GB[0-9]{9}$"}

    def test_database_url_override(self):
        assert Settings(DATABASE_URL="sqlite+aiosqlite://").async_database_url == "sqlite+aiosqlite://"
        url = Settings(DATABASE_URL=None, POSTGRES_HOST="db").async_database_url
        assert url.startswith("postgresql+asyncpg://") and "@db:5432/" in url


class TestApplication:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "ok"
        assert "X-Process-Time" not in response.headers

    async def test_security_and_timing_headers(self, client):
        response = await client.get("/")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert float(response.headers["X-Process-Time"]) >= 0
