"""
Tests for payment requests and payment links
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from app.common.exceptions import (
    DependencyUnavailable, InvoiceValidationError, NotFound, StatusEditForbidden
)
from app.common.mixins import utcnow
from app.core.config import settings
from app.modules.invoices.models import InvoiceStatus
from app.modules.payments.models import PaymentGateway, PaymentRequest, PaymentRequestStatus
from app.modules.payments.service import PaymentService


class TestPaymentService:
    async def test_active_gateways_by_priority(self, db):
        db.add_all([
            PaymentGateway(name="Stripe", provider="stripe", priority=2),
            PaymentGateway(name="Razorpay", provider="razorpay", priority=1),
            PaymentGateway(name="Legacy", provider="paypal", priority=0, is_active=False),
        ])
        await db.commit()

        gateways = await PaymentService(db).list_active_gateways()

        assert [gateway.name for gateway in gateways] == ["Razorpay", "Stripe"]

    async def test_link_for_missing_request(self, db):
        with pytest.raises(NotFound):
            await PaymentService(db).create_payment_link(uuid4())

    def test_payment_url(self):
        assert PaymentService.payment_url("abc") == f"{settings.FRONTEND_URL.rstrip('/')}/payment/abc"


class TestRequestPayment:
    async def test_request_and_link_emailed(self, service, email_stub, customer, gateway, make_form):
        invoice = await service.create_invoice(make_form(customer.id))
        await service.change_status(invoice.id, InvoiceStatus.SENT)

        result = await service.request_payment(invoice.id)

        assert result.email_sent is True
        assert result.channel == "email"
        assert result.payment_url == PaymentService.payment_url(result.token)
        assert result.payment_request.amount == Decimal("893.50")
        assert result.payment_request.currency == "INR"
        assert result.payment_request.gateway_id == gateway.id
        assert result.payment_request.customer_email == "billing@acme.example.com"

        [sent] = email_stub.payment_requests
        assert sent["payment_url"] == result.payment_url
        assert sent["amount"] == "₹893.50"
        assert sent["expires_in_hours"] == settings.PAYMENT_LINK_EXPIRY_HOURS

    async def test_tokens_are_unique(self, service, customer, gateway, make_form):
        invoice = await service.create_invoice(make_form(customer.id))

        first = await service.request_payment(invoice.id)
        second = await service.request_payment(invoice.id)

        assert first.token != second.token

    async def test_email_failure_keeps_link(self, service, email_stub, customer, gateway, make_form):
        email_stub.succeed = False
        invoice = await service.create_invoice(make_form(customer.id))

        result = await service.request_payment(invoice.id)

        assert result.email_sent is False
        assert result.token

    async def test_no_active_gateway(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))

        with pytest.raises(DependencyUnavailable) as exc_info:
            await service.request_payment(invoice.id)

        assert exc_info.value.status_code == 503

    async def test_customer_email_required(self, service, customer_without_email, gateway, make_form):
        invoice = await service.create_invoice(make_form(customer_without_email.id))

        with pytest.raises(InvoiceValidationError):
            await service.request_payment(invoice.id)

    async def test_paid_invoice_rejected(self, service, customer, gateway, make_form):
        invoice = await service.create_invoice(make_form(customer.id))
        await service.change_status(invoice.id, InvoiceStatus.SENT)
        await service.mark_paid(invoice.id)

        with pytest.raises(StatusEditForbidden):
            await service.request_payment(invoice.id)

    async def test_router(self, client, service, customer, gateway, make_form):
        invoice = await service.create_invoice(make_form(customer.id))

        response = await client.post(f"/invoices/{invoice.id}/payment-request")

        assert response.status_code == 201
        assert response.json()["payment_url"].endswith(response.json()["token"])


class TestExpiry:
    async def test_stale_requests_expire_once(self, db, service, customer, gateway, make_form):
        invoice = await service.create_invoice(make_form(customer.id))
        result = await service.request_payment(invoice.id)
        payments = PaymentService(db)

        assert await payments.expire_stale_requests() == 0

        later = utcnow() + timedelta(hours=settings.PAYMENT_LINK_EXPIRY_HOURS + 1)
        assert await payments.expire_stale_requests(now=later) == 1
        assert await payments.expire_stale_requests(now=later) == 0

        request = await db.get(PaymentRequest, result.payment_request.id)
        assert request.status == PaymentRequestStatus.EXPIRED
