"""
Tests for the invoices module

Covers:
- Number formatting and atomic reservation (monotonic, collisions, exhaustion)
- Validation gate (blank rows, required fields) before any write
- Lifecycle: draft edits in place, sent edits spawn a revision, locked statuses
- Status transitions, payments, soft delete and the overdue scan
- Email delivery through a stubbed email service
- HTTP endpoints
"""

import pytest
from datetime import date
from decimal import Decimal

from app.common.exceptions import (
    DependencyUnavailable, InvalidStatusTransition, InvoiceValidationError, NotFound,
    NumberingExhausted, StatusEditForbidden
)
from app.database.database import Base
from app.modules.invoices import service as service_module
from app.modules.invoices.models import Invoice, InvoiceStatus, PaymentStatus
from app.modules.invoices.numbering import (
    InvoiceNumberService, financial_year_label, format_invoice_number
)
from app.modules.invoices.schemas import (
    FormMode, InvoiceFilters, InvoiceItemIn, InvoiceUpdate, PaymentCreate
)
from app.modules.invoices.service import InvoiceService, is_blank_item


# ===== NUMBERING =====

class TestNumberFormatting:
    def test_financial_year_label(self):
        assert financial_year_label(date(2025, 3, 31), 4) == "2024-25"
        assert financial_year_label(date(2025, 4, 1), 4) == "2025-26"
        assert financial_year_label(date(2099, 12, 1), 4) == "2099-00"

    def test_default_format(self):
        number = format_invoice_number(
            "YYYY-MM-####", 1, date(2025, 10, 15),
            prefix="INV", financial_year="2025-26", reset_annually=True,
        )
        assert number == "INV-2025-10-0001"

    def test_placed_tokens(self):
        number = format_invoice_number(
            "PREFIX/FY/NNNNN", 42, date(2025, 10, 15),
            prefix="INV", financial_year="2025-26", reset_annually=True,
        )
        assert number == "INV/2025-26/00042"

    def test_sequence_appended_when_template_has_none(self):
        assert format_invoice_number("YYYY", 7, date(2025, 1, 2), prefix="INV") == "INV-2025-0007"

    def test_financial_year_added_for_annual_reset(self):
        number = format_invoice_number("###", 3, date(2025, 5, 1), prefix="INV", suffix="X",
                                       financial_year="2025-26", reset_annually=True)
        assert number == "INV-2025-26-003-X"


class TestModelRegistry:
    def test_invoice_tables_registered_once(self):
        assert Invoice.__module__ == "app.modules.invoices.models"
        assert Base.metadata.tables["invoices"] is Invoice.__table__


class TestNumberReservation:
    """The counter is only advanced by the atomic UPDATE ... RETURNING"""

    async def test_monotonic(self, db, today):
        numbering = InvoiceNumberService(db, today=lambda: today)
        first = await numbering.reserve()
        second = await numbering.reserve()

        assert first == "INV-2025-10-0001"
        assert second == "INV-2025-10-0002"
        row = await numbering.get_settings()
        assert row.current_number == 2
        assert row.version == 3

    async def test_default_settings_read_back_consistently(self, db, today):
        numbering = InvoiceNumberService(db, today=lambda: today)
        created = await numbering.get_settings()
        first_rate = created.default_tax_rate

        reloaded = await numbering.get_settings()

        assert isinstance(first_rate, Decimal)
        assert first_rate == reloaded.default_tax_rate == Decimal("18.00")
        assert str(first_rate) == str(reloaded.default_tax_rate)

    async def test_peek_does_not_advance(self, db, today):
        numbering = InvoiceNumberService(db, today=lambda: today)
        assert await numbering.peek() == "INV-2025-10-0001"
        assert await numbering.peek() == "INV-2025-10-0001"
        assert (await numbering.get_settings()).current_number == 0

    async def test_financial_year_reset(self, db, today):
        numbering = InvoiceNumberService(db, today=lambda: today)
        row = await numbering.get_settings()
        row.current_financial_year = "2024-25"
        row.current_number = 57
        await db.commit()

        assert await numbering.reserve() == "INV-2025-10-0001"
        row = await numbering.get_settings()
        assert row.current_financial_year == "2025-26"

    async def test_one_collision_then_success(self, db, today):
        seen = []

        async def exists(number):
            seen.append(number)
            return len(seen) == 1

        numbering = InvoiceNumberService(db, today=lambda: today)
        result = await numbering.reserve_unique(exists)

        assert result.ok
        assert result.attempts == 2
        assert result.number == "INV-2025-10-0002"

    async def test_exhaustion(self, db, today):
        async def exists(number):
            return True

        numbering = InvoiceNumberService(db, max_attempts=3, today=lambda: today)
        result = await numbering.reserve_unique(exists)

        assert not result.ok
        assert result.number is None
        assert result.attempts == 3


# ===== VALIDATION =====

class TestValidationGate:
    def test_blank_row_detection(self):
        assert is_blank_item(InvoiceItemIn())
        assert not is_blank_item(InvoiceItemIn(item_name="Widget"))
        assert not is_blank_item(InvoiceItemIn(quantity=Decimal("2")))
        assert not is_blank_item(InvoiceItemIn(unit="kg"))

    async def test_all_blank_rows_rejected_before_reservation(self, service, customer, make_form):
        form = make_form(customer.id, items=[InvoiceItemIn(), InvoiceItemIn()])

        with pytest.raises(InvoiceValidationError) as exc_info:
            await service.create_invoice(form)

        assert "At least one line item is required" in exc_info.value.errors
        assert exc_info.value.status_code == 400
        assert (await service.numbering.get_settings()).current_number == 0

    async def test_blank_rows_dropped(self, service, customer, make_form):
        form = make_form(customer.id)
        form.items.append(InvoiceItemIn())

        invoice = await service.create_invoice(form)

        assert len(invoice.items) == 3

    async def test_item_messages(self, service, customer, make_form):
        form = make_form(customer.id, items=[
            InvoiceItemIn(item_name="Widget", description="Steel widget", unit_price=Decimal("10")),
            InvoiceItemIn(quantity=Decimal("0"), unit_price=Decimal("-1"), tax_rate=Decimal("120")),
        ])

        with pytest.raises(InvoiceValidationError) as exc_info:
            await service.create_invoice(form)

        assert exc_info.value.errors == [
            "Item 2: Item name is required",
            "Item 2: Description is required",
            "Item 2: Quantity must be greater than 0",
            "Item 2: Unit price cannot be negative",
            "Item 2: Tax rate must be between 0 and 100",
        ]

    async def test_header_messages(self, service, make_form, today):
        form = make_form(None, invoice_date=date(2030, 1, 1), due_date=date(2029, 12, 1))

        with pytest.raises(InvoiceValidationError) as exc_info:
            await service.create_invoice(form)

        assert exc_info.value.errors == [
            "Please select a customer",
            "Invoice date cannot be in the future",
            "Due date cannot be before invoice date",
        ]

    async def test_unknown_customer(self, service, make_form):
        from uuid import uuid4

        with pytest.raises(NotFound):
            await service.create_invoice(make_form(uuid4()))


# ===== LIFECYCLE =====

class TestCreateInvoice:
    async def test_create_draft(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))

        assert invoice.invoice_number == "INV-2025-10-0001"
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.payment_status == PaymentStatus.PENDING
        assert invoice.currency_code == "INR"
        assert [item.item_name for item in invoice.items] == ["Widget", "Setup", "Bolts"]
        assert invoice.subtotal == Decimal("850")
        assert invoice.tax_amount == Decimal("43.5")
        assert invoice.total_amount == Decimal("893.5")

    async def test_due_date_defaults_from_settings(self, service, customer, make_form, today):
        invoice = await service.create_invoice(make_form(customer.id, due_date=None))
        assert (invoice.due_date - today).days == 30

    async def test_collision_with_stored_invoice(self, service, customer, make_form, today):
        await service.crud.create_invoice(
            {"customer_id": customer.id, "invoice_date": today},
            "INV-2025-10-0001",
            make_form(customer.id).items,
        )

        invoice = await service.create_invoice(make_form(customer.id))

        assert invoice.invoice_number == "INV-2025-10-0002"

    async def test_numbering_exhausted(self, db, service, customer, make_form, today):
        async def always_taken(number):
            return True

        service.numbering = InvoiceNumberService(db, max_attempts=2, today=lambda: today)
        service.crud.number_exists = always_taken

        with pytest.raises(NumberingExhausted) as exc_info:
            await service.create_invoice(make_form(customer.id))

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "Unable to generate unique invoice number after 2 attempts"

    async def test_next_number_preview(self, service, customer, make_form):
        assert (await service.get_next_number()).next_number == "INV-2025-10-0001"
        await service.create_invoice(make_form(customer.id))
        preview = await service.get_next_number()
        assert preview.next_number == "INV-2025-10-0002"
        assert preview.current_financial_year == "2025-26"


class TestEditInvoice:
    async def test_draft_updated_in_place(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))

        result = await service.edit_invoice(invoice.id, InvoiceUpdate(
            notes="Deliver before noon",
            items=[InvoiceItemIn(item_name="Widget", description="Steel widget",
                                 quantity=Decimal("5"), unit_price=Decimal("100"), tax_rate=Decimal("18"))],
        ))

        assert result.revision_created is False
        assert result.invoice.id == invoice.id
        assert result.invoice.invoice_number == invoice.invoice_number
        assert result.invoice.notes == "Deliver before noon"
        assert result.invoice.total_amount == Decimal("590")

    async def test_sent_invoice_spawns_revision(self, service, customer, make_form):
        original = await service.create_invoice(make_form(customer.id))
        await service.change_status(original.id, InvoiceStatus.SENT)

        result = await service.edit_invoice(original.id, InvoiceUpdate(notes="Corrected quantities"))

        assert result.revision_created is True
        assert result.previous_invoice_number == "INV-2025-10-0001"
        assert result.invoice.invoice_number == "INV-2025-10-0002"
        assert result.invoice.revision_of_id == original.id
        assert result.invoice.status == InvoiceStatus.DRAFT
        assert result.invoice.notes == "Corrected quantities"
        assert result.message == "New invoice INV-2025-10-0002 created as revision of INV-2025-10-0001"

        stored = await service.get_invoice(original.id)
        assert stored.status == InvoiceStatus.SENT
        assert stored.notes is None
        assert stored.invoice_number == "INV-2025-10-0001"
        assert len(stored.items) == 3

    @pytest.mark.parametrize("path", [
        [InvoiceStatus.SENT, InvoiceStatus.PAID],
        [InvoiceStatus.SENT, InvoiceStatus.OVERDUE],
        [InvoiceStatus.CANCELLED],
    ])
    async def test_locked_statuses(self, service, customer, make_form, path):
        invoice = await service.create_invoice(make_form(customer.id))
        for target in path:
            await service.change_status(invoice.id, target)

        with pytest.raises(StatusEditForbidden) as exc_info:
            await service.edit_invoice(invoice.id, InvoiceUpdate(notes="Too late"))

        assert exc_info.value.detail == f"Cannot edit invoice with status: {path[-1].value}"
        assert (await service.get_invoice(invoice.id)).notes is None

    async def test_invalid_edit_writes_nothing(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))

        with pytest.raises(InvoiceValidationError):
            await service.edit_invoice(invoice.id, InvoiceUpdate(items=[InvoiceItemIn()]))

        assert len((await service.get_invoice(invoice.id)).items) == 3


class TestSaveDispatcher:
    async def test_add_edit_view(self, service, customer, make_form):
        created = await service.save(FormMode.ADD, make_form(customer.id))
        invoice_id = created.invoice.id

        edited = await service.save(FormMode.EDIT, make_form(customer.id, notes="Edited"), invoice_id)
        assert edited.invoice.notes == "Edited"
        assert edited.invoice.invoice_number == created.invoice.invoice_number

        viewed = await service.save(FormMode.VIEW, make_form(customer.id, notes="Ignored"), invoice_id)
        assert viewed.invoice.notes == "Edited"

    async def test_edit_requires_invoice(self, service, customer, make_form):
        with pytest.raises(InvoiceValidationError):
            await service.save(FormMode.EDIT, make_form(customer.id))


class TestStatusTransitions:
    async def test_mark_paid_sets_both_statuses(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))
        await service.change_status(invoice.id, InvoiceStatus.SENT)

        paid = await service.mark_paid(invoice.id)

        assert paid.status == InvoiceStatus.PAID
        assert paid.payment_status == PaymentStatus.PAID

    async def test_draft_cannot_be_paid_directly(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))

        with pytest.raises(InvalidStatusTransition):
            await service.mark_paid(invoice.id)

    async def test_cancelled_is_terminal(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))
        await service.cancel_invoice(invoice.id)

        with pytest.raises(InvalidStatusTransition):
            await service.change_status(invoice.id, InvoiceStatus.SENT)

    async def test_soft_delete(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))

        await service.delete_invoice(invoice.id)

        with pytest.raises(NotFound):
            await service.get_invoice(invoice.id)
        stored = await service.crud.get_invoice_by_id(invoice.id, include_deleted=True)
        assert stored.deleted_at is not None
        assert stored.status == InvoiceStatus.CANCELLED
        assert await service.crud.number_exists(invoice.invoice_number)

    async def test_paid_invoice_cannot_be_deleted(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))
        await service.change_status(invoice.id, InvoiceStatus.SENT)
        await service.mark_paid(invoice.id)

        with pytest.raises(StatusEditForbidden):
            await service.delete_invoice(invoice.id)

    async def test_mark_overdue(self, service, customer, make_form):
        past_due = await service.create_invoice(
            make_form(customer.id, invoice_date=date(2025, 9, 1), due_date=date(2025, 10, 1))
        )
        await service.change_status(past_due.id, InvoiceStatus.SENT)
        draft = await service.create_invoice(
            make_form(customer.id, invoice_date=date(2025, 9, 1), due_date=date(2025, 10, 1))
        )

        numbers = await service.mark_overdue()

        assert numbers == [past_due.invoice_number]
        assert (await service.get_invoice(past_due.id)).status == InvoiceStatus.OVERDUE
        assert (await service.get_invoice(draft.id)).status == InvoiceStatus.DRAFT


class TestPayments:
    async def test_partial_then_full(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))
        await service.change_status(invoice.id, InvoiceStatus.SENT)

        await service.record_payment(invoice.id, PaymentCreate(amount=Decimal("500")))
        partial = await service.get_invoice(invoice.id)
        assert partial.payment_status == PaymentStatus.PARTIAL
        assert partial.status == InvoiceStatus.SENT
        assert partial.balance_due == Decimal("393.5")

        await service.record_payment(invoice.id, PaymentCreate(amount=Decimal("393.50")))
        paid = await service.get_invoice(invoice.id)
        assert paid.payment_status == PaymentStatus.PAID
        assert paid.status == InvoiceStatus.PAID

    async def test_overpayment_rejected(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))
        await service.change_status(invoice.id, InvoiceStatus.SENT)

        with pytest.raises(InvoiceValidationError):
            await service.record_payment(invoice.id, PaymentCreate(amount=Decimal("1000")))

    async def test_draft_and_cancelled_rejected(self, service, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))
        with pytest.raises(StatusEditForbidden):
            await service.record_payment(invoice.id, PaymentCreate(amount=Decimal("10")))

        await service.cancel_invoice(invoice.id)
        with pytest.raises(StatusEditForbidden):
            await service.record_payment(invoice.id, PaymentCreate(amount=Decimal("10")))


class TestListingAndStats:
    async def test_list_filters_and_search(self, service, customer, make_form):
        first = await service.create_invoice(make_form(customer.id, notes="Quarterly retainer"))
        await service.create_invoice(make_form(customer.id))
        await service.change_status(first.id, InvoiceStatus.SENT)

        sent = await service.list_invoices(InvoiceFilters(status=InvoiceStatus.SENT))
        assert [invoice.id for invoice in sent.invoices] == [first.id]

        found = await service.list_invoices(InvoiceFilters(search="retainer"))
        assert found.total == 1

        by_customer = await service.list_invoices(InvoiceFilters(search="acme"), page=1, page_size=1)
        assert by_customer.total == 2
        assert by_customer.total_pages == 2
        assert len(by_customer.invoices) == 1

    async def test_stats_exclude_cancelled_amounts(self, service, customer, make_form):
        kept = await service.create_invoice(make_form(customer.id))
        dropped = await service.create_invoice(make_form(customer.id))
        await service.cancel_invoice(dropped.id)
        await service.change_status(kept.id, InvoiceStatus.SENT)
        await service.record_payment(kept.id, PaymentCreate(amount=Decimal("93.50")))

        stats = await service.get_stats()

        assert stats.total_invoices == 2
        assert stats.total_amount == Decimal("893.50")
        assert stats.paid_amount == Decimal("93.50")
        assert stats.outstanding_amount == Decimal("800.00")
        assert stats.by_status["cancelled"].count == 1
        assert stats.by_status["sent"].count == 1


class TestEmailInvoice:
    async def test_draft_sent_with_pdf(self, service, email_stub, customer, company, make_form):
        invoice = await service.create_invoice(make_form(customer.id))

        response = await service.email_invoice(invoice.id)

        assert response.sent is True
        assert response.recipient == "billing@acme.example.com"
        assert response.template == "invoice_email.html"
        assert response.invoice_status == InvoiceStatus.SENT
        payload = email_stub.invoice_emails[0]
        assert payload.document.startswith(b"%PDF")
        assert payload.filename == "Invoice-INV-2025-10-0001-AcmeTraders.pdf"
        assert payload.total == "₹893.50"
        assert payload.company_name == "Northwind Billing Pvt Ltd"

    async def test_paid_invoice_gets_confirmation(self, service, email_stub, customer, make_form):
        invoice = await service.create_invoice(make_form(customer.id))
        await service.change_status(invoice.id, InvoiceStatus.SENT)
        await service.mark_paid(invoice.id)

        response = await service.email_invoice(invoice.id, recipient="owner@acme.example.com")

        assert response.template == "payment_confirmation.html"
        assert response.invoice_status == InvoiceStatus.PAID
        assert email_stub.invoice_emails[0].recipient == "owner@acme.example.com"

    async def test_pdf_rendered_off_the_event_loop(self, service, customer, make_form, monkeypatch):
        offloaded = []
        real_run_in_threadpool = service_module.run_in_threadpool

        async def recording_run_in_threadpool(func, *args, **kwargs):
            offloaded.append(func)
            return await real_run_in_threadpool(func, *args, **kwargs)

        monkeypatch.setattr(service_module, "run_in_threadpool", recording_run_in_threadpool)
        invoice = await service.create_invoice(make_form(customer.id))

        _, pdf = await service.render_document(invoice.id)
        await service.email_invoice(invoice.id)

        assert pdf.startswith(b"%PDF")
        assert offloaded.count(service_module.render_pdf) == 2

    async def test_delivery_failure_is_reported(self, db, customer, make_form, today, email_stub):
        email_stub.succeed = False
        service = InvoiceService(db, email=email_stub, today=lambda: today)
        invoice = await service.create_invoice(make_form(customer.id))

        with pytest.raises(DependencyUnavailable) as exc_info:
            await service.email_invoice(invoice.id)

        assert exc_info.value.status_code == 503
        assert (await service.get_invoice(invoice.id)).status == InvoiceStatus.DRAFT

    async def test_missing_email(self, service, customer_without_email, make_form):
        invoice = await service.create_invoice(make_form(customer_without_email.id))

        with pytest.raises(InvoiceValidationError):
            await service.email_invoice(invoice.id)


# ===== HTTP =====

class TestInvoicesRouter:
    def _payload(self, customer_id):
        return {
            "customer_id": str(customer_id),
            "invoice_date": "2025-10-15",
            "due_date": "2025-11-14",
            "items": [
                {"item_name": "Widget", "description": "Steel widget", "quantity": "2",
                 "unit_price": "100", "tax_rate": "18"},
                {},
            ],
        }

    async def test_create_get_and_edit(self, client, customer):
        response = await client.post("/invoices/", json=self._payload(customer.id))
        assert response.status_code == 201
        created = response.json()
        assert created["status"] == "draft"
        assert len(created["items"]) == 1
        assert Decimal(created["total_amount"]) == Decimal("236")

        response = await client.get(f"/invoices/{created['id']}")
        assert response.status_code == 200

        response = await client.put(f"/invoices/{created['id']}", json={"notes": "Updated"})
        assert response.status_code == 200
        assert response.json()["revision_created"] is False
        assert response.json()["invoice"]["notes"] == "Updated"

    async def test_validation_errors(self, client, customer):
        payload = self._payload(customer.id)
        payload["items"] = [{}]

        response = await client.post("/invoices/", json=payload)

        assert response.status_code == 400
        assert response.json()["detail"]["errors"] == ["At least one line item is required"]

    async def test_locked_edit_returns_conflict(self, client, customer):
        created = (await client.post("/invoices/", json=self._payload(customer.id))).json()
        await client.post(f"/invoices/{created['id']}/cancel")

        response = await client.put(f"/invoices/{created['id']}", json={"notes": "x"})

        assert response.status_code == 409
        assert response.json()["detail"] == "Cannot edit invoice with status: cancelled"

    async def test_payments_and_listing(self, client, customer):
        created = (await client.post("/invoices/", json=self._payload(customer.id))).json()
        await client.post(f"/invoices/{created['id']}/status", json={"status": "sent"})

        response = await client.post(f"/invoices/{created['id']}/payments", json={"amount": "236"})
        assert response.status_code == 201

        response = await client.get("/invoices/", params={"payment_status": "paid"})
        assert response.status_code == 200
        assert response.json()["total"] == 1

        response = await client.get("/invoices/stats")
        assert response.json()["by_status"]["paid"]["count"] == 1

    async def test_next_number_and_missing_invoice(self, client):
        response = await client.get("/invoices/next-number")
        assert response.status_code == 200
        assert response.json()["next_number"].startswith("INV-")

        response = await client.get("/invoices/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404

    async def test_email_endpoint(self, client, customer, email_stub):
        created = (await client.post("/invoices/", json=self._payload(customer.id))).json()

        response = await client.post(f"/invoices/{created['id']}/email")

        assert response.status_code == 200
        assert response.json()["invoice_status"] == "sent"
        assert len(email_stub.invoice_emails) == 1
