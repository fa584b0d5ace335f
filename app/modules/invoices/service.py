"""
Invoice lifecycle.

Statuses: draft -> sent -> paid, sent -> overdue (scheduled scan), and any
non-terminal status -> cancelled. Editing a draft rewrites it in place,
editing a sent invoice spawns a new draft invoice (a revision) under a
fresh number and leaves the sent one untouched. Paid, overdue and
cancelled invoices cannot be edited.

The validation gate and the status rules run before anything is written.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import HTTPException
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.common.exceptions import (
    DependencyUnavailable, InvalidStatusTransition, InvoiceValidationError, NotFound,
    NumberingExhausted, StatusEditForbidden, classify_dependency_error
)
from app.common.validators import validate_email
from app.core.config import settings
from app.modules.catalog.crud import CatalogCrud
from app.modules.contacts.models import Customer
from app.modules.documents.layout import Branding, DocumentLayoutEngine, InvoiceDocument, branding_from_company
from app.modules.documents.renderer import render_pdf
from app.modules.email.service import EmailService, InvoiceEmailPayload, email_service
from app.modules.invoices.crud import InvoiceCrud
from app.modules.invoices.models import (
    Invoice, InvoicePayment, InvoiceStatus, PaymentStatus
)
from app.modules.invoices.numbering import InvoiceNumberService
from app.modules.invoices.schemas import (
    FormMode, InvoiceCreate, InvoiceEditResult, InvoiceEmailResponse, InvoiceFilters,
    InvoiceItemIn, InvoiceList, InvoiceOut, InvoiceStats, InvoiceUpdate, NextInvoiceNumber,
    PaymentCreate, StatusSummary
)
from app.modules.payments.schemas import PaymentLinkOut, PaymentRequestCreate, PaymentRequestOut
from app.modules.payments.service import PaymentService
from app.modules.taxes.calculator import format_money, quantize_money, to_decimal
from app.modules.taxes.resolver import resolve

logger = logging.getLogger(__name__)


TRANSITIONS: Dict[InvoiceStatus, set] = {
    InvoiceStatus.DRAFT: {InvoiceStatus.SENT, InvoiceStatus.CANCELLED},
    InvoiceStatus.SENT: {InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED},
    InvoiceStatus.OVERDUE: {InvoiceStatus.PAID, InvoiceStatus.CANCELLED},
    InvoiceStatus.PAID: set(),
    InvoiceStatus.CANCELLED: set(),
}

EDITABLE_STATUSES = {InvoiceStatus.DRAFT, InvoiceStatus.SENT}
PAYABLE_STATUSES = {InvoiceStatus.SENT, InvoiceStatus.OVERDUE}


def is_blank_item(item: InvoiceItemIn) -> bool:
    """An untouched placeholder row: no text, quantity 1, price 0, default unit."""
    return (
        not item.item_name.strip()
        and not (item.description or "").strip()
        and to_decimal(item.quantity) == 1
        and to_decimal(item.unit_price) == 0
        and (item.unit or "pcs") == "pcs"
    )


def validate_invoice_form(data: InvoiceCreate, today: date) -> List[InvoiceItemIn]:
    """
    Validation gate for create and edit. Returns the non-blank items, or
    raises InvoiceValidationError with every problem found.
    """
    errors = []
    if data.customer_id is None:
        errors.append("Please select a customer")
    if data.invoice_date is None:
        errors.append("Invoice date is required")
    elif data.invoice_date > today:
        errors.append("Invoice date cannot be in the future")
    if data.due_date and data.invoice_date and data.due_date < data.invoice_date:
        errors.append("Due date cannot be before invoice date")

    items = []
    for position, item in enumerate(data.items, start=1):
        if is_blank_item(item):
            continue
        items.append(item)
        if not item.item_name.strip():
            errors.append(f"Item {position}: Item name is required")
        if not (item.description or "").strip():
            errors.append(f"Item {position}: Description is required")
        if to_decimal(item.quantity) <= 0:
            errors.append(f"Item {position}: Quantity must be greater than 0")
        if to_decimal(item.unit_price) < 0:
            errors.append(f"Item {position}: Unit price cannot be negative")
        if not Decimal("0") <= to_decimal(item.tax_rate) <= Decimal("100"):
            errors.append(f"Item {position}: Tax rate must be between 0 and 100")

    if not items:
        errors.append("At least one line item is required")
    if errors:
        raise InvoiceValidationError(errors)
    return items


class InvoiceService:
    def __init__(
        self,
        db: AsyncSession,
        email: Optional[EmailService] = None,
        payments: Optional[PaymentService] = None,
        today: Callable[[], date] = date.today,
        layout_engine: Optional[DocumentLayoutEngine] = None,
    ):
        self.db = db
        self.today = today
        self.crud = InvoiceCrud(db)
        self.catalog = CatalogCrud(db)
        self.numbering = InvoiceNumberService(db, today=today)
        self.email = email or email_service
        self.payments = payments or PaymentService(db)
        self.layout_engine = layout_engine or DocumentLayoutEngine()

    # ===== READS =====

    async def get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = await self.crud.get_invoice_by_id(invoice_id)
        if invoice is None:
            raise NotFound("Invoice", invoice_id)
        return invoice

    async def list_invoices(self, filters: InvoiceFilters, page: int = 1, page_size: int = 20) -> InvoiceList:
        page_size = min(page_size, settings.MAX_PAGE_SIZE)
        invoices, total = await self.crud.list_invoices(filters, page, page_size)
        return InvoiceList(
            invoices=[InvoiceOut.model_validate(invoice) for invoice in invoices],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=(total + page_size - 1) // page_size if total else 0,
        )

    async def get_next_number(self) -> NextInvoiceNumber:
        """Preview of the next number; the counter is not touched"""
        next_number = await self.numbering.peek()
        numbering = await self.numbering.get_settings()
        return NextInvoiceNumber(
            next_number=next_number,
            current_financial_year=numbering.current_financial_year,
        )

    async def get_stats(self) -> InvoiceStats:
        invoices = await self.crud.all_active_invoices()
        by_status = {status.value: StatusSummary() for status in InvoiceStatus}
        total_amount = paid_amount = Decimal("0")
        for invoice in invoices:
            summary = by_status[invoice.status.value]
            summary.count += 1
            summary.total_amount += invoice.total_amount
            if invoice.status != InvoiceStatus.CANCELLED:
                total_amount += invoice.total_amount
                paid_amount += invoice.paid_amount
        return InvoiceStats(
            total_invoices=len(invoices),
            total_amount=quantize_money(total_amount),
            paid_amount=quantize_money(paid_amount),
            outstanding_amount=quantize_money(total_amount - paid_amount),
            by_status={
                key: StatusSummary(count=value.count, total_amount=quantize_money(value.total_amount))
                for key, value in by_status.items()
            },
        )

    async def _get_customer(self, customer_id: UUID) -> Customer:
        customer = await self.catalog.get_customer(customer_id)
        if customer is None:
            raise NotFound("Customer", customer_id)
        return customer

    # ===== CREATE / EDIT =====

    async def _reserve_number(self) -> str:
        result = await self.numbering.reserve_unique(self.crud.number_exists)
        if not result.ok:
            raise NumberingExhausted(result.attempts)
        if result.attempts > 1:
            logger.info(f"Invoice number {result.number} reserved after {result.attempts} attempts")
        return result.number

    async def _invoice_fields(self, data: InvoiceCreate, customer: Customer) -> dict:
        due_date = data.due_date
        if due_date is None:
            numbering = await self.numbering.get_settings()
            due_date = data.invoice_date + timedelta(days=numbering.due_days)
        return {
            "customer_id": customer.id,
            "invoice_date": data.invoice_date,
            "due_date": due_date,
            "notes": data.notes,
            "terms_conditions": data.terms_conditions,
            "currency_code": resolve(customer).code,
        }

    async def create_invoice(self, data: InvoiceCreate, revision_of: Optional[Invoice] = None) -> Invoice:
        """Validate, reserve a unique number, then persist a draft invoice."""
        items = validate_invoice_form(data, self.today())
        customer = await self._get_customer(data.customer_id)
        try:
            fields = await self._invoice_fields(data, customer)
            fields.update(
                status=InvoiceStatus.DRAFT,
                payment_status=PaymentStatus.PENDING,
                revision_of_id=revision_of.id if revision_of else None,
            )
            number = await self._reserve_number()
            invoice = await self.crud.create_invoice(fields, number, items)
        except HTTPException:
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise classify_dependency_error(e, "create invoice")

        logger.info(f"Invoice {invoice.invoice_number} created for customer {customer.id}")
        return invoice

    def _merge_edit(self, invoice: Invoice, data: InvoiceUpdate) -> InvoiceCreate:
        current = {
            "customer_id": invoice.customer_id,
            "invoice_date": invoice.invoice_date,
            "due_date": invoice.due_date,
            "notes": invoice.notes,
            "terms_conditions": invoice.terms_conditions,
            "items": [InvoiceItemIn.model_validate(item, from_attributes=True) for item in invoice.items],
        }
        current.update(data.model_dump(exclude_unset=True))
        return InvoiceCreate.model_validate(current)

    async def edit_invoice(self, invoice_id: UUID, data: InvoiceUpdate) -> InvoiceEditResult:
        invoice = await self.get_invoice(invoice_id)
        if invoice.status not in EDITABLE_STATUSES:
            raise StatusEditForbidden(invoice.status.value)

        merged = self._merge_edit(invoice, data)

        if invoice.status == InvoiceStatus.SENT:
            revision = await self.create_invoice(merged, revision_of=invoice)
            message = f"New invoice {revision.invoice_number} created as revision of {invoice.invoice_number}"
            logger.info(message)
            return InvoiceEditResult(
                invoice=InvoiceOut.model_validate(revision),
                revision_created=True,
                previous_invoice_number=invoice.invoice_number,
                message=message,
            )

        items = validate_invoice_form(merged, self.today())
        customer = await self._get_customer(merged.customer_id)
        try:
            partial = await self._invoice_fields(merged, customer)
            partial["items"] = items
            updated = await self.crud.update_invoice(invoice_id, partial)
        except HTTPException:
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise classify_dependency_error(e, "update invoice")

        logger.info(f"Invoice {updated.invoice_number} updated in place")
        return InvoiceEditResult(
            invoice=InvoiceOut.model_validate(updated),
            message=f"Invoice {updated.invoice_number} updated",
        )

    async def save(self, mode: FormMode, data: InvoiceCreate, invoice_id: Optional[UUID] = None) -> InvoiceEditResult:
        """Single submit handler for the add / edit / view form modes."""
        if mode == FormMode.ADD:
            invoice = await self.create_invoice(data)
            return InvoiceEditResult(
                invoice=InvoiceOut.model_validate(invoice),
                message=f"Invoice {invoice.invoice_number} created",
            )

        if invoice_id is None:
            raise InvoiceValidationError("An invoice must be selected")

        if mode == FormMode.EDIT:
            return await self.edit_invoice(invoice_id, InvoiceUpdate(**data.model_dump(exclude_unset=True)))

        # View mode never writes
        invoice = await self.get_invoice(invoice_id)
        return InvoiceEditResult(
            invoice=InvoiceOut.model_validate(invoice),
            message=f"Invoice {invoice.invoice_number} is read-only in view mode",
        )

    # ===== STATUS =====

    async def change_status(
        self,
        invoice_id: UUID,
        target: InvoiceStatus,
        payment_status: Optional[PaymentStatus] = None,
    ) -> Invoice:
        invoice = await self.get_invoice(invoice_id)
        if target not in TRANSITIONS[invoice.status]:
            raise InvalidStatusTransition(invoice.status.value, target.value)
        if target == InvoiceStatus.PAID:
            # Paid is one transition for both the document and the money
            payment_status = PaymentStatus.PAID

        try:
            updated = await self.crud.update_invoice_status(invoice_id, target, payment_status)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise classify_dependency_error(e, "update invoice status")

        logger.info(f"Invoice {invoice.invoice_number} status changed from {invoice.status.value} to {target.value}")
        return updated

    async def mark_paid(self, invoice_id: UUID) -> Invoice:
        return await self.change_status(invoice_id, InvoiceStatus.PAID)

    async def cancel_invoice(self, invoice_id: UUID) -> Invoice:
        return await self.change_status(invoice_id, InvoiceStatus.CANCELLED)

    async def delete_invoice(self, invoice_id: UUID) -> Invoice:
        """Soft delete; paid invoices are kept as they are"""
        invoice = await self.get_invoice(invoice_id)
        if invoice.status == InvoiceStatus.PAID:
            raise StatusEditForbidden(invoice.status.value, "Cannot delete a paid invoice")
        try:
            deleted = await self.crud.delete_invoice(invoice_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise classify_dependency_error(e, "delete invoice")
        logger.info(f"Invoice {invoice.invoice_number} deleted (soft)")
        return deleted

    async def mark_overdue(self) -> List[str]:
        try:
            numbers = await self.crud.mark_overdue(self.today())
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise classify_dependency_error(e, "mark overdue invoices")
        if numbers:
            logger.info(f"Marked {len(numbers)} invoice(s) overdue: {', '.join(numbers)}")
        return numbers

    # ===== PAYMENTS =====

    async def record_payment(self, invoice_id: UUID, data: PaymentCreate) -> InvoicePayment:
        invoice = await self.get_invoice(invoice_id)
        if invoice.status not in PAYABLE_STATUSES or invoice.payment_status == PaymentStatus.PAID:
            raise StatusEditForbidden(
                invoice.status.value,
                f"Cannot record a payment on an invoice with status: {invoice.status.value}",
            )

        balance = quantize_money(invoice.balance_due)
        if data.amount > balance:
            raise InvoiceValidationError(
                f"Payment of {quantize_money(data.amount)} exceeds the balance due of {balance}"
            )

        if data.amount == balance:
            payment_status, status = PaymentStatus.PAID, InvoiceStatus.PAID
        else:
            payment_status, status = PaymentStatus.PARTIAL, None

        try:
            payment = await self.crud.add_payment(invoice, data, payment_status, status)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise classify_dependency_error(e, "record payment")

        logger.info(
            f"Payment of {data.amount} recorded on invoice {invoice.invoice_number} ({payment_status.value})"
        )
        return payment

    # ===== DOCUMENT / EMAIL =====

    async def build_document(self, invoice_id: UUID) -> Tuple[Invoice, InvoiceDocument, Branding]:
        invoice = await self.get_invoice(invoice_id)
        company = await self.catalog.get_company_settings()
        branding = branding_from_company(company)
        document = self.layout_engine.layout(invoice, invoice.customer, company, branding)
        return invoice, document, branding

    async def render_document(self, invoice_id: UUID) -> Tuple[InvoiceDocument, bytes]:
        _, document, branding = await self.build_document(invoice_id)
        return document, await run_in_threadpool(render_pdf, document, branding)

    async def email_invoice(self, invoice_id: UUID, recipient: Optional[str] = None) -> InvoiceEmailResponse:
        """
        Send the invoice PDF once. Paid invoices go out as a payment
        confirmation; a draft becomes sent after a successful delivery.
        """
        invoice, document, branding = await self.build_document(invoice_id)
        customer = invoice.customer
        to_email = recipient or (customer.email if customer else None)

        if not to_email:
            raise InvoiceValidationError("Customer email is required to send the invoice")
        if not validate_email(to_email):
            raise InvoiceValidationError("Please enter a valid email address")
        if invoice.status == InvoiceStatus.CANCELLED:
            raise StatusEditForbidden(invoice.status.value, "Cannot email a cancelled invoice")

        company = await self.catalog.get_company_settings()
        currency = resolve(customer)
        is_paid = invoice.payment_status == PaymentStatus.PAID
        payload = InvoiceEmailPayload(
            recipient=to_email,
            invoice_number=invoice.invoice_number,
            customer_name=customer.display_name,
            company_name=company.company_name if company else settings.EMAIL_FROM_NAME,
            total=format_money(invoice.total_amount, currency.symbol, currency.code),
            due_date=invoice.due_date.strftime("%d/%m/%Y") if invoice.due_date else None,
            document=await run_in_threadpool(render_pdf, document, branding),
            filename=document.filename,
            is_payment_confirmation=is_paid,
        )

        sent = await run_in_threadpool(self.email.send_invoice_email, payload)
        if not sent:
            raise DependencyUnavailable(
                "email", f"Failed to send invoice {invoice.invoice_number} to {to_email}"
            )

        status = invoice.status
        if not is_paid and status == InvoiceStatus.DRAFT:
            status = (await self.change_status(invoice_id, InvoiceStatus.SENT)).status

        return InvoiceEmailResponse(
            sent=True,
            recipient=to_email,
            template=payload.template_name,
            invoice_status=status,
            message=f"Invoice {invoice.invoice_number} sent to {to_email}",
        )

    async def request_payment(self, invoice_id: UUID) -> PaymentLinkOut:
        """Create a payment request on the first active gateway and email its link."""
        invoice = await self.get_invoice(invoice_id)
        customer = invoice.customer

        if not customer or not customer.email:
            raise InvoiceValidationError("Customer email is required to send a payment request")
        if not validate_email(customer.email):
            raise InvoiceValidationError("Customer email address is invalid")
        if invoice.status == InvoiceStatus.PAID or invoice.payment_status == PaymentStatus.PAID:
            raise StatusEditForbidden(invoice.status.value, "Invoice is already paid")
        if invoice.status == InvoiceStatus.CANCELLED:
            raise StatusEditForbidden(invoice.status.value, "Cannot request payment for a cancelled invoice")

        amount = quantize_money(invoice.total_amount)
        if amount <= 0:
            raise InvoiceValidationError("Invoice total must be greater than zero to request payment")

        try:
            gateways = await self.payments.list_active_gateways()
        except SQLAlchemyError as e:
            raise classify_dependency_error(e, "load payment gateways")
        if not gateways:
            raise DependencyUnavailable("payment", "No active payment gateway is configured")

        currency = resolve(customer)
        request = await self.payments.create_payment_request(PaymentRequestCreate(
            invoice_id=invoice.id,
            gateway_id=gateways[0].id,
            amount=amount,
            currency=currency.code,
            customer_email=customer.email,
            expires_in_hours=settings.PAYMENT_LINK_EXPIRY_HOURS,
            metadata={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "customer_id": str(customer.id),
            },
        ))
        link = await self.payments.create_payment_link(request.id, "email")
        payment_url = self.payments.payment_url(link.token)

        company = await self.catalog.get_company_settings()
        sent = await run_in_threadpool(
            self.email.send_payment_request_email,
            customer.email,
            invoice.invoice_number,
            customer.display_name,
            company.company_name if company else settings.EMAIL_FROM_NAME,
            format_money(amount, currency.symbol, currency.code),
            payment_url,
            settings.PAYMENT_LINK_EXPIRY_HOURS,
        )
        if sent:
            message = f"Payment request sent to {customer.email}"
        else:
            message = f"Payment link created but the email to {customer.email} could not be sent"
            logger.error(f"{message} (invoice {invoice.invoice_number})")

        return PaymentLinkOut(
            payment_request=PaymentRequestOut.model_validate(request),
            token=link.token,
            channel=link.channel,
            payment_url=payment_url,
            email_sent=sent,
            message=message,
        )
