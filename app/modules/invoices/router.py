"""
Invoice endpoints

- Create, edit (in place or as a revision) and soft delete
- Status transitions: send, mark paid, cancel
- Payments against the balance due
- Email delivery of the PDF and payment requests
- Next number preview and summary statistics
"""

from fastapi import APIRouter, Query, status
from typing import Optional
from uuid import UUID
from datetime import date

from app.core.config import settings
from app.dependencies.dbDependecies import async_db_dependency
from app.modules.invoices.models import InvoiceStatus, PaymentStatus
from app.modules.invoices.service import InvoiceService
from app.modules.invoices.schemas import (
    FormMode, InvoiceCreate, InvoiceEditResult, InvoiceEmailRequest, InvoiceEmailResponse,
    InvoiceFilters, InvoiceList, InvoiceOut, InvoiceStats, InvoiceStatusUpdate, InvoiceUpdate,
    NextInvoiceNumber, PaymentCreate, PaymentOut
)
from app.modules.payments.schemas import PaymentLinkOut

router = APIRouter(
    prefix="/invoices",
    tags=["Invoices"],
    responses={404: {"description": "Not found"}}
)


@router.post("/", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
async def create_invoice(invoice_data: InvoiceCreate, db: async_db_dependency):
    """
    Create a draft invoice

    Blank placeholder rows are dropped. The invoice number is reserved
    only after the form passes validation.
    """
    service = InvoiceService(db)
    return await service.create_invoice(invoice_data)


@router.post("/save", response_model=InvoiceEditResult)
async def save_invoice(
    invoice_data: InvoiceCreate,
    db: async_db_dependency,
    mode: FormMode = Query(FormMode.ADD, description="add, edit or view"),
    invoice_id: Optional[UUID] = Query(None, description="Required for edit and view"),
):
    """Submit the invoice form in any of its modes"""
    service = InvoiceService(db)
    return await service.save(mode, invoice_data, invoice_id)


@router.get("/", response_model=InvoiceList)
async def list_invoices(
    db: async_db_dependency,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    customer_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[date] = Query(None, description="End date (YYYY-MM-DD)"),
    search: Optional[str] = Query(None, description="Invoice number, customer or notes"),
    include_deleted: bool = Query(False),
):
    filters = InvoiceFilters(
        status=status_filter,
        payment_status=payment_status,
        customer_id=customer_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        include_deleted=include_deleted,
    )
    service = InvoiceService(db)
    return await service.list_invoices(filters, page, page_size)


@router.get("/next-number", response_model=NextInvoiceNumber)
async def get_next_invoice_number(db: async_db_dependency):
    """Preview the next invoice number without reserving it"""
    service = InvoiceService(db)
    return await service.get_next_number()


@router.get("/stats", response_model=InvoiceStats)
async def get_invoice_stats(db: async_db_dependency):
    service = InvoiceService(db)
    return await service.get_stats()


@router.get("/{invoice_id}", response_model=InvoiceOut)
async def get_invoice(invoice_id: UUID, db: async_db_dependency):
    service = InvoiceService(db)
    return await service.get_invoice(invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceEditResult)
async def update_invoice(invoice_id: UUID, invoice_update: InvoiceUpdate, db: async_db_dependency):
    """
    Edit an invoice

    - **draft**: updated in place, the number is kept
    - **sent**: a new draft invoice is created as a revision, the sent one is untouched
    - **paid / overdue / cancelled**: rejected
    """
    service = InvoiceService(db)
    return await service.edit_invoice(invoice_id, invoice_update)


@router.delete("/{invoice_id}", response_model=InvoiceOut)
async def delete_invoice(invoice_id: UUID, db: async_db_dependency):
    """Soft delete; the invoice is cancelled and hidden from listings"""
    service = InvoiceService(db)
    return await service.delete_invoice(invoice_id)


@router.post("/{invoice_id}/status", response_model=InvoiceOut)
async def change_invoice_status(invoice_id: UUID, status_update: InvoiceStatusUpdate, db: async_db_dependency):
    service = InvoiceService(db)
    return await service.change_status(invoice_id, status_update.status, status_update.payment_status)


@router.post("/{invoice_id}/mark-paid", response_model=InvoiceOut)
async def mark_invoice_paid(invoice_id: UUID, db: async_db_dependency):
    """Status and payment status become paid together"""
    service = InvoiceService(db)
    return await service.mark_paid(invoice_id)


@router.post("/{invoice_id}/cancel", response_model=InvoiceOut)
async def cancel_invoice(invoice_id: UUID, db: async_db_dependency):
    service = InvoiceService(db)
    return await service.cancel_invoice(invoice_id)


@router.post("/{invoice_id}/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
async def record_payment(invoice_id: UUID, payment_data: PaymentCreate, db: async_db_dependency):
    """
    Record a payment

    A payment covering the balance marks the invoice paid; anything less
    leaves it partially paid. Payments above the balance are rejected.
    """
    service = InvoiceService(db)
    return await service.record_payment(invoice_id, payment_data)


@router.post("/{invoice_id}/email", response_model=InvoiceEmailResponse)
async def email_invoice(invoice_id: UUID, db: async_db_dependency, email_request: Optional[InvoiceEmailRequest] = None):
    """
    Email the invoice PDF

    Defaults to the customer's email. Paid invoices are sent as a payment
    confirmation; a draft is marked sent once delivered.
    """
    service = InvoiceService(db)
    recipient = email_request.recipient if email_request else None
    return await service.email_invoice(invoice_id, recipient)


@router.post("/{invoice_id}/payment-request", response_model=PaymentLinkOut, status_code=status.HTTP_201_CREATED)
async def request_invoice_payment(invoice_id: UUID, db: async_db_dependency):
    """Create a payment link on the first active gateway and email it to the customer"""
    service = InvoiceService(db)
    return await service.request_payment(invoice_id)
