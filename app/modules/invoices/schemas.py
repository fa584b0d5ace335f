from pydantic import BaseModel, EmailStr, Field
from decimal import Decimal
from typing import Optional, List, Dict
from uuid import UUID
from datetime import date, datetime
from enum import Enum

from app.modules.invoices.models import InvoiceStatus, PaymentStatus, PaymentMethod


class FormMode(str, Enum):
    """Mode of the invoice form; one submit handler serves all three"""
    ADD = "add"
    EDIT = "edit"
    VIEW = "view"


# Invoice Item Schemas
class InvoiceItemIn(BaseModel):
    """
    One form row. Field rules are enforced by the lifecycle validation gate so
    that untouched placeholder rows can be dropped instead of rejected.
    """
    product_id: Optional[UUID] = None
    item_name: str = ""
    description: str = ""
    quantity: Decimal = Decimal("1")
    unit: str = "pcs"
    unit_price: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")
    hsn_code: Optional[str] = None


class InvoiceItemOut(BaseModel):
    id: UUID
    position: int
    product_id: Optional[UUID] = None
    item_name: str
    description: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    tax_rate: Decimal
    hsn_code: Optional[str] = None
    line_total: Decimal
    line_tax: Decimal

    class Config:
        from_attributes = True


# Invoice Schemas
class InvoiceCreate(BaseModel):
    customer_id: Optional[UUID] = None
    invoice_date: Optional[date] = Field(default_factory=date.today)
    due_date: Optional[date] = None
    notes: Optional[str] = None
    terms_conditions: Optional[str] = None
    items: List[InvoiceItemIn] = Field(default_factory=list)


class InvoiceUpdate(BaseModel):
    """Edited form content; fields left out keep their stored value"""
    customer_id: Optional[UUID] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    terms_conditions: Optional[str] = None
    items: Optional[List[InvoiceItemIn]] = None


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Amount received")
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference: Optional[str] = Field(None, max_length=100)
    payment_date: date = Field(default_factory=date.today)
    notes: Optional[str] = None


class PaymentOut(BaseModel):
    id: UUID
    invoice_id: UUID
    amount: Decimal
    method: PaymentMethod
    reference: Optional[str] = None
    payment_date: date
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceOut(BaseModel):
    id: UUID
    invoice_number: str
    status: InvoiceStatus
    payment_status: PaymentStatus
    invoice_date: date
    due_date: Optional[date] = None
    customer_id: UUID
    revision_of_id: Optional[UUID] = None
    notes: Optional[str] = None
    terms_conditions: Optional[str] = None
    currency_code: str
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance_due: Decimal
    items: List[InvoiceItemOut] = []
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoiceList(BaseModel):
    invoices: List[InvoiceOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class InvoiceFilters(BaseModel):
    status: Optional[InvoiceStatus] = None
    payment_status: Optional[PaymentStatus] = None
    customer_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = None
    include_deleted: bool = False


class InvoiceEditResult(BaseModel):
    """Outcome of an edit: in-place update or a revision of a sent invoice"""
    invoice: InvoiceOut
    revision_created: bool = False
    previous_invoice_number: Optional[str] = None
    message: str


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
    payment_status: Optional[PaymentStatus] = None


class NextInvoiceNumber(BaseModel):
    next_number: str
    current_financial_year: str


class StatusSummary(BaseModel):
    count: int = 0
    total_amount: Decimal = Decimal("0")


class InvoiceStats(BaseModel):
    total_invoices: int
    total_amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    by_status: Dict[str, StatusSummary]


class InvoiceEmailRequest(BaseModel):
    recipient: Optional[EmailStr] = None


class InvoiceEmailResponse(BaseModel):
    sent: bool
    recipient: str
    template: str
    invoice_status: InvoiceStatus
    message: str
