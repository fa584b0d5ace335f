from app.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric, Enum, Date, Text, Uuid
from sqlalchemy.orm import relationship
from datetime import date
from decimal import Decimal
from app.common.mixins import IdentityMixin, TimestampMixin, SoftDeleteMixin
from app.modules.taxes.calculator import compute_totals, line_subtotal, line_tax
import enum


class InvoiceStatus(enum.Enum):
    DRAFT = "draft"            # Editable in place
    SENT = "sent"              # Edits spawn a revision
    PAID = "paid"              # Terminal
    OVERDUE = "overdue"        # Sent and past due date
    CANCELLED = "cancelled"    # Terminal


class PaymentStatus(enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentMethod(enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    UPI = "upi"
    CHEQUE = "cheque"
    OTHER = "other"


class Invoice(Base, IdentityMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "invoices"

    # Immutable once reserved
    invoice_number = Column(String(50), nullable=False, unique=True, index=True)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.DRAFT)
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)

    # Dates
    invoice_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=True)

    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    revision_of_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=True)

    # Content
    notes = Column(Text, nullable=True)
    terms_conditions = Column(Text, nullable=True)
    currency_code = Column(String(3), nullable=False, default="INR")

    # Relationships
    customer = relationship("Customer")
    revision_of = relationship("Invoice", remote_side="Invoice.id")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position"
    )
    payments = relationship("InvoicePayment", back_populates="invoice", cascade="all, delete-orphan")

    # Totals are always derived from the items, never stored
    @property
    def totals(self):
        return compute_totals(self.items)

    @property
    def subtotal(self) -> Decimal:
        return self.totals.subtotal

    @property
    def tax_amount(self) -> Decimal:
        return self.totals.tax_amount

    @property
    def total_amount(self) -> Decimal:
        return self.totals.total

    @property
    def paid_amount(self) -> Decimal:
        return sum((payment.amount for payment in self.payments), Decimal("0"))

    @property
    def balance_due(self) -> Decimal:
        return self.total_amount - self.paid_amount


class InvoiceItem(Base, IdentityMixin):
    __tablename__ = "invoice_items"

    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    # Weak reference, only used to pre-fill the fields below
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    item_name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    quantity = Column(Numeric(12, 3), nullable=False)
    unit = Column(String(20), nullable=False, default="pcs")
    unit_price = Column(Numeric(15, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    hsn_code = Column(String(20), nullable=True)  # Classification code

    invoice = relationship("Invoice", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return line_subtotal(self)

    @property
    def line_tax(self) -> Decimal:
        return line_tax(self)


class InvoicePayment(Base, IdentityMixin, TimestampMixin):
    __tablename__ = "invoice_payments"

    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.BANK_TRANSFER)
    reference = Column(String(100), nullable=True)
    payment_date = Column(Date, nullable=False, default=date.today)
    notes = Column(Text, nullable=True)

    invoice = relationship("Invoice", back_populates="payments")


class InvoiceSettings(Base, IdentityMixin, TimestampMixin):
    """Process-wide numbering configuration; `current_number` is the last issued value"""
    __tablename__ = "invoice_settings"

    invoice_prefix = Column(String(20), nullable=False, default="INV")
    invoice_suffix = Column(String(20), nullable=False, default="")
    number_format = Column(String(50), nullable=False, default="YYYY-MM-####")
    reset_annually = Column(Boolean, nullable=False, default=True)
    financial_year_start_month = Column(Integer, nullable=False, default=4)
    current_financial_year = Column(String(9), nullable=False, default="2024-25")
    current_number = Column(Integer, nullable=False, default=0)
    default_tax_rate = Column(Numeric(5, 2), nullable=False, default=18)
    due_days = Column(Integer, nullable=False, default=30)
    # Bumped by every atomic counter increment
    version = Column(Integer, nullable=False, default=1)


class TermsTemplate(Base, IdentityMixin, TimestampMixin):
    __tablename__ = "terms_templates"

    name = Column(String(100), nullable=False)
    category = Column(String(50), nullable=False, default="general")
    content = Column(Text, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
