"""
Data store operations for invoices.

Every write commits its own transaction; reads reload rows with
`populate_existing` so callers always see the stored state.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.common.mixins import utcnow
from app.modules.contacts.models import Customer
from app.modules.invoices.models import (
    Invoice, InvoiceItem, InvoicePayment, InvoiceStatus, PaymentStatus
)
from app.modules.invoices.schemas import InvoiceFilters, InvoiceItemIn, PaymentCreate


def _load_options():
    return (
        selectinload(Invoice.items),
        selectinload(Invoice.payments),
        selectinload(Invoice.customer).selectinload(Customer.country),
    )


def build_items(items: Sequence[InvoiceItemIn]) -> List[InvoiceItem]:
    return [
        InvoiceItem(
            position=position,
            product_id=item.product_id,
            item_name=item.item_name.strip(),
            description=(item.description or "").strip(),
            quantity=item.quantity,
            unit=item.unit or "pcs",
            unit_price=item.unit_price,
            tax_rate=item.tax_rate,
            hsn_code=item.hsn_code or None,
        )
        for position, item in enumerate(items)
    ]


class InvoiceCrud:
    """Store operations for invoices and their payments"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_invoice(
        self,
        data: Dict[str, Any],
        reserved_number: str,
        items: Sequence[InvoiceItemIn],
    ) -> Invoice:
        """Insert an invoice under an already reserved number."""
        invoice = Invoice(invoice_number=reserved_number, **data)
        invoice.items = build_items(items)
        self.db.add(invoice)
        await self.db.commit()
        return await self.get_invoice_by_id(invoice.id, include_deleted=True)

    async def update_invoice(self, invoice_id: UUID, partial: Dict[str, Any]) -> Optional[Invoice]:
        """Overwrite the given fields; an `items` entry replaces all line items."""
        invoice = await self.get_invoice_by_id(invoice_id)
        if invoice is None:
            return None
        items = partial.pop("items", None)
        for field, value in partial.items():
            setattr(invoice, field, value)
        if items is not None:
            invoice.items = build_items(items)
        await self.db.commit()
        return await self.get_invoice_by_id(invoice_id)

    async def get_invoice_by_id(self, invoice_id: UUID, include_deleted: bool = False) -> Optional[Invoice]:
        query = (
            select(Invoice)
            .options(*_load_options())
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        if not include_deleted:
            query = query.where(Invoice.deleted_at.is_(None))
        result = await self.db.execute(query)
        return result.scalars().first()

    async def get_invoice_by_number(self, invoice_number: str) -> Optional[Invoice]:
        """Exact match, deleted invoices included since numbers are never reused"""
        result = await self.db.execute(
            select(Invoice).where(Invoice.invoice_number == invoice_number)
        )
        return result.scalars().first()

    async def number_exists(self, invoice_number: str) -> bool:
        result = await self.db.execute(
            select(func.count(Invoice.id)).where(Invoice.invoice_number == invoice_number)
        )
        return result.scalar_one() > 0

    async def list_invoices(self, filters: InvoiceFilters, page: int = 1, page_size: int = 20) -> Tuple[List[Invoice], int]:
        query = select(Invoice)
        if not filters.include_deleted:
            query = query.where(Invoice.deleted_at.is_(None))
        if filters.status:
            query = query.where(Invoice.status == filters.status)
        if filters.payment_status:
            query = query.where(Invoice.payment_status == filters.payment_status)
        if filters.customer_id:
            query = query.where(Invoice.customer_id == filters.customer_id)
        if filters.date_from:
            query = query.where(Invoice.invoice_date >= filters.date_from)
        if filters.date_to:
            query = query.where(Invoice.invoice_date <= filters.date_to)
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            query = query.join(Customer, Customer.id == Invoice.customer_id).where(
                or_(
                    Invoice.invoice_number.ilike(pattern),
                    Customer.company_name.ilike(pattern),
                    Invoice.notes.ilike(pattern),
                )
            )

        total = (await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )).scalar_one()

        result = await self.db.execute(
            query.options(*_load_options())
            .order_by(Invoice.invoice_date.desc(), Invoice.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    async def update_invoice_status(
        self,
        invoice_id: UUID,
        status: InvoiceStatus,
        payment_status: Optional[PaymentStatus] = None,
    ) -> Optional[Invoice]:
        """Single UPDATE so status and payment status always change together"""
        values = {"status": status, "updated_at": utcnow()}
        if payment_status is not None:
            values["payment_status"] = payment_status
        await self.db.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.deleted_at.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return await self.get_invoice_by_id(invoice_id)

    async def delete_invoice(self, invoice_id: UUID) -> Optional[Invoice]:
        """Soft delete: cancel and stamp deleted_at, the row is kept"""
        invoice = await self.get_invoice_by_id(invoice_id)
        if invoice is None:
            return None
        invoice.status = InvoiceStatus.CANCELLED
        invoice.soft_delete()
        await self.db.commit()
        return await self.get_invoice_by_id(invoice_id, include_deleted=True)

    async def add_payment(
        self,
        invoice: Invoice,
        payment_data: PaymentCreate,
        payment_status: PaymentStatus,
        status: Optional[InvoiceStatus] = None,
    ) -> InvoicePayment:
        payment = InvoicePayment(invoice_id=invoice.id, **payment_data.model_dump())
        self.db.add(payment)
        invoice.payment_status = payment_status
        if status is not None:
            invoice.status = status
        await self.db.commit()
        return payment

    async def all_active_invoices(self) -> List[Invoice]:
        result = await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.items), selectinload(Invoice.payments))
            .where(Invoice.deleted_at.is_(None))
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def mark_overdue(self, today: date) -> List[str]:
        """Flag sent, unpaid invoices past their due date; returns their numbers."""
        result = await self.db.execute(
            update(Invoice)
            .where(
                Invoice.status == InvoiceStatus.SENT,
                Invoice.payment_status != PaymentStatus.PAID,
                Invoice.due_date.is_not(None),
                Invoice.due_date < today,
                Invoice.deleted_at.is_(None),
            )
            .values(status=InvoiceStatus.OVERDUE, updated_at=utcnow())
            .returning(Invoice.invoice_number)
            .execution_options(synchronize_session=False)
        )
        numbers = list(result.scalars().all())
        await self.db.commit()
        return numbers
