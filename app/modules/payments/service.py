import logging
import secrets
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.common.exceptions import NotFound, classify_dependency_error
from app.common.mixins import utcnow
from app.core.config import settings
from app.modules.payments.models import PaymentGateway, PaymentLink, PaymentRequest, PaymentRequestStatus
from app.modules.payments.schemas import PaymentRequestCreate

logger = logging.getLogger(__name__)


class PaymentService:
    """Payment request contract: gateways, requests and shareable links"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active_gateways(self) -> List[PaymentGateway]:
        result = await self.db.execute(
            select(PaymentGateway)
            .where(PaymentGateway.is_active.is_(True))
            .order_by(PaymentGateway.priority, PaymentGateway.name)
        )
        return list(result.scalars().all())

    async def create_payment_request(self, data: PaymentRequestCreate) -> PaymentRequest:
        request = PaymentRequest(
            invoice_id=data.invoice_id,
            gateway_id=data.gateway_id,
            amount=data.amount,
            currency=data.currency,
            customer_email=data.customer_email,
            expires_at=utcnow() + timedelta(hours=data.expires_in_hours),
            request_metadata=data.metadata,
        )
        try:
            self.db.add(request)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise classify_dependency_error(e, "create payment request")
        logger.info(f"Created payment request {request.id} for invoice {data.invoice_id}")
        return request

    async def create_payment_link(self, request_id: UUID, channel: str = "email") -> PaymentLink:
        request = await self.db.get(PaymentRequest, request_id)
        if request is None:
            raise NotFound("Payment request", request_id)

        link = PaymentLink(
            payment_request_id=request_id,
            channel=channel,
            token=secrets.token_urlsafe(32),
        )
        try:
            self.db.add(link)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise classify_dependency_error(e, "create payment link")
        return link

    @staticmethod
    def payment_url(token: str) -> str:
        return f"{settings.FRONTEND_URL.rstrip('/')}/payment/{token}"

    async def expire_stale_requests(self, now: Optional[datetime] = None) -> int:
        """Pending requests past their expiry become expired; returns how many changed."""
        now = now or utcnow()
        result = await self.db.execute(
            select(PaymentRequest).where(
                PaymentRequest.status == PaymentRequestStatus.PENDING,
                PaymentRequest.expires_at < now,
            )
        )
        stale = list(result.scalars().all())
        for request in stale:
            request.status = PaymentRequestStatus.EXPIRED
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise classify_dependency_error(e, "expire payment requests")
        if stale:
            logger.info(f"Expired {len(stale)} payment request(s)")
        return len(stale)
