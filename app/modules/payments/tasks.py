"""
Background tasks for payment requests
"""
from app.core.celery import celery_app
from app.database.database import AsyncSessionLocal
from app.modules.payments.service import PaymentService
import logging
import asyncio

logger = logging.getLogger(__name__)


@celery_app.task
def expire_payment_requests():
    """Pending payment requests past their link expiry are marked expired"""
    try:
        count = asyncio.run(_expire_payment_requests_async())
        logger.info(f"Payment request expiry sweep completed, {count} request(s) expired")
        return {"status": "completed", "expired": count}

    except Exception as e:
        logger.error(f"Payment request expiry sweep failed: {str(e)}")
        raise


async def _expire_payment_requests_async():
    async with AsyncSessionLocal() as db:
        return await PaymentService(db).expire_stale_requests()
