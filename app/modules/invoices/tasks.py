"""
Background tasks for invoices
"""
from app.core.celery import celery_app
from app.database.database import AsyncSessionLocal
from app.modules.invoices.service import InvoiceService
import logging
import asyncio

logger = logging.getLogger(__name__)


@celery_app.task
def mark_overdue_invoices():
    """
    Periodic task: sent, unpaid invoices past their due date become overdue
    """
    try:
        logger.info("Starting overdue invoice scan")

        numbers = asyncio.run(_mark_overdue_invoices_async())

        logger.info(f"Overdue invoice scan completed, {len(numbers)} invoice(s) updated")
        return {"status": "completed", "invoices": numbers}

    except Exception as e:
        logger.error(f"Overdue invoice scan failed: {str(e)}")
        raise


async def _mark_overdue_invoices_async():
    """Async helper for the overdue scan"""
    async with AsyncSessionLocal() as db:
        service = InvoiceService(db)
        return await service.mark_overdue()
