from fastapi import APIRouter, Response
from uuid import UUID

from app.dependencies.dbDependecies import async_db_dependency
from app.modules.invoices.service import InvoiceService

documents_router = APIRouter(prefix="/documents", tags=["Documents"])


@documents_router.get("/invoices/{invoice_id}/layout")
async def get_invoice_layout(invoice_id: UUID, db: async_db_dependency):
    """
    Page-by-page draw operations for an invoice

    Coordinates are millimetres from the top-left corner of an A4 page.
    """
    service = InvoiceService(db)
    _, document, _ = await service.build_document(invoice_id)
    return document.to_dict()


@documents_router.get("/invoices/{invoice_id}/pdf")
async def download_invoice_pdf(invoice_id: UUID, db: async_db_dependency):
    service = InvoiceService(db)
    document, pdf = await service.render_document(invoice_id)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )
