from .layout import DocumentLayoutEngine, InvoiceDocument, PageGeometry, branding_from_company
from .renderer import render_pdf

__all__ = [
    "DocumentLayoutEngine", "InvoiceDocument", "PageGeometry", "branding_from_company",
    "render_pdf",
]
