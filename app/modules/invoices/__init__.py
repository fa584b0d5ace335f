"""
Invoices module

- Invoice numbering with an atomically advanced counter
- Draft / sent / paid / overdue / cancelled lifecycle
- Revisions for edits made after an invoice was sent
- Payments (partial and full) against the balance due
- Email delivery and payment requests

Tables:
- invoices: invoice header, soft deleted through deleted_at
- invoice_items: ordered line items
- invoice_payments: payments received
- invoice_settings: numbering configuration and counter
- terms_templates: reusable terms and conditions
"""

from .models import Invoice, InvoiceItem, InvoicePayment, InvoiceSettings, InvoiceStatus, PaymentStatus

__all__ = [
    "Invoice", "InvoiceItem", "InvoicePayment", "InvoiceSettings",
    "InvoiceStatus", "PaymentStatus",
]
