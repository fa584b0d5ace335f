"""
Email module: SMTP delivery of invoices, payment confirmations and
payment requests rendered from Jinja2 templates.
"""

from .service import email_service, EmailService, InvoiceEmailPayload

__all__ = [
    'email_service',
    'EmailService',
    'InvoiceEmailPayload',
]
