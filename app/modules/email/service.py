import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.mime.application import MIMEApplication
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Tuple
from pathlib import Path
import logging
from jinja2 import Environment, FileSystemLoader, select_autoescape
from app.core.config import settings

logger = logging.getLogger(__name__)

# (filename, content, mime subtype)
Attachment = Tuple[str, bytes, str]

INVOICE_TEMPLATE = "invoice_email.html"
PAYMENT_CONFIRMATION_TEMPLATE = "payment_confirmation.html"
PAYMENT_REQUEST_TEMPLATE = "payment_request.html"


@dataclass
class InvoiceEmailPayload:
    """Everything needed to send one invoice email"""
    recipient: str
    invoice_number: str
    customer_name: str
    company_name: str
    total: str
    due_date: Optional[str] = None
    document: Optional[bytes] = None
    filename: Optional[str] = None
    is_payment_confirmation: bool = False
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def template_name(self) -> str:
        return PAYMENT_CONFIRMATION_TEMPLATE if self.is_payment_confirmation else INVOICE_TEMPLATE

    @property
    def subject(self) -> str:
        if self.is_payment_confirmation:
            return f"Payment received for invoice {self.invoice_number}"
        return f"Invoice {self.invoice_number} from {self.company_name}"


class EmailService:
    """
    SMTP email service with Jinja2 templates.
    Sending is a single attempt; callers get True/False back.
    """

    def __init__(self):
        self.smtp_server = settings.EMAIL_SMTP_SERVER
        self.smtp_port = settings.EMAIL_SMTP_PORT
        self.username = settings.EMAIL_USERNAME
        self.password = settings.EMAIL_PASSWORD
        self.use_tls = settings.EMAIL_USE_TLS
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL

        template_dir = Path(__file__).parent / "templates"
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html', 'xml'])
        )

    def _create_smtp_connection(self):
        """Open an authenticated SMTP connection."""
        try:
            if self.use_tls:
                context = ssl.create_default_context()
                server = smtplib.SMTP(self.smtp_server, self.smtp_port)
                server.starttls(context=context)
            else:
                server = smtplib.SMTP_SSL(self.smtp_server, self.smtp_port)

            if self.username:
                server.login(self.username, self.password)
            return server
        except Exception as e:
            logger.error(f"Error creating SMTP connection: {str(e)}")
            raise

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        template = self.jinja_env.get_template(template_name)
        return template.render(**context)

    def send_email(
        self,
        to_emails: List[str],
        subject: str,
        html_content: Optional[str] = None,
        text_content: Optional[str] = None,
        attachments: Optional[List[Attachment]] = None,
    ) -> bool:
        """
        Send one email.

        Args:
            to_emails: Recipients
            subject: Subject line
            html_content: HTML body
            text_content: Plain text body
            attachments: In-memory attachments as (filename, content, subtype)

        Returns:
            True when the SMTP server accepted the message
        """
        try:
            msg = MIMEMultipart('mixed')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = ', '.join(to_emails)

            body = MIMEMultipart('alternative')
            if text_content:
                body.attach(MIMEText(text_content, 'plain', 'utf-8'))
            if html_content:
                body.attach(MIMEText(html_content, 'html', 'utf-8'))
            msg.attach(body)

            for filename, content, subtype in attachments or []:
                part = MIMEApplication(content, _subtype=subtype)
                part.add_header('Content-Disposition', 'attachment', filename=filename)
                msg.attach(part)

            with self._create_smtp_connection() as server:
                server.sendmail(self.from_email, to_emails, msg.as_string())

            logger.info(f"Email sent successfully to {', '.join(to_emails)}")
            return True

        except Exception as e:
            logger.error(f"Error sending email: {str(e)}")
            return False

    def send_template_email(
        self,
        to_emails: List[str],
        subject: str,
        template_name: str,
        context: Dict[str, Any],
        attachments: Optional[List[Attachment]] = None
    ) -> bool:
        try:
            html_content = self.render_template(template_name, context)
        except Exception as e:
            logger.error(f"Error rendering template {template_name}: {str(e)}")
            return False

        return self.send_email(
            to_emails=to_emails,
            subject=subject,
            html_content=html_content,
            attachments=attachments
        )

    def send_invoice_email(self, payload: InvoiceEmailPayload) -> bool:
        """Invoice or payment confirmation email, with the PDF attached when present."""
        context = {
            "invoice_number": payload.invoice_number,
            "customer_name": payload.customer_name,
            "company_name": payload.company_name,
            "total": payload.total,
            "due_date": payload.due_date,
            **payload.context,
        }
        attachments = []
        if payload.document:
            attachments.append((payload.filename or f"{payload.invoice_number}.pdf", payload.document, "pdf"))

        return self.send_template_email(
            to_emails=[payload.recipient],
            subject=payload.subject,
            template_name=payload.template_name,
            context=context,
            attachments=attachments
        )

    def send_payment_request_email(
        self,
        recipient: str,
        invoice_number: str,
        customer_name: str,
        company_name: str,
        amount: str,
        payment_url: str,
        expires_in_hours: int,
    ) -> bool:
        return self.send_template_email(
            to_emails=[recipient],
            subject=f"Payment request for invoice {invoice_number}",
            template_name=PAYMENT_REQUEST_TEMPLATE,
            context={
                "invoice_number": invoice_number,
                "customer_name": customer_name,
                "company_name": company_name,
                "amount": amount,
                "payment_url": payment_url,
                "expires_in_hours": expires_in_hours,
            },
        )


# Singleton instance
email_service = EmailService()
