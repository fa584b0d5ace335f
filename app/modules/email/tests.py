"""
Tests for template rendering and single-attempt SMTP delivery
"""

from app.modules.email.service import EmailService, InvoiceEmailPayload


def capture_sends(monkeypatch, service):
    sent = []

    def fake_send_email(to_emails, subject, html_content=None, text_content=None, attachments=None):
        sent.append({
            "to": to_emails,
            "subject": subject,
            "html": html_content,
            "attachments": attachments,
        })
        return True

    monkeypatch.setattr(service, "send_email", fake_send_email)
    return sent


class TestInvoiceEmail:
    def test_invoice_with_attachment(self, monkeypatch):
        service = EmailService()
        sent = capture_sends(monkeypatch, service)
        payload = InvoiceEmailPayload(
            recipient="billing@acme.example.com",
            invoice_number="INV-2025-10-0001",
            customer_name="Acme Traders",
            company_name="Northwind Billing",
            total="₹893.50",
            due_date="14/11/2025",
            document=b"%PDF-1.4",
            filename="Invoice-INV-2025-10-0001-AcmeTraders.pdf",
            context={"custom_message": "Thanks for the order"},
        )

        assert service.send_invoice_email(payload) is True

        [message] = sent
        assert message["to"] == ["billing@acme.example.com"]
        assert message["subject"] == "Invoice INV-2025-10-0001 from Northwind Billing"
        assert "₹893.50" in message["html"]
        assert "Thanks for the order" in message["html"]
        assert message["attachments"] == [("Invoice-INV-2025-10-0001-AcmeTraders.pdf", b"%PDF-1.4", "pdf")]

    def test_payment_confirmation_template(self, monkeypatch):
        service = EmailService()
        sent = capture_sends(monkeypatch, service)
        payload = InvoiceEmailPayload(
            recipient="billing@acme.example.com",
            invoice_number="INV-2025-10-0001",
            customer_name="Acme Traders",
            company_name="Northwind Billing",
            total="₹893.50",
            is_payment_confirmation=True,
        )

        service.send_invoice_email(payload)

        assert sent[0]["subject"] == "Payment received for invoice INV-2025-10-0001"
        assert sent[0]["attachments"] == []


class TestPaymentRequestEmail:
    def test_link_in_body(self, monkeypatch):
        service = EmailService()
        sent = capture_sends(monkeypatch, service)

        service.send_payment_request_email(
            "billing@acme.example.com", "INV-2025-10-0001", "Acme Traders", "Northwind Billing",
            "₹893.50", "http://localhost:3000/payment/tok123", 72,
        )

        html = sent[0]["html"]
        assert "http://localhost:3000/payment/tok123" in html
        assert "72" in html


class TestDelivery:
    def test_smtp_failure_returns_false(self, monkeypatch):
        service = EmailService()

        def refuse():
            raise ConnectionRefusedError("SMTP server unreachable")

        monkeypatch.setattr(service, "_create_smtp_connection", refuse)

        assert service.send_email(["billing@acme.example.com"], "Hello", html_content="<p>Hi</p>") is False

    def test_missing_template_returns_false(self):
        service = EmailService()
        assert service.send_template_email(["a@example.com"], "Hello", "missing.html", {}) is False
