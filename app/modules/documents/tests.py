"""
Tests for the document layout engine and PDF renderer
"""

import pytest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from app.modules.documents.layout import (
    Branding, BrandingImage, DocumentLayoutEngine, FOOTER_OFFSET, PageGeometry,
    TextOp, document_filename, wrap_text
)
from app.modules.documents.renderer import render_pdf


def make_item(name="Widget", description="Steel widget", quantity="1", unit_price="100", tax_rate="18", hsn_code=None):
    return SimpleNamespace(
        item_name=name, description=description, quantity=Decimal(quantity), unit="pcs",
        unit_price=Decimal(unit_price), tax_rate=Decimal(tax_rate), hsn_code=hsn_code,
    )


def make_invoice(items, status="draft", payment_status="pending", notes=None, terms=None):
    return SimpleNamespace(
        invoice_number="INV-2025-10-0001",
        invoice_date=date(2025, 10, 15),
        due_date=date(2025, 11, 14),
        status=status,
        payment_status=payment_status,
        notes=notes,
        terms_conditions=terms,
        items=items,
        customer=None,
    )


CUSTOMER = SimpleNamespace(
    company_name="Acme Traders",
    contact_person="R. Sharma",
    email="billing@acme.example.com",
    address_line1="12 Market Road",
    city="Mumbai",
    country=SimpleNamespace(code="IND", currency_symbol="₹", currency_code="INR", currency_name="Rupees"),
)

COMPANY = SimpleNamespace(
    company_name="Northwind Billing Pvt Ltd",
    address_line1="1 Harbour Street",
    bank_name="State Bank",
    account_number="001234567890",
    ifsc_code="SBIN0000123",
)


def texts(page):
    return [op for op in page.ops if isinstance(op, TextOp)]


def find_text(document, text):
    return [(page.number, op) for page in document.pages for op in texts(page) if op.text == text]


class TestContentBounds:
    def test_defaults_without_branding(self):
        engine = DocumentLayoutEngine()
        assert engine.content_bounds(Branding()) == (35, 267)

    def test_header_and_footer_insets(self):
        engine = DocumentLayoutEngine()
        # 1000x200 px at 210mm wide is 42mm tall, capped at 30mm
        header = BrandingImage(data=b"png", width_px=1000, height_px=200)
        # 1000x100 px is 21mm tall, under the 25mm cap
        footer = BrandingImage(data=b"png", width_px=1000, height_px=100)

        start, end = engine.content_bounds(Branding(header=header, footer=footer))

        assert start == 35
        assert end == pytest.approx(297 - 21 - 15)

    def test_shared_engine_keeps_no_per_call_state(self):
        engine = DocumentLayoutEngine()
        footer = BrandingImage(data=b"png", width_px=1000, height_px=100)
        invoice = make_invoice([make_item()])

        branded = engine.layout(invoice, CUSTOMER, COMPANY, Branding(footer=footer))
        plain = engine.layout(invoice, CUSTOMER, COMPANY)

        assert vars(engine) == {"geometry": PageGeometry()}
        assert branded.content_end_y == pytest.approx(297 - 21 - 15)
        assert plain.content_end_y == 267
        [(_, thanks)] = find_text(plain, "Thank you for your business!")
        assert thanks.y == 267 - FOOTER_OFFSET + 5

    def test_branding_images_on_every_page(self):
        footer = BrandingImage(data=b"png", width_px=1000, height_px=100)
        items = [make_item(name=f"Item {n}") for n in range(30)]

        document = DocumentLayoutEngine().layout(make_invoice(items), CUSTOMER, COMPANY, Branding(footer=footer))

        assert len(document.pages) > 1
        for page in document.pages:
            assert [op.slot for op in page.ops if op.kind == "image"] == ["footer"]


class TestTablePagination:
    def test_long_table_repeats_header_and_never_splits_rows(self):
        items = [make_item(name=f"Item {n}", description="Long description " * 6, hsn_code="8479")
                 for n in range(25)]
        engine = DocumentLayoutEngine()

        document = engine.layout(make_invoice(items), CUSTOMER, COMPANY)

        assert len(document.pages) >= 2
        header_pages = sorted(number for number, _ in find_text(document, "Description"))
        table_pages = sorted({
            page.number for page in document.pages
            if any(op.text.startswith("Item ") for op in texts(page))
        })
        assert header_pages == table_pages
        assert len(table_pages) >= 2

        rows = [op for page in document.pages for op in texts(page) if op.text.startswith("Item ")]
        assert len(rows) == 25

        for page in document.pages:
            codes = [op for op in texts(page) if op.text == "HSN: 8479"]
            rows = [op for op in texts(page) if op.text.startswith("Item ")]
            # Every row on a page keeps its classification line on the same page
            assert len(codes) == len(rows)
            for op in codes:
                assert op.y <= PageGeometry().table_break_y

    def test_table_header_moves_with_first_row(self):
        invoice = make_invoice([make_item()])
        [(_, header)] = find_text(DocumentLayoutEngine().layout(invoice, CUSTOMER, COMPANY), "Description")
        # Room for the header but not for the row below it
        geometry = PageGeometry(table_break_y=header.y - 5.5 + 15)

        document = DocumentLayoutEngine(geometry).layout(invoice, CUSTOMER, COMPANY)

        [(header_page, _)] = find_text(document, "Description")
        [(row_page, row)] = find_text(document, "Widget - Steel widget")
        assert header_page == row_page == 2
        assert row.y < geometry.table_break_y

    def test_row_height(self):
        assert DocumentLayoutEngine.row_height(make_item()) == 12
        long_item = make_item(description="word " * 80, hsn_code="8479")
        lines = len(DocumentLayoutEngine.item_lines(long_item))
        assert DocumentLayoutEngine.row_height(long_item) == max(lines * 3 + 6, 12)

    def test_single_page_has_no_page_numbers(self):
        document = DocumentLayoutEngine().layout(make_invoice([make_item()]), CUSTOMER, COMPANY)
        assert len(document.pages) == 1
        assert not [op for op in texts(document.pages[0]) if op.text.startswith("Page ")]

    def test_page_numbers_on_every_page(self):
        items = [make_item(name=f"Item {n}") for n in range(40)]
        document = DocumentLayoutEngine().layout(make_invoice(items), CUSTOMER, COMPANY)
        total = len(document.pages)
        for page in document.pages:
            assert find_text(document, f"Page {page.number} of {total}")


class TestFooter:
    def test_anchored_at_content_end(self):
        document = DocumentLayoutEngine().layout(make_invoice([make_item()]), CUSTOMER, COMPANY)
        footer_y = document.content_end_y - FOOTER_OFFSET

        last_page = document.pages[-1]
        lines = [op for op in last_page.ops if op.kind == "line" and op.y1 == footer_y]
        assert len(lines) == 1
        [(_, thanks)] = find_text(document, "Thank you for your business!")
        assert thanks.y == footer_y + 5

    def test_footer_follows_footer_inset(self):
        footer = BrandingImage(data=b"png", width_px=1000, height_px=100)
        document = DocumentLayoutEngine().layout(
            make_invoice([make_item()]), CUSTOMER, COMPANY, Branding(footer=footer)
        )
        [(_, thanks)] = find_text(document, "Thank you for your business!")
        assert thanks.y == pytest.approx(297 - 21 - 15 - FOOTER_OFFSET + 5)


class TestBankingPlacement:
    def test_beside_totals_without_notes(self):
        document = DocumentLayoutEngine().layout(make_invoice([make_item()]), CUSTOMER, COMPANY)

        [(_, bank)] = find_text(document, "Banking Details")
        [(_, subtotal)] = find_text(document, "Subtotal:")
        assert bank.y == subtotal.y - 2

    def test_below_totals_with_notes(self):
        invoice = make_invoice([make_item()], notes="Deliver to loading bay 4")
        document = DocumentLayoutEngine().layout(invoice, CUSTOMER, COMPANY)

        [(_, bank)] = find_text(document, "Banking Details")
        [(_, words)] = find_text(document, "Amount in Words:")
        [(_, notes)] = find_text(document, "Notes:")
        assert bank.y > words.y
        assert notes.y > bank.y


class TestDocumentContent:
    def test_totals_and_words(self):
        items = [
            make_item(quantity="2", unit_price="100", tax_rate="18"),
            make_item(name="Setup", quantity="1", unit_price="500", tax_rate="0"),
            make_item(name="Bolts", quantity="3", unit_price="50", tax_rate="5"),
        ]
        document = DocumentLayoutEngine().layout(make_invoice(items), CUSTOMER, COMPANY)

        assert find_text(document, "Rs. 850.00")
        assert find_text(document, "Rs. 43.50")
        assert find_text(document, "Rs. 893.50")
        assert find_text(document, "GST Amount:")
        assert find_text(document, "GST%")

    def test_vat_labels_for_other_jurisdictions(self):
        customer = SimpleNamespace(company_name="Harbour Ltd", country=SimpleNamespace(code="GBR"))
        document = DocumentLayoutEngine().layout(make_invoice([make_item(hsn_code="0101")]), customer, COMPANY)

        assert find_text(document, "VAT%")
        assert find_text(document, "Code: 0101")
        assert find_text(document, "VAT Amount:")
        assert find_text(document, "£118.00")
        assert find_text(document, "118.00")

    def test_payment_badge(self):
        document = DocumentLayoutEngine().layout(
            make_invoice([make_item()], payment_status="partial"), CUSTOMER, COMPANY
        )
        assert find_text(document, "PARTIAL")

    def test_cancelled_watermark(self):
        document = DocumentLayoutEngine().layout(make_invoice([make_item()], status="cancelled"), CUSTOMER)
        assert document.watermark == "CANCELLED"

    def test_to_dict(self):
        data = DocumentLayoutEngine().layout(make_invoice([make_item()]), CUSTOMER).to_dict()
        assert data["filename"] == "Invoice-INV-2025-10-0001-AcmeTraders.pdf"
        assert data["pages"][0]["ops"][0]["kind"] in {"rect", "text", "line", "image"}


class TestHelpers:
    def test_filename(self):
        assert document_filename("INV/2025/7", "Müller & Sons, Ltd.") == "Invoice-INV20257-MllerSonsLtd..pdf"
        assert document_filename("INV-1", None) == "Invoice-INV-1.pdf"

    def test_wrap_text(self):
        assert wrap_text("", 50) == []
        lines = wrap_text("word " * 60, 50)
        assert len(lines) > 1


class TestRenderer:
    def test_renders_pdf_bytes(self):
        items = [make_item(name=f"Item {n}") for n in range(30)]
        document = DocumentLayoutEngine().layout(make_invoice(items, status="cancelled"), CUSTOMER, COMPANY)

        pdf = render_pdf(document)

        assert pdf.startswith(b"%PDF")
        assert b"%%EOF" in pdf[-16:]


class TestDocumentsRouter:
    async def test_layout_and_pdf(self, client, service, customer, company, make_form):
        invoice = await service.create_invoice(make_form(customer.id))

        response = await client.get(f"/documents/invoices/{invoice.id}/layout")
        assert response.status_code == 200
        assert response.json()["content_end_y"] == 267

        response = await client.get(f"/documents/invoices/{invoice.id}/pdf")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "Invoice-INV-2025-10-0001-AcmeTraders.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")
