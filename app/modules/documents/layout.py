"""
Invoice document layout.

Turns an invoice, its customer and the company branding into pages of
draw instructions (text, lines, rectangles, image slots) positioned in
millimetres from the top-left corner of an A4 page. The byte format is
left to a renderer (see renderer.py).

Text is measured with reportlab's standard font metrics so wrapped line
counts match what the PDF backend draws.
"""

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit

from app.modules.taxes.calculator import (
    amount_in_words, compute_totals, format_money, format_rate, line_subtotal, line_tax, to_decimal
)
from app.modules.taxes.resolver import CurrencyInfo, resolve, rules_for_customer

Color = Tuple[int, int, int]

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

BLACK: Color = (33, 37, 41)
GRAY: Color = (108, 117, 125)
WHITE: Color = (255, 255, 255)
PRIMARY: Color = (37, 99, 235)
LIGHT_FILL: Color = (243, 244, 246)
BORDER: Color = (209, 213, 219)

STATUS_BADGE_COLORS = {
    "paid": (22, 163, 74),
    "partial": (217, 119, 6),
    "pending": (220, 38, 38),
}

DATE_FORMAT = "%d/%m/%Y"

# Table columns, offsets from the left margin
COL_DESCRIPTION = 2
COL_QTY = 95
COL_RATE = 120
COL_TAX = 145
COL_AMOUNT = 175
DESCRIPTION_WIDTH = 80

ROW_TOP_PADDING = 3
ROW_LINE_HEIGHT = 3
ROW_MIN_HEIGHT = 12
TABLE_HEADER_HEIGHT = 10

PARTY_COLUMN_WIDTH = 85
PARTY_RIGHT_X = 110
PARTY_LINE_HEIGHT = 4

TOTALS_WIDTH = 60
TOTALS_HEIGHT = 25
BANK_BOX_WIDTH = 85
BANK_BOX_HEIGHT = 20

# Space kept free above the content end for the footer block
FOOTER_RESERVE = 27
FOOTER_OFFSET = 5


# ===== DRAW INSTRUCTIONS =====

@dataclass(frozen=True)
class TextOp:
    x: float
    y: float
    text: str
    size: float = 9
    font: str = FONT
    color: Color = BLACK
    align: str = "left"  # left | center | right
    kind: str = field(default="text", init=False)


@dataclass(frozen=True)
class LineOp:
    x1: float
    y1: float
    x2: float
    y2: float
    color: Color = BORDER
    width: float = 0.2
    kind: str = field(default="line", init=False)


@dataclass(frozen=True)
class RectOp:
    x: float
    y: float
    width: float
    height: float
    fill: Optional[Color] = None
    stroke: Optional[Color] = None
    radius: float = 0
    kind: str = field(default="rect", init=False)


@dataclass(frozen=True)
class ImageOp:
    """Placement of a branding image; the renderer supplies the bytes for `slot`"""
    slot: str
    x: float
    y: float
    width: float
    height: float
    kind: str = field(default="image", init=False)


@dataclass
class Page:
    number: int
    ops: List[Any] = field(default_factory=list)


@dataclass
class InvoiceDocument:
    pages: List[Page]
    filename: str
    page_width: float
    page_height: float
    content_start_y: float
    content_end_y: float
    watermark: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


# ===== GEOMETRY AND BRANDING =====

@dataclass(frozen=True)
class PageGeometry:
    """A4 portrait in millimetres"""
    width: float = 210
    height: float = 297
    margin_left: float = 15
    margin_right: float = 15
    margin_top: float = 15
    margin_bottom: float = 20
    max_header_inset: float = 30
    max_footer_inset: float = 25
    inset_gap: float = 5
    footer_gap: float = 15
    min_content_start: float = 35
    min_bottom_space: float = 30
    table_break_y: float = 240
    continuation_start_y: float = 20

    @property
    def left(self) -> float:
        return self.margin_left

    @property
    def right(self) -> float:
        return self.width - self.margin_right

    @property
    def content_width(self) -> float:
        return self.right - self.left

    @property
    def center(self) -> float:
        return self.width / 2


@dataclass(frozen=True)
class BrandingImage:
    data: bytes
    width_px: int
    height_px: int

    def fit(self, max_width: float, max_height: float) -> Tuple[float, float]:
        """Size in mm at full page width, scaled down to the inset limit"""
        if not self.width_px or not self.height_px:
            return 0.0, 0.0
        ratio = self.height_px / self.width_px
        width = max_width
        height = width * ratio
        if height > max_height:
            height = max_height
            width = height / ratio
        return width, height


@dataclass(frozen=True)
class Branding:
    header: Optional[BrandingImage] = None
    footer: Optional[BrandingImage] = None


def branding_from_company(company: Any) -> Branding:
    def image(prefix: str) -> Optional[BrandingImage]:
        data = getattr(company, f"{prefix}_image", None)
        width = getattr(company, f"{prefix}_image_width", None)
        height = getattr(company, f"{prefix}_image_height", None)
        if not data or not width or not height:
            return None
        return BrandingImage(data=data, width_px=width, height_px=height)

    if company is None:
        return Branding()
    return Branding(header=image("header"), footer=image("footer"))


# ===== HELPERS =====

def wrap_text(text: Optional[str], width_mm: float, font: str = FONT, size: float = 9) -> List[str]:
    """Split text into lines that fit `width_mm` with the given font metrics."""
    if not text or not text.strip():
        return []
    return [line for line in simpleSplit(text.strip(), font, size, width_mm * mm)]


def document_filename(invoice_number: str, customer_name: Optional[str]) -> str:
    """Invoice-<number>-<customer>.pdf with everything but letters, digits, '.' and '-' stripped"""
    base = f"Invoice-{invoice_number}-{customer_name or ''}".rstrip("-")
    return re.sub(r"[^A-Za-z0-9.-]", "", base) + ".pdf"


def _value(obj: Any, name: str, default: Any = None) -> Any:
    if obj is None:
        return default
    value = getattr(obj, name, default)
    return default if value is None else value


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value) or "")


def _format_date(value: Any) -> str:
    return value.strftime(DATE_FORMAT) if value else ""


def format_quantity(quantity: Any) -> str:
    return f"{to_decimal(quantity).normalize():f}"


# A block is rendered only when its predicate holds; render(y) returns the next y
Block = Tuple[bool, Callable[[float], float]]


def fold_blocks(blocks: Iterable[Block], y: float) -> float:
    for present, render in blocks:
        if present:
            y = render(y)
    return y


class _PageWriter:
    """
    Collects ops per page and draws branding insets on every new page.
    Holds the vertical bounds of one layout call.
    """

    def __init__(self, geometry: PageGeometry, branding: Branding, content_start: float, content_end: float):
        self.geometry = geometry
        self.branding = branding
        self.pages: List[Page] = []
        self.content_end = content_end
        self.continuation_y = max(geometry.continuation_start_y, content_start if branding.header else 0)
        self.body_limit = content_end - FOOTER_RESERVE
        self.break_y = min(geometry.table_break_y, self.body_limit)

    @property
    def ops(self) -> List[Any]:
        return self.pages[-1].ops

    def new_page(self) -> Page:
        page = Page(number=len(self.pages) + 1)
        self.pages.append(page)
        g = self.geometry
        if self.branding.header is not None:
            width, height = self.branding.header.fit(g.width, g.max_header_inset)
            self.ops.append(ImageOp("header", (g.width - width) / 2, 0, width, height))
        if self.branding.footer is not None:
            width, height = self.branding.footer.fit(g.width, g.max_footer_inset)
            self.ops.append(ImageOp("footer", (g.width - width) / 2, g.height - height, width, height))
        return page

    def text(self, x: float, y: float, text: str, **kwargs):
        self.ops.append(TextOp(x, y, text, **kwargs))

    def line(self, x1: float, y1: float, x2: float, y2: float, **kwargs):
        self.ops.append(LineOp(x1, y1, x2, y2, **kwargs))

    def rect(self, x: float, y: float, width: float, height: float, **kwargs):
        self.ops.append(RectOp(x, y, width, height, **kwargs))


# ===== ENGINE =====

class DocumentLayoutEngine:
    def __init__(self, geometry: Optional[PageGeometry] = None):
        self.geometry = geometry or PageGeometry()

    # -- insets --

    def content_bounds(self, branding: Branding) -> Tuple[float, float]:
        """(content_start_y, content_end_y) after reserving the branding insets"""
        g = self.geometry
        start = g.margin_top
        end = g.height - g.margin_bottom

        if branding.header is not None:
            _, header_height = branding.header.fit(g.width, g.max_header_inset)
            start = header_height + g.inset_gap
        if branding.footer is not None:
            _, footer_height = branding.footer.fit(g.width, g.max_footer_inset)
            end = (g.height - footer_height) - g.footer_gap

        start = max(start, g.min_content_start)
        end = min(end, g.height - g.min_bottom_space)
        return start, end

    # -- public --

    def layout(
        self,
        invoice: Any,
        customer: Any = None,
        company: Any = None,
        branding: Optional[Branding] = None,
    ) -> InvoiceDocument:
        g = self.geometry
        customer = customer if customer is not None else _value(invoice, "customer")
        branding = branding if branding is not None else branding_from_company(company)
        currency = resolve(customer)
        items = list(_value(invoice, "items", []))

        content_start, content_end = self.content_bounds(branding)
        writer = _PageWriter(g, branding, content_start, content_end)
        writer.new_page()

        y = self._header(writer, invoice, content_start, has_header_image=branding.header is not None)
        y = self._parties(writer, invoice, customer, company, y)
        y = self._table(writer, items, currency, rules_for_customer(customer).classification_short, y)
        y, totals_origin = self._totals(writer, items, currency, y)
        y = self._banking_notes_terms(writer, invoice, company, y, totals_origin)
        self._footer(writer, y)
        self._page_numbers(writer)

        status = _enum_value(_value(invoice, "status"))
        return InvoiceDocument(
            pages=writer.pages,
            filename=document_filename(_value(invoice, "invoice_number", ""), _value(customer, "company_name")),
            page_width=g.width,
            page_height=g.height,
            content_start_y=content_start,
            content_end_y=content_end,
            watermark="CANCELLED" if status == "cancelled" else None,
        )

    # -- blocks --

    def _ensure_space(self, writer: _PageWriter, y: float, needed: float) -> float:
        if y + needed > writer.body_limit:
            writer.new_page()
            return writer.continuation_y
        return y

    def _header(self, writer: _PageWriter, invoice: Any, y: float, has_header_image: bool) -> float:
        g = self.geometry
        number = _value(invoice, "invoice_number", "")
        invoice_date = _format_date(_value(invoice, "invoice_date"))
        due_date = _format_date(_value(invoice, "due_date"))

        if has_header_image:
            writer.text(g.left, y + 6, "INVOICE", size=16, font=FONT_BOLD, color=PRIMARY)
            writer.text(g.right, y + 2, f"Invoice #{number}", size=10, font=FONT_BOLD, align="right")
            writer.text(g.right, y + 7, f"Date: {invoice_date}", size=9, align="right")
            if due_date:
                writer.text(g.right, y + 12, f"Due: {due_date}", size=9, align="right")
            return y + 18

        writer.rect(g.left, y, g.content_width, 25, fill=PRIMARY)
        writer.text(g.left + 5, y + 15, "INVOICE", size=22, font=FONT_BOLD, color=WHITE)
        writer.text(g.right - 5, y + 8, f"Invoice #{number}", size=10, font=FONT_BOLD, color=WHITE, align="right")
        writer.text(g.right - 5, y + 14, f"Date: {invoice_date}", size=9, color=WHITE, align="right")
        if due_date:
            writer.text(g.right - 5, y + 20, f"Due: {due_date}", size=9, color=WHITE, align="right")
        return y + 30

    def _wrapped(self, writer: _PageWriter, x: float, text: str, size: float = 9,
                 font: str = FONT, color: Color = BLACK, width: float = PARTY_COLUMN_WIDTH,
                 line_height: float = PARTY_LINE_HEIGHT) -> Callable[[float], float]:
        def render(y: float) -> float:
            for line in wrap_text(text, width, font, size):
                writer.text(x, y, line, size=size, font=font, color=color)
                y += line_height
            return y
        return render

    def _party_column(self, writer: _PageWriter, x: float, y: float, heading: str,
                      entity: Any, name: str, extra: Sequence[Block]) -> float:
        rules = rules_for_customer(entity)
        city_line = ", ".join(
            part for part in (_value(entity, "city"), _value(entity, "state"), _value(entity, "postal_code")) if part
        )
        registration = _value(entity, "tax_registration_id")

        def heading_block(y: float) -> float:
            writer.text(x, y, heading, size=10, font=FONT_BOLD, color=GRAY)
            return y + 5

        blocks: List[Block] = [
            (True, heading_block),
            (bool(name), self._wrapped(writer, x, name, size=11, font=FONT_BOLD, line_height=5)),
            *extra,
            (bool(_value(entity, "address_line1")), self._wrapped(writer, x, _value(entity, "address_line1"))),
            (bool(_value(entity, "address_line2")), self._wrapped(writer, x, _value(entity, "address_line2"))),
            (bool(city_line), self._wrapped(writer, x, city_line)),
            (bool(_value(entity, "email")), self._wrapped(writer, x, f"Email: {_value(entity, 'email')}")),
            (bool(_value(entity, "phone")), self._wrapped(writer, x, f"Phone: {_value(entity, 'phone')}")),
            (bool(_value(entity, "website")), self._wrapped(writer, x, f"Website: {_value(entity, 'website')}")),
            (bool(registration), self._wrapped(writer, x, f"{rules.registration_label}: {registration}")),
            (bool(_value(entity, "pan")), self._wrapped(writer, x, f"PAN: {_value(entity, 'pan')}")),
        ]
        return fold_blocks(blocks, y)

    def _parties(self, writer: _PageWriter, invoice: Any, customer: Any, company: Any, y: float) -> float:
        g = self.geometry
        company_name = _value(company, "company_name", "")
        legal_name = _value(company, "legal_name")
        contact = _value(customer, "contact_person")
        payment_status = _enum_value(_value(invoice, "payment_status")) or "pending"

        def badge(y: float) -> float:
            color = STATUS_BADGE_COLORS.get(payment_status, GRAY)
            writer.rect(PARTY_RIGHT_X, y - 1, 30, 6, fill=color, radius=1.5)
            writer.text(PARTY_RIGHT_X + 15, y + 3, payment_status.upper(), size=7, font=FONT_BOLD,
                        color=WHITE, align="center")
            return y + 8

        from_y = self._party_column(
            writer, g.left, y, "From:", company, company_name,
            extra=[(bool(legal_name) and legal_name != company_name,
                    self._wrapped(writer, g.left, legal_name or "", color=GRAY))],
        )
        bill_y = self._party_column(
            writer, PARTY_RIGHT_X, y, "Bill To:", customer, _value(customer, "company_name", ""),
            extra=[(bool(contact), self._wrapped(writer, PARTY_RIGHT_X, f"Attn: {contact}"))],
        )
        bill_y = badge(bill_y + 1)
        # Columns advance independently; resume below the longer one
        return max(from_y, bill_y) + 10

    def _table_header(self, writer: _PageWriter, y: float, currency: CurrencyInfo) -> float:
        x = self.geometry.left
        writer.rect(x, y, self.geometry.content_width, 8, fill=LIGHT_FILL)
        text_y = y + 5.5
        writer.text(x + COL_DESCRIPTION, text_y, "Description", size=9, font=FONT_BOLD)
        writer.text(x + COL_QTY, text_y, "Qty", size=9, font=FONT_BOLD, align="center")
        writer.text(x + COL_RATE, text_y, "Rate", size=9, font=FONT_BOLD, align="center")
        writer.text(x + COL_TAX, text_y, f"{currency.tax_label}%", size=9, font=FONT_BOLD, align="center")
        writer.text(x + COL_AMOUNT, text_y, "Amount", size=9, font=FONT_BOLD, align="right")
        return y + TABLE_HEADER_HEIGHT

    @staticmethod
    def item_lines(item: Any) -> List[str]:
        name = _value(item, "item_name", "")
        description = _value(item, "description", "")
        text = f"{name} - {description}" if description else name
        return wrap_text(text, DESCRIPTION_WIDTH, FONT, 8)

    @classmethod
    def row_height(cls, item: Any) -> float:
        """Height from the wrapped line count, plus one line for a classification code"""
        lines = len(cls.item_lines(item))
        extra = 2 * ROW_LINE_HEIGHT if _value(item, "hsn_code") else ROW_LINE_HEIGHT
        return max(lines * ROW_LINE_HEIGHT + extra, ROW_MIN_HEIGHT)

    def _table(self, writer: _PageWriter, items: Sequence[Any], currency: CurrencyInfo,
               code_label: str, y: float) -> float:
        g = self.geometry
        x = g.left
        if items:
            # Header and first row start on the same page
            needed = TABLE_HEADER_HEIGHT + ROW_TOP_PADDING + self.row_height(items[0])
            if y + needed > writer.break_y:
                writer.new_page()
                y = writer.continuation_y
        y = self._table_header(writer, y, currency)
        rows_on_page = 0

        for item in items:
            lines = self.item_lines(item)
            height = self.row_height(item)
            if y + ROW_TOP_PADDING + height > writer.break_y and rows_on_page:
                writer.new_page()
                y = self._table_header(writer, writer.continuation_y, currency)
                rows_on_page = 0
            elif rows_on_page:
                writer.line(x, y, g.right, y)

            y += ROW_TOP_PADDING
            text_y = y + ROW_LINE_HEIGHT
            for index, line in enumerate(lines):
                writer.text(x + COL_DESCRIPTION, text_y + index * ROW_LINE_HEIGHT, line, size=8)

            code = _value(item, "hsn_code")
            if code:
                writer.text(x + COL_DESCRIPTION, text_y + len(lines) * ROW_LINE_HEIGHT + 1,
                            f"{code_label}: {code}", size=6, color=GRAY)

            amount = line_subtotal(item) + line_tax(item)
            unit = _value(item, "unit", "")
            quantity = format_quantity(_value(item, "quantity", 0))
            writer.text(x + COL_QTY, text_y, f"{quantity} {unit}".strip(), size=8, align="center")
            writer.text(x + COL_RATE, text_y, format_money(_value(item, "unit_price", 0), "", currency.code),
                        size=8, align="center")
            writer.text(x + COL_TAX, text_y, format_rate(_value(item, "tax_rate", 0)), size=8, align="center")
            writer.text(x + COL_AMOUNT, text_y, format_money(amount, "", currency.code),
                        size=8, font=FONT_BOLD, align="right")

            y += height
            rows_on_page += 1

        writer.line(x, y, g.right, y, color=BORDER, width=0.4)
        return y + 8

    def _totals(self, writer: _PageWriter, items: Sequence[Any], currency: CurrencyInfo, y: float) -> Tuple[float, float]:
        g = self.geometry
        totals = compute_totals(items)
        words = amount_in_words(totals.total, currency.name)
        word_lines = wrap_text(words, TOTALS_WIDTH, FONT, 7)

        needed = TOTALS_HEIGHT + 10 + len(word_lines) * ROW_LINE_HEIGHT
        y = self._ensure_space(writer, y, needed)

        x = g.left + g.content_width - TOTALS_WIDTH
        value_x = x + TOTALS_WIDTH - 2
        origin = y

        def money(value):
            return format_money(value, currency.pdf_symbol, currency.code)

        writer.rect(x, origin - 3, TOTALS_WIDTH, TOTALS_HEIGHT, fill=LIGHT_FILL)
        writer.text(x + 2, origin + 2, "Subtotal:", size=9)
        writer.text(value_x, origin + 2, money(totals.subtotal), size=9, align="right")
        writer.text(x + 2, origin + 8, f"{currency.tax_label} Amount:", size=9)
        writer.text(value_x, origin + 8, money(totals.tax_amount), size=9, align="right")
        writer.line(x + 2, origin + 12, value_x, origin + 12, color=BLACK, width=0.3)
        writer.text(x + 2, origin + 18, "Total:", size=11, font=FONT_BOLD)
        writer.text(value_x, origin + 18, money(totals.total), size=11, font=FONT_BOLD, align="right")

        y = origin + TOTALS_HEIGHT + 1
        writer.text(x, y, "Amount in Words:", size=8, font=FONT_BOLD)
        y += 4
        for line in word_lines:
            writer.text(x, y, line, size=7, color=GRAY)
            y += ROW_LINE_HEIGHT
        return y + 5, origin

    def _banking(self, writer: _PageWriter, company: Any, y: float) -> float:
        """Bank box with one row per available detail"""
        x = self.geometry.left

        def row(label: str, value: Any) -> Block:
            def render(row_y: float) -> float:
                writer.text(x + 2, row_y, label, size=8, font=FONT_BOLD)
                writer.text(x + 17, row_y, str(value), size=8)
                return row_y + 4
            return bool(value), render

        writer.text(x, y, "Banking Details", size=9, font=FONT_BOLD)
        writer.rect(x, y + 2, BANK_BOX_WIDTH, BANK_BOX_HEIGHT, stroke=BORDER)
        fold_blocks([
            row("Bank:", _value(company, "bank_name")),
            row("A/C:", _value(company, "account_number")),
            row("IFSC:", _value(company, "ifsc_code")),
            row("Branch:", _value(company, "branch_name")),
        ], y + 7)
        return y + 2 + BANK_BOX_HEIGHT + 6

    def _paragraph(self, writer: _PageWriter, heading: str, text: str, y: float) -> float:
        g = self.geometry
        lines = wrap_text(text, g.content_width, FONT, 8)
        y = self._ensure_space(writer, y, 5 + min(len(lines), 3) * PARTY_LINE_HEIGHT)
        writer.text(g.left, y, heading, size=9, font=FONT_BOLD)
        y += 5
        for line in lines:
            if y > writer.body_limit:
                writer.new_page()
                y = writer.continuation_y
            writer.text(g.left, y, line, size=8, color=GRAY)
            y += PARTY_LINE_HEIGHT
        return y + 4

    def _banking_notes_terms(self, writer: _PageWriter, invoice: Any, company: Any,
                             y: float, totals_origin: float) -> float:
        has_bank = bool(_value(company, "bank_name") or _value(company, "account_number"))
        notes = _value(invoice, "notes", "")
        terms = _value(invoice, "terms_conditions", "")
        has_notes = bool(notes and notes.strip())
        has_terms = bool(terms and terms.strip())

        if has_bank and not has_notes:
            # Beside the totals box, same vertical origin
            bank_end = self._banking(writer, company, totals_origin)
            y = max(y, bank_end)
        elif has_bank:
            y = self._ensure_space(writer, y, BANK_BOX_HEIGHT + 10)
            y = self._banking(writer, company, y)

        return fold_blocks([
            (has_notes, lambda y: self._paragraph(writer, "Notes:", notes, y)),
            (has_terms, lambda y: self._paragraph(writer, "Terms & Conditions:", terms, y)),
        ], y)

    def _footer(self, writer: _PageWriter, y: float):
        """Footer is anchored to the content end regardless of where the body ended"""
        g = self.geometry
        footer_y = writer.content_end - FOOTER_OFFSET
        if y > footer_y - 2:
            writer.new_page()
        writer.line(g.left, footer_y, g.right, footer_y, color=BORDER, width=0.3)
        writer.text(g.center, footer_y + 5, "Thank you for your business!", size=10, font=FONT_BOLD,
                    color=PRIMARY, align="center")
        writer.text(g.center, footer_y + 9,
                    "This is a computer-generated invoice and does not require a signature.",
                    size=7, color=GRAY, align="center")

    def _page_numbers(self, writer: _PageWriter):
        total = len(writer.pages)
        if total < 2:
            return
        for page in writer.pages:
            page.ops.append(TextOp(self.geometry.right, writer.content_end + 10,
                                   f"Page {page.number} of {total}", size=7, color=GRAY, align="right"))
