"""
PDF backend for laid-out invoice documents (reportlab canvas).

Layout coordinates are millimetres from the top-left corner; reportlab
works in points from the bottom-left, so every y is flipped here.
"""

import io
import logging
from typing import Optional

from reportlab.lib.colors import Color
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from app.modules.documents.layout import Branding, InvoiceDocument

logger = logging.getLogger(__name__)

WATERMARK_COLOR = Color(0.86, 0.15, 0.15, alpha=0.12)


def _rgb(color) -> Color:
    r, g, b = color
    return Color(r / 255, g / 255, b / 255)


class PdfRenderer:
    def __init__(self, branding: Optional[Branding] = None):
        self.branding = branding or Branding()

    def render(self, document: InvoiceDocument) -> bytes:
        buffer = io.BytesIO()
        page_height = document.page_height * mm
        pdf = canvas.Canvas(buffer, pagesize=(document.page_width * mm, page_height))
        pdf.setTitle(document.filename.rsplit(".", 1)[0])

        def flip(y: float) -> float:
            return page_height - y * mm

        for page in document.pages:
            for op in page.ops:
                if op.kind == "text":
                    pdf.setFont(op.font, op.size)
                    pdf.setFillColor(_rgb(op.color))
                    if op.align == "right":
                        pdf.drawRightString(op.x * mm, flip(op.y), op.text)
                    elif op.align == "center":
                        pdf.drawCentredString(op.x * mm, flip(op.y), op.text)
                    else:
                        pdf.drawString(op.x * mm, flip(op.y), op.text)
                elif op.kind == "line":
                    pdf.setStrokeColor(_rgb(op.color))
                    pdf.setLineWidth(op.width * mm)
                    pdf.line(op.x1 * mm, flip(op.y1), op.x2 * mm, flip(op.y2))
                elif op.kind == "rect":
                    self._rect(pdf, op, flip)
                elif op.kind == "image":
                    self._image(pdf, op, flip)

            if document.watermark:
                self._watermark(pdf, document)
            pdf.showPage()

        pdf.save()
        return buffer.getvalue()

    @staticmethod
    def _rect(pdf, op, flip):
        if op.fill is not None:
            pdf.setFillColor(_rgb(op.fill))
        if op.stroke is not None:
            pdf.setStrokeColor(_rgb(op.stroke))
        x, y = op.x * mm, flip(op.y + op.height)
        width, height = op.width * mm, op.height * mm
        fill, stroke = int(op.fill is not None), int(op.stroke is not None)
        if op.radius:
            pdf.roundRect(x, y, width, height, op.radius * mm, stroke=stroke, fill=fill)
        else:
            pdf.rect(x, y, width, height, stroke=stroke, fill=fill)

    def _image(self, pdf, op, flip):
        image = getattr(self.branding, op.slot, None)
        if image is None:
            return
        pdf.drawImage(
            ImageReader(io.BytesIO(image.data)),
            op.x * mm, flip(op.y + op.height),
            width=op.width * mm, height=op.height * mm,
            preserveAspectRatio=True, mask="auto",
        )

    @staticmethod
    def _watermark(pdf, document: InvoiceDocument):
        """Diagonal low-opacity overlay across the page"""
        pdf.saveState()
        pdf.setFillColor(WATERMARK_COLOR)
        pdf.setFont("Helvetica-Bold", 90)
        pdf.translate(document.page_width * mm / 2, document.page_height * mm / 2)
        pdf.rotate(45)
        pdf.drawCentredString(0, 0, document.watermark)
        pdf.restoreState()


def render_pdf(document: InvoiceDocument, branding: Optional[Branding] = None) -> bytes:
    pdf_bytes = PdfRenderer(branding).render(document)
    logger.info(f"Rendered {document.filename}: {len(document.pages)} page(s), {len(pdf_bytes)} bytes")
    return pdf_bytes
