"""
Printable product labels with Code128 barcodes.

Labels are laid out on A4 sheets (3 columns x 8 rows). Each label shows the
product name, its SKU, an optional price and a Code128 barcode of the
product barcode (or the SKU when the product has none).
"""

import io
import logging

from reportlab.graphics.barcode import code128
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from apps.core.formatting_utils import format_currency

logger = logging.getLogger(__name__)

COLUMNS = 3
ROWS = 8
LABEL_WIDTH = 70 * mm
LABEL_HEIGHT = 37 * mm
PAGE_MARGIN_TOP = (A4[1] - ROWS * LABEL_HEIGHT) / 2


class LabelSheetGenerator:
    """
    Render a list of (product, copies) pairs into a PDF label sheet.
    """

    def __init__(self, entries, show_price: bool = True):
        self.entries = entries
        self.show_price = show_price

    def _label_positions(self):
        per_page = COLUMNS * ROWS
        index = 0
        for product, copies in self.entries:
            for _ in range(copies):
                slot = index % per_page
                column, row = slot % COLUMNS, slot // COLUMNS
                x = column * LABEL_WIDTH
                y = A4[1] - PAGE_MARGIN_TOP - (row + 1) * LABEL_HEIGHT
                yield product, x, y, slot == 0 and index > 0
                index += 1

    def _draw_barcode(self, pdf, value: str, x: float, y: float):
        max_width = LABEL_WIDTH - 8 * mm
        bar_width = 0.3 * mm
        barcode = code128.Code128(value, barHeight=12 * mm, barWidth=bar_width, humanReadable=True)
        if barcode.width > max_width:
            # Narrow the bars so long codes fit the label
            bar_width = bar_width * max_width / barcode.width
            barcode = code128.Code128(
                value, barHeight=12 * mm, barWidth=bar_width, humanReadable=True
            )
        barcode.drawOn(pdf, x + (LABEL_WIDTH - barcode.width) / 2, y + 3 * mm)

    def _draw_label(self, pdf, product, x: float, y: float):
        pdf.setFont("Helvetica-Bold", 9)
        pdf.drawString(x + 4 * mm, y + LABEL_HEIGHT - 7 * mm, product.name[:38])
        pdf.setFont("Helvetica", 7)
        pdf.drawString(x + 4 * mm, y + LABEL_HEIGHT - 11 * mm, f"SKU: {product.sku}")
        if self.show_price:
            pdf.setFont("Helvetica-Bold", 11)
            pdf.drawRightString(
                x + LABEL_WIDTH - 4 * mm, y + LABEL_HEIGHT - 11 * mm, format_currency(product.price)
            )
        self._draw_barcode(pdf, product.barcode or product.sku, x, y + 2 * mm)

    def generate_pdf(self) -> bytes:
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle("Etiquetas de productos")

        count = 0
        for product, x, y, new_page in self._label_positions():
            if new_page:
                pdf.showPage()
            self._draw_label(pdf, product, x, y)
            count += 1

        pdf.save()
        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.debug(f"Generated label sheet with {count} labels")
        return pdf_bytes
