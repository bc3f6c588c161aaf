"""
Printable quote (cotización) for customers.
"""

import io
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from reportlab.platypus.flowables import HRFlowable

from apps.core.formatting_utils import format_currency, format_date, format_number
from apps.core.validators import format_rut


def _format_quantity(quantity):
    places = 0 if quantity == quantity.to_integral_value() else 2
    return format_number(quantity, decimal_places=places)


class QuotePDFGenerator:
    """
    Quote PDF: issuer header, customer block, item table, totals and notes.
    """

    MARGIN = 20 * mm

    def __init__(self, quote):
        self.quote = quote
        self.tenant = quote.tenant
        self.styles = getSampleStyleSheet()
        self._create_custom_styles()

    def _create_custom_styles(self):
        self.title_style = ParagraphStyle(
            "QuoteTitle",
            parent=self.styles["Heading1"],
            fontSize=16,
            spaceAfter=6,
            fontName="Helvetica-Bold",
        )
        self.section_style = ParagraphStyle(
            "QuoteSection",
            parent=self.styles["Heading2"],
            fontSize=12,
            spaceBefore=10,
            spaceAfter=6,
            fontName="Helvetica-Bold",
        )
        self.body_style = ParagraphStyle(
            "QuoteBody",
            parent=self.styles["Normal"],
            fontSize=10,
            spaceAfter=3,
        )

    @property
    def code(self):
        return f"{self.quote.doc_prefix or 'COT'}-{self.quote.doc_number}"

    def generate_pdf(self) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=self.MARGIN,
            leftMargin=self.MARGIN,
            topMargin=self.MARGIN,
            bottomMargin=self.MARGIN,
            title=f"Cotización {self.code}",
        )

        story = []
        story.extend(self._build_header())
        story.extend(self._build_customer())
        story.extend(self._build_items())
        story.extend(self._build_totals())
        story.extend(self._build_notes())

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()
        return pdf_bytes

    def _build_header(self):
        elements = [Paragraph(self.tenant.company_name or "", self.title_style)]
        if self.tenant.rut:
            elements.append(Paragraph(f"RUT: {format_rut(self.tenant.rut)}", self.body_style))
        elements.append(Spacer(1, 4))
        elements.append(Paragraph(f"COTIZACIÓN {self.code}", self.title_style))
        elements.append(
            Paragraph(f"Fecha de emisión: {format_date(self.quote.issued_at)}", self.body_style)
        )
        if self.quote.due_at:
            elements.append(
                Paragraph(f"Válida hasta: {format_date(self.quote.due_at)}", self.body_style)
            )
        elements.append(HRFlowable(width="100%", thickness=1, color=colors.black))
        elements.append(Spacer(1, 6))
        return elements

    def _build_customer(self):
        customer = self.quote.customer
        if customer is None:
            return []

        lines = [f"<b>{escape(customer.name)}</b>"]
        if customer.company:
            lines.append(escape(customer.company))
        if customer.rut:
            lines.append(f"RUT: {format_rut(customer.rut)}")
        if customer.email:
            lines.append(customer.email)
        if customer.phone:
            lines.append(customer.phone)

        elements = [Paragraph("Cliente", self.section_style)]
        elements.extend(Paragraph(line, self.body_style) for line in lines)
        return elements

    def _build_items(self):
        data = [["Descripción", "Cant.", "Unidad", "Precio unit.", "Desc.", "Total"]]
        for item in self.quote.items.order_by("created_at"):
            data.append(
                [
                    item.name[:45],
                    _format_quantity(item.quantity),
                    item.unit,
                    format_currency(item.unit_price),
                    format_currency(item.discount),
                    format_currency(item.total),
                ]
            )

        table = Table(
            data,
            colWidths=[62 * mm, 15 * mm, 18 * mm, 25 * mm, 20 * mm, 30 * mm],
            repeatRows=1,
        )
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 9),
                    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                    ("BACKGROUND", (0, 1), (-1, -1), colors.beige),
                    ("GRID", (0, 0), (-1, -1), 1, colors.black),
                    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ]
            )
        )
        return [Paragraph("Detalle", self.section_style), table]

    def _build_totals(self):
        data = [
            ["Neto", format_currency(self.quote.subtotal)],
            ["IVA", format_currency(self.quote.tax_amount)],
        ]
        if self.quote.discount:
            data.append(["Descuento", f"-{format_currency(self.quote.discount)}"])
        data.append(["TOTAL", format_currency(self.quote.total)])

        table = Table(data, colWidths=[40 * mm, 35 * mm], hAlign="RIGHT")
        table.setStyle(
            TableStyle(
                [
                    ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                    ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                    ("LINEABOVE", (0, -1), (-1, -1), 1, colors.black),
                ]
            )
        )
        return [Spacer(1, 8), table]

    def _build_notes(self):
        if not self.quote.notes:
            return []
        return [
            Paragraph("Observaciones", self.section_style),
            Paragraph(escape(self.quote.notes).replace("\n", "<br/>"), self.body_style),
        ]
