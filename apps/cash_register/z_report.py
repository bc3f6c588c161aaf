"""
Z-report PDF for a closed cash register shift.

The report is built from the data returned by
``services.build_z_report`` so the JSON and PDF versions always agree.
"""

import io

from django.utils import timezone

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from reportlab.platypus.flowables import HRFlowable

from apps.core.formatting_utils import format_currency, format_datetime, format_number

PAYMENT_METHOD_LABELS = {
    "CASH": "Efectivo",
    "CARD": "Tarjeta",
    "TRANSFER": "Transferencia",
    "CHECK": "Cheque",
    "CREDIT": "Crédito",
    "MULTI": "Múltiple",
}


def _table_style(font_size=9):
    return TableStyle(
        [
            ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, 0), font_size + 1),
            ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
            ("FONTSIZE", (0, 1), (-1, -1), font_size),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
            ("BACKGROUND", (0, 1), (-1, -1), colors.beige),
            ("GRID", (0, 0), (-1, -1), 1, colors.black),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]
    )


class ZReportGenerator:
    """
    Z-report generator: shift summary, payment breakdown, top products and
    the detail of every sale of the shift.
    """

    MARGIN = 20 * mm

    def __init__(self, report: dict):
        self.report = report
        self.styles = getSampleStyleSheet()
        self._create_custom_styles()

    def _create_custom_styles(self):
        self.title_style = ParagraphStyle(
            "ZReportTitle",
            parent=self.styles["Heading1"],
            fontSize=16,
            spaceAfter=6,
            alignment=1,
            fontName="Helvetica-Bold",
        )
        self.section_style = ParagraphStyle(
            "ZReportSection",
            parent=self.styles["Heading2"],
            fontSize=12,
            spaceBefore=10,
            spaceAfter=6,
            fontName="Helvetica-Bold",
        )
        self.body_style = ParagraphStyle(
            "ZReportBody",
            parent=self.styles["Normal"],
            fontSize=10,
            spaceAfter=4,
        )

    def generate_pdf(self) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=self.MARGIN,
            leftMargin=self.MARGIN,
            topMargin=self.MARGIN,
            bottomMargin=self.MARGIN,
            title="Reporte Z",
        )

        story = []
        story.extend(self._build_header())
        story.extend(self._build_summary())
        story.extend(self._build_payment_summary())
        story.extend(self._build_top_products())
        story.extend(self._build_sales_detail())

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()
        return pdf_bytes

    def _build_header(self):
        organization = self.report["organization"]
        register = self.report["cash_register"]

        elements = [Paragraph(organization["name"] or "", self.title_style)]
        if organization.get("rut"):
            elements.append(
                Paragraph(f"<para align='center'>RUT: {organization['rut']}</para>", self.body_style)
            )
        elements.append(Paragraph("REPORTE Z - CIERRE DE CAJA", self.title_style))
        elements.append(HRFlowable(width="100%", thickness=1, color=colors.black))
        elements.append(Spacer(1, 8))

        info = [
            f"Apertura: {format_datetime(register['opened_at'])}",
            f"Cierre: {format_datetime(register['closed_at'])}",
            f"Abierta por: {register['opened_by']}",
        ]
        if register.get("closed_by"):
            info.append(f"Cerrada por: {register['closed_by']}")
        info.append(f"Emitido: {format_datetime(timezone.now())}")
        elements.extend(Paragraph(line, self.body_style) for line in info)
        return elements

    def _build_summary(self):
        register = self.report["cash_register"]
        data = [
            ["Concepto", "Monto"],
            ["Efectivo inicial", format_currency(register["opening_cash"])],
            ["Efectivo esperado", format_currency(register["expected_cash"])],
            ["Efectivo contado", format_currency(register["closing_cash"] or 0)],
            ["Diferencia", format_currency(register["difference"] or 0)],
            ["Total ventas", format_currency(register["total_sales"])],
            ["Cantidad de ventas", str(register["sales_count"])],
        ]
        table = Table(data, colWidths=[90 * mm, 60 * mm])
        table.setStyle(_table_style())
        return [Paragraph("Resumen", self.section_style), table]

    def _build_payment_summary(self):
        data = [["Medio de pago", "Ventas", "Total"]]
        for method, summary in self.report["payment_summary"].items():
            data.append(
                [
                    PAYMENT_METHOD_LABELS.get(method, method),
                    str(summary["count"]),
                    format_currency(summary["total"]),
                ]
            )
        if len(data) == 1:
            data.append(["-", "0", format_currency(0)])

        table = Table(data, colWidths=[70 * mm, 30 * mm, 50 * mm])
        table.setStyle(_table_style())
        return [Paragraph("Ventas por medio de pago", self.section_style), table]

    def _build_top_products(self):
        top_products = self.report["top_products"]
        if not top_products:
            return []

        data = [["Producto", "SKU", "Cantidad", "Ingresos"]]
        for product in top_products:
            data.append(
                [
                    product["product_name"][:40],
                    product["sku"],
                    format_number(product["quantity"], decimal_places=0),
                    format_currency(product["revenue"]),
                ]
            )
        table = Table(data, colWidths=[70 * mm, 35 * mm, 20 * mm, 35 * mm])
        table.setStyle(_table_style())
        return [Paragraph("Productos más vendidos", self.section_style), table]

    def _build_sales_detail(self):
        sales = self.report["sales"]
        if not sales:
            return [
                Paragraph("Detalle de ventas", self.section_style),
                Paragraph("Sin ventas en el turno", self.body_style),
            ]

        data = [["N°", "Hora", "Cliente", "Medio", "Total"]]
        for sale in sales:
            data.append(
                [
                    str(sale["document_number"]),
                    format_datetime(sale["issued_at"], "%H:%M"),
                    sale["customer_name"][:30],
                    PAYMENT_METHOD_LABELS.get(sale["payment_method"], sale["payment_method"]),
                    format_currency(sale["total"]),
                ]
            )
        table = Table(data, colWidths=[20 * mm, 20 * mm, 60 * mm, 30 * mm, 30 * mm], repeatRows=1)
        table.setStyle(_table_style(font_size=8))
        return [Paragraph("Detalle de ventas", self.section_style), table]
