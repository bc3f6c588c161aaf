"""
Cash-basis accounting reports for small businesses.

Reports are computed on demand from sales, collections, expenses, project
costs and treasury movements. Nothing is posted to a ledger.

- Monthly summary: sales, gross profit, cash inflows and outflows and
  the operating result
- Balance snapshot: receivables, inventory at cost and open payables
- Series: the monthly summary for the last N months
- CSV export of the three, for the accountant
"""

import calendar
import csv
import io
import logging
import re
from dataclasses import dataclass
from datetime import datetime, time
from decimal import Decimal
from typing import Dict, List, Optional

from django.db.models import Count, DecimalField, ExpressionWrapper, F, Q, Sum
from django.utils import timezone

from apps.core.exceptions import DomainError
from apps.core.formatting_utils import round_amount, to_decimal
from apps.core.models import Tenant
from apps.credits.models import CreditPayment
from apps.inventory.models import Product
from apps.procurement.models import AccountPayable
from apps.sales.models import Customer, Document, DocumentItem
from apps.services.models import Project, ProjectExpense, ProjectPayment, ProjectResource
from apps.treasury.models import OperationalExpense, TreasuryMovement

logger = logging.getLogger(__name__)

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

MONTH_NAMES = [
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
]

SERIES_DEFAULT_MONTHS = 6
SERIES_MIN_MONTHS = 3
SERIES_MAX_MONTHS = 24

TREASURY_CATEGORIES = [key for key, _ in TreasuryMovement.CATEGORY_CHOICES]
TREASURY_SOURCES = [key for key, _ in TreasuryMovement.SOURCE_CHOICES]

CREDIT_SALES_WARNING = (
    "Las ventas a crédito se reconocen en flujo solo al cobrarse (no al emitirse)."
)
PROJECT_COLLECTIONS_WARNING = (
    "Los ingresos de proyecto se reconocen solo por cobros efectivamente registrados."
)
PROJECT_OUTFLOWS_WARNING = "Existen egresos de proyectos sin cobros de proyecto en el período."
TREASURY_WARNING = (
    "Los movimientos de tesorería impactan flujo de caja, pero no el resultado operativo."
)
BALANCE_WARNINGS = [
    "La caja en el balance se representa como el flujo neto del período.",
    "Las cuentas por cobrar incluyen la deuda de clientes y el saldo pendiente de cobro de proyectos.",
]


@dataclass
class MonthRange:
    start: datetime
    end: datetime
    key: str
    label: str


def _pesos(value) -> int:
    """Whole pesos, half up."""
    return int(round_amount(value))


def _margin(result, net_sales) -> float:
    if net_sales <= 0:
        return 0.0
    return float(round_amount(Decimal(result) / Decimal(net_sales) * 100, 1))


def parse_month(month: Optional[str]):
    """
    Parse ``YYYY-MM`` into ``(year, month)``. None means the current month
    in the local time zone.
    """
    if not month:
        now = timezone.localtime()
        return now.year, now.month
    if not MONTH_PATTERN.match(month):
        raise DomainError("El parámetro month debe tener formato YYYY-MM")
    year, month_number = month.split("-")
    return int(year), int(month_number)


def parse_series_months(value) -> int:
    if value in (None, ""):
        return SERIES_DEFAULT_MONTHS
    try:
        months = int(value)
    except (TypeError, ValueError):
        raise DomainError("El parámetro months debe ser un número entero")
    if not SERIES_MIN_MONTHS <= months <= SERIES_MAX_MONTHS:
        raise DomainError(
            f"El parámetro months debe estar entre {SERIES_MIN_MONTHS} y {SERIES_MAX_MONTHS}"
        )
    return months


def parse_treasury_filters(params) -> Dict[str, str]:
    """Validate the optional ``treasury_category`` and ``treasury_source`` filters."""
    filters = {}
    category = params.get("treasury_category")
    if category:
        if category not in TREASURY_CATEGORIES:
            raise DomainError("Categoría de tesorería inválida")
        filters["category"] = category
    source = params.get("treasury_source")
    if source:
        if source not in TREASURY_SOURCES:
            raise DomainError("Origen de tesorería inválido")
        filters["source"] = source
    return filters


def month_range(year: int, month: int) -> MonthRange:
    tz = timezone.get_current_timezone()
    last_day = calendar.monthrange(year, month)[1]
    return MonthRange(
        start=timezone.make_aware(datetime(year, month, 1), tz),
        end=timezone.make_aware(datetime.combine(datetime(year, month, last_day), time.max), tz),
        key=f"{year:04d}-{month:02d}",
        label=f"{MONTH_NAMES[month - 1]} de {year}",
    )


def shift_month(year: int, month: int, delta: int):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _sum(queryset, field):
    return queryset.aggregate(value_sum=Sum(field))["value_sum"] or Decimal("0")


class AccountingService:
    """
    Cash-basis accounting reports of a tenant.
    """

    @staticmethod
    def monthly_summary(
        tenant: Tenant, month: Optional[str] = None, treasury_filters: Optional[Dict] = None
    ) -> Dict:
        """
        Monthly summary.

        Credit sales count as cash only when collected, so cash inflows use
        the immediate (non CREDIT) sales plus credit and project collections.
        All amounts are rounded to whole pesos.
        """
        period = month_range(*parse_month(month))
        sales = Document.objects.filter(
            tenant=tenant,
            doc_type=Document.SALE,
            status=Document.PAID,
            issued_at__gte=period.start,
            issued_at__lte=period.end,
        )
        sales_totals = sales.aggregate(
            sales_count=Count("id"),
            total_sum=Sum("total"),
            net_sum=Sum("subtotal"),
            tax_sum=Sum("tax_amount"),
            discount_sum=Sum("discount"),
            commission_sum=Sum("card_commission_amount"),
            credit_sum=Sum("total", filter=Q(payment_method=Document.CREDIT)),
        )
        cost_of_sales = DocumentItem.objects.filter(document__in=sales).aggregate(
            cost_sum=Sum(
                ExpressionWrapper(
                    F("quantity") * F("product__cost"),
                    output_field=DecimalField(max_digits=20, decimal_places=5),
                )
            )
        )["cost_sum"]

        collections = CreditPayment.objects.filter(
            tenant=tenant, paid_at__gte=period.start, paid_at__lte=period.end
        )
        project_collections = ProjectPayment.objects.filter(
            tenant=tenant, paid_at__gte=period.start, paid_at__lte=period.end
        )
        treasury = TreasuryMovement.objects.filter(
            tenant=tenant,
            occurred_at__gte=period.start,
            occurred_at__lte=period.end,
            **(treasury_filters or {}),
        )
        operational_expenses = OperationalExpense.objects.filter(
            tenant=tenant, expense_date__gte=period.start, expense_date__lte=period.end
        )
        project_expenses = ProjectExpense.objects.filter(
            tenant=tenant, expense_date__gte=period.start, expense_date__lte=period.end
        )
        project_resources = ProjectResource.objects.filter(
            tenant=tenant, created_at__gte=period.start, created_at__lte=period.end
        )

        sales_total = _pesos(to_decimal(sales_totals["total_sum"]))
        sales_net = _pesos(to_decimal(sales_totals["net_sum"]))
        credit_sales_total = _pesos(to_decimal(sales_totals["credit_sum"]))
        immediate_cash_sales_total = sales_total - credit_sales_total
        card_commissions_total = _pesos(to_decimal(sales_totals["commission_sum"]))
        cost_of_sales_total = _pesos(to_decimal(cost_of_sales))
        gross_profit = sales_net - cost_of_sales_total - card_commissions_total

        collections_total = _pesos(_sum(collections, "amount"))
        project_collections_total = _pesos(_sum(project_collections, "amount"))
        treasury_inflows_total = _pesos(_sum(treasury.filter(type=TreasuryMovement.INFLOW), "amount"))
        treasury_outflows_total = _pesos(
            _sum(treasury.filter(type=TreasuryMovement.OUTFLOW), "amount")
        )
        treasury_movements_count = treasury.count()
        operational_expenses_total = _pesos(_sum(operational_expenses, "amount"))
        project_expenses_total = _pesos(_sum(project_expenses, "amount"))
        project_resources_total = _pesos(_sum(project_resources, "total_cost"))
        project_outflows_total = project_expenses_total + project_resources_total

        cash_inflows_total = (
            immediate_cash_sales_total
            + collections_total
            + project_collections_total
            + treasury_inflows_total
        )
        cash_outflows_total = (
            operational_expenses_total + project_outflows_total + treasury_outflows_total
        )
        operating_result = (
            gross_profit
            + project_collections_total
            - operational_expenses_total
            - project_outflows_total
        )

        warnings = []
        if credit_sales_total > 0:
            warnings.append(CREDIT_SALES_WARNING)
        if project_collections_total > 0:
            warnings.append(PROJECT_COLLECTIONS_WARNING)
        if project_outflows_total > 0 and project_collections_total == 0:
            warnings.append(PROJECT_OUTFLOWS_WARNING)
        if treasury_movements_count > 0:
            warnings.append(TREASURY_WARNING)

        return {
            "month": period.key,
            "month_label": period.label,
            "sales_count": sales_totals["sales_count"],
            "sales_total": sales_total,
            "sales_net": sales_net,
            "sales_tax": _pesos(to_decimal(sales_totals["tax_sum"])),
            "sales_discount": _pesos(to_decimal(sales_totals["discount_sum"])),
            "credit_sales_total": credit_sales_total,
            "immediate_cash_sales_total": immediate_cash_sales_total,
            "card_commissions_total": card_commissions_total,
            "cost_of_sales_total": cost_of_sales_total,
            "gross_profit": gross_profit,
            "collections_count": collections.count(),
            "collections_total": collections_total,
            "project_collections_count": project_collections.count(),
            "project_collections_total": project_collections_total,
            "treasury_inflows_total": treasury_inflows_total,
            "treasury_outflows_total": treasury_outflows_total,
            "treasury_movements_count": treasury_movements_count,
            "operational_expenses_count": operational_expenses.count(),
            "operational_expenses_total": operational_expenses_total,
            "project_expenses_count": project_expenses.count(),
            "project_expenses_total": project_expenses_total,
            "project_resources_count": project_resources.count(),
            "project_resources_total": project_resources_total,
            "project_outflows_total": project_outflows_total,
            "cash_inflows_total": cash_inflows_total,
            "cash_outflows_total": cash_outflows_total,
            "net_cash_flow": cash_inflows_total - cash_outflows_total,
            "operating_result": operating_result,
            "gross_margin_percent": _margin(gross_profit, sales_net),
            "operating_margin_percent": _margin(operating_result, sales_net),
            "warnings": warnings,
        }

    @staticmethod
    def project_receivables(tenant: Tenant):
        """
        Pending collections of non-cancelled projects.

        Returns:
            tuple (pending_total, projects_with_pending_collection)
        """
        projects = (
            Project.objects.filter(tenant=tenant)
            .exclude(status=Project.CANCELLED)
            .select_related("quote")
            .annotate(collected=Sum("payments__amount"))
        )
        pending_total = Decimal("0")
        pending_count = 0
        for project in projects:
            contracted = project.get_contracted_amount()
            if not contracted or contracted <= 0:
                continue
            pending = max(contracted - (project.collected or Decimal("0")), Decimal("0"))
            if pending > 0:
                pending_total += pending
                pending_count += 1
        return pending_total, pending_count

    @staticmethod
    def balance_snapshot(
        tenant: Tenant, month: Optional[str] = None, treasury_filters: Optional[Dict] = None
    ) -> Dict:
        """
        Simplified balance: assets are the month's net cash flow plus
        receivables and inventory at cost; liabilities are open payables.
        """
        monthly = AccountingService.monthly_summary(tenant, month, treasury_filters)

        debtors = Customer.objects.filter(tenant=tenant, current_debt__gt=0)
        customer_receivables = _pesos(_sum(debtors, "current_debt"))

        project_pending, projects_pending_count = AccountingService.project_receivables(tenant)
        project_receivables = _pesos(project_pending)
        receivables = customer_receivables + project_receivables

        valued_products = Product.objects.filter(
            tenant=tenant,
            product_type=Product.PRODUCT,
            is_active=True,
            track_inventory=True,
            cost__isnull=False,
        )
        inventory_at_cost = _pesos(
            sum(
                (product.current_stock * product.cost for product in valued_products),
                Decimal("0"),
            )
        )

        open_payables = AccountPayable.objects.filter(
            tenant=tenant, balance__gt=0, status__in=AccountPayable.OPEN_STATUSES
        )
        accounts_payable = _pesos(_sum(open_payables, "balance"))

        assets_total = monthly["net_cash_flow"] + receivables + inventory_at_cost
        return {
            "month": monthly["month"],
            "month_label": monthly["month_label"],
            "assets": {
                "cash_flow_month": monthly["net_cash_flow"],
                "customer_accounts_receivable": customer_receivables,
                "project_accounts_receivable": project_receivables,
                "accounts_receivable": receivables,
                "inventory_at_cost": inventory_at_cost,
                "total": assets_total,
            },
            "liabilities": {
                "accounts_payable": accounts_payable,
                "total": accounts_payable,
            },
            "equity": {"net_position": assets_total - accounts_payable},
            "context": {
                "customers_with_debt": debtors.count(),
                "projects_with_pending_collection": projects_pending_count,
                "payables_pending_count": open_payables.count(),
                "products_valued_count": valued_products.count(),
            },
            "warnings": list(BALANCE_WARNINGS),
        }

    @staticmethod
    def series(
        tenant: Tenant, months: int = SERIES_DEFAULT_MONTHS, treasury_filters: Optional[Dict] = None
    ) -> List[Dict]:
        """
        Cash flow and operating result for the last ``months`` months,
        oldest first and ending with the current month.
        """
        now = timezone.localtime()
        points = []
        for offset in range(months - 1, -1, -1):
            year, month = shift_month(now.year, now.month, -offset)
            summary = AccountingService.monthly_summary(
                tenant, f"{year:04d}-{month:02d}", treasury_filters
            )
            points.append(
                {
                    "month": summary["month"],
                    "month_label": summary["month_label"],
                    "net_cash_flow": summary["net_cash_flow"],
                    "operating_result": summary["operating_result"],
                    "cash_inflows_total": summary["cash_inflows_total"],
                    "cash_outflows_total": summary["cash_outflows_total"],
                }
            )
        return points

    @staticmethod
    def export_csv(
        tenant: Tenant,
        month: Optional[str] = None,
        months: int = SERIES_DEFAULT_MONTHS,
        treasury_filters: Optional[Dict] = None,
    ):
        """
        Build the accountant CSV export.

        Semicolon separated, every cell quoted, with a UTF-8 BOM so
        spreadsheet applications detect the encoding.

        Returns:
            tuple (csv_text, month_key)
        """
        treasury_filters = treasury_filters or {}
        monthly = AccountingService.monthly_summary(tenant, month, treasury_filters)
        balance = AccountingService.balance_snapshot(tenant, month, treasury_filters)
        series = AccountingService.series(tenant, months, treasury_filters)

        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=";", quoting=csv.QUOTE_ALL, lineterminator="\n")

        writer.writerow(["CONTABILIDAD"])
        writer.writerow(["Organización", tenant.company_name])
        writer.writerow(["Período", monthly["month_label"]])
        writer.writerow(["Mes", monthly["month"]])
        writer.writerow(["Filtro tesorería categoría", treasury_filters.get("category", "TODAS")])
        writer.writerow(["Filtro tesorería origen", treasury_filters.get("source", "TODOS")])
        writer.writerow([])

        writer.writerow(["RESUMEN MENSUAL"])
        writer.writerow(["Indicador", "Valor"])
        writer.writerows(
            [
                ["Ventas cobradas en el acto", monthly["immediate_cash_sales_total"]],
                ["Cobranzas de crédito", monthly["collections_total"]],
                ["Cobros de proyectos", monthly["project_collections_total"]],
                ["Ingresos de tesorería", monthly["treasury_inflows_total"]],
                ["Ingresos de caja totales", monthly["cash_inflows_total"]],
                ["Egresos operacionales", monthly["operational_expenses_total"]],
                ["Egresos de proyectos", monthly["project_outflows_total"]],
                ["Egresos de tesorería", monthly["treasury_outflows_total"]],
                ["Egresos de caja totales", monthly["cash_outflows_total"]],
                ["Flujo neto del mes", monthly["net_cash_flow"]],
                ["Resultado operativo", monthly["operating_result"]],
                ["Margen operativo (%)", monthly["operating_margin_percent"]],
            ]
        )
        writer.writerow([])

        assets, liabilities = balance["assets"], balance["liabilities"]
        writer.writerow(["BALANCE"])
        writer.writerow(["Indicador", "Valor"])
        writer.writerows(
            [
                ["CxC clientes", assets["customer_accounts_receivable"]],
                ["CxC proyectos", assets["project_accounts_receivable"]],
                ["CxC total", assets["accounts_receivable"]],
                ["Inventario al costo", assets["inventory_at_cost"]],
                ["Activos totales", assets["total"]],
                ["CxP", liabilities["accounts_payable"]],
                ["Pasivos totales", liabilities["total"]],
                ["Posición neta", balance["equity"]["net_position"]],
            ]
        )
        writer.writerow([])

        writer.writerow([f"TENDENCIA ({len(series)} meses)"])
        writer.writerow(["Mes", "Ingresos caja", "Egresos caja", "Flujo neto", "Resultado operativo"])
        for point in series:
            writer.writerow(
                [
                    point["month_label"],
                    point["cash_inflows_total"],
                    point["cash_outflows_total"],
                    point["net_cash_flow"],
                    point["operating_result"],
                ]
            )

        notes = monthly["warnings"] + balance["warnings"]
        if notes:
            writer.writerow([])
            writer.writerow(["NOTAS"])
            writer.writerow(["Detalle"])
            writer.writerows([note] for note in notes)

        logger.info(f"Accounting CSV built for tenant {tenant.id}, month {monthly['month']}")
        return "\ufeff" + buffer.getvalue(), monthly["month"]
