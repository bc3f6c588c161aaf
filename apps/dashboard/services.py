"""
Dashboard KPIs of a tenant.

All periods are computed in the local time zone: today, yesterday, the
current and previous calendar month, the last 30 days for rankings and the
last 7 days for the chart. Only paid sales count as sales.
"""

from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List

from django.db.models import Count, F, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from apps.accounting.services import month_range, shift_month
from apps.core.formatting_utils import round_amount, to_decimal
from apps.core.models import Tenant
from apps.inventory.models import Product
from apps.sales.models import Customer, Document, DocumentItem

TOP_PRODUCTS_LIMIT = 5
RECENT_SALES_LIMIT = 10
LOW_STOCK_LIMIT = 10
RANKING_DAYS = 30
CHART_DAYS = 7


def _pesos(value) -> int:
    return int(round_amount(value))


def growth(current, previous) -> float:
    """
    Percentage change from ``previous`` to ``current`` with one decimal.

    Growth from zero is 100 when there is something now and 0 otherwise.
    """
    current, previous = to_decimal(current), to_decimal(previous)
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return float(round_amount((current - previous) / previous * 100, 1))


def _start_of_day(day):
    return timezone.make_aware(datetime.combine(day, time.min))


class DashboardService:
    """Read-only KPI queries for the dashboard of a tenant."""

    @staticmethod
    def paid_sales(tenant: Tenant):
        return Document.objects.filter(
            tenant=tenant, doc_type=Document.SALE, status=Document.PAID
        )

    @staticmethod
    def _totals(queryset) -> Dict:
        data = queryset.aggregate(total_sum=Sum("total"), sales_count=Count("id"))
        return {"total": data["total_sum"] or Decimal("0"), "count": data["sales_count"]}

    @classmethod
    def kpis(cls, tenant: Tenant) -> Dict:
        now = timezone.localtime()
        today = now.date()
        start_today = _start_of_day(today)
        start_yesterday = _start_of_day(today - timedelta(days=1))
        this_month = month_range(now.year, now.month)
        last_month = month_range(*shift_month(now.year, now.month, -1))
        ranking_start = now - timedelta(days=RANKING_DAYS)

        sales = cls.paid_sales(tenant)
        today_totals = cls._totals(sales.filter(issued_at__gte=start_today))
        yesterday_totals = cls._totals(
            sales.filter(issued_at__gte=start_yesterday, issued_at__lt=start_today)
        )
        month_totals = cls._totals(
            sales.filter(issued_at__gte=this_month.start, issued_at__lte=this_month.end)
        )
        last_month_totals = cls._totals(
            sales.filter(issued_at__gte=last_month.start, issued_at__lte=last_month.end)
        )
        avg_ticket = (
            today_totals["total"] / today_totals["count"] if today_totals["count"] else 0
        )

        customers = Customer.objects.filter(tenant=tenant)
        low_stock = cls.low_stock_products(tenant)
        pending_quotes = cls._pending(tenant, Document.QUOTE)
        pending_invoices = cls._pending(tenant, Document.INVOICE)

        return {
            "sales_today": {
                "total": _pesos(today_totals["total"]),
                "count": today_totals["count"],
                "avg_ticket": _pesos(avg_ticket),
            },
            "sales_yesterday": {"total": _pesos(yesterday_totals["total"])},
            "sales_growth_vs_yesterday": growth(
                today_totals["total"], yesterday_totals["total"]
            ),
            "sales_this_month": {
                "total": _pesos(month_totals["total"]),
                "count": month_totals["count"],
            },
            "sales_last_month": {"total": _pesos(last_month_totals["total"])},
            "sales_growth_vs_last_month": growth(
                month_totals["total"], last_month_totals["total"]
            ),
            "total_customers": customers.count(),
            "new_customers_this_month": customers.filter(
                created_at__gte=this_month.start
            ).count(),
            "customers_with_debt": customers.filter(current_debt__gt=0).count(),
            "product_count": Product.objects.filter(tenant=tenant, is_active=True).count(),
            "low_stock_products": {"count": len(low_stock), "products": low_stock},
            "pending_documents": {
                "count": pending_quotes + pending_invoices,
                "by_type": {"quotes": pending_quotes, "invoices": pending_invoices},
            },
            "top_products": cls.top_products(tenant, ranking_start),
            "recent_sales": cls.recent_sales(tenant),
            "payment_methods_distribution": cls.payment_methods(tenant, ranking_start),
            "sales_chart_data": cls.sales_chart(tenant, today),
        }

    @staticmethod
    def _pending(tenant: Tenant, doc_type: str) -> int:
        return Document.objects.filter(
            tenant=tenant,
            doc_type=doc_type,
            status__in=[Document.DRAFT, Document.PENDING],
        ).count()

    @staticmethod
    def low_stock_products(tenant: Tenant) -> List[Dict]:
        products = (
            Product.objects.filter(
                tenant=tenant,
                track_inventory=True,
                is_active=True,
                current_stock__lte=F("min_stock"),
            )
            .order_by("current_stock", "name")
            .values("id", "name", "sku", "current_stock", "min_stock")[:LOW_STOCK_LIMIT]
        )
        return list(products)

    @classmethod
    def top_products(cls, tenant: Tenant, since) -> List[Dict]:
        """Best sellers by quantity since ``since``."""
        rows = (
            DocumentItem.objects.filter(
                document__in=cls.paid_sales(tenant).filter(issued_at__gte=since),
                product__isnull=False,
            )
            .values("product_id", "product__name", "product__sku")
            .annotate(quantity_sold=Sum("quantity"), revenue=Sum("total"))
            .order_by("-quantity_sold")[:TOP_PRODUCTS_LIMIT]
        )
        return [
            {
                "product_id": row["product_id"],
                "name": row["product__name"] or "Producto eliminado",
                "sku": row["product__sku"] or "N/A",
                "quantity_sold": float(row["quantity_sold"] or 0),
                "revenue": _pesos(row["revenue"]),
            }
            for row in rows
        ]

    @classmethod
    def recent_sales(cls, tenant: Tenant) -> List[Dict]:
        sales = (
            cls.paid_sales(tenant)
            .select_related("customer")
            .order_by("-issued_at")[:RECENT_SALES_LIMIT]
        )
        return [
            {
                "id": sale.id,
                "doc_number": sale.doc_number,
                "customer_name": sale.customer.name if sale.customer else None,
                "total": _pesos(sale.total),
                "payment_method": sale.payment_method,
                "issued_at": sale.issued_at,
            }
            for sale in sales
        ]

    @classmethod
    def payment_methods(cls, tenant: Tenant, since) -> Dict[str, Dict]:
        rows = (
            cls.paid_sales(tenant)
            .filter(issued_at__gte=since)
            .values("payment_method")
            .annotate(sales_count=Count("id"), total_sum=Sum("total"))
            .order_by("payment_method")
        )
        return {
            row["payment_method"]: {
                "count": row["sales_count"],
                "total": _pesos(row["total_sum"]),
            }
            for row in rows
        }

    @classmethod
    def sales_chart(cls, tenant: Tenant, today) -> List[Dict]:
        """Paid sales per local day, oldest first, with empty days as zero."""
        first_day = today - timedelta(days=CHART_DAYS - 1)
        rows = (
            cls.paid_sales(tenant)
            .filter(issued_at__gte=_start_of_day(first_day))
            .annotate(day=TruncDate("issued_at"))
            .values("day")
            .annotate(total_sum=Sum("total"))
            .order_by("day")
        )
        by_day = {row["day"]: row["total_sum"] for row in rows}
        days = [first_day + timedelta(days=offset) for offset in range(CHART_DAYS)]
        return [{"date": day.isoformat(), "total": _pesos(by_day.get(day))} for day in days]
