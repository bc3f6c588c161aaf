"""
Cash register calculations: live shift totals, closing reconciliation,
Z-report data and the monthly sales listing.

Shift documents are the PAID documents issued by the register's opener
between the opening time and the end of the shift.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from apps.sales.models import Document, DocumentItem
from apps.sales.totals import sum_rounded_cash_totals

from .models import CashRegister

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
TOP_PRODUCTS_LIMIT = 5
WALK_IN_CUSTOMER = "Público general"


def shift_documents(cash_register, until):
    return Document.objects.filter(
        tenant_id=cash_register.tenant_id,
        created_by_id=cash_register.user_id,
        status=Document.PAID,
        issued_at__gte=cash_register.opened_at,
        issued_at__lte=until,
    )


def _sum_total(queryset):
    return queryset.aggregate(total=Sum("total"))["total"] or ZERO


def live_totals(cash_register, now=None):
    """
    Running figures of an open shift, per payment method.

    ``expected_cash`` is the opening cash plus the exact cash sales.
    """
    now = now or timezone.now()
    documents = shift_documents(cash_register, now)
    summary = documents.aggregate(total=Sum("total"), count=Count("id"))
    total_cash_sales = _sum_total(documents.filter(payment_method=Document.CASH))

    return {
        "sales_count": summary["count"] or 0,
        "total_sales": summary["total"] or ZERO,
        "total_cash_sales": total_cash_sales,
        "total_card_sales": _sum_total(documents.filter(payment_method=Document.CARD)),
        "total_transfer_sales": _sum_total(documents.filter(payment_method=Document.TRANSFER)),
        "total_multi_sales": _sum_total(documents.filter(payment_method=Document.MULTI)),
        "expected_cash": cash_register.opening_cash + total_cash_sales,
    }


@transaction.atomic
def close_cash_register(cash_register, user, closing_cash, notes=None):
    """
    Close a shift and reconcile its cash.

    1. Cash sales are the shift's CASH documents, each rounded to tens
    2. Expected cash is the opening cash plus the rounded cash sales
    3. Total sales and count come from the shift's SALE documents
    4. The register moves to CLOSED with the counted cash and its difference

    MULTI payments are not counted as cash.

    Returns:
        dict summary with cash_sales_count, total_cash_sales and other_methods_sales
    """
    now = timezone.now()
    documents = shift_documents(cash_register, now)

    cash_totals = list(
        documents.filter(payment_method=Document.CASH).values_list("total", flat=True)
    )
    total_cash_sales = sum_rounded_cash_totals(cash_totals)
    total_cash_sales_exact = sum(cash_totals, ZERO)

    sales = documents.filter(doc_type=Document.SALE).aggregate(total=Sum("total"), count=Count("id"))
    total_sales = sales["total"] or ZERO
    sales_count = sales["count"] or 0

    expected_cash = cash_register.opening_cash + total_cash_sales

    cash_register.close(
        user,
        closing_cash=closing_cash,
        expected_cash=expected_cash,
        total_sales=total_sales,
        sales_count=sales_count,
        notes=notes,
        closed_at=now,
    )
    cash_register.save()

    if cash_register.difference:
        logger.warning(
            f"Cash register {cash_register.id} closed with difference {cash_register.difference}"
        )

    return {
        "cash_sales_count": len(cash_totals),
        "total_cash_sales": total_cash_sales,
        "total_cash_sales_exact": total_cash_sales_exact,
        "other_methods_sales": total_sales - total_cash_sales_exact,
    }


def build_z_report(cash_register):
    """
    Z-report data for a closed shift.

    Returns:
        dict with cash_register, sales (with items), payment_summary per
        method, top_products by quantity and the organization name and RUT
    """
    sales_qs = (
        shift_documents(cash_register, cash_register.closed_at)
        .filter(doc_type=Document.SALE)
        .select_related("customer")
        .prefetch_related("items__product")
        .order_by("issued_at")
    )

    sales = []
    payment_summary = {}
    for sale in sales_qs:
        method_summary = payment_summary.setdefault(
            sale.payment_method, {"count": 0, "total": ZERO}
        )
        method_summary["count"] += 1
        method_summary["total"] += sale.total

        sales.append(
            {
                "id": sale.id,
                "document_number": sale.doc_number,
                "customer_name": sale.customer.name if sale.customer else WALK_IN_CUSTOMER,
                "customer_rut": sale.customer.rut if sale.customer and sale.customer.rut else "",
                "payment_method": sale.payment_method,
                "total": sale.total,
                "issued_at": sale.issued_at,
                "items": [
                    {
                        "name": item.product.name if item.product else item.name,
                        "sku": item.product.sku if item.product else item.sku,
                        "quantity": item.quantity,
                        "unit_price": item.unit_price,
                        "total": item.total,
                    }
                    for item in sale.items.all()
                ],
            }
        )

    top_rows = (
        DocumentItem.objects.filter(document__in=sales_qs, product__isnull=False)
        .values("product_id", "product__name", "product__sku")
        .annotate(quantity=Sum("quantity"), revenue=Sum("total"))
        .order_by("-quantity")[:TOP_PRODUCTS_LIMIT]
    )
    top_products = [
        {
            "product_id": row["product_id"],
            "product_name": row["product__name"] or "Producto sin nombre",
            "sku": row["product__sku"] or "",
            "quantity": row["quantity"] or ZERO,
            "revenue": row["revenue"] or ZERO,
        }
        for row in top_rows
    ]

    tenant = cash_register.tenant
    return {
        "cash_register": {
            "id": cash_register.id,
            "opened_at": cash_register.opened_at,
            "closed_at": cash_register.closed_at,
            "opened_by": cash_register.user.get_full_name() or cash_register.user.email,
            "closed_by": (
                cash_register.closed_by.get_full_name() or cash_register.closed_by.email
                if cash_register.closed_by
                else None
            ),
            "opening_cash": cash_register.opening_cash,
            "expected_cash": cash_register.expected_cash,
            "closing_cash": cash_register.closing_cash,
            "difference": cash_register.difference,
            "total_sales": cash_register.total_sales,
            "sales_count": cash_register.sales_count,
            "notes": cash_register.notes,
        },
        "sales": sales,
        "payment_summary": payment_summary,
        "top_products": top_products,
        "organization": {"name": tenant.company_name, "rut": tenant.rut},
    }


def monthly_sales(tenant, start, end):
    """
    PAID sales issued between ``start`` and ``end`` with their sums.
    """
    documents = (
        Document.objects.filter(
            tenant=tenant,
            doc_type=Document.SALE,
            status=Document.PAID,
            issued_at__gte=start,
            issued_at__lte=end,
        )
        .select_related("customer")
        .order_by("issued_at")
    )

    sales = []
    summary = {
        "sales_count": 0,
        "subtotal": ZERO,
        "tax_amount": ZERO,
        "discount": ZERO,
        "total": ZERO,
        "by_payment_method": {},
    }
    for document in documents:
        sales.append(
            {
                "id": document.id,
                "document_number": document.doc_number,
                "issued_at": document.issued_at,
                "payment_method": document.payment_method,
                "customer_name": document.customer.name if document.customer else WALK_IN_CUSTOMER,
                "customer_rut": (
                    document.customer.rut if document.customer and document.customer.rut else ""
                ),
                "subtotal": document.subtotal,
                "tax_amount": document.tax_amount,
                "discount": document.discount,
                "total": document.total,
            }
        )
        summary["sales_count"] += 1
        summary["subtotal"] += document.subtotal
        summary["tax_amount"] += document.tax_amount
        summary["discount"] += document.discount
        summary["total"] += document.total
        by_method = summary["by_payment_method"]
        by_method[document.payment_method] = (
            by_method.get(document.payment_method, ZERO) + document.total
        )

    return {"sales": sales, "summary": summary}


def active_cash_register(tenant, user):
    return CashRegister.objects.filter(tenant=tenant, user=user, status=CashRegister.OPEN).first()
