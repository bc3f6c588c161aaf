"""
Views for cash register shifts.

- Open a shift and list past shifts
- Active shift of the current user
- Close with cash count (arqueo)
- Z-report (JSON or PDF) and monthly sales listing
"""

import logging
from datetime import datetime, time

from django.http import HttpResponse
from django.utils import timezone

from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core import audit
from apps.core.audit import log_audit_action
from apps.core.filters import date_param
from apps.core.pagination import APIPaginator
from apps.core.permissions import HasTenantAccess, require_module, require_permission

from . import services
from .models import CashRegister
from .serializers import (
    CashRegisterSerializer,
    CloseCashRegisterSerializer,
    OpenCashRegisterSerializer,
)
from .z_report import ZReportGenerator

logger = logging.getLogger(__name__)


def _serialize_register(cash_register):
    data = CashRegisterSerializer(cash_register).data
    if cash_register.is_open():
        live = services.live_totals(cash_register)
        data["sales_count"] = live.pop("sales_count")
        data.update({key: str(value) for key, value in live.items()})
    else:
        data.update(
            {
                "total_cash_sales": "0.00",
                "total_card_sales": "0.00",
                "total_transfer_sales": "0.00",
                "total_multi_sales": "0.00",
            }
        )
    return data


def _day_bounds(start, end):
    tz = timezone.get_current_timezone()
    return (
        timezone.make_aware(datetime.combine(start, time.min), tz),
        timezone.make_aware(datetime.combine(end, time.max), tz),
    )


@api_view(["GET", "POST"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("CASH_REGISTER"),
        require_permission(GET="cashRegister:viewReport", POST="cashRegister:open"),
    ]
)
def cash_register_list(request):
    """
    GET: Paginated list of shifts, newest first.

    Query parameters:
    - page, limit: Pagination (limit max 100)
    - start_date / end_date: Opening date range (YYYY-MM-DD)

    POST: Open a shift for the current user with ``opening_cash``.
    """
    tenant = request.user.tenant

    if request.method == "POST":
        serializer = OpenCashRegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        existing = services.active_cash_register(tenant, request.user)
        if existing:
            return Response(
                {
                    "error": "Ya tienes una caja abierta",
                    "code": "CASH_REGISTER_ALREADY_OPEN",
                    "cash_register_id": str(existing.id),
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        cash_register = CashRegister.objects.create(
            tenant=tenant,
            user=request.user,
            opening_cash=serializer.validated_data["opening_cash"],
            notes=serializer.validated_data["notes"],
        )
        log_audit_action(
            audit.OPEN_CASH_REGISTER,
            "CashRegister",
            cash_register.id,
            details=serializer.validated_data,
            request=request,
        )
        logger.info(f"Cash register {cash_register.id} opened by user {request.user.id}")
        return Response(
            {"cash_register": _serialize_register(cash_register)}, status=status.HTTP_201_CREATED
        )

    queryset = CashRegister.objects.filter(tenant=tenant).select_related("user", "closed_by")

    start_date = date_param(request.query_params, "start_date")
    if start_date:
        queryset = queryset.filter(opened_at__date__gte=start_date)

    end_date = date_param(request.query_params, "end_date")
    if end_date:
        queryset = queryset.filter(opened_at__date__lte=end_date)

    paginator = APIPaginator(request, queryset.order_by("-opened_at"))
    return Response(paginator.get_response_data("cash_registers", _serialize_register))


@api_view(["GET"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("CASH_REGISTER"),
        require_permission("cashRegister:viewReport"),
    ]
)
def active_cash_register(request):
    """Open shift of the current user, if any."""
    cash_register = services.active_cash_register(request.user.tenant, request.user)
    return Response(
        {
            "has_active_cash_register": cash_register is not None,
            "cash_register": _serialize_register(cash_register) if cash_register else None,
        }
    )


@api_view(["POST"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("CASH_REGISTER"),
        require_permission("cashRegister:close"),
    ]
)
def close_cash_register(request, cash_register_id):
    """
    Close a shift with the counted cash.

    Only the user who opened the shift can close it.
    """
    serializer = CloseCashRegisterSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        cash_register = CashRegister.objects.get(
            id=cash_register_id, tenant=request.user.tenant, status=CashRegister.OPEN
        )
    except CashRegister.DoesNotExist:
        return Response(
            {"error": "Caja no encontrada o ya está cerrada"},
            status=status.HTTP_404_NOT_FOUND,
        )

    if cash_register.user_id != request.user.id:
        return Response(
            {"error": "Solo el usuario que abrió la caja puede cerrarla"},
            status=status.HTTP_403_FORBIDDEN,
        )

    summary = services.close_cash_register(
        cash_register,
        request.user,
        closing_cash=serializer.validated_data["closing_cash"],
        notes=serializer.validated_data["notes"],
    )

    log_audit_action(
        audit.CLOSE_CASH_REGISTER,
        "CashRegister",
        cash_register.id,
        details={
            "expected_cash": cash_register.expected_cash,
            "closing_cash": cash_register.closing_cash,
            "difference": cash_register.difference,
            "total_sales": cash_register.total_sales,
            "sales_count": cash_register.sales_count,
            "cash_sales_count": summary["cash_sales_count"],
            "total_cash_sales": summary["total_cash_sales"],
            "total_cash_sales_exact": summary["total_cash_sales_exact"],
        },
        request=request,
    )

    return Response(
        {
            "cash_register": CashRegisterSerializer(cash_register).data,
            "summary": {
                "cash_sales_count": summary["cash_sales_count"],
                "total_cash_sales": str(summary["total_cash_sales"]),
                "other_methods_sales": str(summary["other_methods_sales"]),
            },
        }
    )


@api_view(["GET"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("CASH_REGISTER"),
        require_permission("cashRegister:viewReport"),
    ]
)
def cash_register_report(request, cash_register_id):
    """
    Z-report of a closed shift. ``?format=pdf`` returns the printable version.
    """
    try:
        cash_register = CashRegister.objects.select_related("user", "closed_by", "tenant").get(
            id=cash_register_id, tenant=request.user.tenant
        )
    except CashRegister.DoesNotExist:
        return Response({"error": "Caja no encontrada"}, status=status.HTTP_404_NOT_FOUND)

    if cash_register.status != CashRegister.CLOSED:
        return Response(
            {"error": "No se puede generar reporte de una caja abierta"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    report = services.build_z_report(cash_register)

    if request.query_params.get("format") == "pdf":
        try:
            pdf_bytes = ZReportGenerator(report).generate_pdf()
        except Exception as e:
            logger.error(f"Error generating Z report {cash_register.id}: {e}", exc_info=True)
            return Response(
                {"error": "No se pudo generar el PDF"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        response = HttpResponse(pdf_bytes, content_type="application/pdf")
        filename = f"reporte-z-{cash_register.closed_at:%Y%m%d-%H%M}.pdf"
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response

    return Response(report)


@api_view(["GET"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("CASH_REGISTER"),
        require_permission("cashRegister:viewReport"),
    ]
)
def monthly_sales(request):
    """
    Paid sales between ``start_date`` and ``end_date`` (both required, inclusive).
    """
    start_date = date_param(request.query_params, "start_date")
    end_date = date_param(request.query_params, "end_date")
    if not start_date or not end_date:
        return Response(
            {"error": "Parámetros start_date y end_date son requeridos"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    start, end = _day_bounds(start_date, end_date)
    return Response(services.monthly_sales(request.user.tenant, start, end))
