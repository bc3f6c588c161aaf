"""
Views for the accounting reports.

Every endpoint accepts ``month`` (YYYY-MM, default the current month) and
the optional ``treasury_category`` and ``treasury_source`` filters.
"""

import logging

from django.http import HttpResponse

from rest_framework import permissions
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.exceptions import DomainError
from apps.core.permissions import HasTenantAccess, require_module, require_permission

from .services import (
    AccountingService,
    parse_month,
    parse_series_months,
    parse_treasury_filters,
)

logger = logging.getLogger(__name__)

ACCOUNTING_PERMISSIONS = [permissions.IsAuthenticated, HasTenantAccess, require_module("ACCOUNTING")]


@api_view(["GET"])
@permission_classes(ACCOUNTING_PERMISSIONS + [require_permission("accounting:viewMonthly")])
def monthly_summary(request):
    try:
        month = request.query_params.get("month")
        parse_month(month)
        treasury_filters = parse_treasury_filters(request.query_params)
    except DomainError as e:
        return e.to_response()

    summary = AccountingService.monthly_summary(request.user.tenant, month, treasury_filters)
    return Response({"summary": summary})


@api_view(["GET"])
@permission_classes(ACCOUNTING_PERMISSIONS + [require_permission("accounting:viewBalance")])
def balance(request):
    try:
        month = request.query_params.get("month")
        parse_month(month)
        treasury_filters = parse_treasury_filters(request.query_params)
    except DomainError as e:
        return e.to_response()

    snapshot = AccountingService.balance_snapshot(request.user.tenant, month, treasury_filters)
    return Response({"balance": snapshot})


@api_view(["GET"])
@permission_classes(ACCOUNTING_PERMISSIONS + [require_permission("accounting:viewMonthly")])
def series(request):
    """
    Monthly trend. ``months`` goes from 3 to 24 (default 6).
    """
    try:
        months = parse_series_months(request.query_params.get("months"))
        treasury_filters = parse_treasury_filters(request.query_params)
    except DomainError as e:
        return e.to_response()

    points = AccountingService.series(request.user.tenant, months, treasury_filters)
    return Response({"months": months, "series": points})


@api_view(["GET"])
@permission_classes(ACCOUNTING_PERMISSIONS + [require_permission("accounting:export")])
def export_csv(request):
    """
    CSV export with the monthly summary, balance, trend and notes.
    """
    try:
        month = request.query_params.get("month")
        parse_month(month)
        months = parse_series_months(request.query_params.get("months"))
        treasury_filters = parse_treasury_filters(request.query_params)
    except DomainError as e:
        return e.to_response()

    content, month_key = AccountingService.export_csv(
        request.user.tenant, month, months, treasury_filters
    )
    response = HttpResponse(content, content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = f'attachment; filename="contabilidad-{month_key}.csv"'
    return response
