"""
Views for the tenant dashboard.
"""

from rest_framework import permissions
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.permissions import HasTenantAccess, require_permission

from .services import DashboardService


@api_view(["GET"])
@permission_classes(
    [permissions.IsAuthenticated, HasTenantAccess, require_permission("dashboard:viewSales")]
)
def kpis(request):
    """
    KPIs of the current organization: sales of today and of the month with
    their growth, customers, stock alerts, pending documents, top products,
    recent sales, payment methods and the 7-day sales chart.
    """
    return Response(DashboardService.kpis(request.user.tenant))
