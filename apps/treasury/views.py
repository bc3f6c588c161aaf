"""
Views for operational expenses and treasury movements.
"""

import logging

from django.db.models import Q

from rest_framework import generics, permissions, status
from rest_framework.response import Response

from apps.core import audit
from apps.core.audit import log_audit_action
from apps.core.exceptions import DomainError
from apps.core.filters import datetime_param
from apps.core.permissions import HasRolePermission, HasTenantAccess, require_module

from .models import OperationalExpense, TreasuryMovement
from .serializers import OperationalExpenseSerializer, TreasuryMovementSerializer

logger = logging.getLogger(__name__)


class TreasuryModuleMixin:
    permission_classes = [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("ACCOUNTING", "CASH_REGISTER"),
        HasRolePermission,
    ]
    required_permission = {
        "GET": "expenses:view",
        "POST": "expenses:create",
        "PUT": "expenses:edit",
        "PATCH": "expenses:edit",
        "DELETE": "expenses:delete",
    }

    def handle_exception(self, exc):
        if isinstance(exc, DomainError):
            return exc.to_response()
        return super().handle_exception(exc)

    def filter_date_range(self, queryset, field):
        start = datetime_param(self.request.query_params, "start_date")
        if start:
            queryset = queryset.filter(**{f"{field}__gte": start})
        end = datetime_param(self.request.query_params, "end_date")
        if end:
            queryset = queryset.filter(**{f"{field}__lte": end})
        return queryset


# Operational expenses


class OperationalExpenseListCreateView(TreasuryModuleMixin, generics.ListCreateAPIView):
    """
    API endpoint for listing and creating operational expenses.

    Query parameters:
    - start_date / end_date: Expense date range (ISO datetime)
    - search: Title or description
    - category: Category contains
    - payment_method: CASH, CARD, TRANSFER or OTHER
    - cash_register_id: Expenses paid from one register
    """

    serializer_class = OperationalExpenseSerializer

    def get_queryset(self):
        queryset = OperationalExpense.objects.filter(
            tenant=self.request.user.tenant
        ).select_related("cash_register")
        params = self.request.query_params

        queryset = self.filter_date_range(queryset, "expense_date")

        search = params.get("search")
        if search:
            queryset = queryset.filter(
                Q(title__icontains=search) | Q(description__icontains=search)
            )

        if params.get("category"):
            queryset = queryset.filter(category__icontains=params["category"])

        if params.get("payment_method"):
            queryset = queryset.filter(payment_method=params["payment_method"])

        if params.get("cash_register_id"):
            queryset = queryset.filter(cash_register_id=params["cash_register_id"])

        return queryset.order_by("-expense_date")

    def perform_create(self, serializer):
        expense = serializer.save()
        log_audit_action(
            audit.CREATE_OPERATIONAL_EXPENSE,
            "OperationalExpense",
            expense.id,
            details={"title": expense.title, "amount": expense.amount, "category": expense.category},
            request=self.request,
        )


class OperationalExpenseDetailView(TreasuryModuleMixin, generics.RetrieveUpdateDestroyAPIView):
    serializer_class = OperationalExpenseSerializer
    lookup_field = "id"

    def get_queryset(self):
        return OperationalExpense.objects.filter(tenant=self.request.user.tenant).select_related(
            "cash_register"
        )

    def perform_update(self, serializer):
        expense = serializer.save()
        log_audit_action(
            audit.UPDATE_OPERATIONAL_EXPENSE,
            "OperationalExpense",
            expense.id,
            details=serializer.validated_data,
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):
        expense = self.get_object()
        details = {"title": expense.title, "amount": expense.amount}
        entity_id = expense.id
        expense.delete()
        log_audit_action(
            audit.DELETE_OPERATIONAL_EXPENSE,
            "OperationalExpense",
            entity_id,
            details=details,
            request=request,
        )
        return Response({"success": True})


# Treasury movements


class TreasuryMovementListCreateView(TreasuryModuleMixin, generics.ListCreateAPIView):
    """
    API endpoint for listing and creating treasury movements.

    Query parameters:
    - type: INFLOW or OUTFLOW
    - category, source
    - start_date / end_date: Occurrence range (ISO datetime)
    - search: Title, description or reference
    """

    serializer_class = TreasuryMovementSerializer

    def get_queryset(self):
        queryset = TreasuryMovement.objects.filter(
            tenant=self.request.user.tenant
        ).select_related("account_payable__supplier")
        params = self.request.query_params

        for field in ("type", "category", "source"):
            if params.get(field):
                queryset = queryset.filter(**{field: params[field]})

        queryset = self.filter_date_range(queryset, "occurred_at")

        search = params.get("search")
        if search:
            queryset = queryset.filter(
                Q(title__icontains=search)
                | Q(description__icontains=search)
                | Q(reference__icontains=search)
            )

        return queryset.order_by("-occurred_at")

    def perform_create(self, serializer):
        movement = serializer.save()
        log_audit_action(
            audit.CREATE_TREASURY_MOVEMENT,
            "TreasuryMovement",
            movement.id,
            details={
                "type": movement.type,
                "category": movement.category,
                "amount": movement.amount,
            },
            request=self.request,
        )


class TreasuryMovementDetailView(TreasuryModuleMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    Movement detail. Supplier payment movements are read-only.
    """

    serializer_class = TreasuryMovementSerializer
    lookup_field = "id"

    def get_queryset(self):
        return TreasuryMovement.objects.filter(tenant=self.request.user.tenant).select_related(
            "account_payable__supplier"
        )

    def update(self, request, *args, **kwargs):
        movement = self.get_object()
        if movement.is_automatic():
            return Response(
                {"error": "Los movimientos automáticos de pago CxP no se pueden editar"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return super().update(request, *args, **kwargs)

    def perform_update(self, serializer):
        movement = serializer.save()
        log_audit_action(
            audit.UPDATE_TREASURY_MOVEMENT,
            "TreasuryMovement",
            movement.id,
            details=serializer.validated_data,
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):
        movement = self.get_object()
        if movement.is_automatic():
            return Response(
                {"error": "Los movimientos automáticos de pago CxP no se pueden eliminar"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        details = {"type": movement.type, "amount": movement.amount}
        entity_id = movement.id
        movement.delete()
        log_audit_action(
            audit.DELETE_TREASURY_MOVEMENT,
            "TreasuryMovement",
            entity_id,
            details=details,
            request=request,
        )
        return Response({"success": True})
