"""
Views for suppliers and accounts payable.

- Supplier CRUD (delete refused while payables are open)
- Accounts payable CRUD with search and due-date filters
- Payment registration against a payable
"""

import logging

from django.db.models import Q
from django.utils import timezone

from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core import audit
from apps.core.audit import log_audit_action
from apps.core.exceptions import DomainError
from apps.core.filters import datetime_param
from apps.core.permissions import (
    HasRolePermission,
    HasTenantAccess,
    require_module,
    require_permission,
)

from .models import AccountPayable, Supplier
from .serializers import (
    AccountPayablePaymentSerializer,
    AccountPayableSerializer,
    SupplierSerializer,
)

logger = logging.getLogger(__name__)


class SupplierMixin:
    serializer_class = SupplierSerializer
    permission_classes = [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("SUPPLIERS", "ACCOUNTING"),
        HasRolePermission,
    ]

    def get_queryset(self):
        return Supplier.objects.filter(tenant=self.request.user.tenant)


class SupplierListCreateView(SupplierMixin, generics.ListCreateAPIView):
    """
    API endpoint for listing and creating suppliers.

    Query parameters:
    - search: Name, RUT or contact name
    - status: ACTIVE or INACTIVE
    """

    required_permission = {"GET": "suppliers:view", "POST": "suppliers:create"}

    def get_queryset(self):
        queryset = super().get_queryset()

        supplier_status = self.request.query_params.get("status")
        if supplier_status:
            queryset = queryset.filter(status=supplier_status)

        search = self.request.query_params.get("search")
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search)
                | Q(rut__icontains=search)
                | Q(contact_name__icontains=search)
            )

        return queryset.order_by("status", "name")

    def perform_create(self, serializer):
        supplier = serializer.save(tenant=self.request.user.tenant)
        log_audit_action(
            audit.CREATE_SUPPLIER,
            "Supplier",
            supplier.id,
            details={"name": supplier.name, "status": supplier.status},
            request=self.request,
        )


class SupplierDetailView(SupplierMixin, generics.RetrieveUpdateDestroyAPIView):
    required_permission = {
        "GET": "suppliers:view",
        "PUT": "suppliers:edit",
        "PATCH": "suppliers:edit",
        "DELETE": "suppliers:delete",
    }
    lookup_field = "id"

    def perform_update(self, serializer):
        supplier = serializer.save()
        log_audit_action(
            audit.UPDATE_SUPPLIER,
            "Supplier",
            supplier.id,
            details=serializer.validated_data,
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):
        supplier = self.get_object()
        if supplier.has_open_payables():
            return Response(
                {"error": "No puedes eliminar un proveedor con cuentas pendientes"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if supplier.payables.exists():
            return Response(
                {"error": "No puedes eliminar un proveedor con historial de cuentas por pagar"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        entity_id, name = supplier.id, supplier.name
        supplier.delete()
        log_audit_action(
            audit.DELETE_SUPPLIER, "Supplier", entity_id, details={"name": name}, request=request
        )
        return Response({"success": True})


class AccountPayableMixin:
    serializer_class = AccountPayableSerializer
    permission_classes = [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("ACCOUNTING", "SUPPLIERS"),
        HasRolePermission,
    ]

    def get_queryset(self):
        return AccountPayable.objects.filter(tenant=self.request.user.tenant).select_related(
            "supplier"
        )

    def handle_exception(self, exc):
        if isinstance(exc, DomainError):
            return exc.to_response()
        return super().handle_exception(exc)


class AccountPayableListCreateView(AccountPayableMixin, generics.ListCreateAPIView):
    """
    API endpoint for listing and creating accounts payable.

    Query parameters:
    - search: Description, document number or supplier name
    - supplier_id: Payables of one supplier
    - status: Payable status
    - overdue: "true" for open payables past their due date
    - start_due_date / end_due_date: Due date range (ISO datetime)
    """

    required_permission = {"GET": "accountsPayable:view", "POST": "accountsPayable:create"}

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params

        if params.get("supplier_id"):
            queryset = queryset.filter(supplier_id=params["supplier_id"])

        if params.get("status"):
            queryset = queryset.filter(status=params["status"])

        if params.get("overdue") == "true":
            queryset = queryset.filter(
                status__in=AccountPayable.OPEN_STATUSES, due_date__lt=timezone.now()
            )

        start_due = datetime_param(params, "start_due_date")
        if start_due:
            queryset = queryset.filter(due_date__gte=start_due)

        end_due = datetime_param(params, "end_due_date")
        if end_due:
            queryset = queryset.filter(due_date__lte=end_due)

        search = params.get("search")
        if search:
            queryset = queryset.filter(
                Q(description__icontains=search)
                | Q(document_number__icontains=search)
                | Q(supplier__name__icontains=search)
            )

        return queryset.order_by("status", "due_date", "-created_at")

    def perform_create(self, serializer):
        payable = serializer.save()
        log_audit_action(
            audit.CREATE_ACCOUNT_PAYABLE,
            "AccountPayable",
            payable.id,
            details={
                "supplier_id": payable.supplier_id,
                "amount": payable.amount,
                "due_date": payable.due_date,
            },
            request=self.request,
        )


class AccountPayableDetailView(AccountPayableMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    Payable detail. Paid payables cannot be edited and payables with
    payments applied cannot be deleted.
    """

    required_permission = {
        "GET": "accountsPayable:view",
        "PUT": "accountsPayable:edit",
        "PATCH": "accountsPayable:edit",
        "DELETE": "accountsPayable:delete",
    }
    lookup_field = "id"

    def perform_update(self, serializer):
        payable = serializer.save()
        log_audit_action(
            audit.UPDATE_ACCOUNT_PAYABLE,
            "AccountPayable",
            payable.id,
            details=serializer.validated_data,
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):
        payable = self.get_object()
        if payable.has_payments():
            return Response(
                {"error": "No se puede eliminar una cuenta por pagar con pagos registrados"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        details = {"amount": payable.amount, "balance": payable.balance}
        entity_id = payable.id
        payable.delete()
        log_audit_action(
            audit.DELETE_ACCOUNT_PAYABLE, "AccountPayable", entity_id, details=details, request=request
        )
        return Response({"success": True})


@api_view(["POST"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("ACCOUNTING", "SUPPLIERS"),
        require_permission("accountsPayable:registerPayment"),
    ]
)
def register_payable_payment(request, payable_id):
    """
    Register a payment against a payable.

    The status becomes PAID at zero balance, OVERDUE when the due date has
    passed and PARTIAL otherwise.
    """
    try:
        payable = AccountPayable.objects.get(id=payable_id, tenant=request.user.tenant)
    except AccountPayable.DoesNotExist:
        return Response(
            {"error": "Cuenta por pagar no encontrada"}, status=status.HTTP_404_NOT_FOUND
        )

    serializer = AccountPayablePaymentSerializer(data=request.data, context={"payable": payable})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        payable, previous_balance = serializer.save()
    except DomainError as e:
        return e.to_response()

    log_audit_action(
        audit.REGISTER_ACCOUNT_PAYABLE_PAYMENT,
        "AccountPayable",
        payable.id,
        details={
            "payment_amount": serializer.validated_data["payment_amount"],
            "previous_balance": previous_balance,
            "next_balance": payable.balance,
        },
        request=request,
    )
    logger.info(f"Payment registered on payable {payable.id}, balance {payable.balance}")

    payable = AccountPayable.objects.select_related("supplier").get(id=payable.id)
    return Response({"payable": AccountPayableSerializer(payable).data})
