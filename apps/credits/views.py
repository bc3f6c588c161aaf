"""
Views for customer credits ("fiados") and their payments.
"""

import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core import audit
from apps.core.audit import log_audit_action
from apps.core.exceptions import DomainError
from apps.core.filters import date_param
from apps.core.formatting_utils import format_currency
from apps.core.permissions import (
    HasRolePermission,
    HasTenantAccess,
    require_module,
    require_permission,
)
from apps.sales.models import Customer

from .models import Credit, CreditPayment
from .serializers import (
    CreditCreateSerializer,
    CreditPaymentCreateSerializer,
    CreditPaymentSerializer,
    CreditSerializer,
    CreditUpdateSerializer,
)

logger = logging.getLogger(__name__)

CREDIT_PERMISSIONS = [permissions.IsAuthenticated, HasTenantAccess, require_module("CREDITS")]


def _get_credit(request, credit_id):
    return (
        Credit.objects.select_related("customer", "document")
        .prefetch_related("payments")
        .get(id=credit_id, tenant=request.user.tenant)
    )


class CreditListCreateView(generics.ListCreateAPIView):
    """
    API endpoint for listing and granting credits.

    Query parameters:
    - customer_id: Credits of one customer
    - status: ACTIVE, PAID, CANCELED or OVERDUE
    - overdue: "true" for active credits past their due date
    """

    serializer_class = CreditSerializer
    permission_classes = CREDIT_PERMISSIONS + [HasRolePermission]
    required_permission = {"GET": "credits:view", "POST": "credits:create"}

    def get_queryset(self):
        queryset = (
            Credit.objects.filter(tenant=self.request.user.tenant)
            .select_related("customer", "document")
            .prefetch_related("payments")
        )

        customer_id = self.request.query_params.get("customer_id")
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)

        credit_status = self.request.query_params.get("status")
        if credit_status:
            queryset = queryset.filter(status=credit_status)

        if self.request.query_params.get("overdue") == "true":
            queryset = queryset.filter(status=Credit.ACTIVE, due_date__lt=timezone.now())

        return queryset.order_by("status", "due_date")

    def create(self, request, *args, **kwargs):
        serializer = CreditCreateSerializer(data=request.data, context={"request": request})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            credit = serializer.save()
        except DomainError as e:
            return e.to_response()

        log_audit_action(
            audit.CREATE_CREDIT,
            "Credit",
            credit.id,
            details={
                "customer_id": credit.customer_id,
                "customer_name": credit.customer.name,
                "amount": credit.amount,
                "due_date": credit.due_date,
            },
            request=request,
        )
        credit = _get_credit(request, credit.id)
        return Response(CreditSerializer(credit).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes(
    CREDIT_PERMISSIONS
    + [require_permission(GET="credits:view", PATCH="credits:edit", DELETE="credits:delete")]
)
def credit_detail(request, credit_id):
    """
    Retrieve, edit or delete a credit.

    A credit with payments cannot be deleted; it must be cancelled instead.
    """
    try:
        credit = _get_credit(request, credit_id)
    except Credit.DoesNotExist:
        return Response({"error": "Crédito no encontrado"}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "GET":
        return Response(CreditSerializer(credit).data)

    if request.method == "PATCH":
        serializer = CreditUpdateSerializer(credit, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        serializer.save()
        log_audit_action(
            audit.UPDATE_CREDIT,
            "Credit",
            credit.id,
            details={"changes": serializer.validated_data},
            request=request,
        )
        return Response(CreditSerializer(_get_credit(request, credit.id)).data)

    if credit.payments.exists():
        return Response(
            {
                "error": "No se puede eliminar un crédito con pagos registrados. "
                "Cancélalo en su lugar."
            },
            status=status.HTTP_400_BAD_REQUEST,
        )

    details = {"customer_id": credit.customer_id, "amount": credit.amount}
    with transaction.atomic():
        Customer.objects.filter(id=credit.customer_id).update(
            current_debt=F("current_debt") - credit.balance
        )
        credit.delete()

    log_audit_action(audit.DELETE_CREDIT, "Credit", credit_id, details=details, request=request)
    return Response({"success": True})


@api_view(["GET", "POST"])
@permission_classes(
    CREDIT_PERMISSIONS
    + [require_permission(GET="credits:view", POST="credits:registerPayment")]
)
def credit_payments(request, credit_id):
    """
    GET: Payments of a credit, newest first.

    POST: Register a payment. The credit must be ACTIVE or OVERDUE and the
    amount cannot exceed its balance.
    """
    try:
        credit = Credit.objects.select_related("customer").get(
            id=credit_id, tenant=request.user.tenant
        )
    except Credit.DoesNotExist:
        return Response({"error": "Crédito no encontrado"}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "GET":
        payments = credit.payments.order_by("-paid_at")
        return Response({"payments": CreditPaymentSerializer(payments, many=True).data})

    serializer = CreditPaymentCreateSerializer(
        data=request.data, context={"request": request, "credit": credit}
    )
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        payment = serializer.save()
    except DomainError as e:
        return e.to_response()

    credit = serializer.context["credit"]
    is_paid = credit.status == Credit.PAID
    log_audit_action(
        audit.CREATE_CREDIT_PAYMENT,
        "CreditPayment",
        payment.id,
        details={
            "credit_id": credit.id,
            "customer_id": credit.customer_id,
            "customer_name": credit.customer.name,
            "amount": payment.amount,
            "payment_method": payment.payment_method,
            "new_balance": credit.balance,
            "is_paid": is_paid,
        },
        request=request,
    )

    if is_paid:
        message = "Pago registrado. Crédito totalmente pagado."
    else:
        message = f"Pago registrado. Saldo pendiente: {format_currency(credit.balance)}"

    return Response(
        {
            "payment": CreditPaymentSerializer(payment).data,
            "credit": CreditSerializer(_get_credit(request, credit.id)).data,
            "message": message,
        },
        status=status.HTTP_201_CREATED,
    )


class PaymentListView(generics.ListAPIView):
    """
    API endpoint for listing every credit payment of the tenant.

    Query parameters:
    - customer_id, credit_id, payment_method
    - start_date / end_date: Payment date range (YYYY-MM-DD)
    """

    serializer_class = CreditPaymentSerializer
    permission_classes = CREDIT_PERMISSIONS + [HasRolePermission]
    required_permission = "credits:view"

    def get_queryset(self):
        queryset = CreditPayment.objects.filter(tenant=self.request.user.tenant)
        params = self.request.query_params

        if params.get("customer_id"):
            queryset = queryset.filter(customer_id=params["customer_id"])
        if params.get("credit_id"):
            queryset = queryset.filter(credit_id=params["credit_id"])
        if params.get("payment_method"):
            queryset = queryset.filter(payment_method=params["payment_method"])

        start_date = date_param(params, "start_date")
        if start_date:
            queryset = queryset.filter(paid_at__date__gte=start_date)

        end_date = date_param(params, "end_date")
        if end_date:
            queryset = queryset.filter(paid_at__date__lte=end_date)

        return queryset.order_by("-paid_at")
