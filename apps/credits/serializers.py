"""
Serializers for customer credits and credit payments.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from rest_framework import serializers

from apps.core.exceptions import DomainError, NotFoundError
from apps.core.formatting_utils import format_currency
from apps.sales.models import Customer, Document

from .models import Credit, CreditPayment
from .validators import validate_credit_limit, validate_payment_amount

logger = logging.getLogger(__name__)

MAX_CREDIT_AMOUNT = Decimal("100000000")


class CreditPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = CreditPayment
        fields = [
            "id",
            "credit",
            "customer",
            "amount",
            "payment_method",
            "reference",
            "notes",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields


class CreditSerializer(serializers.ModelSerializer):
    """Serializer for Credit model with its customer, document and payments."""

    customer = serializers.SerializerMethodField()
    document = serializers.SerializerMethodField()
    payments = CreditPaymentSerializer(many=True, read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Credit
        fields = [
            "id",
            "customer",
            "document",
            "amount",
            "balance",
            "status",
            "due_date",
            "description",
            "notes",
            "is_overdue",
            "payments",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_customer(self, obj):
        customer = obj.customer
        return {
            "id": str(customer.id),
            "name": customer.name,
            "rut": customer.rut,
            "email": customer.email,
            "phone": customer.phone,
            "current_debt": str(customer.current_debt),
            "credit_limit": str(customer.credit_limit) if customer.credit_limit is not None else None,
        }

    def get_document(self, obj):
        if obj.document is None:
            return None
        return {
            "id": str(obj.document.id),
            "type": obj.document.doc_type,
            "doc_number": obj.document.doc_number,
            "doc_prefix": obj.document.doc_prefix,
            "total": str(obj.document.total),
            "issued_at": obj.document.issued_at,
        }


class CreditCreateSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField()
    document_id = serializers.UUIDField(required=False, allow_null=True)
    amount = serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        min_value=Decimal("0.01"),
        max_value=MAX_CREDIT_AMOUNT,
    )
    due_date = serializers.DateTimeField()
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    @transaction.atomic
    def create(self, validated_data):
        """
        Grant a credit and add it to the customer's debt.

        1. The customer must belong to the tenant
        2. The new debt must fit within the customer's credit limit
        3. The optional document must belong to the tenant
        """
        request = self.context["request"]
        tenant = request.user.tenant

        try:
            customer = Customer.objects.select_for_update().get(
                id=validated_data["customer_id"], tenant=tenant
            )
        except Customer.DoesNotExist:
            raise NotFoundError("Cliente no encontrado")

        amount = validated_data["amount"]
        valid, message = validate_credit_limit(customer.current_debt, amount, customer.credit_limit)
        if not valid:
            raise DomainError(message)

        document = None
        document_id = validated_data.get("document_id")
        if document_id:
            try:
                document = Document.objects.get(id=document_id, tenant=tenant)
            except Document.DoesNotExist:
                raise NotFoundError("Documento no encontrado")

        credit = Credit.objects.create(
            tenant=tenant,
            customer=customer,
            document=document,
            amount=amount,
            balance=amount,
            status=Credit.ACTIVE,
            due_date=validated_data["due_date"],
            description=validated_data.get("description") or "",
            notes=validated_data.get("notes") or "",
            created_by=request.user,
        )
        Customer.objects.filter(id=customer.id).update(current_debt=F("current_debt") + amount)
        return credit


class CreditUpdateSerializer(serializers.Serializer):
    due_date = serializers.DateTimeField(required=False)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    status = serializers.ChoiceField(choices=Credit.STATUS_CHOICES, required=False)

    @transaction.atomic
    def update(self, instance, validated_data):
        """
        Cancelling a credit with an open balance forgives it: the balance is
        removed from the customer's debt and set to zero.
        """
        new_status = validated_data.get("status")
        if new_status == Credit.CANCELED and instance.balance > 0:
            Customer.objects.filter(id=instance.customer_id).update(
                current_debt=F("current_debt") - instance.balance
            )
            instance.balance = Decimal("0.00")

        for field in ("due_date", "status"):
            if field in validated_data:
                setattr(instance, field, validated_data[field])
        for field in ("description", "notes"):
            if field in validated_data:
                setattr(instance, field, validated_data[field] or "")

        instance.save()
        return instance


class CreditPaymentCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        min_value=Decimal("0.01"),
        max_value=MAX_CREDIT_AMOUNT,
    )
    payment_method = serializers.ChoiceField(
        choices=CreditPayment.METHOD_CHOICES,
        error_messages={"invalid_choice": "El método de pago es requerido"},
    )
    reference = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    paid_at = serializers.DateTimeField(required=False)

    @transaction.atomic
    def create(self, validated_data):
        """
        Apply a payment to the credit in context.

        The credit balance and the customer's debt both decrease by the
        amount. A credit paid down to zero becomes PAID.
        """
        request = self.context["request"]
        credit = Credit.objects.select_for_update().get(id=self.context["credit"].id)

        if not credit.can_receive_payment():
            raise DomainError("El crédito no está activo")

        amount = validated_data["amount"]
        if not validate_payment_amount(amount, credit.balance):
            raise DomainError(
                f"El monto del pago ({format_currency(amount)}) excede el saldo "
                f"pendiente ({format_currency(credit.balance)})"
            )

        payment = CreditPayment.objects.create(
            tenant=credit.tenant,
            credit=credit,
            customer_id=credit.customer_id,
            amount=amount,
            payment_method=validated_data["payment_method"],
            reference=validated_data.get("reference") or "",
            notes=validated_data.get("notes") or "",
            paid_at=validated_data.get("paid_at") or timezone.now(),
            created_by=request.user,
        )

        credit.balance = credit.balance - amount
        if credit.balance == 0:
            credit.status = Credit.PAID
        credit.save(update_fields=["balance", "status", "updated_at"])

        Customer.objects.filter(id=credit.customer_id).update(
            current_debt=F("current_debt") - amount
        )
        self.context["credit"] = credit
        return payment
