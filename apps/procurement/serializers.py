"""
Serializers for suppliers and accounts payable.
"""

from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from rest_framework import serializers

from apps.core.exceptions import DomainError, NotFoundError

from .models import AccountPayable, Supplier


class SupplierSerializer(serializers.ModelSerializer):
    """Serializer for Supplier model."""

    name = serializers.CharField(
        min_length=2,
        max_length=120,
        error_messages={
            "min_length": "El nombre del proveedor debe tener al menos 2 caracteres",
            "max_length": "El nombre del proveedor no puede superar 120 caracteres",
        },
    )
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)

    class Meta:
        model = Supplier
        fields = [
            "id",
            "name",
            "rut",
            "contact_name",
            "email",
            "phone",
            "address",
            "notes",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_name(self, value):
        value = value.strip()
        tenant = self.context["request"].user.tenant
        queryset = Supplier.objects.filter(tenant=tenant, name__iexact=value)
        if self.instance:
            queryset = queryset.exclude(id=self.instance.id)
        if queryset.exists():
            raise serializers.ValidationError("Ya existe un proveedor con este nombre")
        return value


class SupplierSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = ["id", "name", "rut", "status"]


class AccountPayableSerializer(serializers.ModelSerializer):
    """
    Serializer for AccountPayable model.

    Writes take ``supplier_id``; reads return a supplier summary.
    """

    supplier = SupplierSummarySerializer(read_only=True)
    supplier_id = serializers.UUIDField(write_only=True)
    amount = serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        min_value=Decimal("0.01"),
        max_value=AccountPayable.MAX_AMOUNT,
    )
    balance = serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        min_value=Decimal("0.00"),
        max_value=AccountPayable.MAX_AMOUNT,
        required=False,
    )
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)

    class Meta:
        model = AccountPayable
        fields = [
            "id",
            "supplier",
            "supplier_id",
            "document_type",
            "document_number",
            "description",
            "issue_date",
            "due_date",
            "amount",
            "balance",
            "status",
            "paid_at",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        extra_kwargs = {"status": {"required": False}}

    def validate_supplier_id(self, value):
        tenant = self.context["request"].user.tenant
        if not Supplier.objects.filter(id=value, tenant=tenant).exists():
            raise NotFoundError("Proveedor no encontrado")
        return value

    def validate(self, attrs):
        issue_date = attrs.get("issue_date", getattr(self.instance, "issue_date", None))
        due_date = attrs.get("due_date", getattr(self.instance, "due_date", None))
        if issue_date and due_date and due_date < issue_date:
            raise serializers.ValidationError(
                {"due_date": "La fecha de vencimiento debe ser igual o posterior a la de emisión"}
            )
        return attrs

    def create(self, validated_data):
        request = self.context["request"]
        validated_data.pop("balance", None)
        validated_data.pop("status", None)
        amount = validated_data["amount"]
        return AccountPayable.objects.create(
            tenant=request.user.tenant,
            created_by=request.user,
            balance=amount,
            status=AccountPayable.initial_status(validated_data["due_date"], amount),
            **validated_data,
        )

    def update(self, instance, validated_data):
        if instance.status == AccountPayable.PAID:
            raise DomainError("No se puede editar una cuenta por pagar saldada")

        next_balance = validated_data.get("balance", instance.balance)
        next_due_date = validated_data.get("due_date", instance.due_date)
        validated_data["status"] = AccountPayable.resolve_status(
            next_balance, next_due_date, validated_data.get("status")
        )
        return super().update(instance, validated_data)


class AccountPayablePaymentSerializer(serializers.Serializer):
    payment_amount = serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        min_value=Decimal("0.01"),
        max_value=AccountPayable.MAX_AMOUNT,
        error_messages={"required": "El monto del pago es requerido"},
    )
    paid_at = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True, allow_null=True)

    @transaction.atomic
    def save(self):
        """
        Apply the payment to the payable in context.

        Returns:
            tuple (payable, previous_balance)
        """
        payable = AccountPayable.objects.select_for_update().get(id=self.context["payable"].id)

        if payable.is_settled():
            raise DomainError("La cuenta por pagar ya está saldada")
        if payable.status == AccountPayable.CANCELED:
            raise DomainError("La cuenta por pagar está anulada")

        amount = self.validated_data["payment_amount"]
        if amount > payable.balance:
            raise DomainError("El pago no puede ser mayor al saldo pendiente")

        previous_balance = payable.balance
        next_balance = previous_balance - amount
        payable.status = payable.next_status_after_payment(next_balance)
        payable.balance = next_balance
        if next_balance <= 0:
            payable.paid_at = self.validated_data.get("paid_at") or timezone.now()

        notes = (self.validated_data.get("notes") or "").strip()
        if notes:
            payable.notes = "\n".join(filter(None, [payable.notes, notes]))

        payable.save()
        return payable, previous_balance
