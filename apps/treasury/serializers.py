"""
Serializers for operational expenses and treasury movements.
"""

from decimal import Decimal

from rest_framework import serializers

from apps.cash_register.models import CashRegister
from apps.core.exceptions import NotFoundError
from apps.procurement.models import AccountPayable

from .models import OperationalExpense, TreasuryMovement

TITLE_ERRORS = {
    "min_length": "El nombre debe tener al menos 2 caracteres",
    "max_length": "El nombre no puede superar 120 caracteres",
}


class OperationalExpenseSerializer(serializers.ModelSerializer):
    """
    Serializer for OperationalExpense model.

    When no register is given, the expense is attached to the user's open
    register, if any.
    """

    title = serializers.CharField(min_length=2, max_length=120, error_messages=TITLE_ERRORS)
    description = serializers.CharField(
        max_length=2000, required=False, allow_blank=True, allow_null=True
    )
    category = serializers.CharField(
        max_length=80, required=False, allow_blank=True, allow_null=True
    )
    amount = serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        min_value=Decimal("0.01"),
        max_value=OperationalExpense.MAX_AMOUNT,
    )
    cash_register_id = serializers.UUIDField(required=False, allow_null=True)
    cash_register = serializers.SerializerMethodField()

    class Meta:
        model = OperationalExpense
        fields = [
            "id",
            "title",
            "description",
            "category",
            "amount",
            "payment_method",
            "expense_date",
            "reference",
            "cash_register_id",
            "cash_register",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        extra_kwargs = {"expense_date": {"required": False}}

    def get_cash_register(self, obj):
        if obj.cash_register is None:
            return None
        return {
            "id": str(obj.cash_register.id),
            "status": obj.cash_register.status,
            "opened_at": obj.cash_register.opened_at,
        }

    def validate_description(self, value):
        return value or ""

    def validate_category(self, value):
        return value or ""

    def validate_cash_register_id(self, value):
        if value is None:
            return value
        tenant = self.context["request"].user.tenant
        if not CashRegister.objects.filter(id=value, tenant=tenant).exists():
            raise NotFoundError("Caja no encontrada")
        return value

    def create(self, validated_data):
        request = self.context["request"]
        if not validated_data.get("cash_register_id"):
            active = CashRegister.objects.filter(
                tenant=request.user.tenant, user=request.user, status=CashRegister.OPEN
            ).first()
            validated_data["cash_register_id"] = active.id if active else None
        return OperationalExpense.objects.create(
            tenant=request.user.tenant, created_by=request.user, **validated_data
        )


class TreasuryMovementSerializer(serializers.ModelSerializer):
    """Serializer for TreasuryMovement model."""

    title = serializers.CharField(min_length=2, max_length=120, error_messages=TITLE_ERRORS)
    description = serializers.CharField(
        max_length=4000, required=False, allow_blank=True, allow_null=True
    )
    reference = serializers.CharField(
        max_length=120, required=False, allow_blank=True, allow_null=True
    )
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    account_payable_id = serializers.UUIDField(required=False, allow_null=True)
    account_payable = serializers.SerializerMethodField()

    class Meta:
        model = TreasuryMovement
        fields = [
            "id",
            "type",
            "category",
            "source",
            "title",
            "description",
            "reference",
            "amount",
            "occurred_at",
            "account_payable_id",
            "account_payable",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        extra_kwargs = {"occurred_at": {"required": False}}

    def get_account_payable(self, obj):
        payable = obj.account_payable
        if payable is None:
            return None
        return {
            "id": str(payable.id),
            "document_number": payable.document_number,
            "supplier_name": payable.supplier.name,
        }

    def validate_description(self, value):
        return value or ""

    def validate_reference(self, value):
        return value or ""

    def validate_account_payable_id(self, value):
        if self.instance is not None:
            raise serializers.ValidationError(
                "La cuenta por pagar vinculada no se puede modificar"
            )
        if value is None:
            return value
        tenant = self.context["request"].user.tenant
        if not AccountPayable.objects.filter(id=value, tenant=tenant).exists():
            raise NotFoundError("Cuenta por pagar no encontrada")
        return value

    def create(self, validated_data):
        request = self.context["request"]
        return TreasuryMovement.objects.create(
            tenant=request.user.tenant, created_by=request.user, **validated_data
        )
