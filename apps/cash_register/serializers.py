"""
Serializers for cash register shifts.
"""

from decimal import Decimal

from rest_framework import serializers

from .models import CashRegister


class CashRegisterSerializer(serializers.ModelSerializer):
    """Serializer for CashRegister model."""

    user_name = serializers.SerializerMethodField()
    closed_by_name = serializers.SerializerMethodField()

    class Meta:
        model = CashRegister
        fields = [
            "id",
            "user",
            "user_name",
            "closed_by",
            "closed_by_name",
            "status",
            "opening_cash",
            "expected_cash",
            "closing_cash",
            "difference",
            "total_sales",
            "sales_count",
            "notes",
            "opened_at",
            "closed_at",
        ]
        read_only_fields = fields

    def get_user_name(self, obj):
        return obj.user.get_full_name() or obj.user.email

    def get_closed_by_name(self, obj):
        if obj.closed_by is None:
            return None
        return obj.closed_by.get_full_name() or obj.closed_by.email


class OpenCashRegisterSerializer(serializers.Serializer):
    opening_cash = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0.00")
    )
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class CloseCashRegisterSerializer(serializers.Serializer):
    closing_cash = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0.00")
    )
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
