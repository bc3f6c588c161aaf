from django.contrib import admin

from .models import OperationalExpense, TreasuryMovement


@admin.register(OperationalExpense)
class OperationalExpenseAdmin(admin.ModelAdmin):
    list_display = ["title", "category", "amount", "payment_method", "expense_date", "tenant"]
    list_filter = ["payment_method", "tenant"]
    search_fields = ["title", "description", "category"]
    date_hierarchy = "expense_date"


@admin.register(TreasuryMovement)
class TreasuryMovementAdmin(admin.ModelAdmin):
    list_display = ["title", "type", "category", "source", "amount", "occurred_at", "tenant"]
    list_filter = ["type", "category", "source", "tenant"]
    search_fields = ["title", "description", "reference"]
    date_hierarchy = "occurred_at"
