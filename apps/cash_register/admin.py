from django.contrib import admin

from .models import CashRegister


@admin.register(CashRegister)
class CashRegisterAdmin(admin.ModelAdmin):
    list_display = [
        "user",
        "status",
        "opening_cash",
        "expected_cash",
        "closing_cash",
        "difference",
        "tenant",
        "opened_at",
        "closed_at",
    ]
    list_filter = ["status", "tenant"]
    search_fields = ["user__email", "user__username", "notes"]
    readonly_fields = [
        "status",
        "expected_cash",
        "difference",
        "total_sales",
        "sales_count",
        "created_at",
        "updated_at",
    ]
