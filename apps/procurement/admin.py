"""
Admin configuration for procurement models.
"""

from django.contrib import admin

from .models import AccountPayable, Supplier


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ["name", "rut", "contact_name", "email", "phone", "status", "tenant"]
    list_filter = ["status", "tenant"]
    search_fields = ["name", "rut", "contact_name", "email"]
    readonly_fields = ["created_at", "updated_at"]


@admin.register(AccountPayable)
class AccountPayableAdmin(admin.ModelAdmin):
    list_display = [
        "supplier",
        "document_type",
        "document_number",
        "amount",
        "balance",
        "status",
        "due_date",
        "tenant",
    ]
    list_filter = ["status", "document_type", "tenant"]
    search_fields = ["supplier__name", "document_number", "description"]
    readonly_fields = ["paid_at", "created_at", "updated_at"]
    date_hierarchy = "due_date"
