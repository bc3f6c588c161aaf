"""
Admin configuration for sales models.
"""

from django.contrib import admin

from .models import Customer, Document, DocumentItem


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ["name", "rut", "email", "credit_limit", "current_debt", "tenant", "is_active"]
    list_filter = ["is_active", "tenant"]
    search_fields = ["name", "rut", "email", "phone"]
    readonly_fields = ["created_at", "updated_at"]


class DocumentItemInline(admin.TabularInline):
    model = DocumentItem
    extra = 0
    readonly_fields = ["subtotal", "tax_amount", "total"]


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    """Admin interface for Document."""

    list_display = [
        "doc_number",
        "doc_type",
        "status",
        "customer",
        "payment_method",
        "total",
        "tenant",
        "issued_at",
    ]
    list_filter = ["doc_type", "status", "payment_method", "tenant"]
    search_fields = ["doc_number", "customer__name", "notes"]
    readonly_fields = ["created_at", "updated_at"]
    inlines = [DocumentItemInline]
    date_hierarchy = "issued_at"
