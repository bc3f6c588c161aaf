"""
Admin configuration for inventory models.
"""

from django.contrib import admin

from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ["name", "tenant", "created_at"]
    list_filter = ["tenant"]
    search_fields = ["name", "description"]
    readonly_fields = ["created_at", "updated_at"]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Admin interface for Product."""

    list_display = [
        "sku",
        "name",
        "product_type",
        "category",
        "price",
        "current_stock",
        "min_stock",
        "tenant",
        "is_active",
    ]
    list_filter = ["product_type", "is_active", "track_inventory", "tenant"]
    search_fields = ["sku", "name", "barcode", "description"]
    readonly_fields = ["created_at", "updated_at"]
    fieldsets = (
        (
            "Basic Information",
            {
                "fields": ("tenant", "sku", "barcode", "name", "description", "category"),
            },
        ),
        (
            "Pricing",
            {
                "fields": ("product_type", "price", "cost", "tax_rate"),
            },
        ),
        (
            "Stock",
            {
                "fields": ("track_inventory", "current_stock", "min_stock", "unit", "is_active"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )
