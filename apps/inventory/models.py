"""
Inventory models for the retail POS.

Products and services sold at the point of sale, grouped in categories.
Stock is tracked per product when ``track_inventory`` is set.
"""

import uuid
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from apps.core.models import Tenant


class Category(models.Model):
    """
    Product category, tenant-scoped.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the category",
    )

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="categories",
        help_text="Tenant that owns this category",
    )

    name = models.CharField(max_length=100, help_text="Category name")

    description = models.TextField(
        blank=True,
        help_text="Optional description of the category",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "inventory_categories"
        ordering = ["name"]
        verbose_name = "Category"
        verbose_name_plural = "Categories"
        unique_together = [["tenant", "name"]]

    def __str__(self):
        return self.name


class Product(models.Model):
    """
    Product or service in the tenant catalog.

    Prices include tax (``tax_rate`` percent). Services never track stock.
    """

    PRODUCT = "PRODUCT"
    SERVICE = "SERVICE"

    TYPE_CHOICES = [
        (PRODUCT, "Product"),
        (SERVICE, "Service"),
    ]

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the product",
    )

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="products",
        help_text="Tenant that owns this product",
    )

    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="products",
        help_text="Optional category",
    )

    product_type = models.CharField(
        max_length=20,
        choices=TYPE_CHOICES,
        default=PRODUCT,
        help_text="Physical product or service",
    )

    sku = models.CharField(
        max_length=100,
        help_text="Stock Keeping Unit, unique within the tenant",
    )

    barcode = models.CharField(
        max_length=100,
        blank=True,
        help_text="Commercial barcode (EAN-13, UPC, Code128)",
    )

    name = models.CharField(max_length=255, help_text="Product name")

    description = models.TextField(blank=True, help_text="Product description")

    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Selling price, tax included",
    )

    cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Unit cost, used for cost of sales and inventory valuation",
    )

    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("19.00"),
        validators=[MinValueValidator(Decimal("0.00")), MaxValueValidator(Decimal("100.00"))],
        help_text="Tax percentage included in the price",
    )

    track_inventory = models.BooleanField(
        default=True,
        help_text="Whether stock is decremented on sales",
    )

    current_stock = models.IntegerField(default=0, help_text="Units on hand")

    min_stock = models.IntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text="Minimum quantity threshold for low stock alerts",
    )

    unit = models.CharField(max_length=20, default="unidad", help_text="Unit of measure")

    is_active = models.BooleanField(
        default=True,
        help_text="Inactive products are hidden from the point of sale",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "inventory_products"
        ordering = ["name"]
        verbose_name = "Product"
        verbose_name_plural = "Products"
        unique_together = [["tenant", "sku"]]
        indexes = [
            models.Index(fields=["tenant", "is_active"], name="prod_tenant_active_idx"),
            models.Index(fields=["tenant", "category"], name="prod_tenant_category_idx"),
            models.Index(fields=["tenant", "barcode"], name="prod_tenant_barcode_idx"),
        ]

    def __str__(self):
        return f"{self.sku} - {self.name}"

    def save(self, *args, **kwargs):
        if self.product_type == self.SERVICE:
            self.track_inventory = False
            self.current_stock = 0
            self.min_stock = 0
        super().save(*args, **kwargs)

    def is_low_stock(self):
        """Check if a tracked product is at or below its minimum quantity."""
        return self.track_inventory and self.current_stock <= self.min_stock

    def is_out_of_stock(self):
        return self.track_inventory and self.current_stock <= 0

    def inventory_value(self):
        """Stock valued at cost (zero when untracked or without cost)."""
        if not self.track_inventory or self.cost is None:
            return Decimal("0.00")
        return self.cost * self.current_stock
