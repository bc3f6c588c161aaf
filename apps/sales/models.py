"""
Sales models for the retail POS.

- Customers with a credit limit and the debt they currently owe
- Documents (sales, quotes, invoices, receipts, credit notes) numbered
  sequentially per tenant and type
- Document items with their tax-inclusive totals
"""

import math
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Max
from django.utils import timezone

from apps.core.models import Tenant
from apps.core.validators import rut_validator
from apps.inventory.models import Product


class Customer(models.Model):
    """
    Customer of a tenant.

    ``current_debt`` is the open balance of the customer's credits and is
    bounded by ``credit_limit`` when new credit is granted.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the customer",
    )

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="customers",
        help_text="Tenant that owns this customer",
    )

    rut = models.CharField(
        max_length=20,
        null=True,
        blank=True,
        validators=[rut_validator],
        help_text="Chilean tax id, cleaned (no dots or dash)",
    )

    name = models.CharField(max_length=200, help_text="Customer or company name")

    company = models.CharField(max_length=200, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    region = models.CharField(max_length=100, blank=True)

    credit_limit = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Maximum debt allowed on credit sales",
    )

    current_debt = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Outstanding balance of the customer's credits",
    )

    notes = models.TextField(blank=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "sales_customers"
        ordering = ["name"]
        verbose_name = "Customer"
        verbose_name_plural = "Customers"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "rut"],
                condition=models.Q(rut__isnull=False),
                name="unique_customer_rut_per_tenant",
            )
        ]
        indexes = [
            models.Index(fields=["tenant", "name"], name="cust_tenant_name_idx"),
            models.Index(fields=["tenant", "rut"], name="cust_tenant_rut_idx"),
        ]

    def __str__(self):
        return self.name

    def available_credit(self):
        """Credit still available, never negative."""
        limit = self.credit_limit or Decimal("0.00")
        return max(limit - self.current_debt, Decimal("0.00"))


class Document(models.Model):
    """
    Commercial document issued by a tenant.

    Sales paid at the point of sale are linked to the open cash register of
    the seller. Only DRAFT and PENDING documents can be edited; any
    non-cancelled document can be cancelled.
    """

    # Document types
    SALE = "SALE"
    QUOTE = "QUOTE"
    INVOICE = "INVOICE"
    RECEIPT = "RECEIPT"
    CREDIT_NOTE = "CREDIT_NOTE"

    TYPE_CHOICES = [
        (SALE, "Sale"),
        (QUOTE, "Quote"),
        (INVOICE, "Invoice"),
        (RECEIPT, "Receipt"),
        (CREDIT_NOTE, "Credit Note"),
    ]

    # Status choices
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"

    STATUS_CHOICES = [
        (DRAFT, "Draft"),
        (PENDING, "Pending"),
        (APPROVED, "Approved"),
        (PAID, "Paid"),
        (CANCELLED, "Cancelled"),
    ]

    EDITABLE_STATUSES = [DRAFT, PENDING]

    # Payment methods
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    CHECK = "CHECK"
    CREDIT = "CREDIT"
    MULTI = "MULTI"

    PAYMENT_METHOD_CHOICES = [
        (CASH, "Cash"),
        (CARD, "Card"),
        (TRANSFER, "Transfer"),
        (CHECK, "Check"),
        (CREDIT, "Credit"),
        (MULTI, "Multiple"),
    ]

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the document",
    )

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="documents",
        help_text="Tenant that owns this document",
    )

    doc_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=SALE)

    doc_number = models.PositiveIntegerField(
        help_text="Sequential number within tenant and document type",
    )

    doc_prefix = models.CharField(max_length=20, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=DRAFT)

    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="documents",
        help_text="Customer (optional for walk-in sales)",
    )

    cash_register = models.ForeignKey(
        "cash_register.CashRegister",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="documents",
        help_text="Cash register that was open when the sale was paid",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="documents_created",
        help_text="User who issued the document",
    )

    payment_method = models.CharField(
        max_length=20, choices=PAYMENT_METHOD_CHOICES, default=CASH
    )

    # Financial details
    subtotal = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Net amount, tax excluded",
    )

    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("19.00"))

    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    discount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Global discount applied to the document",
    )

    total = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Amount to pay, tax included",
    )

    cash_received = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    cash_change = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    card_commission_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Card processor commission on CARD payments",
    )

    notes = models.TextField(blank=True)

    issued_at = models.DateTimeField(default=timezone.now, db_index=True)
    due_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "sales_documents"
        ordering = ["-issued_at"]
        verbose_name = "Document"
        verbose_name_plural = "Documents"
        unique_together = [["tenant", "doc_type", "doc_number"]]
        indexes = [
            models.Index(fields=["tenant", "-issued_at"], name="doc_tenant_date_idx"),
            models.Index(fields=["tenant", "doc_type", "status"], name="doc_tenant_type_status_idx"),
            models.Index(fields=["tenant", "payment_method"], name="doc_tenant_payment_idx"),
            models.Index(fields=["customer", "-issued_at"], name="doc_cust_date_idx"),
            models.Index(fields=["created_by", "paid_at"], name="doc_user_paid_idx"),
        ]

    def __str__(self):
        return f"{self.doc_type} #{self.doc_number} - {self.total}"

    @classmethod
    def next_number(cls, tenant, doc_type):
        """
        Next sequential number for ``doc_type`` within ``tenant``.

        Locks the tenant row first, so two sales of the same tenant committed
        at once are numbered one after the other. Call it inside a transaction.
        """
        Tenant.objects.select_for_update().filter(pk=tenant.pk).first()
        last = cls.objects.filter(tenant=tenant, doc_type=doc_type).aggregate(
            last=Max("doc_number")
        )["last"]
        return (last or 0) + 1

    def is_editable(self):
        return self.status in self.EDITABLE_STATUSES

    def can_be_cancelled(self):
        """Check if this document can be cancelled."""
        return self.status != self.CANCELLED

    def cancel(self):
        """Mark the document as cancelled."""
        if not self.can_be_cancelled():
            raise ValueError("El documento ya está cancelado")
        self.status = self.CANCELLED
        self.save(update_fields=["status", "updated_at"])

    def move_stock(self, direction):
        """
        Move stock of tracked products for every item.

        ``direction`` is -1 when a sale is paid and +1 when it is cancelled.
        Fractional quantities move their whole part only.
        """
        for item in self.items.select_related("product"):
            product = item.product
            if product is None or not product.track_inventory:
                continue
            units = math.floor(item.quantity)
            Product.objects.filter(id=product.id).update(
                current_stock=F("current_stock") + direction * units
            )


class DocumentItem(models.Model):
    """
    Line of a document.

    Name and SKU are copied from the product so the document keeps them if
    the product changes later.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the document item",
    )

    document = models.ForeignKey(
        Document,
        on_delete=models.CASCADE,
        related_name="items",
        help_text="Document this line belongs to",
    )

    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="document_items",
        help_text="Catalog product, empty for free-text lines",
    )

    sku = models.CharField(max_length=100, blank=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    quantity = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        validators=[MinValueValidator(Decimal("0.001"))],
    )

    unit = models.CharField(max_length=20, default="unidad")

    unit_price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Unit price at time of sale, tax included",
    )

    discount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("19.00"))

    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "sales_document_items"
        ordering = ["created_at"]
        verbose_name = "Document Item"
        verbose_name_plural = "Document Items"
        indexes = [
            models.Index(fields=["document"], name="docitem_document_idx"),
            models.Index(fields=["product"], name="docitem_product_idx"),
        ]

    def __str__(self):
        return f"{self.name} x {self.quantity}"
