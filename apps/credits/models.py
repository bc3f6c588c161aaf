"""
Credit models.

A credit is debt a customer owes the tenant, usually from a sale paid with
the CREDIT method. The customer's ``current_debt`` is kept equal to the sum
of the open balances of its credits.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from apps.core.models import Tenant
from apps.sales.models import Customer, Document


class Credit(models.Model):
    """
    Store credit granted to a customer.
    """

    ACTIVE = "ACTIVE"
    PAID = "PAID"
    CANCELED = "CANCELED"
    OVERDUE = "OVERDUE"

    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (PAID, "Paid"),
        (CANCELED, "Canceled"),
        (OVERDUE, "Overdue"),
    ]

    PAYABLE_STATUSES = [ACTIVE, OVERDUE]

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the credit",
    )

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="credits",
        help_text="Tenant that owns this credit",
    )

    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name="credits",
        help_text="Customer who owes the credit",
    )

    document = models.ForeignKey(
        Document,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="credits",
        help_text="Sale that originated the credit",
    )

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
        help_text="Original amount",
    )

    balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Amount still owed",
    )

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=ACTIVE)

    due_date = models.DateTimeField(help_text="Date the credit must be paid")

    description = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="credits_created",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "credits"
        ordering = ["status", "due_date"]
        verbose_name = "Credit"
        verbose_name_plural = "Credits"
        indexes = [
            models.Index(fields=["tenant", "status"], name="credit_tenant_status_idx"),
            models.Index(fields=["tenant", "due_date"], name="credit_tenant_due_idx"),
            models.Index(fields=["customer", "status"], name="credit_customer_status_idx"),
        ]

    def __str__(self):
        return f"Crédito {self.customer} - {self.balance}/{self.amount}"

    def is_overdue(self):
        """An active credit past its due date."""
        return self.status == self.ACTIVE and self.due_date < timezone.now()

    def can_receive_payment(self):
        return self.status in self.PAYABLE_STATUSES


class CreditPayment(models.Model):
    """
    Payment applied to a credit.
    """

    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    CHECK = "CHECK"
    OTHER = "OTHER"

    METHOD_CHOICES = [
        (CASH, "Cash"),
        (CARD, "Card"),
        (TRANSFER, "Transfer"),
        (CHECK, "Check"),
        (OTHER, "Other"),
    ]

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the payment",
    )

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="credit_payments",
    )

    credit = models.ForeignKey(
        Credit,
        on_delete=models.CASCADE,
        related_name="payments",
    )

    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name="credit_payments",
    )

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )

    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES)

    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)

    paid_at = models.DateTimeField(default=timezone.now, db_index=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="credit_payments_created",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "credit_payments"
        ordering = ["-paid_at"]
        verbose_name = "Credit Payment"
        verbose_name_plural = "Credit Payments"
        indexes = [
            models.Index(fields=["tenant", "-paid_at"], name="payment_tenant_paid_idx"),
            models.Index(fields=["credit", "-paid_at"], name="payment_credit_paid_idx"),
        ]

    def __str__(self):
        return f"Pago {self.amount} ({self.payment_method})"
