"""
Treasury models.

- Operational expenses: rent, utilities, supplies and other running costs,
  optionally tied to the cash register they were paid from
- Treasury movements: money entering or leaving the business outside of
  sales and expenses (capital injections, owner withdrawals, loans)
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from apps.cash_register.models import CashRegister
from apps.core.models import Tenant
from apps.procurement.models import AccountPayable


class OperationalExpense(models.Model):
    """
    Running cost of the business.
    """

    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    OTHER = "OTHER"

    PAYMENT_METHOD_CHOICES = [
        (CASH, "Cash"),
        (CARD, "Card"),
        (TRANSFER, "Transfer"),
        (OTHER, "Other"),
    ]

    MAX_AMOUNT = Decimal("999999999")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="operational_expenses",
    )
    cash_register = models.ForeignKey(
        CashRegister,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="expenses",
        help_text="Register the expense was paid from",
    )

    title = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=80, blank=True)

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01")), MaxValueValidator(MAX_AMOUNT)],
    )
    payment_method = models.CharField(
        max_length=20, choices=PAYMENT_METHOD_CHOICES, default=CASH
    )
    expense_date = models.DateTimeField(default=timezone.now, db_index=True)
    reference = models.CharField(max_length=120, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="operational_expenses_created",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "treasury_operational_expenses"
        ordering = ["-expense_date"]
        verbose_name = "Operational Expense"
        verbose_name_plural = "Operational Expenses"
        indexes = [
            models.Index(fields=["tenant", "-expense_date"], name="opex_tenant_date_idx"),
            models.Index(fields=["tenant", "category"], name="opex_tenant_category_idx"),
        ]

    def __str__(self):
        return f"{self.title} - {self.amount}"


class TreasuryMovement(models.Model):
    """
    Money movement outside of sales and operational expenses.

    Movements of category ACCOUNT_PAYABLE_PAYMENT record supplier payments
    and cannot be edited or deleted.
    """

    INFLOW = "INFLOW"
    OUTFLOW = "OUTFLOW"

    TYPE_CHOICES = [
        (INFLOW, "Inflow"),
        (OUTFLOW, "Outflow"),
    ]

    CAPITAL_INJECTION = "CAPITAL_INJECTION"
    OWNER_WITHDRAWAL = "OWNER_WITHDRAWAL"
    LOAN_IN = "LOAN_IN"
    LOAN_OUT = "LOAN_OUT"
    ACCOUNT_PAYABLE_PAYMENT = "ACCOUNT_PAYABLE_PAYMENT"
    OTHER = "OTHER"

    CATEGORY_CHOICES = [
        (CAPITAL_INJECTION, "Capital injection"),
        (OWNER_WITHDRAWAL, "Owner withdrawal"),
        (LOAN_IN, "Loan received"),
        (LOAN_OUT, "Loan paid"),
        (ACCOUNT_PAYABLE_PAYMENT, "Account payable payment"),
        (OTHER, "Other"),
    ]

    CASH = "CASH"
    BANK = "BANK"
    TRANSFER = "TRANSFER"

    SOURCE_CHOICES = [
        (CASH, "Cash"),
        (BANK, "Bank"),
        (TRANSFER, "Transfer"),
        (OTHER, "Other"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="treasury_movements",
    )
    account_payable = models.ForeignKey(
        AccountPayable,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="treasury_movements",
    )

    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    category = models.CharField(max_length=30, choices=CATEGORY_CHOICES, default=OTHER)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default=OTHER)

    title = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    reference = models.CharField(max_length=120, blank=True)

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    occurred_at = models.DateTimeField(default=timezone.now, db_index=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="treasury_movements_created",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "treasury_movements"
        ordering = ["-occurred_at"]
        verbose_name = "Treasury Movement"
        verbose_name_plural = "Treasury Movements"
        indexes = [
            models.Index(fields=["tenant", "-occurred_at"], name="treasury_tenant_date_idx"),
            models.Index(fields=["tenant", "type", "category"], name="treasury_type_cat_idx"),
        ]

    def __str__(self):
        return f"{self.type} {self.title} - {self.amount}"

    def is_automatic(self):
        return self.category == self.ACCOUNT_PAYABLE_PAYMENT
