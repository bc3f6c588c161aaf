"""
Procurement models for suppliers and accounts payable.

An account payable is a supplier document (invoice, receipt) the tenant
owes. Payments reduce its balance until it is PAID.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from apps.core.models import Tenant


class Supplier(models.Model):
    """
    Supplier of a tenant. Names are unique per tenant.
    """

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"

    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (INACTIVE, "Inactive"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="suppliers",
        help_text="Tenant that owns this supplier",
    )

    name = models.CharField(max_length=120, help_text="Supplier company name")
    rut = models.CharField(max_length=20, blank=True, help_text="Supplier tax id")
    contact_name = models.CharField(
        max_length=120, blank=True, help_text="Primary contact person name"
    )

    email = models.EmailField(blank=True, help_text="Primary email address")
    phone = models.CharField(max_length=30, blank=True, help_text="Primary phone number")
    address = models.CharField(max_length=200, blank=True, help_text="Complete address")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=ACTIVE)
    notes = models.TextField(blank=True, help_text="Internal notes about supplier")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "procurement_suppliers"
        unique_together = [["tenant", "name"]]
        indexes = [
            models.Index(fields=["tenant", "status"], name="supplier_tenant_status_idx"),
            models.Index(fields=["name"], name="supplier_name_idx"),
        ]
        ordering = ["status", "name"]

    def __str__(self):
        return self.name

    def has_open_payables(self):
        return self.payables.filter(status__in=AccountPayable.OPEN_STATUSES).exists()


class AccountPayable(models.Model):
    """
    Amount owed to a supplier.

    Status follows the balance and the due date: PAID at zero balance,
    OVERDUE past the due date, PARTIAL after a partial payment and PENDING
    otherwise. CANCELED is only set explicitly.
    """

    # Document types
    INVOICE = "INVOICE"
    RECEIPT = "RECEIPT"
    OTHER = "OTHER"

    DOCUMENT_TYPE_CHOICES = [
        (INVOICE, "Invoice"),
        (RECEIPT, "Receipt"),
        (OTHER, "Other"),
    ]

    # Status choices
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELED = "CANCELED"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (PARTIAL, "Partially paid"),
        (PAID, "Paid"),
        (OVERDUE, "Overdue"),
        (CANCELED, "Canceled"),
    ]

    OPEN_STATUSES = [PENDING, PARTIAL, OVERDUE]

    MAX_AMOUNT = Decimal("9999999999")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="accounts_payable",
        help_text="Tenant that owes this payable",
    )
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.PROTECT,
        related_name="payables",
        help_text="Supplier to be paid",
    )

    document_type = models.CharField(
        max_length=20, choices=DOCUMENT_TYPE_CHOICES, default=INVOICE
    )
    document_number = models.CharField(max_length=60, blank=True)
    description = models.CharField(max_length=200, blank=True)

    issue_date = models.DateTimeField(help_text="Date the supplier issued the document")
    due_date = models.DateTimeField(help_text="Date the payable must be paid")

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01")), MaxValueValidator(MAX_AMOUNT)],
        help_text="Original amount",
    )
    balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Amount still owed",
    )

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    paid_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="accounts_payable_created",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "procurement_accounts_payable"
        ordering = ["status", "due_date", "-created_at"]
        verbose_name = "Account Payable"
        verbose_name_plural = "Accounts Payable"
        indexes = [
            models.Index(fields=["tenant", "status"], name="payable_tenant_status_idx"),
            models.Index(fields=["tenant", "due_date"], name="payable_tenant_due_idx"),
            models.Index(fields=["supplier", "status"], name="payable_supplier_status_idx"),
        ]

    def __str__(self):
        return f"{self.supplier} {self.document_number or self.document_type} - {self.balance}"

    @staticmethod
    def initial_status(due_date, balance):
        """Status of a new payable."""
        if balance <= 0:
            return AccountPayable.PAID
        if due_date < timezone.now():
            return AccountPayable.OVERDUE
        return AccountPayable.PENDING

    @staticmethod
    def resolve_status(balance, due_date, requested_status=None):
        """
        Status after an edit. CANCELED and PAID are honored when requested;
        PARTIAL is kept on request even past the due date.
        """
        if requested_status in (AccountPayable.CANCELED, AccountPayable.PAID):
            return requested_status
        if balance <= 0:
            return AccountPayable.PAID
        if requested_status == AccountPayable.PARTIAL:
            return AccountPayable.PARTIAL
        if due_date < timezone.now():
            return AccountPayable.OVERDUE
        return AccountPayable.PENDING

    def next_status_after_payment(self, next_balance):
        if next_balance <= 0:
            return self.PAID
        if self.due_date < timezone.now():
            return self.OVERDUE
        return self.PARTIAL

    def is_settled(self):
        return self.status == self.PAID or self.balance <= 0

    def has_payments(self):
        return self.balance != self.amount
