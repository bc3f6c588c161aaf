"""
Service project models.

A project is usually born from an approved quote. Its ``actual_cost`` is
kept in step with the resources and expenses charged to it, and payments
collected are tracked against the contracted amount.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone

from apps.core.models import Tenant
from apps.inventory.models import Product
from apps.sales.models import Customer, Document


class Project(models.Model):
    """
    Service project of a tenant.
    """

    ACTIVE = "ACTIVE"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (ON_HOLD, "On hold"),
        (COMPLETED, "Completed"),
        (CANCELLED, "Cancelled"),
    ]

    OPEN_STATUSES = [ACTIVE, ON_HOLD]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="projects",
    )
    quote = models.OneToOneField(
        Document,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="project",
        limit_choices_to={"doc_type": Document.QUOTE},
        help_text="Quote this project was converted from",
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="projects",
    )

    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=ACTIVE)

    budget = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    contracted_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount agreed with the customer, usually the quote total",
    )
    actual_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="projects_created",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "projects"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["tenant", "status"], name="project_tenant_status_idx"),
            models.Index(fields=["tenant", "-created_at"], name="project_tenant_created_idx"),
        ]

    def __str__(self):
        return self.name

    def add_cost(self, amount):
        """Atomically move ``actual_cost`` by ``amount`` (negative to subtract)."""
        if not amount:
            return
        Project.objects.filter(id=self.id).update(actual_cost=F("actual_cost") + amount)

    def get_contracted_amount(self):
        """Contracted amount, falling back to the quote total."""
        if self.contracted_amount is not None:
            return self.contracted_amount
        if self.quote_id and self.quote is not None:
            return self.quote.total
        return None


class ProjectMilestone(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="project_milestones")
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name="milestones")

    name = models.CharField(max_length=140)
    description = models.TextField(blank=True)
    due_date = models.DateTimeField(null=True, blank=True)
    estimated_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    is_completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    position = models.PositiveIntegerField(default=0)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "project_milestones"
        ordering = ["position", "created_at"]

    def __str__(self):
        return f"{self.project.name} - {self.name}"

    def is_overdue(self, now=None):
        now = now or timezone.now()
        return bool(self.due_date and not self.is_completed and self.due_date < now)


class ProjectResource(models.Model):
    """
    Material or service consumed by a project.

    ``total_cost`` is the consumed quantity times the unit cost, and the
    consumed quantity never exceeds the planned quantity.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="project_resources")
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name="resources")
    milestone = models.ForeignKey(
        ProjectMilestone,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resources",
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="project_resources",
    )

    sku = models.CharField(max_length=120, blank=True)
    name = models.CharField(max_length=180)
    unit = models.CharField(max_length=40, default="unidad")
    quantity = models.DecimalField(
        max_digits=12, decimal_places=3, validators=[MinValueValidator(Decimal("0.001"))]
    )
    consumed_quantity = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal("0")
    )
    unit_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "project_resources"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} x {self.quantity}"

    @staticmethod
    def compute_cost(quantity, consumed_quantity, unit_cost):
        """
        Return ``(consumed_quantity, total_cost)`` with consumption capped at quantity.
        """
        consumed = min(consumed_quantity or Decimal("0"), quantity)
        total = (consumed * unit_cost).quantize(Decimal("0.01"))
        return consumed, total


class ProjectExpense(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="project_expenses")
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name="expenses")
    milestone = models.ForeignKey(
        ProjectMilestone,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="expenses",
    )

    description = models.CharField(max_length=180)
    category = models.CharField(max_length=80, blank=True)
    amount = models.DecimalField(
        max_digits=14, decimal_places=2, validators=[MinValueValidator(Decimal("0.01"))]
    )
    expense_date = models.DateTimeField(default=timezone.now, db_index=True)
    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "project_expenses"
        ordering = ["-expense_date"]

    def __str__(self):
        return f"{self.description} - {self.amount}"


class ProjectPayment(models.Model):
    """Payment collected from the customer for a project."""

    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    CHECK = "CHECK"
    OTHER = "OTHER"

    PAYMENT_METHOD_CHOICES = [
        (CASH, "Cash"),
        (CARD, "Card"),
        (TRANSFER, "Transfer"),
        (CHECK, "Check"),
        (OTHER, "Other"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="project_payments")
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name="payments")

    amount = models.DecimalField(
        max_digits=14, decimal_places=2, validators=[MinValueValidator(Decimal("0.01"))]
    )
    payment_method = models.CharField(
        max_length=20, choices=PAYMENT_METHOD_CHOICES, default=TRANSFER
    )
    paid_at = models.DateTimeField(default=timezone.now, db_index=True)
    reference = models.CharField(max_length=120, blank=True)
    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "project_payments"
        ordering = ["-paid_at"]

    def __str__(self):
        return f"{self.project.name} - {self.amount}"
