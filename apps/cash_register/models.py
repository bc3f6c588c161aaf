"""
Cash register models.

A cash register is a shift of one seller: it is opened with a cash float,
collects the seller's paid documents and is closed with a cash count
("arqueo") that is compared with the expected cash.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from apps.core.models import Tenant


class CashRegister(models.Model):
    """
    Cash register shift, tenant-scoped.

    Lifecycle: OPEN -> CLOSED through ``close()``. Only one OPEN register
    per user and tenant is allowed.
    """

    OPEN = "OPEN"
    CLOSED = "CLOSED"

    STATUS_CHOICES = [
        (OPEN, "Open"),
        (CLOSED, "Closed"),
    ]

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the cash register",
    )

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="cash_registers",
        help_text="Tenant that owns this cash register",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="cash_registers_opened",
        help_text="User who opened the register",
    )

    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cash_registers_closed",
        help_text="User who closed the register",
    )

    status = FSMField(default=OPEN, choices=STATUS_CHOICES, help_text="Shift status")

    opening_cash = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Cash float at opening",
    )

    expected_cash = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Opening cash plus rounded cash sales",
    )

    closing_cash = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Cash counted at closing",
    )

    difference = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Counted cash minus expected cash",
    )

    total_sales = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    sales_count = models.PositiveIntegerField(default=0)

    notes = models.TextField(blank=True)

    opened_at = models.DateTimeField(default=timezone.now, db_index=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "cash_registers"
        ordering = ["-opened_at"]
        verbose_name = "Cash Register"
        verbose_name_plural = "Cash Registers"
        indexes = [
            models.Index(fields=["tenant", "-opened_at"], name="cashreg_tenant_opened_idx"),
            models.Index(fields=["tenant", "user", "status"], name="cashreg_user_status_idx"),
        ]

    def __str__(self):
        return f"Caja {self.user} ({self.status}) {self.opened_at:%Y-%m-%d %H:%M}"

    def is_open(self):
        return self.status == self.OPEN

    @transition(field=status, source=OPEN, target=CLOSED)
    def close(
        self, user, closing_cash, expected_cash, total_sales, sales_count, notes=None, closed_at=None
    ):
        """Close the shift with its cash count and sales figures."""
        self.closed_by = user
        self.closed_at = closed_at or timezone.now()
        self.closing_cash = closing_cash
        self.expected_cash = expected_cash
        self.difference = closing_cash - expected_cash
        self.total_sales = total_sales
        self.sales_count = sales_count
        if notes:
            self.notes = f"{self.notes or ''}\n\n--- CIERRE ---\n{notes}".strip()
