"""
Audit logging model for the retail POS SaaS platform.

Every business mutation (documents, cash registers, credits, payables,
projects, team and tenant administration) leaves one AuditLog row.
"""

import uuid

from django.conf import settings
from django.db import models


class AuditLog(models.Model):
    """
    Audit trail entry for an action performed inside a tenant.

    ``action`` is an upper-case verb such as CREATE_DOCUMENT or
    CLOSE_CASH_REGISTER; ``details`` keeps the action-specific payload.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the audit log entry",
    )

    # Tenant association (null for platform-level actions)
    tenant = models.ForeignKey(
        "core.Tenant",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
        help_text="Tenant associated with this action (null for platform actions)",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs_performed",
        help_text="User who performed the action",
    )

    action = models.CharField(
        max_length=60,
        db_index=True,
        help_text="Specific action performed",
    )

    entity_type = models.CharField(
        max_length=60,
        help_text="Kind of record affected (Document, CashRegister, Credit, ...)",
    )

    entity_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="ID of the affected record",
    )

    details = models.JSONField(
        null=True,
        blank=True,
        help_text="Action-specific payload (JSON format)",
    )

    # Request metadata
    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="IP address of the user",
    )

    user_agent = models.TextField(
        blank=True,
        help_text="User agent string of the browser/client",
    )

    timestamp = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the action was performed",
    )

    class Meta:
        db_table = "audit_logs"
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["tenant", "-timestamp"], name="audit_tenant_time_idx"),
            models.Index(fields=["entity_type", "entity_id"], name="audit_entity_idx"),
            models.Index(fields=["action", "-timestamp"], name="audit_action_time_idx"),
        ]
        verbose_name = "Audit Log"
        verbose_name_plural = "Audit Logs"

    def __str__(self):
        return f"{self.action} {self.entity_type}:{self.entity_id} at {self.timestamp}"
