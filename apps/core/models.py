"""
Core models for the retail POS SaaS platform.

Tenants (organizations) and their business settings, users, memberships
with roles, team invitations and the subscription record created with each
tenant.
"""

import uuid

from django.contrib.auth.models import AbstractUser
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.text import slugify

# Import audit models to register them with Django
from apps.core.audit_models import AuditLog  # noqa: F401
from apps.core.modules import default_modules


class Tenant(models.Model):
    """
    Core tenant model for multi-tenancy.

    Each tenant represents a business (organization) that subscribes to the
    platform. Every domain record carries a foreign key to its tenant and all
    queries are filtered by it.
    """

    # Status choices
    ACTIVE = "ACTIVE"
    TRIAL = "TRIAL"
    SUSPENDED = "SUSPENDED"

    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (TRIAL, "Trial"),
        (SUSPENDED, "Suspended"),
    ]

    # Plan choices
    PLAN_BASIC = "BASIC"
    PLAN_PRO = "PRO"
    PLAN_ENTERPRISE = "ENTERPRISE"

    PLAN_CHOICES = [
        (PLAN_BASIC, "Basic"),
        (PLAN_PRO, "Pro"),
        (PLAN_ENTERPRISE, "Enterprise"),
    ]

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the tenant",
    )

    company_name = models.CharField(max_length=255, help_text="Legal or commercial name")

    rut = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        help_text="Chilean tax id, stored without dots or dashes",
    )

    slug = models.SlugField(
        unique=True, max_length=255, help_text="URL-friendly identifier for the tenant"
    )

    plan = models.CharField(
        max_length=20,
        choices=PLAN_CHOICES,
        default=PLAN_BASIC,
        help_text="Commercial plan of the tenant",
    )

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=ACTIVE,
        help_text="Current operational status of the tenant",
    )

    modules = models.JSONField(
        default=default_modules,
        blank=True,
        help_text="Enabled module keys (POS, INVENTORY, CREDITS, ...)",
    )

    card_commission_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text="Card processor commission applied to CARD sales",
    )

    created_at = models.DateTimeField(
        auto_now_add=True, help_text="Timestamp when the tenant was created"
    )

    updated_at = models.DateTimeField(
        auto_now=True, help_text="Timestamp when the tenant was last updated"
    )

    suspended_at = models.DateTimeField(
        null=True, blank=True, help_text="Timestamp when the tenant was suspended"
    )

    class Meta:
        db_table = "tenants"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="tenant_status_idx"),
            models.Index(fields=["slug"], name="tenant_slug_idx"),
        ]
        verbose_name = "Tenant"
        verbose_name_plural = "Tenants"

    def __str__(self):
        return f"{self.company_name} ({self.status})"

    def save(self, *args, **kwargs):
        """
        Override save to auto-generate slug from company_name if not provided.
        """
        if not self.slug:
            self.slug = slugify(self.company_name) or "org"
            # Ensure uniqueness by appending UUID if slug already exists
            if Tenant.objects.filter(slug=self.slug).exists():
                self.slug = f"{self.slug}-{str(uuid.uuid4())[:8]}"
        super().save(*args, **kwargs)

    def is_active(self):
        return self.status in (self.ACTIVE, self.TRIAL)

    def is_suspended(self):
        return self.status == self.SUSPENDED

    def suspend(self):
        """
        Suspend the tenant account.

        This disables access for all tenant users while retaining all data.
        """
        self.status = self.SUSPENDED
        self.suspended_at = timezone.now()
        self.save(update_fields=["status", "suspended_at", "updated_at"])

    def activate(self):
        """Reactivate a suspended tenant."""
        self.status = self.ACTIVE
        self.suspended_at = None
        self.save(update_fields=["status", "suspended_at", "updated_at"])


class User(AbstractUser):
    """
    Extended user model with a current-organization pointer.

    A user can belong to several tenants through Member rows; ``tenant`` is
    the one the user is working in right now. Platform administrators are
    flagged with ``is_superadmin`` and may have no tenant at all.
    """

    email = models.EmailField(unique=True, help_text="Login email, unique across the platform")

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="current_users",
        help_text="Organization the user is currently working in",
    )

    is_superadmin = models.BooleanField(
        default=False,
        help_text="Platform administrator with access to tenant administration",
    )

    phone = models.CharField(max_length=20, blank=True, help_text="User's phone number")

    class Meta:
        db_table = "users"
        ordering = ["username"]
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        if self.tenant:
            return f"{self.username} ({self.tenant.company_name})"
        return self.username

    def get_membership(self, tenant=None):
        """Return the active membership in ``tenant`` (default: current tenant)."""
        tenant = tenant or self.tenant
        if tenant is None:
            return None
        return Member.objects.filter(tenant=tenant, user=self, is_active=True).first()

    def get_role(self, tenant=None):
        membership = self.get_membership(tenant)
        return membership.role if membership else None


class Member(models.Model):
    """
    Membership of a user in a tenant with a team role.
    """

    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"

    ROLE_CHOICES = [
        (OWNER, "Owner"),
        (ADMIN, "Administrator"),
        (MEMBER, "Member"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="members",
        help_text="Tenant the user belongs to",
    )

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="memberships",
        help_text="Member user",
    )

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=MEMBER)

    is_active = models.BooleanField(
        default=True, help_text="Inactive members keep their history but cannot work"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "members"
        unique_together = [["tenant", "user"]]
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["tenant", "role"], name="member_tenant_role_idx"),
        ]

    def __str__(self):
        return f"{self.user.email} - {self.role} ({self.tenant.company_name})"


class TeamInvitation(models.Model):
    """
    Pending invitation for an email address to join a tenant.
    """

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (ACCEPTED, "Accepted"),
        (EXPIRED, "Expired"),
        (CANCELLED, "Cancelled"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="invitations")
    email = models.EmailField()
    role = models.CharField(max_length=20, choices=Member.ROLE_CHOICES, default=Member.MEMBER)
    token = models.CharField(max_length=64, unique=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    invited_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, related_name="sent_invitations"
    )
    expires_at = models.DateTimeField()
    accepted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "team_invitations"
        unique_together = [["tenant", "email"]]
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.email} -> {self.tenant.company_name} ({self.status})"

    def is_expired(self):
        return self.expires_at < timezone.now()


class TenantSubscription(models.Model):
    """
    Subscription state of a tenant: plan, billing period, trial and MRR.
    """

    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"

    STATUS_CHOICES = [
        (TRIAL, "Trial"),
        (ACTIVE, "Active"),
        (SUSPENDED, "Suspended"),
    ]

    tenant = models.OneToOneField(
        Tenant, on_delete=models.CASCADE, related_name="subscription"
    )
    plan = models.CharField(max_length=20, choices=Tenant.PLAN_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=TRIAL)
    current_period_start = models.DateTimeField()
    current_period_end = models.DateTimeField()
    trial_ends_at = models.DateTimeField(null=True, blank=True)
    mrr = models.PositiveIntegerField(default=0, help_text="Monthly recurring revenue in CLP")
    is_founder_partner = models.BooleanField(default=False)
    discount_percent = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenant_subscriptions"

    def __str__(self):
        return f"{self.tenant.company_name} - {self.plan} ({self.status})"


class TenantSettings(models.Model):
    """
    Business settings of a tenant shown on documents and reports.

    Created with the tenant by self-service onboarding, or lazily from the
    tenant's name and RUT the first time the settings are read.
    """

    tenant = models.OneToOneField(
        Tenant,
        on_delete=models.CASCADE,
        related_name="settings",
        help_text="Tenant that owns these settings",
    )

    # Business information
    business_name = models.CharField(max_length=255, help_text="Name printed on documents")
    trade_name = models.CharField(max_length=255, blank=True)
    rut = models.CharField(max_length=20, blank=True, help_text="Cleaned RUT")
    logo_url = models.URLField(blank=True)

    # Contact information
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    region = models.CharField(max_length=100, blank=True)
    country = models.CharField(max_length=100, default="Chile")
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    website = models.URLField(blank=True)

    # Tax
    tax_regime = models.CharField(max_length=100, blank=True)
    economic_activity = models.CharField(max_length=255, blank=True)

    # Localization
    timezone = models.CharField(max_length=50, default="America/Santiago")
    currency = models.CharField(max_length=3, default="CLP")
    locale = models.CharField(max_length=10, default="es-CL")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenant_settings"
        verbose_name = "Tenant Settings"
        verbose_name_plural = "Tenant Settings"

    def __str__(self):
        return f"Settings for {self.tenant.company_name}"

    @classmethod
    def for_tenant(cls, tenant):
        settings_obj, _ = cls.objects.get_or_create(
            tenant=tenant,
            defaults={"business_name": tenant.company_name, "rut": tenant.rut or ""},
        )
        return settings_obj
