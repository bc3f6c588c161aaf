"""
Django admin configuration for core models.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from apps.core.audit_models import AuditLog

from .models import Member, TeamInvitation, Tenant, TenantSettings, TenantSubscription, User


class MemberInline(admin.TabularInline):
    model = Member
    extra = 0
    fields = ["user", "role", "is_active", "created_at"]
    readonly_fields = ["created_at"]
    autocomplete_fields = ["user"]


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    """Admin interface for Tenant model."""

    list_display = ["company_name", "rut", "slug", "plan", "status", "created_at"]

    list_filter = [
        "status",
        "plan",
        "created_at",
    ]

    search_fields = [
        "company_name",
        "rut",
        "slug",
        "id",
    ]

    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "suspended_at",
    ]

    fieldsets = (
        ("Basic Information", {"fields": ("id", "company_name", "rut", "slug")}),
        ("Plan", {"fields": ("plan", "modules", "card_commission_percent")}),
        ("Status", {"fields": ("status", "suspended_at")}),
        ("Timestamps", {"fields": ("created_at", "updated_at"), "classes": ("collapse",)}),
    )

    inlines = [MemberInline]

    ordering = ["-created_at"]

    def get_readonly_fields(self, request, obj=None):
        """Make slug readonly when editing existing tenant."""
        if obj:  # Editing an existing object
            return self.readonly_fields + ["slug"]
        return self.readonly_fields


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin interface for User model."""

    list_display = [
        "username",
        "email",
        "first_name",
        "last_name",
        "tenant",
        "is_superadmin",
        "is_active",
    ]

    list_filter = [
        "is_superadmin",
        "is_active",
        "is_staff",
        "tenant",
    ]

    search_fields = [
        "username",
        "email",
        "first_name",
        "last_name",
        "tenant__company_name",
    ]

    readonly_fields = [
        "date_joined",
        "last_login",
    ]

    fieldsets = (
        (None, {"fields": ("username", "password")}),
        (
            "Personal Information",
            {"fields": ("first_name", "last_name", "email", "phone")},
        ),
        (
            "Organization",
            {"fields": ("tenant", "is_superadmin")},
        ),
        (
            "Permissions",
            {
                "fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions"),
                "classes": ("collapse",),
            },
        ),
        (
            "Important Dates",
            {"fields": ("last_login", "date_joined"), "classes": ("collapse",)},
        ),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("username", "password1", "password2", "email", "tenant"),
            },
        ),
    )

    ordering = ["username"]

    def get_queryset(self, request):
        """Optimize queryset with select_related."""
        qs = super().get_queryset(request)
        return qs.select_related("tenant")


@admin.register(TeamInvitation)
class TeamInvitationAdmin(admin.ModelAdmin):
    list_display = ["email", "tenant", "role", "status", "expires_at", "created_at"]
    list_filter = ["status", "role"]
    search_fields = ["email", "tenant__company_name"]
    readonly_fields = ["token", "created_at", "accepted_at"]


@admin.register(TenantSubscription)
class TenantSubscriptionAdmin(admin.ModelAdmin):
    list_display = ["tenant", "plan", "status", "mrr", "current_period_end", "trial_ends_at"]
    list_filter = ["plan", "status", "is_founder_partner"]
    search_fields = ["tenant__company_name"]


@admin.register(TenantSettings)
class TenantSettingsAdmin(admin.ModelAdmin):
    list_display = ["business_name", "tenant", "rut", "city", "timezone", "updated_at"]
    search_fields = ["business_name", "trade_name", "rut", "tenant__company_name"]
    readonly_fields = ["created_at", "updated_at"]


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Read-only view of the audit trail."""

    list_display = ["timestamp", "action", "entity_type", "entity_id", "user", "tenant"]
    list_filter = ["action", "entity_type"]
    search_fields = ["entity_id", "user__email", "tenant__company_name"]
    readonly_fields = [
        "id",
        "tenant",
        "user",
        "action",
        "entity_type",
        "entity_id",
        "details",
        "ip_address",
        "user_agent",
        "timestamp",
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
