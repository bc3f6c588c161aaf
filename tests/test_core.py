"""
Tests for the core helpers: RUT validation, modules, the role matrix,
subscription bookkeeping, formatting and audit logging.
"""

from datetime import datetime
from decimal import Decimal

from django.utils import timezone

import pytest
from rest_framework.exceptions import ValidationError

from apps.core import audit, modules
from apps.core.audit import log_audit_action
from apps.core.audit_models import AuditLog
from apps.core.filters import date_param, datetime_param
from apps.core.formatting_utils import format_currency, format_number, round_amount, to_decimal
from apps.core.models import Member, Tenant
from apps.core.permissions import (
    can_change_member_role,
    can_remove_member,
    can_toggle_member_status,
    get_assignable_roles,
    get_permissions_for_role,
    has_permission,
)
from apps.core.subscription import (
    add_months,
    build_initial_subscription,
    map_tenant_status_to_subscription_status,
)
from apps.core.validators import calculate_verifier, clean_rut, format_rut, validate_rut


class TestRut:
    """Test Chilean RUT helpers."""

    @pytest.mark.parametrize(
        "rut",
        ["12.345.678-5", "11.111.111-1", "76086428-5", "6-k", "31-0"],
    )
    def test_valid_ruts(self, rut):
        assert validate_rut(rut)

    @pytest.mark.parametrize("rut", ["12.345.678-9", "", "5", "ABC-1", "1234567K-5"])
    def test_invalid_ruts(self, rut):
        assert not validate_rut(rut)

    def test_clean_rut_strips_separators_and_uppercases(self):
        assert clean_rut(" 6-k ") == "6K"
        assert clean_rut(None) == ""

    def test_verifier_special_cases(self):
        assert calculate_verifier("6") == "K"
        assert calculate_verifier("31") == "0"

    def test_format_rut(self):
        assert format_rut("123456785") == "12.345.678-5"
        assert format_rut("6K") == "6-K"
        assert format_rut("1") == "1"


class TestModules:
    """Test module key normalization and access."""

    def test_normalize_resolves_aliases_in_catalog_order(self):
        result = modules.normalize_modules(["products", "pos", "POS", "unknown", "CRM"])

        assert result == ["POS", "INVENTORY", "CUSTOMERS", "CREDITS"]

    def test_normalize_expands_finance_bundle(self):
        assert modules.normalize_modules(["finance"]) == ["CASH_REGISTER", "ACCOUNTING"]

    def test_resolve_module_route_names(self):
        assert modules.resolve_module("mi-caja") == "CASH_REGISTER"
        assert modules.resolve_module("accounts-payable") == "ACCOUNTING"
        assert modules.resolve_module(None) is None

    def test_tenant_without_stored_modules_has_all(self):
        tenant = Tenant(company_name="Sin módulos", modules=None)

        assert modules.get_enabled_modules(tenant) == modules.MODULE_KEYS
        assert modules.has_module_access(tenant, "projects")

    def test_has_module_access_respects_tenant_list(self):
        tenant = Tenant(company_name="Solo caja", modules=["pos", "mi-caja"])

        assert modules.has_module_access(tenant, "CASH_REGISTER")
        assert not modules.has_module_access(tenant, "ACCOUNTING")

    def test_no_tenant_has_no_modules(self):
        assert modules.get_enabled_modules(None) == []


class TestRolePermissions:
    """Test the role permission matrix and team rules."""

    def test_member_role_limits(self):
        assert has_permission(Member.MEMBER, "documents:create")
        assert has_permission(Member.MEMBER, "credits:registerPayment")
        assert not has_permission(Member.MEMBER, "documents:cancel")
        assert not has_permission(Member.MEMBER, "expenses:view")

    def test_owner_only_permissions(self):
        assert has_permission(Member.OWNER, "accounting:export")
        assert not has_permission(Member.ADMIN, "accounting:export")

    def test_unknown_permission_is_denied(self):
        assert not has_permission(Member.OWNER, "reactor:launch")

    def test_permissions_for_role(self):
        member_permissions = get_permissions_for_role(Member.MEMBER)

        assert "pos:create" in member_permissions
        assert "team:changeRole" not in member_permissions

    def test_only_owner_changes_roles(self):
        assert can_change_member_role(Member.OWNER, 1, Member.ADMIN, 2)
        assert not can_change_member_role(Member.OWNER, 1, Member.ADMIN, 1)
        assert not can_change_member_role(Member.OWNER, 1, Member.OWNER, 2)
        assert not can_change_member_role(Member.ADMIN, 1, Member.MEMBER, 2)

    def test_manage_member_rules(self):
        assert can_remove_member(Member.OWNER, 1, Member.ADMIN, 2)
        assert can_toggle_member_status(Member.ADMIN, 1, Member.MEMBER, 2)
        assert not can_toggle_member_status(Member.ADMIN, 1, Member.ADMIN, 2)
        assert not can_remove_member(Member.MEMBER, 1, Member.MEMBER, 2)
        assert not can_remove_member(Member.OWNER, 1, Member.MEMBER, 1)

    def test_assignable_roles(self):
        assert get_assignable_roles(Member.OWNER) == [Member.ADMIN, Member.MEMBER]
        assert get_assignable_roles(Member.ADMIN) == [Member.MEMBER]
        assert get_assignable_roles(Member.MEMBER) == []


class TestSubscription:
    """Test initial subscription values."""

    NOW = timezone.make_aware(datetime(2026, 1, 31, 10, 0))

    def test_pro_trial_without_founder_program(self):
        values = build_initial_subscription(
            "PRO",
            "TRIAL",
            config={"founder_program_enabled": False, "trial_days": 14},
            now=self.NOW,
        )

        assert values["mrr"] == 29990
        assert values["status"] == "TRIAL"
        assert values["discount_percent"] == 0
        assert values["is_founder_partner"] is False
        assert (values["trial_ends_at"] - self.NOW).days == 14
        assert values["current_period_end"].month == 2
        assert values["current_period_end"].day == 28

    def test_founder_discount_and_trial(self):
        values = build_initial_subscription(
            "PRO",
            "ACTIVE",
            config={
                "founder_program_enabled": True,
                "founder_discount_percent": 20,
                "founder_trial_days": 0,
            },
            now=self.NOW,
        )

        assert values["mrr"] == 23992
        assert values["is_founder_partner"] is True
        assert values["status"] == "ACTIVE"
        assert values["trial_ends_at"] is None

    def test_founder_discount_is_clamped(self):
        values = build_initial_subscription(
            "BASIC",
            "TRIAL",
            config={
                "founder_program_enabled": True,
                "founder_discount_percent": 150,
                "founder_trial_days": 0,
            },
            now=self.NOW,
        )

        assert values["discount_percent"] == 100
        assert values["mrr"] == 0
        assert (values["trial_ends_at"] - self.NOW).days == 1

    def test_enterprise_has_no_base_mrr(self):
        values = build_initial_subscription("ENTERPRISE", "ACTIVE", now=self.NOW)

        assert values["mrr"] == 0

    def test_status_mapping(self):
        assert map_tenant_status_to_subscription_status("SUSPENDED") == "SUSPENDED"
        assert map_tenant_status_to_subscription_status("ACTIVE") == "ACTIVE"
        assert map_tenant_status_to_subscription_status("TRIAL") == "TRIAL"

    def test_add_months_crosses_year(self):
        result = add_months(timezone.make_aware(datetime(2026, 12, 15)), 2)

        assert (result.year, result.month, result.day) == (2027, 2, 15)


class TestFormatting:
    """Test Chilean number and money formatting."""

    def test_round_amount_half_up(self):
        assert round_amount(Decimal("10.5")) == Decimal("11")
        assert round_amount(Decimal("2.345"), 2) == Decimal("2.35")

    def test_to_decimal(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(1.5) == Decimal("1.5")

    def test_format_currency(self):
        assert format_currency(12990) == "$12.990"
        assert format_currency(Decimal("1234567.4")) == "$1.234.567"

    def test_format_number_with_decimals(self):
        assert format_number(1234.5, decimal_places=1) == "1.234,5"


class TestDateParams:
    """Test query string date parsing."""

    def test_missing_or_empty(self):
        assert date_param({}, "start_date") is None
        assert datetime_param({"start_date": ""}, "start_date") is None

    def test_valid_date(self):
        assert date_param({"start_date": "2026-03-01"}, "start_date").day == 1

    @pytest.mark.parametrize("value", ["2024-02-30", "2026-13-01", "marzo"])
    def test_invalid_date(self, value):
        with pytest.raises(ValidationError) as excinfo:
            date_param({"start_date": value}, "start_date")

        assert excinfo.value.detail == {"error": "Fecha inválida en start_date"}

    def test_plain_date_as_datetime_is_aware_midnight(self):
        parsed = datetime_param({"end_date": "2026-03-01"}, "end_date")

        assert timezone.is_aware(parsed)
        assert (parsed.hour, parsed.minute) == (0, 0)

    def test_impossible_datetime(self):
        with pytest.raises(ValidationError):
            datetime_param({"end_date": "2024-02-30T10:00:00"}, "end_date")


@pytest.mark.django_db
class TestAuditLog:
    """Test audit log writes."""

    def test_log_audit_action_serializes_decimals(self, tenant, tenant_user):
        entry = log_audit_action(
            audit.CREATE_DOCUMENT,
            "Document",
            "abc",
            details={"total": Decimal("1190.00")},
            tenant=tenant,
            user=tenant_user,
        )

        assert entry is not None
        stored = AuditLog.objects.get(id=entry.id)
        assert stored.details == {"total": "1190.00"}
        assert stored.tenant == tenant
        assert stored.entity_id == "abc"
