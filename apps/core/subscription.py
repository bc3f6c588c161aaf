"""
Subscription bookkeeping for newly created tenants.
"""

import calendar
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.utils import timezone

PLAN_BASE_MRR_CLP = {
    "BASIC": 19990,
    "PRO": 29990,
}


def add_months(value, months=1):
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def get_subscription_config():
    return {
        "founder_program_enabled": getattr(settings, "FOUNDER_PROGRAM_ENABLED", False),
        "founder_discount_percent": getattr(settings, "FOUNDER_DISCOUNT_PERCENT", 0),
        "founder_trial_days": getattr(settings, "FOUNDER_TRIAL_DAYS", 30),
        "trial_days": getattr(settings, "SUBSCRIPTION_TRIAL_DAYS", 14),
    }


def map_tenant_status_to_subscription_status(tenant_status):
    """Map a tenant status to the subscription status."""
    if tenant_status == "SUSPENDED":
        return "SUSPENDED"
    if tenant_status == "ACTIVE":
        return "ACTIVE"
    return "TRIAL"


def build_initial_subscription(plan, tenant_status, config=None, now=None):
    """
    Compute the initial subscription fields for a tenant.

    The founder program (FOUNDER_PROGRAM_ENABLED) grants a percentage
    discount on MRR and its own trial length. ``config`` overrides the
    settings values (keys: founder_program_enabled, founder_discount_percent,
    founder_trial_days, trial_days).

    Returns:
        dict suitable for TenantSubscription(**values)
    """
    now = now or timezone.now()
    config = {**get_subscription_config(), **(config or {})}

    founder = bool(config["founder_program_enabled"])
    if founder:
        discount = max(0, min(100, int(config["founder_discount_percent"])))
        trial_days = max(1, int(config["founder_trial_days"]))
    else:
        discount = 0
        trial_days = max(1, int(config["trial_days"]))

    base = PLAN_BASE_MRR_CLP.get(plan, 0)
    mrr = int(
        (Decimal(base) * Decimal(100 - discount) / Decimal(100)).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    )

    return {
        "plan": plan,
        "status": map_tenant_status_to_subscription_status(tenant_status),
        "current_period_start": now,
        "current_period_end": add_months(now, 1),
        "trial_ends_at": now + timedelta(days=trial_days) if tenant_status == "TRIAL" else None,
        "mrr": mrr,
        "is_founder_partner": founder,
        "discount_percent": discount,
    }


def create_tenant_subscription(tenant, now=None):
    from apps.core.models import TenantSubscription

    values = build_initial_subscription(tenant.plan, tenant.status, now=now)
    subscription, _ = TenantSubscription.objects.update_or_create(tenant=tenant, defaults=values)
    return subscription
