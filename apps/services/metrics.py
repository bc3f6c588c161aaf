"""
Cost tracking for service projects.

- Per-project metrics: budget usage, cost breakdown, milestone progress
  and collections
- Per-project alerts (over budget, overdue or over-estimate milestones)
- Tenant-wide alert feed for open projects
"""

from collections import defaultdict
from decimal import Decimal

from django.db.models import Sum
from django.utils import timezone

from apps.core.formatting_utils import format_currency, round_amount

from .models import Project, ProjectPayment

ZERO = Decimal("0")
ALERTS_PROJECT_LIMIT = 200
ALERTS_LIMIT = 50

PROJECT_OVER_BUDGET = "PROJECT_OVER_BUDGET"
MILESTONE_OVER_BUDGET = "MILESTONE_OVER_BUDGET"
MILESTONE_OVERDUE = "MILESTONE_OVERDUE"

HIGH = "high"
MEDIUM = "medium"


def collected_amount(project):
    total = ProjectPayment.objects.filter(project=project).aggregate(total=Sum("amount"))["total"]
    return total or ZERO


def _percent(part, whole):
    if not whole:
        return None
    return round_amount(Decimal(part) / Decimal(whole) * 100, 2)


def _milestone_costs(resources, expenses):
    costs = defaultdict(lambda: ZERO)
    for resource in resources:
        if resource.milestone_id:
            costs[resource.milestone_id] += resource.total_cost
    for expense in expenses:
        if expense.milestone_id:
            costs[expense.milestone_id] += expense.amount
    return costs


def milestone_cost_summary(milestones, resources, expenses):
    """
    Estimated versus real cost of every milestone.

    The real cost is the sum of the resources and expenses charged to the
    milestone. ``variance`` is None when the milestone has no estimate.
    """
    costs = _milestone_costs(resources, expenses)
    summary = []
    for milestone in milestones:
        real_cost = costs[milestone.id]
        estimated = milestone.estimated_cost
        summary.append(
            {
                "milestone_id": str(milestone.id),
                "name": milestone.name,
                "estimated_cost": estimated,
                "real_cost": real_cost,
                "variance": real_cost - estimated if estimated is not None else None,
                "due_date": milestone.due_date,
                "is_completed": milestone.is_completed,
            }
        )
    return summary


def project_metrics(project):
    """
    Metrics of a project detail.

    Returns:
        dict with budget, actual_cost, variance, budget_usage_percent,
        resources/expenses totals, milestone progress, the per-milestone
        cost summary and the collected and pending amounts
    """
    milestones = list(project.milestones.all())
    resources = list(project.resources.all())
    expenses = list(project.expenses.all())

    budget = project.budget
    actual_cost = project.actual_cost
    milestones_total = len(milestones)
    milestones_completed = sum(1 for milestone in milestones if milestone.is_completed)

    contracted = project.get_contracted_amount()
    collected = collected_amount(project)
    pending = max(contracted - collected, ZERO) if contracted is not None else None

    return {
        "budget": budget,
        "actual_cost": actual_cost,
        "variance": actual_cost - budget if budget is not None else None,
        "budget_usage_percent": _percent(actual_cost, budget),
        "resources_cost_total": sum((r.total_cost for r in resources), ZERO),
        "expenses_cost_total": sum((e.amount for e in expenses), ZERO),
        "milestones_total": milestones_total,
        "milestones_completed": milestones_completed,
        "milestones_progress_percent": _percent(milestones_completed, milestones_total) or ZERO,
        "milestone_cost_summary": milestone_cost_summary(milestones, resources, expenses),
        "contracted_amount": contracted,
        "collected_amount": collected,
        "pending_amount": pending,
    }


def project_alerts(project, metrics, now=None):
    now = now or timezone.now()
    budget = metrics["budget"]
    actual_cost = metrics["actual_cost"]
    summary = metrics["milestone_cost_summary"]

    over_budget = None
    if budget is not None and actual_cost > budget:
        over_budget = {"over_amount": actual_cost - budget}

    return {
        "project_over_budget": over_budget,
        "overdue_milestones": [
            {
                "milestone_id": item["milestone_id"],
                "name": item["name"],
                "due_date": item["due_date"],
            }
            for item in summary
            if item["due_date"] and not item["is_completed"] and item["due_date"] < now
        ],
        "over_budget_milestones": [
            {
                "milestone_id": item["milestone_id"],
                "name": item["name"],
                "over_amount": item["variance"],
            }
            for item in summary
            if item["variance"] is not None and item["variance"] > 0
        ],
    }


def service_alerts(tenant, now=None):
    """
    Alert feed for the open (ACTIVE or ON_HOLD) projects of a tenant.

    Returns:
        dict with ``summary`` (counts by severity and type) and ``alerts``
    """
    now = now or timezone.now()
    projects = (
        Project.objects.filter(tenant=tenant, status__in=Project.OPEN_STATUSES)
        .prefetch_related("milestones", "resources", "expenses")
        .order_by("-updated_at")[:ALERTS_PROJECT_LIMIT]
    )

    alerts = []
    for project in projects:
        budget = project.budget
        if budget is not None and project.actual_cost > budget:
            alerts.append(
                {
                    "id": f"project-overbudget-{project.id}",
                    "type": PROJECT_OVER_BUDGET,
                    "severity": HIGH,
                    "project_id": str(project.id),
                    "project_name": project.name,
                    "message": (
                        "Proyecto sobre presupuesto por "
                        f"{format_currency(project.actual_cost - budget)}"
                    ),
                }
            )

        costs = _milestone_costs(project.resources.all(), project.expenses.all())
        for milestone in project.milestones.all():
            base = {
                "project_id": str(project.id),
                "project_name": project.name,
                "milestone_id": str(milestone.id),
                "milestone_name": milestone.name,
            }
            real_cost = costs[milestone.id]
            if milestone.estimated_cost is not None and real_cost > milestone.estimated_cost:
                alerts.append(
                    {
                        "id": f"milestone-overbudget-{milestone.id}",
                        "type": MILESTONE_OVER_BUDGET,
                        "severity": MEDIUM,
                        "message": (
                            f'Hito "{milestone.name}" sobre estimado por '
                            f"{format_currency(real_cost - milestone.estimated_cost)}"
                        ),
                        **base,
                    }
                )
            if milestone.is_overdue(now):
                alerts.append(
                    {
                        "id": f"milestone-overdue-{milestone.id}",
                        "type": MILESTONE_OVERDUE,
                        "severity": HIGH,
                        "message": f'Hito vencido: "{milestone.name}"',
                        **base,
                    }
                )

    def count(key, value):
        return sum(1 for alert in alerts if alert[key] == value)

    return {
        "summary": {
            "total": len(alerts),
            "high": count("severity", HIGH),
            "medium": count("severity", MEDIUM),
            "by_type": {
                "project_over_budget": count("type", PROJECT_OVER_BUDGET),
                "milestone_over_budget": count("type", MILESTONE_OVER_BUDGET),
                "milestone_overdue": count("type", MILESTONE_OVERDUE),
            },
        },
        "alerts": alerts[:ALERTS_LIMIT],
    }
