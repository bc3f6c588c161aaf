"""
Tests for the cash-basis accounting reports.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone

import pytest

from apps.accounting.services import (
    AccountingService,
    month_range,
    parse_month,
    parse_series_months,
    shift_month,
)
from apps.core.exceptions import DomainError
from apps.credits.models import Credit, CreditPayment
from apps.procurement.models import AccountPayable
from apps.services.models import ProjectExpense, ProjectPayment
from apps.treasury.models import OperationalExpense, TreasuryMovement

MARCH = "2026-03"


def _in_march(day=15):
    return timezone.make_aware(datetime(2026, 3, day, 12))


@pytest.fixture
def march_activity(tenant, tenant_user, customer, product, project, make_sale):
    """
    A month of activity:

    - cash sale of 11.900 (net 10.000, five units costing 600)
    - credit sale of 5.950 (net 5.000) with a 2.000 collection
    - project collection of 3.000 and project expense of 800
    - operational expense of 1.500
    - capital injection of 50.000 and owner withdrawal of 10.000
    """
    make_sale(
        11900,
        issued_at=_in_march(),
        items=[(product, 5)],
        subtotal=Decimal("10000"),
        tax_amount=Decimal("1900"),
    )
    credit_sale = make_sale(
        5950,
        payment_method="CREDIT",
        issued_at=_in_march(),
        subtotal=Decimal("5000"),
        tax_amount=Decimal("950"),
        customer=customer,
    )
    credit = Credit.objects.create(
        tenant=tenant,
        customer=customer,
        document=credit_sale,
        amount=Decimal("5950"),
        balance=Decimal("3950"),
        due_date=_in_march(30),
        created_by=tenant_user,
    )
    CreditPayment.objects.create(
        tenant=tenant,
        credit=credit,
        customer=customer,
        amount=Decimal("2000"),
        payment_method=CreditPayment.CASH,
        paid_at=_in_march(20),
    )
    customer.current_debt = Decimal("3950")
    customer.save()

    ProjectPayment.objects.create(
        tenant=tenant, project=project, amount=Decimal("3000"), paid_at=_in_march(10)
    )
    ProjectExpense.objects.create(
        tenant=tenant,
        project=project,
        description="Flete",
        amount=Decimal("800"),
        expense_date=_in_march(11),
    )
    OperationalExpense.objects.create(
        tenant=tenant, title="Luz", amount=Decimal("1500"), expense_date=_in_march(5)
    )
    TreasuryMovement.objects.create(
        tenant=tenant,
        type=TreasuryMovement.INFLOW,
        category=TreasuryMovement.CAPITAL_INJECTION,
        source=TreasuryMovement.BANK,
        title="Aporte",
        amount=Decimal("50000"),
        occurred_at=_in_march(2),
    )
    TreasuryMovement.objects.create(
        tenant=tenant,
        type=TreasuryMovement.OUTFLOW,
        category=TreasuryMovement.OWNER_WITHDRAWAL,
        source=TreasuryMovement.CASH,
        title="Retiro",
        amount=Decimal("10000"),
        occurred_at=_in_march(28),
    )
    # Outside the month
    make_sale(99999, issued_at=_in_march(1) - timedelta(days=3))


class TestPeriodHelpers:
    """Test month parsing and ranges."""

    def test_parse_month(self):
        assert parse_month("2026-03") == (2026, 3)

    @pytest.mark.parametrize("value", ["2026-13", "2026-3", "marzo"])
    def test_invalid_month(self, value):
        with pytest.raises(DomainError):
            parse_month(value)

    def test_month_range(self):
        period = month_range(2026, 2)

        assert period.key == "2026-02"
        assert period.label == "febrero de 2026"
        assert timezone.localtime(period.end).day == 28

    def test_shift_month(self):
        assert shift_month(2026, 1, -1) == (2025, 12)
        assert shift_month(2025, 11, 3) == (2026, 2)

    @pytest.mark.parametrize("value,expected", [(None, 6), ("", 6), ("3", 3), ("24", 24)])
    def test_series_months(self, value, expected):
        assert parse_series_months(value) == expected

    @pytest.mark.parametrize("value", ["2", "25", "seis"])
    def test_series_months_out_of_range(self, value):
        with pytest.raises(DomainError):
            parse_series_months(value)


@pytest.mark.django_db
class TestMonthlySummary:
    """Test the monthly cash-basis summary."""

    def test_summary_figures(self, tenant, march_activity):
        summary = AccountingService.monthly_summary(tenant, MARCH)

        assert summary["month_label"] == "marzo de 2026"
        assert summary["sales_count"] == 2
        assert summary["sales_total"] == 17850
        assert summary["sales_net"] == 15000
        assert summary["credit_sales_total"] == 5950
        assert summary["immediate_cash_sales_total"] == 11900
        assert summary["cost_of_sales_total"] == 3000
        assert summary["gross_profit"] == 12000
        assert summary["collections_total"] == 2000
        assert summary["project_collections_total"] == 3000
        assert summary["cash_inflows_total"] == 66900
        assert summary["cash_outflows_total"] == 12300
        assert summary["net_cash_flow"] == 54600
        assert summary["operating_result"] == 12700
        assert summary["gross_margin_percent"] == 80.0
        assert summary["operating_margin_percent"] == 84.7
        assert len(summary["warnings"]) == 3

    def test_empty_month(self, tenant):
        summary = AccountingService.monthly_summary(tenant, MARCH)

        assert summary["sales_total"] == 0
        assert summary["gross_margin_percent"] == 0.0
        assert summary["warnings"] == []

    def test_endpoint(self, authenticated_api_client, march_activity):
        response = authenticated_api_client.get(reverse("accounting:monthly"), {"month": MARCH})

        assert response.status_code == 200
        assert response.data["summary"]["net_cash_flow"] == 54600

    def test_treasury_filter(self, authenticated_api_client, march_activity):
        response = authenticated_api_client.get(
            reverse("accounting:monthly"),
            {"month": MARCH, "treasury_category": "CAPITAL_INJECTION"},
        )

        summary = response.data["summary"]
        assert summary["treasury_inflows_total"] == 50000
        assert summary["treasury_outflows_total"] == 0
        assert summary["cash_outflows_total"] == 2300

    def test_invalid_treasury_filter(self, authenticated_api_client):
        response = authenticated_api_client.get(
            reverse("accounting:monthly"), {"treasury_source": "WALLET"}
        )

        assert response.status_code == 400
        assert response.data["error"] == "Origen de tesorería inválido"

    def test_invalid_month(self, authenticated_api_client):
        response = authenticated_api_client.get(reverse("accounting:monthly"), {"month": "2026-13"})

        assert response.status_code == 400

    def test_member_has_no_access(self, member_client):
        response = member_client.get(reverse("accounting:monthly"))

        assert response.status_code == 403

    def test_module_disabled(self, authenticated_api_client, tenant):
        tenant.modules = ["POS"]
        tenant.save()

        response = authenticated_api_client.get(reverse("accounting:monthly"))

        assert response.status_code == 403


@pytest.mark.django_db
class TestBalance:
    """Test the simplified balance snapshot."""

    def test_balance(self, authenticated_api_client, tenant, supplier, march_activity):
        AccountPayable.objects.create(
            tenant=tenant,
            supplier=supplier,
            issue_date=_in_march(),
            due_date=timezone.now() + timedelta(days=30),
            amount=Decimal("20000"),
            balance=Decimal("20000"),
            status=AccountPayable.PENDING,
        )

        response = authenticated_api_client.get(reverse("accounting:balance"), {"month": MARCH})

        assert response.status_code == 200
        balance = response.data["balance"]
        assert balance["assets"] == {
            "cash_flow_month": 54600,
            "customer_accounts_receivable": 3950,
            "project_accounts_receivable": 147000,
            "accounts_receivable": 150950,
            "inventory_at_cost": 6000,
            "total": 211550,
        }
        assert balance["liabilities"] == {"accounts_payable": 20000, "total": 20000}
        assert balance["equity"] == {"net_position": 191550}
        assert balance["context"]["projects_with_pending_collection"] == 1


@pytest.mark.django_db
class TestSeriesAndExport:
    """Test the monthly trend and the CSV export."""

    def test_series(self, authenticated_api_client):
        response = authenticated_api_client.get(reverse("accounting:series"), {"months": "3"})

        assert response.status_code == 200
        assert response.data["months"] == 3
        points = response.data["series"]
        assert len(points) == 3
        now = timezone.localtime()
        assert points[-1]["month"] == f"{now.year:04d}-{now.month:02d}"

    def test_series_out_of_range(self, authenticated_api_client):
        response = authenticated_api_client.get(reverse("accounting:series"), {"months": "25"})

        assert response.status_code == 400

    def test_export_csv(self, authenticated_api_client, march_activity):
        response = authenticated_api_client.get(
            reverse("accounting:export_csv"), {"month": MARCH, "months": "3"}
        )

        assert response.status_code == 200
        assert response["Content-Disposition"] == 'attachment; filename="contabilidad-2026-03.csv"'
        content = response.content.decode("utf-8")
        assert content.startswith("\ufeff")
        assert '"RESUMEN MENSUAL"' in content
        assert '"Flujo neto del mes";"54600"' in content
        assert '"Período";"marzo de 2026"' in content
        assert '"TENDENCIA (3 meses)"' in content

    def test_export_is_owner_only(self, admin_client):
        response = admin_client.get(reverse("accounting:export_csv"))

        assert response.status_code == 403
