"""
Tests for cash register shifts: opening, live totals, closing and reports.
"""

from datetime import timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone

import pytest

from apps.cash_register import services
from apps.cash_register.models import CashRegister


@pytest.mark.django_db
class TestOpenCashRegister:
    """Test opening shifts."""

    def test_open_shift(self, authenticated_api_client, tenant_user):
        response = authenticated_api_client.post(
            reverse("cash_register:cash_register_list"),
            {"opening_cash": "15000", "notes": "Turno mañana"},
            format="json",
        )

        assert response.status_code == 201
        data = response.data["cash_register"]
        assert data["status"] == CashRegister.OPEN
        assert Decimal(data["opening_cash"]) == Decimal("15000")
        assert data["sales_count"] == 0
        assert data["total_cash_sales"] == "0.00"
        assert CashRegister.objects.get().user == tenant_user

    def test_cannot_open_twice(self, authenticated_api_client, open_cash_register):
        response = authenticated_api_client.post(
            reverse("cash_register:cash_register_list"), {"opening_cash": "0"}, format="json"
        )

        assert response.status_code == 400
        assert response.data["code"] == "CASH_REGISTER_ALREADY_OPEN"
        assert response.data["cash_register_id"] == str(open_cash_register.id)

    def test_member_cannot_open(self, member_client):
        response = member_client.post(
            reverse("cash_register:cash_register_list"), {"opening_cash": "0"}, format="json"
        )

        assert response.status_code == 403

    def test_negative_opening_cash(self, authenticated_api_client):
        response = authenticated_api_client.post(
            reverse("cash_register:cash_register_list"), {"opening_cash": "-1"}, format="json"
        )

        assert response.status_code == 400

    def test_list_is_paginated(self, authenticated_api_client, open_cash_register):
        response = authenticated_api_client.get(
            reverse("cash_register:cash_register_list"), {"limit": 10}
        )

        assert response.status_code == 200
        assert len(response.data["cash_registers"]) == 1
        assert response.data["pagination"]["total_count"] == 1
        assert response.data["pagination"]["limit"] == 10


@pytest.mark.django_db
class TestActiveCashRegister:
    """Test the current user's open shift."""

    def test_no_active_register(self, authenticated_api_client):
        response = authenticated_api_client.get(reverse("cash_register:cash_register_active"))

        assert response.data == {"has_active_cash_register": False, "cash_register": None}

    def test_live_totals(self, authenticated_api_client, open_cash_register, make_sale):
        make_sale(1195)
        make_sale(5000, payment_method="CARD")

        response = authenticated_api_client.get(reverse("cash_register:cash_register_active"))

        assert response.data["has_active_cash_register"] is True
        data = response.data["cash_register"]
        assert data["sales_count"] == 2
        assert Decimal(data["total_cash_sales"]) == Decimal("1195")
        assert Decimal(data["total_card_sales"]) == Decimal("5000")
        assert Decimal(data["expected_cash"]) == Decimal("11195")

    def test_sales_before_opening_are_excluded(self, open_cash_register, make_sale):
        make_sale(1000, issued_at=timezone.now() - timedelta(hours=2))
        make_sale(2000)

        totals = services.live_totals(open_cash_register)

        assert totals["sales_count"] == 1
        assert totals["total_sales"] == Decimal("2000")


@pytest.mark.django_db
class TestCloseCashRegister:
    """Test closing reconciliation."""

    def _close(self, client, cash_register, closing_cash="13600"):
        return client.post(
            reverse(
                "cash_register:cash_register_close",
                kwargs={"cash_register_id": cash_register.id},
            ),
            {"closing_cash": closing_cash, "notes": "Sin novedad"},
            format="json",
        )

    def test_close_reconciles_rounded_cash(
        self, authenticated_api_client, open_cash_register, make_sale
    ):
        make_sale(1195)
        make_sale(2387)
        make_sale(5000, payment_method="CARD")

        response = self._close(authenticated_api_client, open_cash_register)

        assert response.status_code == 200
        assert response.data["summary"] == {
            "cash_sales_count": 2,
            "total_cash_sales": "3580",
            "other_methods_sales": "5000.00",
        }
        open_cash_register.refresh_from_db()
        assert open_cash_register.status == CashRegister.CLOSED
        assert open_cash_register.expected_cash == Decimal("13580")
        assert open_cash_register.difference == Decimal("20")
        assert open_cash_register.total_sales == Decimal("8582")
        assert open_cash_register.sales_count == 3
        assert "--- CIERRE ---" in open_cash_register.notes

    def test_only_opener_can_close(self, admin_client, open_cash_register):
        response = self._close(admin_client, open_cash_register)

        assert response.status_code == 403
        open_cash_register.refresh_from_db()
        assert open_cash_register.status == CashRegister.OPEN

    def test_closed_register_is_not_found(self, authenticated_api_client, open_cash_register):
        self._close(authenticated_api_client, open_cash_register)

        response = self._close(authenticated_api_client, open_cash_register)

        assert response.status_code == 404


@pytest.mark.django_db
class TestCashRegisterReports:
    """Test the Z-report and the monthly sales listing."""

    def _report_url(self, cash_register):
        return reverse(
            "cash_register:cash_register_report",
            kwargs={"cash_register_id": cash_register.id},
        )

    def test_report_of_open_register(self, authenticated_api_client, open_cash_register):
        response = authenticated_api_client.get(self._report_url(open_cash_register))

        assert response.status_code == 400

    def test_report_json(
        self, authenticated_api_client, tenant_user, open_cash_register, product, make_sale
    ):
        make_sale(2380, items=[(product, 2)])
        make_sale(5000, payment_method="CARD")
        services.close_cash_register(open_cash_register, tenant_user, Decimal("12380"))

        response = authenticated_api_client.get(self._report_url(open_cash_register))

        assert response.status_code == 200
        assert response.data["organization"]["name"] == "Ferretería El Roble"
        assert len(response.data["sales"]) == 2
        assert response.data["payment_summary"]["CASH"] == {
            "count": 1,
            "total": Decimal("2380"),
        }
        assert response.data["top_products"][0]["sku"] == "MART-001"
        assert response.data["top_products"][0]["quantity"] == Decimal("2")

    def test_report_pdf(self, authenticated_api_client, tenant_user, open_cash_register, make_sale):
        make_sale(1190)
        services.close_cash_register(open_cash_register, tenant_user, Decimal("11190"))

        response = authenticated_api_client.get(
            self._report_url(open_cash_register), {"format": "pdf"}
        )

        assert response.status_code == 200
        assert response["Content-Type"] == "application/pdf"
        assert response["Content-Disposition"].startswith("attachment;")
        assert response.content.startswith(b"%PDF")

    def test_monthly_sales_requires_dates(self, authenticated_api_client):
        response = authenticated_api_client.get(
            reverse("cash_register:cash_register_monthly_sales"), {"start_date": "2026-03-01"}
        )

        assert response.status_code == 400

    def test_monthly_sales_rejects_impossible_date(self, authenticated_api_client):
        response = authenticated_api_client.get(
            reverse("cash_register:cash_register_monthly_sales"),
            {"start_date": "2026-02-01", "end_date": "2026-02-30"},
        )

        assert response.status_code == 400
        assert response.data["error"] == "Fecha inválida en end_date"

    def test_monthly_sales_summary(self, authenticated_api_client, make_sale):
        today = timezone.localdate()
        make_sale(1190, subtotal=Decimal("1000"), tax_amount=Decimal("190"))
        make_sale(2380, payment_method="CARD", subtotal=Decimal("2000"), tax_amount=Decimal("380"))

        response = authenticated_api_client.get(
            reverse("cash_register:cash_register_monthly_sales"),
            {"start_date": today.isoformat(), "end_date": today.isoformat()},
        )

        assert response.status_code == 200
        summary = response.data["summary"]
        assert summary["sales_count"] == 2
        assert summary["subtotal"] == Decimal("3000")
        assert summary["total"] == Decimal("3570")
        assert summary["by_payment_method"] == {
            "CASH": Decimal("1190"),
            "CARD": Decimal("2380"),
        }
