"""
Tests for customers and the document lifecycle through the POS.
"""

from decimal import Decimal
from unittest.mock import patch

from django.urls import reverse

import pytest

from apps.core.models import Tenant
from apps.credits.models import Credit
from apps.sales.models import Customer, Document


def _sale_payload(product, **overrides):
    payload = {
        "type": "SALE",
        "status": "PAID",
        "payment_method": "CASH",
        "items": [
            {"product_id": str(product.id), "quantity": "1", "unit_price": "1195"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.mark.django_db
class TestDocumentCreation:
    """Test sale creation rules."""

    def test_paid_sale_requires_open_cash_register(self, authenticated_api_client, product):
        response = authenticated_api_client.post(
            reverse("sales:document_list"), _sale_payload(product), format="json"
        )

        assert response.status_code == 400
        assert response.data["code"] == "NO_ACTIVE_CASH_REGISTER"
        assert Document.objects.count() == 0

    def test_cash_sale_rounds_change_and_moves_stock(
        self, authenticated_api_client, product, open_cash_register
    ):
        response = authenticated_api_client.post(
            reverse("sales:document_list"),
            _sale_payload(product, cash_received="2000"),
            format="json",
        )

        assert response.status_code == 201
        assert response.data["type"] == "SALE"
        assert response.data["doc_number"] == 1
        assert Decimal(response.data["total"]) == Decimal("1195")
        assert Decimal(response.data["cash_change"]) == Decimal("810")
        assert response.data["cash_register_id"] == str(open_cash_register.id)
        assert len(response.data["items"]) == 1
        product.refresh_from_db()
        assert product.current_stock == 9

    def test_fractional_quantity_moves_whole_units(
        self, authenticated_api_client, product, open_cash_register
    ):
        payload = _sale_payload(product)
        payload["items"][0]["quantity"] = "2.5"

        response = authenticated_api_client.post(
            reverse("sales:document_list"), payload, format="json"
        )

        assert response.status_code == 201
        product.refresh_from_db()
        assert product.current_stock == 8

    def test_insufficient_cash(self, authenticated_api_client, product, open_cash_register):
        response = authenticated_api_client.post(
            reverse("sales:document_list"),
            _sale_payload(product, cash_received="1000"),
            format="json",
        )

        assert response.status_code == 400
        assert response.data["code"] == "INSUFFICIENT_CASH"
        assert response.data["details"]["rounded_cash_total"] == Decimal("1190")
        product.refresh_from_db()
        assert product.current_stock == 10

    def test_numbers_are_sequential_per_type(
        self, authenticated_api_client, product, open_cash_register
    ):
        url = reverse("sales:document_list")
        authenticated_api_client.post(url, _sale_payload(product), format="json")
        authenticated_api_client.post(
            url, _sale_payload(product, type="INVOICE", status="DRAFT"), format="json"
        )
        response = authenticated_api_client.post(url, _sale_payload(product), format="json")

        assert response.data["doc_number"] == 2
        invoice = Document.objects.get(doc_type=Document.INVOICE)
        assert invoice.doc_number == 1

    def test_global_discount_over_gross_is_rejected(self, authenticated_api_client, product):
        response = authenticated_api_client.post(
            reverse("sales:document_list"),
            _sale_payload(product, status="DRAFT", discount="5000"),
            format="json",
        )

        assert response.status_code == 400
        assert "error" in response.data

    def test_free_text_item_needs_name(self, authenticated_api_client):
        response = authenticated_api_client.post(
            reverse("sales:document_list"),
            {"status": "DRAFT", "items": [{"quantity": "1", "unit_price": "500"}]},
            format="json",
        )

        assert response.status_code == 400

    def test_unknown_product(self, authenticated_api_client, other_tenant):
        from apps.inventory.models import Product

        foreign = Product.objects.create(
            tenant=other_tenant, sku="X-1", name="Ajeno", price=Decimal("100")
        )

        response = authenticated_api_client.post(
            reverse("sales:document_list"),
            _sale_payload(foreign, status="DRAFT"),
            format="json",
        )

        assert response.status_code == 404

    def test_card_sale_stores_commission(
        self, authenticated_api_client, tenant, product, open_cash_register
    ):
        tenant.card_commission_percent = Decimal("2.95")
        tenant.save()
        payload = _sale_payload(product, payment_method="CARD")
        payload["items"][0]["unit_price"] = "10000"

        response = authenticated_api_client.post(
            reverse("sales:document_list"), payload, format="json"
        )

        assert response.status_code == 201
        assert Decimal(response.data["card_commission_amount"]) == Decimal("295.00")
        assert response.data["cash_change"] is None


@pytest.mark.django_db
class TestCreditSales:
    """Test sales paid on credit."""

    def test_credit_sale_requires_customer(self, authenticated_api_client, product):
        response = authenticated_api_client.post(
            reverse("sales:document_list"),
            _sale_payload(product, status="PENDING", payment_method="CREDIT"),
            format="json",
        )

        assert response.status_code == 400
        assert "customer_id" in response.data

    def test_credit_sale_opens_credit(self, authenticated_api_client, product, customer):
        response = authenticated_api_client.post(
            reverse("sales:document_list"),
            _sale_payload(
                product,
                status="PENDING",
                payment_method="CREDIT",
                customer_id=str(customer.id),
            ),
            format="json",
        )

        assert response.status_code == 201
        credit = Credit.objects.get(customer=customer)
        assert credit.amount == Decimal("1195")
        assert credit.balance == Decimal("1195")
        assert credit.status == Credit.ACTIVE
        assert credit.description == "Venta #1"
        customer.refresh_from_db()
        assert customer.current_debt == Decimal("1195")

    def test_credit_limit_exceeded(self, authenticated_api_client, product, customer):
        customer.current_debt = Decimal("49000")
        customer.save()

        response = authenticated_api_client.post(
            reverse("sales:document_list"),
            _sale_payload(
                product,
                status="PENDING",
                payment_method="CREDIT",
                customer_id=str(customer.id),
            ),
            format="json",
        )

        assert response.status_code == 400
        assert response.data["code"] == "CREDIT_LIMIT_EXCEEDED"
        details = response.data["details"]
        assert details["customer_name"] == "Juan Pérez"
        assert details["available_credit"] == Decimal("1000")
        assert details["sale_total"] == Decimal("1195")
        assert not Credit.objects.exists()


@pytest.mark.django_db
class TestDocumentDetail:
    """Test document edition and cancellation."""

    def test_paid_document_is_not_editable(self, authenticated_api_client, make_sale):
        document = make_sale(1190)

        response = authenticated_api_client.patch(
            reverse("sales:document_detail", kwargs={"document_id": document.id}),
            {"notes": "cambio"},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["code"] == "NOT_EDITABLE"

    def test_patch_discount_recomputes_total(self, authenticated_api_client, make_sale):
        document = make_sale(
            1190, status=Document.DRAFT, subtotal=Decimal("1000"), tax_amount=Decimal("190")
        )

        response = authenticated_api_client.patch(
            reverse("sales:document_detail", kwargs={"document_id": document.id}),
            {"discount": "90"},
            format="json",
        )

        assert response.status_code == 200
        assert Decimal(response.data["total"]) == Decimal("1100")

    def test_cancel_paid_sale_restores_stock(self, authenticated_api_client, product, make_sale):
        document = make_sale(2380, items=[(product, 2)])
        url = reverse("sales:document_detail", kwargs={"document_id": document.id})

        response = authenticated_api_client.delete(url)

        assert response.status_code == 200
        assert response.data["document"]["status"] == Document.CANCELLED
        product.refresh_from_db()
        assert product.current_stock == 12

        response = authenticated_api_client.delete(url)
        assert response.status_code == 400
        product.refresh_from_db()
        assert product.current_stock == 12

    def test_member_cannot_cancel(self, member_client, make_sale):
        document = make_sale(1190)

        response = member_client.delete(
            reverse("sales:document_detail", kwargs={"document_id": document.id})
        )

        assert response.status_code == 403

    def test_other_tenant_document_is_not_found(
        self, api_client, other_tenant, django_user_model, make_sale
    ):
        from apps.core.models import Member

        outsider = django_user_model.objects.create_user(
            username="outsider", email="outsider@example.com", password="x", tenant=other_tenant
        )
        Member.objects.create(tenant=other_tenant, user=outsider, role=Member.OWNER)
        api_client.force_authenticate(user=outsider)
        document = make_sale(1190)

        response = api_client.get(
            reverse("sales:document_detail", kwargs={"document_id": document.id})
        )

        assert response.status_code == 404

    def test_list_filters_by_type(self, authenticated_api_client, make_sale):
        make_sale(1190)
        make_sale(2380, doc_type=Document.INVOICE, doc_number=1)

        response = authenticated_api_client.get(reverse("sales:document_list"), {"type": "SALE"})

        assert response.status_code == 200
        assert response.data["count"] == 1

    def test_next_number_locks_tenant_row(self, tenant, make_sale):
        make_sale(1190)
        select_for_update = Tenant.objects.select_for_update

        with patch.object(Tenant.objects, "select_for_update", wraps=select_for_update) as lock:
            number = Document.next_number(tenant, Document.SALE)

        lock.assert_called_once_with()
        assert number == 2

    def test_list_rejects_impossible_date(self, authenticated_api_client):
        response = authenticated_api_client.get(
            reverse("sales:document_list"), {"start_date": "2024-02-30"}
        )

        assert response.status_code == 400
        assert response.data["error"] == "Fecha inválida en start_date"


@pytest.mark.django_db
class TestCalculateTotals:
    """Test the POS totals preview."""

    def test_preview_includes_rounded_cash_total(self, authenticated_api_client):
        response = authenticated_api_client.post(
            reverse("sales:document_calculate_totals"),
            {"items": [{"quantity": "1", "unit_price": "1195"}], "discount": "0"},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["total"] == Decimal("1195.00")
        assert response.data["rounded_cash_total"] == Decimal("1190")


@pytest.mark.django_db
class TestCustomers:
    """Test customer management."""

    def test_create_customer_cleans_rut(self, authenticated_api_client):
        response = authenticated_api_client.post(
            reverse("sales:customer_list"),
            {"name": "María Soto", "rut": "11.111.111-1"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["rut"] == "111111111"
        assert response.data["rut_formatted"] == "11.111.111-1"

    def test_invalid_rut(self, authenticated_api_client):
        response = authenticated_api_client.post(
            reverse("sales:customer_list"),
            {"name": "María Soto", "rut": "11.111.111-2"},
            format="json",
        )

        assert response.status_code == 400

    def test_customer_with_debt_cannot_be_deleted(self, authenticated_api_client, customer):
        customer.current_debt = Decimal("100")
        customer.save()

        response = authenticated_api_client.delete(
            reverse("sales:customer_detail", kwargs={"id": customer.id})
        )

        assert response.status_code == 400
        assert Customer.objects.filter(id=customer.id).exists()

    def test_delete_customer(self, authenticated_api_client, customer):
        response = authenticated_api_client.delete(
            reverse("sales:customer_detail", kwargs={"id": customer.id})
        )

        assert response.status_code == 200
        assert response.data["message"] == "Cliente eliminado exitosamente"
