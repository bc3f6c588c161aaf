"""
Tests for the product catalog: SKU helpers, products, labels and categories.
"""

import re
from decimal import Decimal

from django.urls import reverse

import pytest

from apps.inventory import sku as sku_helpers
from apps.inventory.models import Category, Product
from apps.sales.models import Document, DocumentItem


class TestSkuHelpers:
    """Test SKU generation and normalization."""

    def test_generated_sku_format(self):
        assert re.match(r"^PROD-\d{13}-[0-9A-Z]{4}$", sku_helpers.generate_sku())

    def test_normalize_sku(self):
        assert sku_helpers.normalize_sku("  ab-12 3 ") == "AB123"
        assert sku_helpers.normalize_sku(None) == ""

    @pytest.mark.parametrize("value", ["7801234567890", "012345678905", "12345678", "ABC123"])
    def test_likely_barcodes(self, value):
        assert sku_helpers.is_likely_barcode(value)

    @pytest.mark.parametrize("value", ["abc", "12345", "MART-001", ""])
    def test_unlikely_barcodes(self, value):
        assert not sku_helpers.is_likely_barcode(value)


@pytest.mark.django_db
class TestUniqueSku:
    """Test SKU collision handling."""

    def test_unique_sku_skips_taken_values(self, tenant, product, monkeypatch):
        candidates = iter(["MART-001", "PROD-1-AAAA"])
        monkeypatch.setattr(sku_helpers, "generate_sku", lambda: next(candidates))

        assert sku_helpers.generate_unique_sku(tenant) == "PROD-1-AAAA"

    def test_unique_sku_gives_up(self, tenant, product, monkeypatch):
        monkeypatch.setattr(sku_helpers, "generate_sku", lambda: "MART-001")

        with pytest.raises(RuntimeError):
            sku_helpers.generate_unique_sku(tenant)

    def test_same_sku_in_other_tenant_is_free(self, other_tenant, product, monkeypatch):
        monkeypatch.setattr(sku_helpers, "generate_sku", lambda: "MART-001")

        assert sku_helpers.generate_unique_sku(other_tenant) == "MART-001"


@pytest.mark.django_db
class TestProductEndpoints:
    """Test product CRUD, lookups and labels."""

    def test_create_product_generates_sku(self, authenticated_api_client, tenant):
        response = authenticated_api_client.post(
            reverse("inventory:product_list"),
            {"name": "Serrucho", "price": "8990", "current_stock": 4},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["sku"].startswith("PROD-")
        product = Product.objects.get(id=response.data["id"])
        assert product.tenant == tenant

    def test_duplicate_sku_is_rejected(self, authenticated_api_client, product):
        response = authenticated_api_client.post(
            reverse("inventory:product_list"),
            {"name": "Otro martillo", "sku": "MART-001", "price": "990"},
            format="json",
        )

        assert response.status_code == 400
        assert "sku" in response.data

    def test_list_low_stock(self, authenticated_api_client, tenant, product):
        Product.objects.create(
            tenant=tenant, sku="CLAV-01", name="Clavos", price=Decimal("500"),
            current_stock=1, min_stock=5,
        )

        response = authenticated_api_client.get(
            reverse("inventory:product_list"), {"low_stock": "true"}
        )

        assert response.status_code == 200
        assert [item["sku"] for item in response.data["results"]] == ["CLAV-01"]
        assert response.data["results"][0]["is_low_stock"] is True

    def test_search_products(self, authenticated_api_client, product, service_product):
        response = authenticated_api_client.get(
            reverse("inventory:product_list"), {"search": "martillo"}
        )

        assert response.data["count"] == 1
        assert response.data["results"][0]["id"] == str(product.id)

    def test_products_are_isolated_by_tenant(self, authenticated_api_client, other_tenant):
        foreign = Product.objects.create(
            tenant=other_tenant, sku="X-1", name="Ajeno", price=Decimal("100")
        )

        response = authenticated_api_client.get(
            reverse("inventory:product_detail", kwargs={"id": foreign.id})
        )

        assert response.status_code == 404

    def test_search_by_sku_normalizes_input(self, authenticated_api_client, product):
        response = authenticated_api_client.get(
            reverse("inventory:product_search_by_sku"), {"sku": " mart-001 "}
        )

        assert response.status_code == 200
        assert response.data["found"] is True
        assert response.data["product"]["id"] == str(product.id)

    def test_search_by_generated_sku_lowercase(self, authenticated_api_client, tenant):
        generated = Product.objects.create(
            tenant=tenant, sku="PROD-1700000000000-AB12", name="Tornillo", price=Decimal("50")
        )

        response = authenticated_api_client.get(
            reverse("inventory:product_search_by_sku"), {"sku": "prod-1700000000000-ab12"}
        )

        assert response.data["found"] is True
        assert response.data["product"]["id"] == str(generated.id)

    def test_search_by_sku_without_dashes(self, authenticated_api_client, product):
        response = authenticated_api_client.get(
            reverse("inventory:product_search_by_sku"), {"sku": "MART001"}
        )

        assert response.data["found"] is True

    def test_search_by_barcode(self, authenticated_api_client, product):
        response = authenticated_api_client.get(
            reverse("inventory:product_search_by_sku"), {"sku": "7801234567890"}
        )

        assert response.data["found"] is True

    def test_search_by_sku_not_found(self, authenticated_api_client, product):
        response = authenticated_api_client.get(
            reverse("inventory:product_search_by_sku"), {"sku": "nada"}
        )

        assert response.status_code == 200
        assert response.data == {"found": False, "sku": "NADA"}

    def test_search_by_sku_requires_value(self, authenticated_api_client):
        response = authenticated_api_client.get(reverse("inventory:product_search_by_sku"))

        assert response.status_code == 400

    def test_generate_sku_endpoint(self, authenticated_api_client):
        response = authenticated_api_client.get(reverse("inventory:product_generate_sku"))

        assert response.status_code == 200
        assert response.data["sku"].startswith("PROD-")

    def test_label_sheet_pdf(self, authenticated_api_client, product):
        response = authenticated_api_client.post(
            reverse("inventory:product_labels"),
            {"items": [{"product_id": str(product.id), "copies": 3}]},
            format="json",
        )

        assert response.status_code == 200
        assert response["Content-Type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_label_sheet_unknown_product(self, authenticated_api_client, other_tenant):
        foreign = Product.objects.create(
            tenant=other_tenant, sku="X-1", name="Ajeno", price=Decimal("100")
        )

        response = authenticated_api_client.post(
            reverse("inventory:product_labels"),
            {"items": [{"product_id": str(foreign.id)}]},
            format="json",
        )

        assert response.status_code == 404
        assert response.data["details"]["product_ids"] == [str(foreign.id)]

    def test_delete_unused_product(self, authenticated_api_client, product):
        response = authenticated_api_client.delete(
            reverse("inventory:product_detail", kwargs={"id": product.id})
        )

        assert response.status_code == 200
        assert response.data["soft_delete"] is False
        assert not Product.objects.filter(id=product.id).exists()

    def test_delete_sold_product_deactivates_it(self, authenticated_api_client, product, make_sale):
        make_sale(1190, items=[(product, 1)])

        response = authenticated_api_client.delete(
            reverse("inventory:product_detail", kwargs={"id": product.id})
        )

        assert response.status_code == 200
        assert response.data["soft_delete"] is True
        product.refresh_from_db()
        assert product.is_active is False
        assert DocumentItem.objects.filter(product=product).exists()
        assert Document.objects.count() == 1

    def test_member_cannot_delete_products(self, member_client, product):
        response = member_client.delete(
            reverse("inventory:product_detail", kwargs={"id": product.id})
        )

        assert response.status_code == 403


@pytest.mark.django_db
class TestCategoryEndpoints:
    """Test category management."""

    def test_create_and_list_categories(self, authenticated_api_client):
        url = reverse("inventory:category_list")

        response = authenticated_api_client.post(url, {"name": " Herramientas "}, format="json")
        assert response.status_code == 201
        assert response.data["name"] == "Herramientas"

        response = authenticated_api_client.get(url)
        assert response.status_code == 200
        assert [item["name"] for item in response.data] == ["Herramientas"]

    def test_duplicate_category_name(self, authenticated_api_client, tenant):
        Category.objects.create(tenant=tenant, name="Herramientas")

        response = authenticated_api_client.post(
            reverse("inventory:category_list"), {"name": "herramientas"}, format="json"
        )

        assert response.status_code == 400

    def test_delete_category_detaches_products(self, authenticated_api_client, tenant, product):
        category = Category.objects.create(tenant=tenant, name="Herramientas")
        product.category = category
        product.save()

        response = authenticated_api_client.delete(
            reverse("inventory:category_detail", kwargs={"id": category.id})
        )

        assert response.status_code == 200
        assert response.data["detached_products"] == 1
        product.refresh_from_db()
        assert product.category is None
