"""
Tests for quotes, their conversion to projects and project cost tracking.
"""

from datetime import timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone

import pytest

from apps.sales.models import Document
from apps.services import metrics
from apps.services.models import (
    Project,
    ProjectExpense,
    ProjectMilestone,
    ProjectPayment,
    ProjectResource,
)


def _quote_payload(customer=None, **overrides):
    payload = {
        "items": [{"name": "Instalación cerámica", "quantity": "1", "unit_price": "119000"}],
    }
    if customer is not None:
        payload["customer_id"] = str(customer.id)
    payload.update(overrides)
    return payload


def _create_quote(client, customer=None, **overrides):
    return client.post(
        reverse("services:quote_list"), _quote_payload(customer, **overrides), format="json"
    )


@pytest.mark.django_db
class TestQuotes:
    """Test quote creation, edition and cancellation."""

    def test_create_quote(self, authenticated_api_client, customer):
        response = _create_quote(authenticated_api_client, customer)

        assert response.status_code == 201
        quote = response.data["quote"]
        assert quote["type"] == Document.QUOTE
        assert quote["doc_prefix"] == "COT"
        assert quote["status"] == Document.DRAFT
        assert quote["payment_method"] == Document.TRANSFER
        assert Decimal(quote["total"]) == Decimal("119000")
        assert quote["project"] is None

    def test_quote_does_not_need_cash_register(self, member_client):
        response = _create_quote(member_client)

        assert response.status_code == 201

    def test_credit_payment_is_rejected(self, authenticated_api_client, customer):
        response = _create_quote(authenticated_api_client, customer, payment_method="CREDIT")

        assert response.status_code == 400
        assert "payment_method" in response.data

    def test_paid_status_is_rejected(self, authenticated_api_client):
        response = _create_quote(authenticated_api_client, status="PAID")

        assert response.status_code == 400

    def test_list_quotes(self, authenticated_api_client, make_sale):
        _create_quote(authenticated_api_client)
        make_sale(1190)

        response = authenticated_api_client.get(reverse("services:quote_list"))

        assert response.status_code == 200
        assert len(response.data["quotes"]) == 1

    def test_update_status(self, authenticated_api_client):
        created = _create_quote(authenticated_api_client)

        response = authenticated_api_client.patch(
            reverse("services:quote_detail", kwargs={"quote_id": created.data["quote"]["id"]}),
            {"status": "APPROVED", "notes": "Aprobada por teléfono"},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["quote"]["status"] == Document.APPROVED
        assert response.data["quote"]["notes"] == "Aprobada por teléfono"

    def test_delete_cancels_quote(self, authenticated_api_client):
        created = _create_quote(authenticated_api_client)
        url = reverse("services:quote_detail", kwargs={"quote_id": created.data["quote"]["id"]})

        response = authenticated_api_client.delete(url)
        assert response.status_code == 200
        assert response.data["quote"]["status"] == Document.CANCELLED

        response = authenticated_api_client.delete(url)
        assert response.status_code == 400
        assert response.data["error"] == "La cotización ya está cancelada"

    def test_sale_is_not_a_quote(self, authenticated_api_client, make_sale):
        sale = make_sale(1190)

        response = authenticated_api_client.get(
            reverse("services:quote_detail", kwargs={"quote_id": sale.id})
        )

        assert response.status_code == 404

    def test_quote_pdf(self, authenticated_api_client, customer):
        created = _create_quote(authenticated_api_client, customer)

        response = authenticated_api_client.get(
            reverse("services:quote_pdf", kwargs={"quote_id": created.data["quote"]["id"]})
        )

        assert response.status_code == 200
        assert response["Content-Type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_module_disabled(self, authenticated_api_client, tenant):
        tenant.modules = ["POS", "PROJECTS"]
        tenant.save()

        response = authenticated_api_client.get(reverse("services:quote_list"))

        assert response.status_code == 403


@pytest.mark.django_db
class TestQuoteConversion:
    """Test turning approved quotes into projects."""

    def _convert(self, client, quote_id, **data):
        return client.post(
            reverse("services:quote_convert", kwargs={"quote_id": quote_id}), data, format="json"
        )

    def test_only_approved_quotes(self, authenticated_api_client, customer):
        quote_id = _create_quote(authenticated_api_client, customer).data["quote"]["id"]

        response = self._convert(authenticated_api_client, quote_id)

        assert response.status_code == 400
        assert response.data["error"] == (
            "Solo se pueden convertir cotizaciones en estado Aprobada"
        )
        assert not Project.objects.exists()

    def test_convert_approved_quote(self, authenticated_api_client, customer):
        quote_id = _create_quote(
            authenticated_api_client, customer, status="APPROVED", notes="Baño completo"
        ).data["quote"]["id"]

        response = self._convert(authenticated_api_client, quote_id)

        assert response.status_code == 201
        project = response.data["project"]
        quote = Document.objects.get(id=quote_id)
        assert project["name"] == f"Proyecto COT-{quote.doc_number} - Juan Pérez"
        assert project["description"] == "Baño completo"
        assert project["status"] == Project.ACTIVE
        assert Decimal(project["budget"]) == Decimal("119000")
        assert Decimal(project["contracted_amount"]) == Decimal("119000")
        assert project["customer"]["name"] == "Juan Pérez"

        response = self._convert(authenticated_api_client, quote_id)
        assert response.status_code == 400
        assert response.data["error"] == "Esta cotización ya fue convertida a proyecto"

    def test_custom_project_name(self, authenticated_api_client):
        quote_id = _create_quote(authenticated_api_client, status="APPROVED").data["quote"]["id"]

        response = self._convert(authenticated_api_client, quote_id, name="Obra Ñuñoa")

        assert response.data["project"]["name"] == "Obra Ñuñoa"

    def test_member_cannot_convert(self, member_client, authenticated_api_client):
        quote_id = _create_quote(authenticated_api_client, status="APPROVED").data["quote"]["id"]

        response = self._convert(member_client, quote_id)

        assert response.status_code == 403


@pytest.mark.django_db
class TestProjects:
    """Test project CRUD and its detail metrics."""

    def test_create_project(self, authenticated_api_client, customer, tenant):
        response = authenticated_api_client.post(
            reverse("services:project_list"),
            {"name": "Ampliación bodega", "budget": "500000", "customer_id": str(customer.id)},
            format="json",
        )

        assert response.status_code == 201
        assert Decimal(response.data["actual_cost"]) == Decimal("0")
        assert Project.objects.get(id=response.data["id"]).tenant == tenant

    def test_end_date_before_start(self, authenticated_api_client):
        now = timezone.now()

        response = authenticated_api_client.post(
            reverse("services:project_list"),
            {
                "name": "Ampliación bodega",
                "start_date": now.isoformat(),
                "end_date": (now - timedelta(days=1)).isoformat(),
            },
            format="json",
        )

        assert response.status_code == 400
        assert "end_date" in response.data

    def test_negative_budget(self, authenticated_api_client):
        response = authenticated_api_client.post(
            reverse("services:project_list"),
            {"name": "Ampliación bodega", "budget": "-1"},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["budget"] == ["El presupuesto no puede ser negativo"]

    def test_quote_of_project_cannot_change(self, authenticated_api_client, project):
        created = _create_quote(authenticated_api_client)

        response = authenticated_api_client.patch(
            reverse("services:project_detail", kwargs={"id": project.id}),
            {"quote_id": created.data["quote"]["id"]},
            format="json",
        )

        assert response.status_code == 400
        assert "quote_id" in response.data

    def test_detail_includes_metrics_and_alerts(self, authenticated_api_client, project):
        project.actual_cost = Decimal("120000")
        project.save()
        ProjectPayment.objects.create(
            tenant=project.tenant, project=project, amount=Decimal("50000")
        )

        response = authenticated_api_client.get(
            reverse("services:project_detail", kwargs={"id": project.id})
        )

        assert response.status_code == 200
        assert response.data["project"]["name"] == "Remodelación cocina"
        project_metrics = response.data["metrics"]
        assert project_metrics["variance"] == Decimal("20000")
        assert project_metrics["budget_usage_percent"] == Decimal("120")
        assert project_metrics["collected_amount"] == Decimal("50000")
        assert project_metrics["pending_amount"] == Decimal("100000")
        assert response.data["alerts"]["project_over_budget"] == {"over_amount": Decimal("20000")}

    def test_member_can_view_but_not_create(self, member_client, project):
        url = reverse("services:project_list")

        assert member_client.get(url).status_code == 200
        assert member_client.post(url, {"name": "Nuevo"}, format="json").status_code == 403

    def test_other_tenant_project(self, authenticated_api_client, other_tenant):
        foreign = Project.objects.create(tenant=other_tenant, name="Ajeno")

        response = authenticated_api_client.get(
            reverse("services:project_detail", kwargs={"id": foreign.id})
        )

        assert response.status_code == 404

    def test_project_with_payments_cannot_be_deleted(self, authenticated_api_client, project):
        ProjectPayment.objects.create(
            tenant=project.tenant, project=project, amount=Decimal("1000")
        )

        response = authenticated_api_client.delete(
            reverse("services:project_detail", kwargs={"id": project.id})
        )

        assert response.status_code == 400
        assert Project.objects.filter(id=project.id).exists()

    def test_delete_project(self, authenticated_api_client, project):
        response = authenticated_api_client.delete(
            reverse("services:project_detail", kwargs={"id": project.id})
        )

        assert response.status_code == 200
        assert response.data["message"] == "Proyecto eliminado exitosamente"
        assert not Project.objects.exists()


@pytest.mark.django_db
class TestProjectCosts:
    """Test milestones, resources and expenses charged to a project."""

    def test_compute_cost_caps_consumption(self):
        assert ProjectResource.compute_cost(Decimal("10"), Decimal("15"), Decimal("500")) == (
            Decimal("10"),
            Decimal("5000.00"),
        )
        assert ProjectResource.compute_cost(Decimal("10"), None, Decimal("500")) == (
            Decimal("0"),
            Decimal("0.00"),
        )

    def test_milestones_are_positioned(self, authenticated_api_client, project):
        url = reverse("services:project_milestone_list", kwargs={"project_id": project.id})

        authenticated_api_client.post(url, {"name": "Demolición"}, format="json")
        response = authenticated_api_client.post(
            url, {"name": "Instalación", "is_completed": True}, format="json"
        )

        assert response.status_code == 201
        assert response.data["position"] == 2
        assert response.data["completed_at"] is not None
        listing = authenticated_api_client.get(url)
        assert [item["name"] for item in listing.data] == ["Demolición", "Instalación"]

    def test_resource_adds_capped_cost(self, authenticated_api_client, project, product):
        response = authenticated_api_client.post(
            reverse("services:project_resource_list", kwargs={"project_id": project.id}),
            {
                "product_id": str(product.id),
                "name": "Martillos",
                "quantity": "10",
                "consumed_quantity": "15",
                "unit_cost": "500",
            },
            format="json",
        )

        assert response.status_code == 201
        assert Decimal(response.data["consumed_quantity"]) == Decimal("10")
        assert Decimal(response.data["total_cost"]) == Decimal("5000")
        assert response.data["sku"] == "MART-001"
        project.refresh_from_db()
        assert project.actual_cost == Decimal("5000")

    def test_resource_update_and_delete(self, authenticated_api_client, project):
        created = authenticated_api_client.post(
            reverse("services:project_resource_list", kwargs={"project_id": project.id}),
            {"name": "Cemento", "quantity": "20", "consumed_quantity": "4", "unit_cost": "1000"},
            format="json",
        )
        url = reverse(
            "services:project_resource_detail",
            kwargs={"project_id": project.id, "id": created.data["id"]},
        )

        response = authenticated_api_client.patch(url, {"consumed_quantity": "10"}, format="json")
        assert response.status_code == 200
        project.refresh_from_db()
        assert project.actual_cost == Decimal("10000")

        response = authenticated_api_client.delete(url)
        assert response.data["message"] == "Recurso eliminado exitosamente"
        project.refresh_from_db()
        assert project.actual_cost == Decimal("0")

    def test_expense_update_applies_difference(self, authenticated_api_client, project):
        created = authenticated_api_client.post(
            reverse("services:project_expense_list", kwargs={"project_id": project.id}),
            {"description": "Flete", "amount": "8000"},
            format="json",
        )
        assert created.status_code == 201
        url = reverse(
            "services:project_expense_detail",
            kwargs={"project_id": project.id, "id": created.data["id"]},
        )

        authenticated_api_client.patch(url, {"amount": "5000"}, format="json")

        project.refresh_from_db()
        assert project.actual_cost == Decimal("5000")

    def test_member_can_add_expense(self, member_client, project):
        response = member_client.post(
            reverse("services:project_expense_list", kwargs={"project_id": project.id}),
            {"description": "Peaje", "amount": "1500"},
            format="json",
        )

        assert response.status_code == 201

    def test_milestone_of_other_project(self, authenticated_api_client, project, tenant):
        other_project = Project.objects.create(tenant=tenant, name="Otro proyecto")
        milestone = ProjectMilestone.objects.create(
            tenant=tenant, project=other_project, name="Ajeno"
        )

        response = authenticated_api_client.post(
            reverse("services:project_expense_list", kwargs={"project_id": project.id}),
            {"description": "Flete", "amount": "8000", "milestone_id": str(milestone.id)},
            format="json",
        )

        assert response.status_code == 404
        assert not ProjectExpense.objects.exists()

    def test_unknown_project(self, authenticated_api_client, other_tenant):
        foreign = Project.objects.create(tenant=other_tenant, name="Ajeno")

        response = authenticated_api_client.get(
            reverse("services:project_expense_list", kwargs={"project_id": foreign.id})
        )

        assert response.status_code == 404


@pytest.mark.django_db
class TestProjectPayments:
    """Test collections against the contracted amount."""

    def _pay(self, client, project, amount):
        return client.post(
            reverse("services:project_payment_list", kwargs={"project_id": project.id}),
            {"amount": amount},
            format="json",
        )

    def test_register_payments(self, authenticated_api_client, project):
        response = self._pay(authenticated_api_client, project, "100000")

        assert response.status_code == 201
        assert response.data["payment_method"] == ProjectPayment.TRANSFER

        listing = authenticated_api_client.get(
            reverse("services:project_payment_list", kwargs={"project_id": project.id})
        )
        assert len(listing.data) == 1

    def test_payment_over_contracted_amount(self, authenticated_api_client, project):
        self._pay(authenticated_api_client, project, "100000")

        response = self._pay(authenticated_api_client, project, "50001")

        assert response.status_code == 400
        assert response.data["details"] == {
            "contracted_amount": Decimal("150000"),
            "already_collected": Decimal("100000"),
            "pending_amount": Decimal("50000"),
        }
        assert ProjectPayment.objects.count() == 1

    def test_project_without_contracted_amount(self, authenticated_api_client, tenant):
        project = Project.objects.create(tenant=tenant, name="Sin contrato")

        response = self._pay(authenticated_api_client, project, "999999")

        assert response.status_code == 201


@pytest.mark.django_db
class TestServiceAlerts:
    """Test the alert feed of open projects."""

    def test_alert_summary(self, authenticated_api_client, project, tenant):
        project.actual_cost = Decimal("150000")
        project.save()
        milestone = ProjectMilestone.objects.create(
            tenant=tenant,
            project=project,
            name="Muebles",
            estimated_cost=Decimal("1000"),
            due_date=timezone.now() - timedelta(days=2),
        )
        ProjectExpense.objects.create(
            tenant=tenant,
            project=project,
            milestone=milestone,
            description="Cubierta",
            amount=Decimal("3000"),
        )
        Project.objects.create(
            tenant=tenant,
            name="Cerrado",
            status=Project.COMPLETED,
            budget=Decimal("1"),
            actual_cost=Decimal("100"),
        )

        response = authenticated_api_client.get(reverse("services:service_alerts"))

        assert response.status_code == 200
        assert response.data["summary"] == {
            "total": 3,
            "high": 2,
            "medium": 1,
            "by_type": {
                "project_over_budget": 1,
                "milestone_over_budget": 1,
                "milestone_overdue": 1,
            },
        }
        messages = [alert["message"] for alert in response.data["alerts"]]
        assert "Proyecto sobre presupuesto por $50.000" in messages
        assert 'Hito vencido: "Muebles"' in messages

    def test_completed_milestone_is_not_overdue(self, project, tenant):
        ProjectMilestone.objects.create(
            tenant=tenant,
            project=project,
            name="Listo",
            is_completed=True,
            due_date=timezone.now() - timedelta(days=2),
        )

        assert metrics.service_alerts(tenant)["summary"]["total"] == 0
