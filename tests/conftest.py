"""
Pytest configuration and fixtures for the multi-tenant POS platform.
"""

from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

import pytest


@pytest.fixture
def api_client():
    """
    Fixture for Django REST framework API client.
    """
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def tenant():
    """
    Fixture for an active tenant with every module enabled.
    """
    from apps.core.models import Tenant

    return Tenant.objects.create(
        company_name="Ferretería El Roble",
        rut="760864285",
        status=Tenant.ACTIVE,
        plan=Tenant.PLAN_PRO,
    )


@pytest.fixture
def other_tenant():
    """
    Fixture for a second tenant, used to check isolation.
    """
    from apps.core.models import Tenant

    return Tenant.objects.create(company_name="Almacén Vecino", rut="111111111")


def _create_user(django_user_model, tenant, username, role, **extra):
    from apps.core.models import Member

    user = django_user_model.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="testpass123",
        tenant=tenant,
        **extra,
    )
    if tenant is not None and role is not None:
        Member.objects.create(tenant=tenant, user=user, role=role)
    return user


@pytest.fixture
def tenant_user(tenant, django_user_model):
    """
    Fixture for the tenant owner.
    """
    from apps.core.models import Member

    return _create_user(
        django_user_model, tenant, "owner", Member.OWNER, first_name="Carla", last_name="Muñoz"
    )


@pytest.fixture
def admin_user(tenant, django_user_model):
    """
    Fixture for a tenant administrator.
    """
    from apps.core.models import Member

    return _create_user(django_user_model, tenant, "admin", Member.ADMIN)


@pytest.fixture
def member_user(tenant, django_user_model):
    """
    Fixture for a cashier with the MEMBER role.
    """
    from apps.core.models import Member

    return _create_user(django_user_model, tenant, "cashier", Member.MEMBER)


@pytest.fixture
def superadmin(django_user_model):
    """
    Fixture for a platform administrator without tenant.
    """
    return _create_user(django_user_model, None, "root", None, is_superadmin=True)


@pytest.fixture
def authenticated_api_client(api_client, tenant_user):
    """
    Fixture for an API client authenticated as the tenant owner.
    """
    api_client.force_authenticate(user=tenant_user)
    return api_client


@pytest.fixture
def admin_client(admin_user):
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def member_client(member_user):
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=member_user)
    return client


@pytest.fixture
def superadmin_client(superadmin):
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=superadmin)
    return client


@pytest.fixture
def product(tenant):
    """
    Fixture for a tracked product priced 1.190 with cost 600 and 10 units.
    """
    from apps.inventory.models import Product

    return Product.objects.create(
        tenant=tenant,
        sku="MART-001",
        barcode="7801234567890",
        name="Martillo carpintero",
        price=Decimal("1190"),
        cost=Decimal("600"),
        tax_rate=Decimal("19"),
        track_inventory=True,
        current_stock=10,
        min_stock=2,
    )


@pytest.fixture
def service_product(tenant):
    """
    Fixture for an untracked service.
    """
    from apps.inventory.models import Product

    return Product.objects.create(
        tenant=tenant,
        sku="SERV-INST",
        name="Instalación",
        product_type=Product.SERVICE,
        price=Decimal("25000"),
    )


@pytest.fixture
def customer(tenant):
    """
    Fixture for a customer with a 50.000 credit limit and no debt.
    """
    from apps.sales.models import Customer

    return Customer.objects.create(
        tenant=tenant,
        rut="123456785",
        name="Juan Pérez",
        email="juan@example.com",
        credit_limit=Decimal("50000"),
    )


@pytest.fixture
def open_cash_register(tenant, tenant_user):
    """
    Fixture for an open shift of the tenant owner with 10.000 in the drawer.
    """
    from apps.cash_register.models import CashRegister

    return CashRegister.objects.create(
        tenant=tenant,
        user=tenant_user,
        opening_cash=Decimal("10000"),
        opened_at=timezone.now() - timedelta(minutes=5),
    )


@pytest.fixture
def supplier(tenant):
    from apps.procurement.models import Supplier

    return Supplier.objects.create(tenant=tenant, name="Distribuidora Sur", rut="111111111")


@pytest.fixture
def project(tenant, tenant_user, customer):
    """
    Fixture for an active project with budget 100.000 and contracted 150.000.
    """
    from apps.services.models import Project

    return Project.objects.create(
        tenant=tenant,
        customer=customer,
        name="Remodelación cocina",
        budget=Decimal("100000"),
        contracted_amount=Decimal("150000"),
        created_by=tenant_user,
    )


@pytest.fixture
def make_sale(tenant, tenant_user):
    """
    Factory for PAID sales stored directly, bypassing the POS flow.
    """
    from apps.sales.models import Document, DocumentItem

    def _make_sale(total, payment_method="CASH", issued_at=None, items=(), **extra):
        total = Decimal(str(total))
        doc_type = extra.pop("doc_type", Document.SALE)
        document = Document.objects.create(
            tenant=tenant,
            doc_type=doc_type,
            doc_number=extra.pop("doc_number", None) or Document.next_number(tenant, doc_type),
            status=extra.pop("status", Document.PAID),
            created_by=tenant_user,
            payment_method=payment_method,
            subtotal=extra.pop("subtotal", (total / Decimal("1.19")).quantize(Decimal("0.01"))),
            tax_amount=extra.pop("tax_amount", Decimal("0")),
            total=total,
            issued_at=issued_at or timezone.now(),
            paid_at=issued_at or timezone.now(),
            **extra,
        )
        for product, quantity in items:
            DocumentItem.objects.create(
                document=document,
                product=product,
                sku=product.sku,
                name=product.name,
                quantity=Decimal(str(quantity)),
                unit_price=product.price,
                total=product.price * Decimal(str(quantity)),
            )
        return document

    return _make_sale
