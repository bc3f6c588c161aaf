"""
Tests for authentication, tenant administration and team management.
"""

from datetime import timedelta

from django.contrib.auth.tokens import default_token_generator
from django.core import mail
from django.urls import reverse
from django.utils import timezone

import pytest

from apps.core.audit_models import AuditLog
from apps.core.models import Member, TeamInvitation, Tenant, TenantSettings, TenantSubscription


@pytest.mark.django_db
class TestAuthentication:
    """Test session login and the current user endpoint."""

    def test_login_with_email(self, api_client, tenant_user):
        response = api_client.post(
            reverse("core:login"),
            {"email": "OWNER@example.com", "password": "testpass123"},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["email"] == "owner@example.com"
        assert response.data["role"] == Member.OWNER
        assert response.data["tenant_name"] == "Ferretería El Roble"

    def test_login_with_wrong_password(self, api_client, tenant_user):
        response = api_client.post(
            reverse("core:login"),
            {"email": "owner@example.com", "password": "wrong"},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error"] == "Credenciales inválidas"

    def test_me_requires_authentication(self, api_client):
        response = api_client.get(reverse("core:me"))

        assert response.status_code == 403

    def test_switch_tenant_requires_membership(
        self, authenticated_api_client, tenant_user, other_tenant
    ):
        url = reverse("core:switch_tenant")

        response = authenticated_api_client.post(
            url, {"tenant_id": str(other_tenant.id)}, format="json"
        )
        assert response.status_code == 404

        Member.objects.create(tenant=other_tenant, user=tenant_user, role=Member.ADMIN)
        response = authenticated_api_client.post(
            url, {"tenant_id": str(other_tenant.id)}, format="json"
        )
        assert response.status_code == 200
        assert response.data["role"] == Member.ADMIN
        tenant_user.refresh_from_db()
        assert tenant_user.tenant == other_tenant


@pytest.mark.django_db
class TestTenantAdministration:
    """Test tenant creation and management by platform administrators."""

    def _payload(self, **overrides):
        payload = {
            "name": "Botillería Centro",
            "rut": "12.345.678-5",
            "owner_email": "Duena@Example.com",
            "owner_name": "Ana",
            "plan": "PRO",
            "status": "TRIAL",
            "modules": ["pos", "products", "unknown"],
        }
        payload.update(overrides)
        return payload

    def test_create_tenant_with_owner_and_subscription(self, superadmin_client):
        response = superadmin_client.post(
            reverse("core:admin_tenant_list"), self._payload(), format="json"
        )

        assert response.status_code == 201
        assert response.data["temporary_password"]
        assert response.data["owner"]["email"] == "duena@example.com"

        tenant = Tenant.objects.get(rut="123456785")
        assert tenant.modules == ["POS", "INVENTORY"]
        assert tenant.slug == "botilleria-centro"

        member = Member.objects.get(tenant=tenant)
        assert member.role == Member.OWNER
        assert member.user.tenant == tenant

        subscription = TenantSubscription.objects.get(tenant=tenant)
        assert subscription.mrr == 29990
        assert subscription.status == "TRIAL"
        assert subscription.trial_ends_at is not None

    def test_create_tenant_sends_welcome_email(
        self, superadmin_client, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            response = superadmin_client.post(
                reverse("core:admin_tenant_list"), self._payload(), format="json"
            )

        assert response.status_code == 201
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ["duena@example.com"]

    def test_existing_owner_gets_no_temporary_password(self, superadmin_client, tenant_user):
        response = superadmin_client.post(
            reverse("core:admin_tenant_list"),
            self._payload(owner_email="owner@example.com"),
            format="json",
        )

        assert response.status_code == 201
        assert response.data["temporary_password"] is None

    def test_invalid_rut_is_rejected(self, superadmin_client):
        response = superadmin_client.post(
            reverse("core:admin_tenant_list"), self._payload(rut="12.345.678-9"), format="json"
        )

        assert response.status_code == 400
        assert "rut" in response.data

    def test_duplicate_rut_is_rejected(self, superadmin_client, tenant):
        response = superadmin_client.post(
            reverse("core:admin_tenant_list"), self._payload(rut="76.086.428-5"), format="json"
        )

        assert response.status_code == 400
        assert "rut" in response.data

    def test_tenant_owner_cannot_manage_tenants(self, authenticated_api_client):
        response = authenticated_api_client.get(reverse("core:admin_tenant_list"))

        assert response.status_code == 403

    def test_list_tenants_with_search(self, superadmin_client, tenant, other_tenant):
        response = superadmin_client.get(reverse("core:admin_tenant_list"), {"search": "roble"})

        assert response.status_code == 200
        assert response.data["count"] == 1
        assert response.data["results"][0]["id"] == str(tenant.id)

    def test_suspend_tenant_blocks_its_users(
        self, superadmin_client, authenticated_api_client, tenant
    ):
        url = reverse("core:admin_tenant_detail", kwargs={"tenant_id": tenant.id})

        response = superadmin_client.patch(url, {"status": "SUSPENDED"}, format="json")

        assert response.status_code == 200
        tenant.refresh_from_db()
        assert tenant.status == Tenant.SUSPENDED
        assert tenant.suspended_at is not None

        response = authenticated_api_client.get(reverse("sales:document_list"))
        assert response.status_code == 403

    def test_reactivate_tenant_clears_suspension(self, superadmin_client, tenant):
        tenant.suspend()
        url = reverse("core:admin_tenant_detail", kwargs={"tenant_id": tenant.id})

        response = superadmin_client.patch(url, {"status": "ACTIVE"}, format="json")

        assert response.status_code == 200
        tenant.refresh_from_db()
        assert tenant.status == Tenant.ACTIVE
        assert tenant.suspended_at is None

    def test_update_modules_are_normalized(self, superadmin_client, tenant):
        url = reverse("core:admin_tenant_detail", kwargs={"tenant_id": tenant.id})

        response = superadmin_client.patch(url, {"modules": ["mi-caja", "pos"]}, format="json")

        assert response.status_code == 200
        tenant.refresh_from_db()
        assert tenant.modules == ["POS", "CASH_REGISTER"]

    def test_delete_tenant(self, superadmin_client, other_tenant):
        url = reverse("core:admin_tenant_detail", kwargs={"tenant_id": other_tenant.id})

        response = superadmin_client.delete(url)

        assert response.status_code == 200
        assert not Tenant.objects.filter(id=other_tenant.id).exists()


@pytest.mark.django_db
class TestTeamMembers:
    """Test member listing, role changes and removal."""

    def test_list_members(self, authenticated_api_client, member_user):
        response = authenticated_api_client.get(reverse("core:team_members"))

        assert response.status_code == 200
        assert response.data["current_user_role"] == Member.OWNER
        assert len(response.data["members"]) == 2

    def test_owner_cannot_remove_self(self, authenticated_api_client, tenant_user):
        membership = tenant_user.get_membership()
        url = reverse("core:team_member_detail", kwargs={"member_id": membership.id})

        response = authenticated_api_client.delete(url)

        assert response.status_code == 400

    def test_owner_removes_member(self, authenticated_api_client, member_user):
        membership = member_user.get_membership()
        url = reverse("core:team_member_detail", kwargs={"member_id": membership.id})

        response = authenticated_api_client.delete(url)

        assert response.status_code == 200
        assert not Member.objects.filter(id=membership.id).exists()
        member_user.refresh_from_db()
        assert member_user.tenant is None

    def test_owner_changes_admin_role(self, authenticated_api_client, admin_user):
        membership = admin_user.get_membership()
        url = reverse("core:team_member_detail", kwargs={"member_id": membership.id})

        response = authenticated_api_client.patch(url, {"role": Member.MEMBER}, format="json")

        assert response.status_code == 200
        membership.refresh_from_db()
        assert membership.role == Member.MEMBER

    def test_owner_cannot_change_own_role(self, authenticated_api_client, tenant_user):
        membership = tenant_user.get_membership()
        url = reverse("core:team_member_detail", kwargs={"member_id": membership.id})

        response = authenticated_api_client.patch(url, {"role": Member.ADMIN}, format="json")

        assert response.status_code == 400

    def test_admin_cannot_change_roles(self, admin_client, member_user):
        membership = member_user.get_membership()
        url = reverse("core:team_member_detail", kwargs={"member_id": membership.id})

        response = admin_client.patch(url, {"role": Member.ADMIN}, format="json")

        assert response.status_code == 403

    def test_owner_cannot_promote_to_owner(self, authenticated_api_client, admin_user):
        membership = admin_user.get_membership()
        url = reverse("core:team_member_detail", kwargs={"member_id": membership.id})

        response = authenticated_api_client.patch(url, {"role": Member.OWNER}, format="json")

        assert response.status_code == 403
        membership.refresh_from_db()
        assert membership.role == Member.ADMIN

    def test_admin_deactivates_member(self, admin_client, member_user):
        membership = member_user.get_membership()
        url = reverse("core:team_member_detail", kwargs={"member_id": membership.id})

        response = admin_client.patch(url, {"is_active": False}, format="json")

        assert response.status_code == 200
        membership.refresh_from_db()
        assert membership.is_active is False

    def test_admin_cannot_remove_owner(self, admin_client, tenant_user):
        membership = tenant_user.get_membership()
        url = reverse("core:team_member_detail", kwargs={"member_id": membership.id})

        response = admin_client.delete(url)

        assert response.status_code == 403

    def test_member_cannot_modify_members(self, member_client, admin_user):
        membership = admin_user.get_membership()
        url = reverse("core:team_member_detail", kwargs={"member_id": membership.id})

        response = member_client.patch(url, {"is_active": False}, format="json")

        assert response.status_code == 403


@pytest.mark.django_db
class TestTeamInvitations:
    """Test invitation creation, resending, cancellation and acceptance."""

    def _invite(self, client, email="nuevo@example.com", role=Member.ADMIN):
        return client.post(
            reverse("core:team_invitations"), {"email": email, "role": role}, format="json"
        )

    def test_invite_and_resend(self, authenticated_api_client):
        response = self._invite(authenticated_api_client)

        assert response.status_code == 201
        invitation = TeamInvitation.objects.get(email="nuevo@example.com")
        first_token = invitation.token
        assert len(first_token) == 64

        response = self._invite(authenticated_api_client, email="NUEVO@example.com")

        assert response.status_code == 200
        invitation.refresh_from_db()
        assert invitation.token != first_token
        assert TeamInvitation.objects.count() == 1

    def test_invitation_email_is_sent_on_commit(
        self, authenticated_api_client, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            response = self._invite(authenticated_api_client)

        assert response.status_code == 201
        assert len(mail.outbox) == 1
        assert "Ferretería El Roble" in mail.outbox[0].subject

    def test_cannot_invite_existing_member(self, authenticated_api_client, member_user):
        response = self._invite(authenticated_api_client, email="cashier@example.com")

        assert response.status_code == 400

    def test_admin_invites_members_only(self, admin_client):
        response = self._invite(admin_client, role=Member.ADMIN)

        assert response.status_code == 403
        assert not TeamInvitation.objects.exists()

        response = self._invite(admin_client, role=Member.MEMBER)

        assert response.status_code == 201

    def test_member_role_cannot_invite(self, member_client):
        response = self._invite(member_client)

        assert response.status_code == 403

    def test_list_pending_invitations(self, authenticated_api_client):
        self._invite(authenticated_api_client)

        response = authenticated_api_client.get(reverse("core:team_invitations"))

        assert response.status_code == 200
        assert [item["email"] for item in response.data["invitations"]] == ["nuevo@example.com"]

    def test_cancel_invitation(self, authenticated_api_client):
        self._invite(authenticated_api_client)
        invitation = TeamInvitation.objects.get()

        response = authenticated_api_client.delete(
            reverse("core:team_invitation_detail", kwargs={"invitation_id": invitation.id})
        )

        assert response.status_code == 200
        invitation.refresh_from_db()
        assert invitation.status == TeamInvitation.CANCELLED

    def _invited_client(self, api_client, django_user_model, email="nuevo@example.com"):
        user = django_user_model.objects.create_user(
            username="nuevo", email=email, password="testpass123"
        )
        api_client.force_authenticate(user=user)
        return api_client, user

    def _pending_invitation(self, tenant, tenant_user, **overrides):
        values = {
            "tenant": tenant,
            "email": "nuevo@example.com",
            "role": Member.ADMIN,
            "token": "a" * 64,
            "invited_by": tenant_user,
            "expires_at": timezone.now() + timedelta(days=7),
        }
        values.update(overrides)
        return TeamInvitation.objects.create(**values)

    def test_accept_invitation(self, api_client, django_user_model, tenant, tenant_user):
        invitation = self._pending_invitation(tenant, tenant_user)
        client, user = self._invited_client(api_client, django_user_model)

        response = client.post(
            reverse("core:team_invitation_accept"), {"token": invitation.token}, format="json"
        )

        assert response.status_code == 200
        member = Member.objects.get(tenant=tenant, user=user)
        assert member.role == Member.ADMIN
        user.refresh_from_db()
        assert user.tenant == tenant
        invitation.refresh_from_db()
        assert invitation.status == TeamInvitation.ACCEPTED
        assert invitation.accepted_at is not None

    def test_accept_expired_invitation(self, api_client, django_user_model, tenant, tenant_user):
        invitation = self._pending_invitation(
            tenant, tenant_user, expires_at=timezone.now() - timedelta(days=1)
        )
        client, _ = self._invited_client(api_client, django_user_model)

        response = client.post(
            reverse("core:team_invitation_accept"), {"token": invitation.token}, format="json"
        )

        assert response.status_code == 400
        invitation.refresh_from_db()
        assert invitation.status == TeamInvitation.EXPIRED

    def test_accept_with_other_email(self, api_client, django_user_model, tenant, tenant_user):
        invitation = self._pending_invitation(tenant, tenant_user)
        client, _ = self._invited_client(api_client, django_user_model, email="otra@example.com")

        response = client.post(
            reverse("core:team_invitation_accept"), {"token": invitation.token}, format="json"
        )

        assert response.status_code == 403
        assert not Member.objects.filter(tenant=tenant, user__email="otra@example.com").exists()

    def test_accept_unknown_token(self, api_client, django_user_model):
        client, _ = self._invited_client(api_client, django_user_model)

        response = client.post(
            reverse("core:team_invitation_accept"), {"token": "b" * 64}, format="json"
        )

        assert response.status_code == 404

    def test_accept_cancelled_invitation(self, api_client, django_user_model, tenant, tenant_user):
        invitation = self._pending_invitation(
            tenant, tenant_user, status=TeamInvitation.CANCELLED
        )
        client, _ = self._invited_client(api_client, django_user_model)

        response = client.post(
            reverse("core:team_invitation_accept"), {"token": invitation.token}, format="json"
        )

        assert response.status_code == 400


@pytest.mark.django_db
class TestRegistrationAndPasswordReset:
    """Test sign up and the forgotten password flow."""

    password = "Tornillo-2026!"

    def _register(self, client, email="nuevo@example.com"):
        return client.post(
            reverse("core:register"),
            {"name": "Nicolás Rojas", "email": email, "password": self.password},
            format="json",
        )

    def test_register_creates_user_without_tenant(self, api_client, django_user_model):
        response = self._register(api_client, email="Nuevo@Example.com")

        assert response.status_code == 201
        assert response.data["user"]["email"] == "nuevo@example.com"
        user = django_user_model.objects.get(email="nuevo@example.com")
        assert user.tenant is None
        assert user.check_password(self.password)
        assert AuditLog.objects.filter(action="REGISTER_USER", user=user).exists()

    def test_register_duplicate_email(self, api_client, tenant_user):
        response = self._register(api_client, email="OWNER@example.com")

        assert response.status_code == 400
        assert "email" in response.data

    def test_register_weak_password(self, api_client):
        response = api_client.post(
            reverse("core:register"),
            {"name": "Nicolás", "email": "nuevo@example.com", "password": "12345678"},
            format="json",
        )

        assert response.status_code == 400
        assert "password" in response.data

    def test_registered_user_accepts_invitation(self, api_client, tenant, tenant_user):
        invitation = TeamInvitation.objects.create(
            tenant=tenant,
            email="nuevo@example.com",
            role=Member.MEMBER,
            token="c" * 64,
            invited_by=tenant_user,
            expires_at=timezone.now() + timedelta(days=7),
        )
        assert self._register(api_client).status_code == 201

        response = api_client.post(
            reverse("core:login"),
            {"email": "nuevo@example.com", "password": self.password},
            format="json",
        )
        assert response.status_code == 200

        response = api_client.post(
            reverse("core:team_invitation_accept"), {"token": invitation.token}, format="json"
        )

        assert response.status_code == 200
        assert response.data["role"] == Member.MEMBER
        assert Member.objects.filter(
            tenant=tenant, user__email="nuevo@example.com", is_active=True
        ).exists()
        response = api_client.get(reverse("core:me"))
        assert response.data["tenant_name"] == "Ferretería El Roble"

    def test_forgot_password_sends_reset_link(
        self, api_client, tenant_user, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            response = api_client.post(
                reverse("core:forgot_password"), {"email": "OWNER@example.com"}, format="json"
            )

        assert response.status_code == 200
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ["owner@example.com"]
        assert "http://testserver/reset-password?token=" in mail.outbox[0].body

    def test_forgot_password_unknown_email_looks_the_same(
        self, api_client, tenant_user, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            unknown = api_client.post(
                reverse("core:forgot_password"), {"email": "nadie@example.com"}, format="json"
            )
        known = api_client.post(
            reverse("core:forgot_password"), {"email": "owner@example.com"}, format="json"
        )

        assert unknown.status_code == 200
        assert unknown.data == known.data
        assert mail.outbox == []

    def test_reset_password_with_valid_token(self, api_client, tenant_user):
        token = default_token_generator.make_token(tenant_user)

        response = api_client.post(
            reverse("core:reset_password"),
            {
                "email": "owner@example.com",
                "token": token,
                "password": self.password,
                "confirm_password": self.password,
            },
            format="json",
        )

        assert response.status_code == 200
        tenant_user.refresh_from_db()
        assert tenant_user.check_password(self.password)

        # The token is single use
        response = api_client.post(
            reverse("core:reset_password"),
            {
                "email": "owner@example.com",
                "token": token,
                "password": "Martillo-2026!",
                "confirm_password": "Martillo-2026!",
            },
            format="json",
        )
        assert response.status_code == 400

    def test_reset_password_with_bad_token(self, api_client, tenant_user):
        response = api_client.post(
            reverse("core:reset_password"),
            {
                "email": "owner@example.com",
                "token": "invalido",
                "password": self.password,
                "confirm_password": self.password,
            },
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error"] == "El enlace de recuperación es inválido o expiró"
        tenant_user.refresh_from_db()
        assert tenant_user.check_password("testpass123")

    def test_reset_password_mismatch(self, api_client, tenant_user):
        response = api_client.post(
            reverse("core:reset_password"),
            {
                "email": "owner@example.com",
                "token": default_token_generator.make_token(tenant_user),
                "password": self.password,
                "confirm_password": "otra-cosa-2026",
            },
            format="json",
        )

        assert response.status_code == 400
        assert "confirm_password" in response.data


@pytest.mark.django_db
class TestOrganizations:
    """Test self-service organization creation and the setup checklist."""

    def _user_client(self, api_client, django_user_model):
        user = django_user_model.objects.create_user(
            username="emprendedora", email="emprendedora@example.com", password="testpass123"
        )
        api_client.force_authenticate(user=user)
        return api_client, user

    def test_create_organization(
        self, api_client, django_user_model, django_capture_on_commit_callbacks
    ):
        client, user = self._user_client(api_client, django_user_model)

        with django_capture_on_commit_callbacks(execute=True):
            response = client.post(
                reverse("core:organizations"),
                {"name": "Bazar La Esquina", "rut": "12.345.678-5"},
                format="json",
            )

        assert response.status_code == 201
        tenant = Tenant.objects.get(rut="123456785")
        user.refresh_from_db()
        assert user.tenant == tenant
        assert Member.objects.get(tenant=tenant, user=user).role == Member.OWNER
        assert TenantSubscription.objects.filter(tenant=tenant).exists()
        assert TenantSettings.objects.get(tenant=tenant).business_name == "Bazar La Esquina"
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ["emprendedora@example.com"]

    def test_create_organization_invalid_rut(self, api_client, django_user_model):
        client, _ = self._user_client(api_client, django_user_model)

        response = client.post(
            reverse("core:organizations"),
            {"name": "Bazar La Esquina", "rut": "12.345.678-9"},
            format="json",
        )

        assert response.status_code == 400
        assert "rut" in response.data

    def test_create_organization_duplicate_rut(self, authenticated_api_client, tenant):
        response = authenticated_api_client.post(
            reverse("core:organizations"),
            {"name": "Copia", "rut": "76.086.428-5"},
            format="json",
        )

        assert response.status_code == 400

    def test_list_organizations(self, authenticated_api_client, tenant, other_tenant, tenant_user):
        Member.objects.create(tenant=other_tenant, user=tenant_user, role=Member.MEMBER)

        response = authenticated_api_client.get(reverse("core:organizations"))

        assert response.status_code == 200
        organizations = {item["name"]: item for item in response.data["organizations"]}
        assert organizations["Ferretería El Roble"]["is_current"] is True
        assert organizations["Ferretería El Roble"]["rut_formatted"] == "76.086.428-5"
        assert organizations["Almacén Vecino"]["role"] == Member.MEMBER
        assert organizations["Almacén Vecino"]["is_current"] is False

    def test_setup_checklist(self, authenticated_api_client, product):
        response = authenticated_api_client.get(reverse("core:organization_setup"))

        assert response.status_code == 200
        tasks = {task["id"]: task["completed"] for task in response.data["tasks"]}
        assert tasks == {
            "add-product": True,
            "add-customer": False,
            "first-sale": False,
            "invite-team": False,
        }
        assert response.data["completed_count"] == 1
        assert response.data["total_count"] == 4
        assert response.data["show_checklist"] is True

    def test_setup_checklist_hidden_after_first_week(self, authenticated_api_client, tenant):
        Tenant.objects.filter(pk=tenant.pk).update(created_at=timezone.now() - timedelta(days=8))
        tenant.refresh_from_db()

        response = authenticated_api_client.get(reverse("core:organization_setup"))

        assert response.data["is_setup_complete"] is False
        assert response.data["show_checklist"] is False


@pytest.mark.django_db
class TestTenantSettings:
    """Test the business settings of the current organization."""

    def test_settings_are_created_from_tenant(self, member_client, tenant):
        response = member_client.get(reverse("core:tenant_settings"))

        assert response.status_code == 200
        assert response.data["business_name"] == "Ferretería El Roble"
        assert response.data["rut_formatted"] == "76.086.428-5"
        assert response.data["timezone"] == "America/Santiago"
        assert TenantSettings.objects.filter(tenant=tenant).count() == 1

    def test_owner_updates_settings(self, authenticated_api_client, tenant):
        response = authenticated_api_client.patch(
            reverse("core:tenant_settings"),
            {"address": "Av. Grecia 1234", "city": "Ñuñoa", "rut": "76.086.428-5"},
            format="json",
        )

        assert response.status_code == 200
        settings_obj = TenantSettings.objects.get(tenant=tenant)
        assert settings_obj.address == "Av. Grecia 1234"
        assert settings_obj.rut == "760864285"
        entry = AuditLog.objects.get(action="UPDATE_TENANT_SETTINGS")
        assert entry.details["changes"]["city"] == {"from": "", "to": "Ñuñoa"}

    def test_admin_cannot_update_settings(self, admin_client):
        response = admin_client.patch(
            reverse("core:tenant_settings"), {"city": "Maipú"}, format="json"
        )

        assert response.status_code == 403

    def test_invalid_settings_are_rejected(self, authenticated_api_client):
        response = authenticated_api_client.patch(
            reverse("core:tenant_settings"),
            {"rut": "12.345.678-9", "timezone": "Marte/Olympus"},
            format="json",
        )

        assert response.status_code == 400
        assert set(response.data) == {"rut", "timezone"}
