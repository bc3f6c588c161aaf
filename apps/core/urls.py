from django.urls import path

from . import views

app_name = "core"

urlpatterns = [
    # Authentication
    path("api/auth/login/", views.login_view, name="login"),
    path("api/auth/logout/", views.logout_view, name="logout"),
    path("api/auth/me/", views.me_view, name="me"),
    path("api/auth/change-password/", views.password_change_view, name="change_password"),
    path("api/auth/register/", views.register_view, name="register"),
    path("api/auth/forgot-password/", views.forgot_password_view, name="forgot_password"),
    path("api/auth/reset-password/", views.reset_password_view, name="reset_password"),
    path("api/auth/switch-tenant/", views.switch_tenant_view, name="switch_tenant"),
    # Self-service organizations and settings
    path("api/organizations/", views.organizations, name="organizations"),
    path("api/organizations/setup/", views.organization_setup, name="organization_setup"),
    path("api/settings/", views.TenantSettingsAPIView.as_view(), name="tenant_settings"),
    # Tenant administration
    path("api/admin/tenants/", views.TenantListCreateView.as_view(), name="admin_tenant_list"),
    path("api/admin/tenants/<uuid:tenant_id>/", views.tenant_detail, name="admin_tenant_detail"),
    # Team
    path("api/team/members/", views.team_members, name="team_members"),
    path(
        "api/team/members/<uuid:member_id>/",
        views.team_member_detail,
        name="team_member_detail",
    ),
    path("api/team/invitations/", views.team_invitations, name="team_invitations"),
    path(
        "api/team/invitations/accept/",
        views.accept_invitation,
        name="team_invitation_accept",
    ),
    path(
        "api/team/invitations/<uuid:invitation_id>/",
        views.team_invitation_detail,
        name="team_invitation_detail",
    ),
]
