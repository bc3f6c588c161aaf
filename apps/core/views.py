"""
Core views: health check, session authentication and account recovery,
self-service organizations and their settings, tenant administration and
team management.
"""

import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model, login, logout
from django.contrib.auth.tokens import default_token_generator
from django.db import transaction
from django.db.models import Q
from django.http import JsonResponse
from django.utils import timezone
from django.utils.http import urlencode
from django.views.decorators.http import require_http_methods

from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.views import APIView

from . import audit
from .audit import log_audit_action
from .models import Member, TeamInvitation, Tenant, TenantSettings
from .permissions import (
    HasRolePermission,
    HasTenantAccess,
    IsSuperAdmin,
    can_change_member_role,
    can_invite_members,
    can_remove_member,
    can_revoke_invitations,
    can_toggle_member_status,
    get_assignable_roles,
)
from .serializers import (
    ForgotPasswordSerializer,
    InvitationAcceptSerializer,
    InvitationCreateSerializer,
    LoginSerializer,
    MembershipOrganizationSerializer,
    MemberSerializer,
    MemberUpdateSerializer,
    OrganizationCreateSerializer,
    PasswordChangeSerializer,
    RegisterSerializer,
    ResetPasswordSerializer,
    TeamInvitationSerializer,
    TenantCreateSerializer,
    TenantSerializer,
    TenantSettingsSerializer,
    TenantUpdateSerializer,
    UserSerializer,
)
from .tasks import (
    send_organization_created_email,
    send_password_reset_email,
    send_team_invitation_email,
    send_tenant_welcome_email,
)

logger = logging.getLogger(__name__)
User = get_user_model()


@require_http_methods(["GET"])
def health_check(request):
    """
    Health check endpoint for Docker and Kubernetes.
    Returns 200 OK if the application is running.
    """
    return JsonResponse({"status": "healthy", "service": "retail-pos-saas"})


# Authentication Views


@api_view(["POST"])
@permission_classes([permissions.AllowAny])
def login_view(request):
    """
    Session login with email and password.
    """
    serializer = LoginSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    email = serializer.validated_data["email"].lower()
    user = User.objects.filter(email__iexact=email).first()
    if user is not None:
        user = authenticate(
            request, username=user.username, password=serializer.validated_data["password"]
        )

    if user is None:
        logger.warning(f"Failed login attempt for {email}")
        return Response(
            {"error": "Credenciales inválidas"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    login(request, user)
    return Response(UserSerializer(user).data, status=status.HTTP_200_OK)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def logout_view(request):
    logout(request)
    return Response({"message": "Sesión cerrada"}, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def me_view(request):
    return Response(UserSerializer(request.user).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def password_change_view(request):
    serializer = PasswordChangeSerializer(data=request.data, context={"request": request})
    if serializer.is_valid():
        serializer.save()
        return Response(
            {"message": "Contraseña actualizada"},
            status=status.HTTP_200_OK,
        )
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(["POST"])
@permission_classes([permissions.AllowAny])
def register_view(request):
    """
    Create an account without an organization.

    The new user then creates an organization or accepts a pending
    invitation sent to the same email.
    """
    serializer = RegisterSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user = serializer.save()
    log_audit_action(
        audit.REGISTER_USER,
        "User",
        user.id,
        details={"email": user.email},
        user=user,
        request=request,
    )
    logger.info(f"User {user.email} registered")

    return Response(
        {"message": "Usuario creado exitosamente", "user": UserSerializer(user).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(["POST"])
@permission_classes([permissions.AllowAny])
def forgot_password_view(request):
    """
    Email a password reset link.

    The answer is the same whether or not the email has an account.
    """
    serializer = ForgotPasswordSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    email = serializer.validated_data["email"]
    user = User.objects.filter(email__iexact=email, is_active=True).first()
    if user is not None:
        token = default_token_generator.make_token(user)
        reset_url = f"{settings.SITE_URL}/reset-password?" + urlencode(
            {"token": token, "email": user.email}
        )
        transaction.on_commit(lambda: send_password_reset_email.delay(user.email, reset_url))
        log_audit_action(
            audit.REQUEST_PASSWORD_RESET,
            "User",
            user.id,
            details={"email": user.email},
            user=user,
            request=request,
        )
    else:
        logger.info(f"Password reset requested for unknown email {email}")

    return Response(
        {"message": "Si el correo existe, te enviamos instrucciones para recuperar tu contraseña."}
    )


@api_view(["POST"])
@permission_classes([permissions.AllowAny])
def reset_password_view(request):
    serializer = ResetPasswordSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    user = User.objects.filter(email__iexact=data["email"], is_active=True).first()
    if user is None or not default_token_generator.check_token(user, data["token"]):
        return Response(
            {"error": "El enlace de recuperación es inválido o expiró"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    # Changing the password invalidates the token
    user.set_password(data["password"])
    user.save(update_fields=["password"])
    log_audit_action(
        audit.RESET_PASSWORD,
        "User",
        user.id,
        details={"email": user.email},
        user=user,
        request=request,
    )

    return Response(
        {"message": "Contraseña actualizada correctamente. Ya puedes iniciar sesión."}
    )


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def switch_tenant_view(request):
    """
    Change the user's current organization to one they are an active member of.
    """
    tenant_id = request.data.get("tenant_id")
    membership = (
        Member.objects.filter(user=request.user, tenant_id=tenant_id, is_active=True)
        .select_related("tenant")
        .first()
        if tenant_id
        else None
    )
    if membership is None:
        return Response(
            {"error": "No perteneces a esta organización"},
            status=status.HTTP_404_NOT_FOUND,
        )

    request.user.tenant = membership.tenant
    request.user.save(update_fields=["tenant"])
    return Response(UserSerializer(request.user).data)


# Self-service organizations


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated])
def organizations(request):
    """
    GET: organizations the user belongs to.
    POST: create an organization; the user becomes its owner and switches to it.
    """
    if request.method == "GET":
        memberships = (
            Member.objects.filter(user=request.user)
            .select_related("tenant", "user")
            .order_by("created_at")
        )
        return Response(
            {"organizations": MembershipOrganizationSerializer(memberships, many=True).data}
        )

    serializer = OrganizationCreateSerializer(data=request.data, context={"request": request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    tenant = serializer.save()
    log_audit_action(
        audit.CREATE_ORGANIZATION,
        "Tenant",
        tenant.id,
        details={"name": tenant.company_name, "rut": tenant.rut},
        tenant=tenant,
        request=request,
    )
    owner_email = request.user.email
    transaction.on_commit(
        lambda: send_organization_created_email.delay(str(tenant.id), owner_email)
    )
    logger.info(f"Organization {tenant.slug} created by {owner_email}")

    return Response(
        {
            "message": "Organización creada exitosamente",
            "organization": TenantSerializer(tenant).data,
        },
        status=status.HTTP_201_CREATED,
    )


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
def organization_setup(request):
    """
    Onboarding checklist of the current organization.

    The checklist is shown during the first week while tasks remain.
    """
    tenant = request.user.tenant
    tasks = [
        {
            "id": "add-product",
            "title": "Agrega tu primer producto",
            "completed": tenant.products.exists(),
        },
        {
            "id": "add-customer",
            "title": "Registra un cliente",
            "completed": tenant.customers.exists(),
        },
        {
            "id": "first-sale",
            "title": "Realiza tu primera venta",
            "completed": tenant.documents.filter(doc_type="SALE").exists(),
        },
        {
            "id": "invite-team",
            "title": "Invita a tu equipo",
            "completed": tenant.members.filter(is_active=True).count() > 1,
        },
    ]
    completed_count = sum(1 for task in tasks if task["completed"])
    is_setup_complete = completed_count == len(tasks)
    is_new = timezone.now() - tenant.created_at < timedelta(days=7)

    return Response(
        {
            "tasks": tasks,
            "completed_count": completed_count,
            "total_count": len(tasks),
            "is_setup_complete": is_setup_complete,
            "show_checklist": not is_setup_complete and is_new,
        }
    )


class TenantSettingsAPIView(APIView):
    """
    Business settings of the current organization.

    GET: any member.
    PATCH: partial update, owners only.
    """

    permission_classes = [permissions.IsAuthenticated, HasTenantAccess, HasRolePermission]
    required_permission = {"GET": "settings:view", "PATCH": "settings:edit"}

    def get(self, request):
        settings_obj = TenantSettings.for_tenant(request.user.tenant)
        return Response(TenantSettingsSerializer(settings_obj).data)

    def patch(self, request):
        settings_obj = TenantSettings.for_tenant(request.user.tenant)
        serializer = TenantSettingsSerializer(settings_obj, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        changes = {
            field: {"from": getattr(settings_obj, field), "to": value}
            for field, value in serializer.validated_data.items()
            if getattr(settings_obj, field) != value
        }
        serializer.save()
        log_audit_action(
            audit.UPDATE_TENANT_SETTINGS,
            "TenantSettings",
            settings_obj.id,
            details={"changes": changes},
            request=request,
        )
        return Response(serializer.data)


# Tenant administration (platform superadmins)


class TenantListCreateView(generics.ListCreateAPIView):
    """
    API endpoint for listing and creating tenants.

    Query parameters:
    - search: Search by name, RUT or slug
    - status: Filter by status
    """

    serializer_class = TenantSerializer
    permission_classes = [permissions.IsAuthenticated, IsSuperAdmin]

    def get_queryset(self):
        queryset = Tenant.objects.select_related("subscription").order_by("-created_at")

        search = self.request.query_params.get("search")
        if search:
            queryset = queryset.filter(
                Q(company_name__icontains=search)
                | Q(rut__icontains=search.replace(".", "").replace("-", ""))
                | Q(slug__icontains=search)
            )

        tenant_status = self.request.query_params.get("status")
        if tenant_status:
            queryset = queryset.filter(status=tenant_status)

        return queryset

    def create(self, request, *args, **kwargs):
        serializer = TenantCreateSerializer(data=request.data, context={"request": request})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        tenant = serializer.save()
        owner = serializer.owner
        temporary_password = serializer.temporary_password

        log_audit_action(
            audit.CREATE_TENANT,
            "Tenant",
            tenant.id,
            details={
                "name": tenant.company_name,
                "rut": tenant.rut,
                "plan": tenant.plan,
                "status": tenant.status,
                "owner_email": owner.email,
            },
            tenant=tenant,
            request=request,
        )

        if temporary_password:
            transaction.on_commit(
                lambda: send_tenant_welcome_email.delay(
                    str(tenant.id), owner.email, temporary_password
                )
            )

        logger.info(f"Tenant {tenant.slug} created by {request.user.email}")

        return Response(
            {
                "message": "Tenant creado exitosamente",
                "tenant": TenantSerializer(tenant).data,
                "owner": {
                    "id": owner.id,
                    "email": owner.email,
                    "name": owner.get_full_name(),
                },
                "temporary_password": temporary_password,
            },
            status=status.HTTP_201_CREATED,
        )


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes([permissions.IsAuthenticated, IsSuperAdmin])
def tenant_detail(request, tenant_id):
    try:
        tenant = Tenant.objects.get(id=tenant_id)
    except Tenant.DoesNotExist:
        return Response(
            {"error": "Tenant no encontrado"},
            status=status.HTTP_404_NOT_FOUND,
        )

    if request.method == "GET":
        return Response(TenantSerializer(tenant).data)

    if request.method == "DELETE":
        details = {"name": tenant.company_name, "rut": tenant.rut, "slug": tenant.slug}
        entity_id = tenant.id
        tenant.delete()
        log_audit_action(audit.DELETE_TENANT, "Tenant", entity_id, details=details, request=request)
        logger.info(f"Tenant {details['slug']} deleted by {request.user.email}")
        return Response({"message": "Tenant eliminado exitosamente"})

    before = {"name": tenant.company_name, "plan": tenant.plan, "status": tenant.status}
    serializer = TenantUpdateSerializer(tenant, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    tenant = serializer.save()
    after = {"name": tenant.company_name, "plan": tenant.plan, "status": tenant.status}
    log_audit_action(
        audit.UPDATE_TENANT,
        "Tenant",
        tenant.id,
        details={"from": before, "to": after},
        tenant=tenant,
        request=request,
    )
    return Response(TenantSerializer(tenant).data)


# Team


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
def team_members(request):
    members = (
        Member.objects.filter(tenant=request.user.tenant)
        .select_related("user")
        .order_by("created_at")
    )
    return Response(
        {
            "members": MemberSerializer(members, many=True).data,
            "current_user_role": request.user.get_role(),
        }
    )


@api_view(["PATCH", "DELETE"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
def team_member_detail(request, member_id):
    tenant = request.user.tenant
    actor_role = request.user.get_role()

    try:
        member = Member.objects.select_related("user").get(id=member_id, tenant=tenant)
    except Member.DoesNotExist:
        return Response(
            {"error": "Miembro no encontrado"},
            status=status.HTTP_404_NOT_FOUND,
        )

    is_self = member.user_id == request.user.id

    if request.method == "DELETE":
        if is_self:
            return Response(
                {"error": "No puedes eliminarte a ti mismo"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if not can_remove_member(actor_role, request.user.id, member.role, member.user_id):
            return Response(
                {"error": "No tienes permisos para eliminar a este miembro"},
                status=status.HTTP_403_FORBIDDEN,
            )
        if (
            member.role == Member.OWNER
            and Member.objects.filter(tenant=tenant, role=Member.OWNER).count() <= 1
        ):
            return Response(
                {"error": "No puedes eliminar al último propietario de la organización"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        details = {"email": member.user.email, "role": member.role}
        entity_id = member.id
        user = member.user
        member.delete()
        if user.tenant_id == tenant.id:
            user.tenant = None
            user.save(update_fields=["tenant"])

        log_audit_action(audit.DELETE_MEMBER, "Member", entity_id, details=details, request=request)
        return Response({"message": "Miembro eliminado exitosamente"})

    if actor_role not in (Member.OWNER, Member.ADMIN):
        return Response(
            {"error": "No tienes permisos para modificar miembros"},
            status=status.HTTP_403_FORBIDDEN,
        )

    serializer = MemberUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    if is_self and data.get("is_active") is False:
        return Response(
            {"error": "No puedes desactivarte a ti mismo"},
            status=status.HTTP_400_BAD_REQUEST,
        )
    if is_self and "role" in data and data["role"] != member.role:
        return Response(
            {"error": "No puedes cambiar tu propio rol"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    changes = {}
    if "role" in data and data["role"] != member.role:
        if not can_change_member_role(actor_role, request.user.id, member.role, member.user_id):
            return Response(
                {"error": "No tienes permisos para cambiar el rol de este miembro"},
                status=status.HTTP_403_FORBIDDEN,
            )
        if data["role"] not in get_assignable_roles(actor_role):
            return Response(
                {"error": f"No puedes asignar el rol {data['role']}"},
                status=status.HTTP_403_FORBIDDEN,
            )
        changes["role"] = {"from": member.role, "to": data["role"]}
        member.role = data["role"]

    if "is_active" in data and data["is_active"] != member.is_active:
        if not can_toggle_member_status(actor_role, request.user.id, member.role, member.user_id):
            return Response(
                {"error": "No tienes permisos para cambiar el estado de este miembro"},
                status=status.HTTP_403_FORBIDDEN,
            )
        changes["is_active"] = {"from": member.is_active, "to": data["is_active"]}
        member.is_active = data["is_active"]

    if changes:
        member.save(update_fields=["role", "is_active", "updated_at"])
        log_audit_action(
            audit.UPDATE_MEMBER,
            "Member",
            member.id,
            details={"email": member.user.email, "changes": changes},
            request=request,
        )

    return Response(MemberSerializer(member).data)


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
def team_invitations(request):
    """
    List pending invitations or invite a new member.

    A repeated invitation for the same email refreshes the token and expiry.
    """
    tenant = request.user.tenant
    actor_role = request.user.get_role()

    if not can_invite_members(actor_role):
        return Response(
            {"error": "No tienes permisos para gestionar invitaciones"},
            status=status.HTTP_403_FORBIDDEN,
        )

    if request.method == "GET":
        invitations = TeamInvitation.objects.filter(
            tenant=tenant,
            status=TeamInvitation.PENDING,
            expires_at__gt=timezone.now(),
        ).select_related("invited_by")
        return Response({"invitations": TeamInvitationSerializer(invitations, many=True).data})

    serializer = InvitationCreateSerializer(data=request.data, context={"request": request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    email = serializer.validated_data["email"]
    role = serializer.validated_data["role"]

    if role not in get_assignable_roles(actor_role):
        return Response(
            {"error": f"No puedes invitar con el rol {role}"},
            status=status.HTTP_403_FORBIDDEN,
        )

    if Member.objects.filter(tenant=tenant, user__email__iexact=email).exists():
        return Response(
            {"error": "El usuario ya es miembro de esta organización"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    expiry_days = getattr(settings, "TEAM_INVITATION_EXPIRY_DAYS", 7)
    invitation, created = TeamInvitation.objects.update_or_create(
        tenant=tenant,
        email=email,
        defaults={
            "role": role,
            "token": secrets.token_hex(32),
            "status": TeamInvitation.PENDING,
            "invited_by": request.user,
            "expires_at": timezone.now() + timedelta(days=expiry_days),
            "accepted_at": None,
        },
    )

    log_audit_action(
        audit.CREATE_INVITATION,
        "TeamInvitation",
        invitation.id,
        details={"email": email, "role": role, "resent": not created},
        request=request,
    )

    transaction.on_commit(lambda: send_team_invitation_email.delay(str(invitation.id)))

    return Response(
        {
            "message": (
                "Invitación enviada exitosamente"
                if created
                else "Invitación reenviada exitosamente"
            ),
            "invitation": TeamInvitationSerializer(invitation).data,
        },
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@api_view(["DELETE"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
def team_invitation_detail(request, invitation_id):
    if not can_revoke_invitations(request.user.get_role()):
        return Response(
            {"error": "No tienes permisos para gestionar invitaciones"},
            status=status.HTTP_403_FORBIDDEN,
        )

    try:
        invitation = TeamInvitation.objects.get(
            id=invitation_id, tenant=request.user.tenant, status=TeamInvitation.PENDING
        )
    except TeamInvitation.DoesNotExist:
        return Response(
            {"error": "Invitación no encontrada"},
            status=status.HTTP_404_NOT_FOUND,
        )

    invitation.status = TeamInvitation.CANCELLED
    invitation.save(update_fields=["status"])
    log_audit_action(
        audit.REVOKE_INVITATION,
        "TeamInvitation",
        invitation.id,
        details={"email": invitation.email},
        request=request,
    )
    return Response({"message": "Invitación cancelada"})


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def accept_invitation(request):
    """
    Accept an invitation with its token.

    The membership is created (or reactivated with the invited role) and the
    invited tenant becomes the user's current organization.
    """
    serializer = InvitationAcceptSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        invitation = TeamInvitation.objects.select_related("tenant").get(
            token=serializer.validated_data["token"]
        )
    except TeamInvitation.DoesNotExist:
        return Response(
            {"error": "Invitación inválida"},
            status=status.HTTP_404_NOT_FOUND,
        )

    if invitation.status != TeamInvitation.PENDING:
        return Response(
            {"error": "La invitación ya no está disponible"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    if invitation.is_expired():
        invitation.status = TeamInvitation.EXPIRED
        invitation.save(update_fields=["status"])
        return Response(
            {"error": "La invitación está expirada"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    if invitation.email.lower() != request.user.email.lower():
        return Response(
            {"error": "Este usuario no corresponde al email de la invitación"},
            status=status.HTTP_403_FORBIDDEN,
        )

    member, created = Member.objects.get_or_create(
        tenant=invitation.tenant,
        user=request.user,
        defaults={"role": invitation.role, "is_active": True},
    )
    if not created and not member.is_active:
        member.is_active = True
        member.role = invitation.role
        member.save(update_fields=["is_active", "role", "updated_at"])

    request.user.tenant = invitation.tenant
    request.user.save(update_fields=["tenant"])

    invitation.status = TeamInvitation.ACCEPTED
    invitation.accepted_at = timezone.now()
    invitation.save(update_fields=["status", "accepted_at"])

    log_audit_action(
        audit.ACCEPT_INVITATION,
        "TeamInvitation",
        invitation.id,
        details={"email": invitation.email, "role": member.role},
        tenant=invitation.tenant,
        request=request,
    )

    return Response(
        {
            "message": "Invitación aceptada",
            "tenant": {"id": invitation.tenant.id, "name": invitation.tenant.company_name},
            "role": member.role,
        }
    )

