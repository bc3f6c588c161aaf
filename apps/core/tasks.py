"""
Celery tasks for transactional emails (team invitations, tenant onboarding,
password reset).
"""

import logging

from django.conf import settings
from django.core.mail import send_mail

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    name="apps.core.tasks.send_team_invitation_email",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def send_team_invitation_email(self, invitation_id):
    """
    Email the invitation link to the invited address.

    Args:
        invitation_id: TeamInvitation primary key

    Returns:
        bool: True when the email was sent
    """
    from apps.core.models import TeamInvitation

    try:
        invitation = TeamInvitation.objects.select_related("tenant", "invited_by").get(
            id=invitation_id
        )
    except TeamInvitation.DoesNotExist:
        logger.warning(f"Invitation {invitation_id} no longer exists, email skipped")
        return False

    if invitation.status != TeamInvitation.PENDING:
        logger.info(f"Invitation {invitation_id} is {invitation.status}, email skipped")
        return False

    invite_url = f"{settings.SITE_URL}/invite/{invitation.token}"
    inviter = invitation.invited_by.get_full_name() if invitation.invited_by else ""
    inviter = inviter or (invitation.invited_by.email if invitation.invited_by else "")

    message = f"""
Hola,

{inviter} te ha invitado a unirte a {invitation.tenant.company_name} con el rol {invitation.get_role_display()}.

Acepta la invitación en el siguiente enlace:
{invite_url}

La invitación vence el {invitation.expires_at:%d-%m-%Y}.
"""

    try:
        send_mail(
            subject=f"Invitación a {invitation.tenant.company_name}",
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[invitation.email],
        )
    except Exception as e:
        logger.error(f"Failed to send invitation email to {invitation.email}: {e}", exc_info=True)
        raise self.retry(exc=e)

    logger.info(f"Invitation email sent to {invitation.email} for tenant {invitation.tenant_id}")
    return True


@shared_task(
    name="apps.core.tasks.send_tenant_welcome_email",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def send_tenant_welcome_email(self, tenant_id, owner_email, temporary_password):
    """
    Email the new owner their login and temporary password.

    Args:
        tenant_id: Tenant primary key
        owner_email: Owner's login email
        temporary_password: Generated password, to be changed on first login
    """
    from apps.core.models import Tenant

    try:
        tenant = Tenant.objects.get(id=tenant_id)
    except Tenant.DoesNotExist:
        logger.warning(f"Tenant {tenant_id} no longer exists, welcome email skipped")
        return False

    message = f"""
Bienvenido a {tenant.company_name}.

Tu cuenta de propietario fue creada.
Email: {owner_email}
Contraseña temporal: {temporary_password}

Ingresa en {settings.SITE_URL}/login y cambia tu contraseña.
"""

    try:
        send_mail(
            subject=f"Tu cuenta en {tenant.company_name}",
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[owner_email],
        )
    except Exception as e:
        logger.error(f"Failed to send welcome email to {owner_email}: {e}", exc_info=True)
        raise self.retry(exc=e)

    logger.info(f"Welcome email sent to {owner_email} for tenant {tenant_id}")
    return True


@shared_task(
    name="apps.core.tasks.send_password_reset_email",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def send_password_reset_email(self, email, reset_url):
    """
    Email the password reset link.

    Args:
        email: Account email
        reset_url: Link carrying the one-time token, valid for PASSWORD_RESET_TIMEOUT
    """
    minutes = settings.PASSWORD_RESET_TIMEOUT // 60
    message = f"""
Hola,

Recibimos una solicitud para restablecer tu contraseña.

Crea una nueva contraseña en el siguiente enlace:
{reset_url}

El enlace vence en {minutes} minutos. Si no solicitaste el cambio, ignora este correo.
"""

    try:
        send_mail(
            subject="Recupera tu contraseña",
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[email],
        )
    except Exception as e:
        logger.error(f"Failed to send password reset email to {email}: {e}", exc_info=True)
        raise self.retry(exc=e)

    logger.info(f"Password reset email sent to {email}")
    return True


@shared_task(
    name="apps.core.tasks.send_organization_created_email",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def send_organization_created_email(self, tenant_id, owner_email):
    from apps.core.models import Tenant

    try:
        tenant = Tenant.objects.get(id=tenant_id)
    except Tenant.DoesNotExist:
        logger.warning(f"Tenant {tenant_id} no longer exists, onboarding email skipped")
        return False

    message = f"""
Tu organización {tenant.company_name} fue creada.

Ya puedes registrar productos, clientes y ventas en {settings.SITE_URL}.
"""

    try:
        send_mail(
            subject=f"{tenant.company_name} está lista",
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[owner_email],
        )
    except Exception as e:
        logger.error(f"Failed to send onboarding email to {owner_email}: {e}", exc_info=True)
        raise self.retry(exc=e)

    logger.info(f"Onboarding email sent to {owner_email} for tenant {tenant_id}")
    return True
