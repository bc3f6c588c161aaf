"""
Audit logging helpers.

Views call ``log_audit_action`` after a successful mutation. Audit failures
are logged and never propagate to the caller, so a broken audit write can
not undo a committed sale.
"""

import json
import logging

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

logger = logging.getLogger(__name__)

# Documents and POS
CREATE_DOCUMENT = "CREATE_DOCUMENT"
UPDATE_DOCUMENT = "UPDATE_DOCUMENT"
CANCEL_DOCUMENT = "CANCEL_DOCUMENT"

# Cash register
OPEN_CASH_REGISTER = "OPEN_CASH_REGISTER"
CLOSE_CASH_REGISTER = "CLOSE_CASH_REGISTER"

# Credits
CREATE_CREDIT = "CREATE_CREDIT"
UPDATE_CREDIT = "UPDATE_CREDIT"
DELETE_CREDIT = "DELETE_CREDIT"
CREATE_CREDIT_PAYMENT = "CREATE_CREDIT_PAYMENT"

# Inventory and customers
CREATE_PRODUCT = "CREATE_PRODUCT"
UPDATE_PRODUCT = "UPDATE_PRODUCT"
DELETE_PRODUCT = "DELETE_PRODUCT"
CREATE_CUSTOMER = "CREATE_CUSTOMER"
UPDATE_CUSTOMER = "UPDATE_CUSTOMER"
DELETE_CUSTOMER = "DELETE_CUSTOMER"

# Procurement and treasury
CREATE_SUPPLIER = "CREATE_SUPPLIER"
UPDATE_SUPPLIER = "UPDATE_SUPPLIER"
DELETE_SUPPLIER = "DELETE_SUPPLIER"
CREATE_ACCOUNT_PAYABLE = "CREATE_ACCOUNT_PAYABLE"
UPDATE_ACCOUNT_PAYABLE = "UPDATE_ACCOUNT_PAYABLE"
DELETE_ACCOUNT_PAYABLE = "DELETE_ACCOUNT_PAYABLE"
REGISTER_ACCOUNT_PAYABLE_PAYMENT = "REGISTER_ACCOUNT_PAYABLE_PAYMENT"
CREATE_OPERATIONAL_EXPENSE = "CREATE_OPERATIONAL_EXPENSE"
UPDATE_OPERATIONAL_EXPENSE = "UPDATE_OPERATIONAL_EXPENSE"
DELETE_OPERATIONAL_EXPENSE = "DELETE_OPERATIONAL_EXPENSE"
CREATE_TREASURY_MOVEMENT = "CREATE_TREASURY_MOVEMENT"
UPDATE_TREASURY_MOVEMENT = "UPDATE_TREASURY_MOVEMENT"
DELETE_TREASURY_MOVEMENT = "DELETE_TREASURY_MOVEMENT"

# Quotes and projects
CREATE_QUOTE = "CREATE_QUOTE"
UPDATE_QUOTE = "UPDATE_QUOTE"
CANCEL_QUOTE = "CANCEL_QUOTE"
CONVERT_QUOTE_TO_PROJECT = "CONVERT_QUOTE_TO_PROJECT"
CREATE_PROJECT = "CREATE_PROJECT"
UPDATE_PROJECT = "UPDATE_PROJECT"
DELETE_PROJECT = "DELETE_PROJECT"
CREATE_PROJECT_MILESTONE = "CREATE_PROJECT_MILESTONE"
UPDATE_PROJECT_MILESTONE = "UPDATE_PROJECT_MILESTONE"
DELETE_PROJECT_MILESTONE = "DELETE_PROJECT_MILESTONE"
CREATE_PROJECT_RESOURCE = "CREATE_PROJECT_RESOURCE"
UPDATE_PROJECT_RESOURCE = "UPDATE_PROJECT_RESOURCE"
DELETE_PROJECT_RESOURCE = "DELETE_PROJECT_RESOURCE"
CREATE_PROJECT_EXPENSE = "CREATE_PROJECT_EXPENSE"
UPDATE_PROJECT_EXPENSE = "UPDATE_PROJECT_EXPENSE"
DELETE_PROJECT_EXPENSE = "DELETE_PROJECT_EXPENSE"
CREATE_PROJECT_PAYMENT = "CREATE_PROJECT_PAYMENT"

# Team and tenant administration
CREATE_INVITATION = "CREATE_INVITATION"
REVOKE_INVITATION = "REVOKE_INVITATION"
ACCEPT_INVITATION = "ACCEPT_INVITATION"
UPDATE_MEMBER = "UPDATE_MEMBER"
DELETE_MEMBER = "DELETE_MEMBER"
CREATE_TENANT = "CREATE_TENANT"
UPDATE_TENANT = "UPDATE_TENANT"
DELETE_TENANT = "DELETE_TENANT"

# Accounts and organization settings
REGISTER_USER = "REGISTER_USER"
REQUEST_PASSWORD_RESET = "REQUEST_PASSWORD_RESET"
RESET_PASSWORD = "RESET_PASSWORD"
CREATE_ORGANIZATION = "CREATE_ORGANIZATION"
UPDATE_TENANT_SETTINGS = "UPDATE_TENANT_SETTINGS"


def get_client_ip(request):
    """
    Extract client IP address from request.

    Args:
        request: HTTP request object

    Returns:
        str: Client IP address
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR")
    return ip or None


def log_audit_action(
    action, entity_type, entity_id=None, details=None, tenant=None, user=None, request=None
):
    """
    Record an audit log entry.

    Args:
        action: Upper-case action name (e.g. CREATE_DOCUMENT)
        entity_type: Kind of record affected (e.g. "Document")
        entity_id: Primary key of the affected record
        details: JSON-serializable dict with the action payload
        tenant: Tenant the action belongs to (defaults to the request user's tenant)
        user: Acting user (defaults to the request user)
        request: HTTP request object (optional, for IP and user agent)

    Returns:
        AuditLog or None when the write failed
    """
    from apps.core.audit_models import AuditLog

    if request is not None and user is None and request.user.is_authenticated:
        user = request.user
    if tenant is None and user is not None:
        tenant = getattr(user, "tenant", None)

    try:
        # Round-trip through the Django encoder so Decimal/UUID/datetime values persist
        payload = json.loads(json.dumps(details, cls=DjangoJSONEncoder)) if details else None
        with transaction.atomic():
            return AuditLog.objects.create(
                tenant=tenant,
                user=user,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                details=payload,
                ip_address=get_client_ip(request) if request else None,
                user_agent=request.META.get("HTTP_USER_AGENT", "") if request else "",
            )
    except Exception as e:
        logger.error(f"Failed to write audit log {action} for {entity_type}: {e}", exc_info=True)
        return None
