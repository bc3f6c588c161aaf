"""
Permission classes and the role permission matrix for tenant-based access control.

Permissions are written as ``"resource:action"`` and granted to team roles
(OWNER, ADMIN, MEMBER). DRF views declare what they need through
``required_permission`` / ``required_module`` or the ``require_permission``
and ``require_module`` factories used with function-based views.
"""

from rest_framework import permissions

from apps.core.modules import MODULE_LABELS, has_module_access, resolve_module

OWNER = "OWNER"
ADMIN = "ADMIN"
MEMBER = "MEMBER"

ALL_ROLES = (OWNER, ADMIN, MEMBER)
MANAGERS = (OWNER, ADMIN)
OWNER_ONLY = (OWNER,)

PERMISSIONS = {
    # Products
    "products:view": ALL_ROLES,
    "products:create": ALL_ROLES,
    "products:edit": ALL_ROLES,
    "products:delete": MANAGERS,
    "products:export": MANAGERS,
    # Customers
    "customers:view": ALL_ROLES,
    "customers:create": ALL_ROLES,
    "customers:edit": ALL_ROLES,
    "customers:delete": MANAGERS,
    "customers:export": MANAGERS,
    # Documents
    "documents:view": ALL_ROLES,
    "documents:create": ALL_ROLES,
    "documents:edit": MANAGERS,
    "documents:delete": MANAGERS,
    "documents:cancel": MANAGERS,
    # Point of sale
    "pos:create": ALL_ROLES,
    "pos:view": ALL_ROLES,
    # Cash register
    "cashRegister:open": MANAGERS,
    "cashRegister:close": MANAGERS,
    "cashRegister:viewReport": ALL_ROLES,
    "cashRegister:adjustBalance": MANAGERS,
    # Credits
    "credits:view": ALL_ROLES,
    "credits:create": ALL_ROLES,
    "credits:edit": MANAGERS,
    "credits:delete": MANAGERS,
    "credits:registerPayment": ALL_ROLES,
    # Inventory
    "inventory:view": ALL_ROLES,
    "inventory:adjust": MANAGERS,
    "inventory:transfer": MANAGERS,
    # Projects
    "projects:view": ALL_ROLES,
    "projects:create": MANAGERS,
    "projects:edit": MANAGERS,
    "projects:delete": MANAGERS,
    "projects:addExpense": ALL_ROLES,
    "projects:addMilestone": MANAGERS,
    # Quotes
    "quotes:view": ALL_ROLES,
    "quotes:create": ALL_ROLES,
    "quotes:edit": ALL_ROLES,
    "quotes:delete": MANAGERS,
    "quotes:convert": MANAGERS,
    # Organization settings
    "settings:view": ALL_ROLES,
    "settings:edit": OWNER_ONLY,
    "settings:editBilling": OWNER_ONLY,
    "settings:deleteOrganization": OWNER_ONLY,
    # Team
    "team:view": ALL_ROLES,
    "team:invite": MANAGERS,
    "team:editMember": MANAGERS,
    "team:removeMember": MANAGERS,
    "team:changeRole": OWNER_ONLY,
    # Accounts payable
    "accountsPayable:view": MANAGERS,
    "accountsPayable:create": MANAGERS,
    "accountsPayable:edit": MANAGERS,
    "accountsPayable:delete": MANAGERS,
    "accountsPayable:registerPayment": MANAGERS,
    # Operational expenses
    "expenses:view": MANAGERS,
    "expenses:create": MANAGERS,
    "expenses:edit": MANAGERS,
    "expenses:delete": MANAGERS,
    # Accounting
    "accounting:viewBalance": MANAGERS,
    "accounting:viewMonthly": MANAGERS,
    "accounting:export": OWNER_ONLY,
    # Dashboard and reports
    "dashboard:viewSales": ALL_ROLES,
    "dashboard:viewFinancials": MANAGERS,
    "dashboard:viewProfitability": OWNER_ONLY,
    "reports:export": MANAGERS,
    # Suppliers
    "suppliers:view": ALL_ROLES,
    "suppliers:create": MANAGERS,
    "suppliers:edit": MANAGERS,
    "suppliers:delete": MANAGERS,
}

PERMISSION_CATEGORIES = {
    "products": "Productos",
    "customers": "Clientes",
    "documents": "Documentos",
    "pos": "Punto de Venta",
    "cashRegister": "Caja",
    "credits": "Fiados",
    "inventory": "Inventario",
    "projects": "Proyectos",
    "quotes": "Cotizaciones",
    "settings": "Configuración",
    "team": "Equipo",
    "accountsPayable": "Cuentas por Pagar",
    "expenses": "Gastos",
    "accounting": "Contabilidad",
    "dashboard": "Dashboard",
    "reports": "Reportes",
    "suppliers": "Proveedores",
}


def has_permission(role, permission):
    """Return True when ``role`` may perform ``permission``. Unknown permissions are denied."""
    allowed_roles = PERMISSIONS.get(permission)
    if not allowed_roles:
        return False
    return role in allowed_roles


def get_permissions_for_role(role):
    return [permission for permission, roles in PERMISSIONS.items() if role in roles]


# Team management rules


def can_invite_members(role):
    return role in MANAGERS


def can_revoke_invitations(role):
    return role in MANAGERS


def can_change_member_role(actor_role, actor_id, target_role, target_id):
    """Only an OWNER changes roles, never their own and never another OWNER's."""
    if actor_role != OWNER:
        return False
    if actor_id == target_id:
        return False
    return target_role != OWNER


def _can_manage_member(actor_role, actor_id, target_role, target_id):
    if actor_role is None or actor_id == target_id:
        return False
    if actor_role == OWNER:
        return target_role in (ADMIN, MEMBER)
    if actor_role == ADMIN:
        return target_role == MEMBER
    return False


def can_toggle_member_status(actor_role, actor_id, target_role, target_id):
    return _can_manage_member(actor_role, actor_id, target_role, target_id)


def can_remove_member(actor_role, actor_id, target_role, target_id):
    return _can_manage_member(actor_role, actor_id, target_role, target_id)


def get_assignable_roles(actor_role):
    """Roles an actor may hand out in invitations or role changes."""
    if actor_role == OWNER:
        return [ADMIN, MEMBER]
    if actor_role == ADMIN:
        return [MEMBER]
    return []


# DRF permission classes


class HasTenantAccess(permissions.BasePermission):
    """
    Permission class to ensure users can only access resources from their own tenant.
    """

    message = "Tu cuenta no tiene una organización activa."

    def has_permission(self, request, view):
        # Check if user is authenticated and has a non-suspended tenant
        if not (request.user and request.user.is_authenticated):
            return False
        tenant = request.user.tenant
        if tenant is None:
            return False
        if tenant.is_suspended():
            self.message = "La organización está suspendida. Contacta a soporte."
            return False
        return True

    def has_object_permission(self, request, view, obj):
        # Check if the object belongs to the user's tenant
        if hasattr(obj, "tenant_id"):
            return obj.tenant_id == request.user.tenant_id
        return True


class HasRolePermission(permissions.BasePermission):
    """
    Check the user's team role against the permission matrix.

    ``required_permission`` is read from the view (or from this class when
    built with ``require_permission``). It is either a single permission or
    a mapping of HTTP method to permission.
    """

    required_permission = None
    message = "No tienes permisos para realizar esta acción"

    def get_required_permission(self, request, view):
        required = getattr(view, "required_permission", None) or self.required_permission
        if isinstance(required, dict):
            return required.get(request.method)
        return required

    def has_permission(self, request, view):
        required = self.get_required_permission(request, view)
        if not required:
            return True
        if not (request.user and request.user.is_authenticated):
            return False
        return has_permission(request.user.get_role(), required)


class HasModuleAccess(permissions.BasePermission):
    """Deny access when the tenant does not have the view's module enabled."""

    required_module = None

    def has_permission(self, request, view):
        required = getattr(view, "required_module", None) or self.required_module
        if not required:
            return True
        if not (request.user and request.user.is_authenticated):
            return False
        # Several modules means any of them grants access
        modules = required if isinstance(required, (list, tuple)) else [required]
        if any(has_module_access(request.user.tenant, module) for module in modules):
            return True
        label = MODULE_LABELS.get(resolve_module(modules[0]), modules[0])
        self.message = f"Módulo {label} no habilitado para tu plan"
        return False


class IsSuperAdmin(permissions.BasePermission):
    """Platform administrators only."""

    message = "No autorizado. Se requieren permisos de administrador"

    def has_permission(self, request, view):
        return bool(
            request.user and request.user.is_authenticated and request.user.is_superadmin
        )


def require_permission(permission=None, **by_method):
    """
    Build a HasRolePermission subclass for function-based views.

    Usage: ``require_permission("documents:view")`` or
    ``require_permission(GET="credits:view", POST="credits:create")``.
    """
    required = permission or by_method
    return type("RequirePermission", (HasRolePermission,), {"required_permission": required})


def require_module(*modules):
    required = modules[0] if len(modules) == 1 else modules
    return type("RequireModule", (HasModuleAccess,), {"required_module": required})
