"""
Tenant context middleware for multi-tenant data isolation.

Resolves the current tenant of a session-authenticated user, attaches it to
the request and rejects requests for suspended tenants. Queries are scoped
by explicit ``tenant=...`` filters in the views.
"""

import logging
from typing import Optional

from django.contrib.auth.models import AnonymousUser
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.utils.deprecation import MiddlewareMixin

from apps.core.models import Tenant

logger = logging.getLogger(__name__)


class TenantContextMiddleware(MiddlewareMixin):
    """
    Middleware to set tenant context for each request.

    This middleware:
    1. Reads the current tenant from the authenticated user
    2. Rejects requests for suspended tenants with a JSON 403
    3. Stores the tenant on ``request.tenant``
    """

    # Paths that don't require tenant context
    EXEMPT_PATHS = [
        "/admin/",  # Django admin (platform admin)
        "/api/admin/",  # Tenant administration (superadmin)
        "/api/auth/",
        "/api/organizations/",  # Self-service onboarding
        "/health/",
        "/static/",
        "/media/",
    ]

    def process_request(self, request: HttpRequest) -> Optional[HttpResponse]:
        """
        Process incoming request and set tenant context.

        Args:
            request: The incoming HTTP request

        Returns:
            None if processing should continue, HttpResponse if request should be rejected
        """
        request.tenant = None

        if self._is_exempt_path(request.path):
            return None

        user = getattr(request, "user", None)
        if not user or isinstance(user, AnonymousUser) or not user.is_authenticated:
            # Anonymous requests are rejected later by DRF permissions
            return None

        if not user.tenant_id:
            return None

        try:
            tenant = Tenant.objects.get(id=user.tenant_id)
        except Tenant.DoesNotExist:
            logger.error(f"Tenant not found: {user.tenant_id}")
            return JsonResponse(
                {"error": "Organización no encontrada. Contacta a soporte."},
                status=404,
            )

        if tenant.status == Tenant.SUSPENDED:
            logger.warning(f"Access attempt to suspended tenant: {tenant.id}")
            return JsonResponse(
                {
                    "error": "La organización está suspendida. Contacta a soporte.",
                    "tenant_status": "suspended",
                },
                status=403,
            )

        # Store tenant in request for easy access
        request.tenant = tenant
        return None

    def _is_exempt_path(self, path: str) -> bool:
        return any(path.startswith(exempt_path) for exempt_path in self.EXEMPT_PATHS)
