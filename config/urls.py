"""
URL configuration for the retail POS SaaS platform.
"""

from django.contrib import admin
from django.urls import include, path

from apps.core import views as core_views

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", core_views.health_check, name="health_check"),
    path("", include("apps.core.urls")),
    path("", include("apps.inventory.urls")),
    path("", include("apps.sales.urls")),
    path("", include("apps.cash_register.urls")),
    path("", include("apps.credits.urls")),
    path("", include("apps.procurement.urls")),
    path("", include("apps.treasury.urls")),
    path("", include("apps.services.urls")),
    path("", include("apps.accounting.urls")),
    path("", include("apps.dashboard.urls")),
]
