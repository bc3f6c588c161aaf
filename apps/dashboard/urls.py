"""
URL patterns for the tenant dashboard.
"""

from django.urls import path

from . import views

app_name = "dashboard"

urlpatterns = [
    path("api/dashboard/kpis/", views.kpis, name="kpis"),
]
