"""
URL patterns for the accounting reports.
"""

from django.urls import path

from . import views

app_name = "accounting"

urlpatterns = [
    path("api/accounting/monthly/", views.monthly_summary, name="monthly"),
    path("api/accounting/balance/", views.balance, name="balance"),
    path("api/accounting/series/", views.series, name="series"),
    path("api/accounting/export-csv/", views.export_csv, name="export_csv"),
]
