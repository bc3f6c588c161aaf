"""
URL configuration for operational expenses and treasury movements.
"""

from django.urls import path

from . import views

app_name = "treasury"

urlpatterns = [
    path(
        "api/operational-expenses/",
        views.OperationalExpenseListCreateView.as_view(),
        name="operational_expense_list",
    ),
    path(
        "api/operational-expenses/<uuid:id>/",
        views.OperationalExpenseDetailView.as_view(),
        name="operational_expense_detail",
    ),
    path(
        "api/treasury-movements/",
        views.TreasuryMovementListCreateView.as_view(),
        name="treasury_movement_list",
    ),
    path(
        "api/treasury-movements/<uuid:id>/",
        views.TreasuryMovementDetailView.as_view(),
        name="treasury_movement_detail",
    ),
]
