"""
URL configuration for suppliers and accounts payable.
"""

from django.urls import path

from . import views

app_name = "procurement"

urlpatterns = [
    # Suppliers
    path("api/suppliers/", views.SupplierListCreateView.as_view(), name="supplier_list"),
    path("api/suppliers/<uuid:id>/", views.SupplierDetailView.as_view(), name="supplier_detail"),
    # Accounts payable
    path(
        "api/accounts-payable/",
        views.AccountPayableListCreateView.as_view(),
        name="account_payable_list",
    ),
    path(
        "api/accounts-payable/<uuid:id>/",
        views.AccountPayableDetailView.as_view(),
        name="account_payable_detail",
    ),
    path(
        "api/accounts-payable/<uuid:payable_id>/payments/",
        views.register_payable_payment,
        name="account_payable_payment",
    ),
]
