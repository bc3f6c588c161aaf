"""
URL configuration for customers and documents.
"""

from django.urls import path

from . import views

app_name = "sales"

urlpatterns = [
    # Customers
    path("api/customers/", views.CustomerListCreateView.as_view(), name="customer_list"),
    path("api/customers/<uuid:id>/", views.CustomerDetailView.as_view(), name="customer_detail"),
    # Documents
    path("api/documents/", views.DocumentListCreateView.as_view(), name="document_list"),
    path(
        "api/documents/calculate-totals/",
        views.calculate_totals,
        name="document_calculate_totals",
    ),
    path("api/documents/<uuid:document_id>/", views.document_detail, name="document_detail"),
]
