"""
URL configuration for credits and credit payments.
"""

from django.urls import path

from . import views

app_name = "credits"

urlpatterns = [
    path("api/credits/", views.CreditListCreateView.as_view(), name="credit_list"),
    path("api/credits/<uuid:credit_id>/", views.credit_detail, name="credit_detail"),
    path("api/credits/<uuid:credit_id>/payments/", views.credit_payments, name="credit_payments"),
    path("api/payments/", views.PaymentListView.as_view(), name="payment_list"),
]
