from django.urls import path

from . import views

app_name = "cash_register"

urlpatterns = [
    path("api/cash-register/", views.cash_register_list, name="cash_register_list"),
    path("api/cash-register/active/", views.active_cash_register, name="cash_register_active"),
    path("api/cash-register/monthly-sales/", views.monthly_sales, name="cash_register_monthly_sales"),
    path(
        "api/cash-register/<uuid:cash_register_id>/close/",
        views.close_cash_register,
        name="cash_register_close",
    ),
    path(
        "api/cash-register/<uuid:cash_register_id>/report/",
        views.cash_register_report,
        name="cash_register_report",
    ),
]
