"""
Cash register app configuration.
"""

from django.apps import AppConfig


class CashRegisterConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.cash_register"
    verbose_name = "Cash Register"
