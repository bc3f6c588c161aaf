"""
Accounting app configuration.
"""

from django.apps import AppConfig


class AccountingConfig(AppConfig):
    """Configuration for the cash-basis accounting reports."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.accounting"
    verbose_name = "Accounting"
