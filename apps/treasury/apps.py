"""
Treasury app configuration.
"""

from django.apps import AppConfig


class TreasuryConfig(AppConfig):
    """Configuration for operational expenses and treasury movements."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.treasury"
    verbose_name = "Treasury"
