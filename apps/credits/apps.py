"""
Credits app configuration.
"""

from django.apps import AppConfig


class CreditsConfig(AppConfig):
    """Configuration for customer credits and their payments."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.credits"
    verbose_name = "Credits"
