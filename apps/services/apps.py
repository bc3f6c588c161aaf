"""
Services app configuration.
"""

from django.apps import AppConfig


class ServicesConfig(AppConfig):
    """Configuration for quotes and service projects."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.services"
    verbose_name = "Services"
