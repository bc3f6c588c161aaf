"""
Django project package for the retail POS SaaS platform.

The Celery app is imported here so shared tasks bind to it when Django starts.
"""

from .celery import app as celery_app

__all__ = ("celery_app",)
