"""
Query string date filters shared by the list endpoints.
"""

from datetime import datetime, time

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from rest_framework.exceptions import ValidationError


def _invalid(name):
    return ValidationError({"error": f"Fecha inválida en {name}"})


def date_param(params, name):
    """
    Parse ``YYYY-MM-DD`` from ``params[name]``.

    Returns None when the parameter is missing or empty. A malformed or
    impossible date (``2024-02-30``) raises a 400 ``ValidationError``.
    """
    value = params.get(name)
    if not value:
        return None
    try:
        parsed = parse_date(value)
    except ValueError:
        raise _invalid(name)
    if parsed is None:
        raise _invalid(name)
    return parsed


def datetime_param(params, name):
    """
    Same as :func:`date_param` for ISO datetimes.

    A plain date is read as local midnight; naive datetimes are made aware
    in the current time zone.
    """
    value = params.get(name)
    if not value:
        return None
    try:
        parsed = parse_datetime(value)
        if parsed is None:
            day = parse_date(value)
            parsed = datetime.combine(day, time.min) if day else None
    except ValueError:
        raise _invalid(name)
    if parsed is None:
        raise _invalid(name)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed
