"""
Chilean RUT (Rol Único Tributario) helpers.

A RUT is a numeric body followed by a check digit (0-9 or K) computed with
the modulo-11 algorithm. Tenants and customers store it cleaned (no dots or
dashes, upper-case) and display it formatted as ``12.345.678-5``.
"""

from django.core.exceptions import ValidationError


def clean_rut(rut):
    """Remove dots, dashes and spaces and upper-case the check digit."""
    if not rut:
        return ""
    return str(rut).replace(".", "").replace("-", "").replace(" ", "").upper()


def calculate_verifier(body):
    """
    Compute the modulo-11 check digit for a numeric RUT body.

    Multipliers 2..7 are applied to the digits from right to left.
    """
    total = 0
    multiplier = 2
    for digit in reversed(body):
        total += int(digit) * multiplier
        multiplier = 2 if multiplier == 7 else multiplier + 1

    remainder = 11 - (total % 11)
    if remainder == 11:
        return "0"
    if remainder == 10:
        return "K"
    return str(remainder)


def validate_rut(rut):
    """Return True when ``rut`` has a numeric body and a matching verifier."""
    cleaned = clean_rut(rut)
    if len(cleaned) < 2:
        return False

    body, check_digit = cleaned[:-1], cleaned[-1]
    if not body.isdigit():
        return False

    return calculate_verifier(body) == check_digit


def format_rut(rut):
    """
    Format a RUT as ``XX.XXX.XXX-D``.

    Inputs shorter than two characters are returned unchanged.
    """
    cleaned = clean_rut(rut)
    if len(cleaned) < 2:
        return rut

    body, check_digit = cleaned[:-1], cleaned[-1]
    groups = []
    while len(body) > 3:
        groups.insert(0, body[-3:])
        body = body[:-3]
    groups.insert(0, body)
    return f"{'.'.join(groups)}-{check_digit}"


def rut_validator(value):
    """Django field validator."""
    if not validate_rut(value):
        raise ValidationError("RUT inválido", code="invalid_rut")
