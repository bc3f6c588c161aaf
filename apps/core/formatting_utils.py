"""
Number, money and date formatting utilities for Chilean locale output.

Used by PDF documents (Z-reports, quotes, labels) and CSV exports. Chilean
pesos have no decimals and use "." as the thousands separator.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from django.utils import timezone

Number = Union[int, float, Decimal]


def to_decimal(value) -> Decimal:
    """Coerce ints, floats, strings and None to Decimal (None becomes 0)."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_amount(value, places: int = 0) -> Decimal:
    """
    Round half up to ``places`` decimals.

    Examples:
        >>> round_amount(Decimal("10.5"))
        Decimal('11')
        >>> round_amount(Decimal("2.345"), 2)
        Decimal('2.35')
    """
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def format_number(
    number: Number,
    decimal_places: Optional[int] = 0,
    use_grouping: bool = True,
) -> str:
    """
    Format a number with "." thousands separators and "," decimals.

    Examples:
        >>> format_number(1234567)
        '1.234.567'
        >>> format_number(1234.5, decimal_places=1)
        '1.234,5'
    """
    if decimal_places is not None:
        formatted = f"{round_amount(number, decimal_places):.{decimal_places}f}"
    else:
        formatted = str(number)

    negative = formatted.startswith("-")
    if negative:
        formatted = formatted[1:]

    # Split into integer and decimal parts
    if "." in formatted:
        integer_part, decimal_part = formatted.split(".")
    else:
        integer_part = formatted
        decimal_part = None

    # Add thousand separators if requested
    if use_grouping and len(integer_part) > 3:
        # Group digits from right to left
        groups = []
        for i in range(len(integer_part), 0, -3):
            start = max(0, i - 3)
            groups.insert(0, integer_part[start:i])
        integer_part = ".".join(groups)

    formatted = f"{integer_part},{decimal_part}" if decimal_part else integer_part
    return f"-{formatted}" if negative else formatted


def format_currency(amount: Number) -> str:
    """
    Format a CLP amount.

    Examples:
        >>> format_currency(12990)
        '$12.990'
        >>> format_currency(-1500)
        '-$1.500'
    """
    formatted = format_number(amount, decimal_places=0)
    if formatted.startswith("-"):
        return f"-${formatted[1:]}"
    return f"${formatted}"


def format_date(date_obj: Union[date, datetime, None], format_string: str = "%d-%m-%Y") -> str:
    if date_obj is None:
        return ""
    if isinstance(date_obj, datetime):
        date_obj = timezone.localtime(date_obj) if timezone.is_aware(date_obj) else date_obj
    return date_obj.strftime(format_string)


def format_datetime(dt: Optional[datetime], format_string: str = "%d-%m-%Y %H:%M") -> str:
    if dt is None:
        return ""
    if timezone.is_aware(dt):
        dt = timezone.localtime(dt)
    return dt.strftime(format_string)
