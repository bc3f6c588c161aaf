"""
Document totals and cash rounding.

Prices include tax. Item gross amounts are computed first, the global
discount is spread over the items in proportion to their gross amount,
and tax is then extracted from each discounted amount.
"""

from decimal import ROUND_FLOOR, Decimal

from apps.core.formatting_utils import round_amount, to_decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def calculate_document_totals(items, requested_global_discount=0):
    """
    Compute per-item and document totals.

    Args:
        items: iterable of dicts with ``quantity``, ``unit_price``, ``discount``
            and ``tax_rate`` (percent)
        requested_global_discount: discount on the whole document

    Returns:
        dict with ``items`` (subtotal, tax_amount, total and
        global_discount_allocated per item), ``subtotal``, ``tax_amount``,
        ``total``, ``gross_before_global_discount`` and ``global_discount_applied``
    """
    items = list(items)
    item_gross_totals = []
    for item in items:
        gross = to_decimal(item.get("quantity")) * to_decimal(item.get("unit_price")) - to_decimal(
            item.get("discount")
        )
        item_gross_totals.append(round_amount(max(gross, ZERO), 2))

    gross_before_global_discount = sum(item_gross_totals, ZERO)
    global_discount_applied = max(
        ZERO, min(to_decimal(requested_global_discount), gross_before_global_discount)
    )

    allocated_so_far = ZERO
    item_results = []
    for index, item in enumerate(items):
        item_gross = item_gross_totals[index]

        allocated = ZERO
        if global_discount_applied > 0 and gross_before_global_discount > 0:
            if index == len(items) - 1:
                # Last item absorbs the rounding remainder
                allocated = global_discount_applied - allocated_so_far
            else:
                allocated = round_amount(
                    item_gross / gross_before_global_discount * global_discount_applied, 2
                )
            allocated_so_far += allocated

        adjusted = max(ZERO, item_gross - allocated)
        divisor = 1 + to_decimal(item.get("tax_rate")) / HUNDRED
        subtotal = round_amount(adjusted / divisor, 2) if divisor > 0 else adjusted
        item_results.append(
            {
                "subtotal": subtotal,
                "tax_amount": adjusted - subtotal,
                "total": adjusted,
                "global_discount_allocated": allocated,
            }
        )

    return {
        "items": item_results,
        "subtotal": sum((item["subtotal"] for item in item_results), ZERO),
        "tax_amount": sum((item["tax_amount"] for item in item_results), ZERO),
        "total": sum((item["total"] for item in item_results), ZERO),
        "gross_before_global_discount": gross_before_global_discount,
        "global_discount_applied": global_discount_applied,
    }


def round_cash_payment_amount(amount):
    """
    Round a cash amount to the nearest ten pesos.

    The amount is first rounded to whole pesos. Remainders 1 to 5 round
    down and 6 to 9 round up.

    Examples:
        >>> round_cash_payment_amount(Decimal("1995"))
        Decimal('1990')
        >>> round_cash_payment_amount(Decimal("1996"))
        Decimal('2000')
    """
    rounded = int((to_decimal(amount) + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))
    remainder = rounded % 10
    if remainder == 0:
        return Decimal(rounded)
    if remainder <= 5:
        return Decimal(rounded - remainder)
    return Decimal(rounded + (10 - remainder))


def sum_rounded_cash_totals(amounts):
    return sum((round_cash_payment_amount(amount) for amount in amounts), ZERO)
