"""
Credit rules shared by the credits API and credit sales at the point of sale.
"""

from decimal import Decimal

from apps.core.formatting_utils import format_currency, to_decimal


def validate_credit_limit(current_debt, amount, credit_limit):
    """
    Check that granting ``amount`` keeps the customer within its limit.

    A missing or zero limit means the customer cannot buy on credit.

    Returns:
        tuple (valid, message); message is None when valid
    """
    if not credit_limit:
        return False, "El cliente no tiene límite de crédito configurado"

    current_debt = to_decimal(current_debt)
    new_debt = current_debt + to_decimal(amount)
    if new_debt > to_decimal(credit_limit):
        return False, (
            f"El crédito excede el límite. Límite: {format_currency(credit_limit)}, "
            f"Deuda actual: {format_currency(current_debt)}, "
            f"Nueva deuda: {format_currency(new_debt)}"
        )
    return True, None


def validate_payment_amount(amount, balance):
    return Decimal("0") < to_decimal(amount) <= to_decimal(balance)
