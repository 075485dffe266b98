"""Common utility functions used across backend modules."""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
import secrets
import string
from uuid import uuid4

from dateutil.relativedelta import relativedelta


logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")
_PASSWORD_ALPHABET = string.ascii_lowercase + string.digits
PASSWORD_LENGTH = 8


def round_currency(amount: float) -> float:
    """Round a monetary value to 2 decimal places, halves away from zero.

    Args:
        amount: Raw monetary value.

    Returns:
        float: Value rounded to cents.

    Raises:
        ValueError: If the amount is not numeric.
    """
    try:
        return float(Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP))
    except (InvalidOperation, TypeError, ValueError):
        logger.exception("Invalid amount for currency rounding amount=%s", amount)
        raise ValueError("Invalid amount. Please provide a numeric value.")


def installment_amount(amount: float, interest_rate: float, term: int) -> float:
    """Flat per-installment amount: principal plus simple interest, split evenly.

    Example: 1200 at 10% over 12 months -> 110.0
    """
    if term <= 0:
        raise ValueError("Term must be a positive number of months.")
    total = Decimal(str(amount)) * (Decimal(1) + Decimal(str(interest_rate)) / Decimal(100))
    return round_currency(total / Decimal(term))


def add_months(start: date, months: int) -> date:
    """Advance a date by calendar months, clamping to the last day of short months."""
    return start + relativedelta(months=months)


def to_iso_date(value: date) -> str:
    """Format a calendar date as ``YYYY-MM-DD``."""
    return value.isoformat()


def new_id(prefix: str) -> str:
    """Generate a prefixed unique identifier."""
    return "{0}_{1}".format(prefix, uuid4().hex[:16])


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Generate a random lowercase alphanumeric password."""
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))
