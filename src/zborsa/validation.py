"""Request field validation shared by the swap and staking entry points."""

from decimal import Decimal, InvalidOperation

from zborsa.exceptions import InvalidArgumentError

ZERO = Decimal("0")


def require_text(value: object, field: str) -> str:
    """Return a non-empty string field, stripped, or raise InvalidArgumentError."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{field} is required")
    return value.strip()


def coerce_amount(value: object, field: str = "amount") -> Decimal:
    """Convert a caller-supplied amount to a positive, finite Decimal.

    Accepts Decimal, int, float (via its repr), or numeric strings. Booleans
    and anything non-numeric are rejected.
    """
    if value is None or value == "":
        raise InvalidArgumentError(f"{field} is required")
    if isinstance(value, bool):
        raise InvalidArgumentError(f"{field} must be a number")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, (float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidArgumentError(f"{field} must be a number") from None
    else:
        raise InvalidArgumentError(f"{field} must be a number")

    if not amount.is_finite():
        raise InvalidArgumentError(f"{field} must be a finite number")
    if amount <= ZERO:
        raise InvalidArgumentError(f"{field} must be a positive number")
    return amount


def coerce_days(value: object, field: str = "lock_period_days") -> int:
    """Validate a positive whole number of days."""
    if value is None:
        raise InvalidArgumentError(f"{field} is required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{field} must be a whole number of days")
    if value <= 0:
        raise InvalidArgumentError(f"{field} must be positive")
    return value
