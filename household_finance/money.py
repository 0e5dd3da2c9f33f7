from __future__ import annotations

from decimal import Decimal, InvalidOperation

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MONTHS_PER_YEAR = Decimal("12")


class InvalidAmountError(ValueError):
    """Raised when a monetary value cannot be read as a finite decimal."""


def coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        value = amount
    else:
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation as exc:
            raise InvalidAmountError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite():
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    return value


def safe_divide(
    numerator: Decimal | int | str,
    denominator: Decimal | int | str,
    default: Decimal | None = ZERO,
) -> Decimal | None:
    """Divide two amounts, returning ``default`` when the denominator is zero."""
    divisor = coerce_amount(denominator)
    if divisor == ZERO:
        return default
    return coerce_amount(numerator) / divisor


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    return safe_divide(part * HUNDRED, whole)


def clamp(value: Decimal, lower: Decimal, upper: Decimal) -> Decimal:
    return max(lower, min(value, upper))
