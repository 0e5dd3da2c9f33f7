from __future__ import annotations

from decimal import Decimal

from household_finance.money import MONTHS_PER_YEAR, ZERO, coerce_amount

# Average periods per month, not calendar math. Changing these changes every
# stored monthly figure, so they stay fixed.
MONTHLY_MULTIPLIERS: dict[str, Decimal] = {
    "monthly": Decimal("1"),
    "yearly": Decimal("1") / MONTHS_PER_YEAR,
    "weekly": Decimal("4.33"),
    "bi-weekly": Decimal("2.17"),
    "daily": Decimal("30"),
}
SUPPORTED_FREQUENCIES = frozenset(MONTHLY_MULTIPLIERS)

_ALIASES = {
    "biweekly": "bi-weekly",
    "bi_weekly": "bi-weekly",
    "byweekly": "bi-weekly",
}


def normalize_frequency(value: str | None) -> str | None:
    """Return the canonical frequency label, or ``None`` if it is not one."""
    if value is None:
        return None
    normalized = value.strip().lower()
    normalized = _ALIASES.get(normalized, normalized)
    if normalized not in SUPPORTED_FREQUENCIES:
        return None
    return normalized


def is_valid_frequency(value: str | None) -> bool:
    return normalize_frequency(value) is not None


def to_monthly_amount(amount: Decimal | int | str, frequency: str | None) -> Decimal:
    """Convert a recurring amount to its monthly equivalent.

    Unrecognized frequencies contribute zero; callers decide whether that is
    worth a warning.

    >>> to_monthly_amount(Decimal("1200"), "yearly")
    Decimal('100')
    """
    normalized = normalize_frequency(frequency)
    if normalized is None:
        return ZERO
    if normalized == "yearly":
        return coerce_amount(amount) / MONTHS_PER_YEAR
    return coerce_amount(amount) * MONTHLY_MULTIPLIERS[normalized]


def from_monthly_amount(monthly_amount: Decimal | int | str, frequency: str | None) -> Decimal:
    normalized = normalize_frequency(frequency)
    if normalized is None:
        return ZERO
    if normalized == "yearly":
        return coerce_amount(monthly_amount) * MONTHS_PER_YEAR
    return coerce_amount(monthly_amount) / MONTHLY_MULTIPLIERS[normalized]


def convert_frequency(
    amount: Decimal | int | str,
    from_frequency: str | None,
    to_frequency: str | None,
) -> Decimal:
    return from_monthly_amount(to_monthly_amount(amount, from_frequency), to_frequency)
