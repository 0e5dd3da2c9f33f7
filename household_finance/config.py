from __future__ import annotations

import os
from decimal import Decimal, InvalidOperation

SUPPORTED_LOCALES = {"en", "sv"}
SUPPORTED_CURRENCIES = {"USD", "SEK"}


def get_default_currency() -> str:
    raw = os.getenv("DEFAULT_CURRENCY", "USD").strip().upper()
    if raw not in SUPPORTED_CURRENCIES:
        return "USD"
    return raw


def get_default_locale() -> str:
    raw = os.getenv("DEFAULT_LOCALE", "en").strip().lower()
    if raw not in SUPPORTED_LOCALES:
        return "en"
    return raw


def get_emergency_fund_target_months() -> Decimal:
    return _decimal_env("EMERGENCY_FUND_TARGET_MONTHS", Decimal("6"), minimum=Decimal("0"))


def get_goal_surplus_share() -> Decimal:
    share = _decimal_env("GOAL_SURPLUS_SHARE", Decimal("0.5"), minimum=Decimal("0"))
    if share > Decimal("1"):
        return Decimal("0.5")
    return share


def get_projection_months() -> int:
    raw = os.getenv("PROJECTION_MONTHS", "120")
    try:
        months = int(raw)
    except ValueError:
        return 120
    if months <= 0:
        return 120
    return months


def get_default_growth_rates() -> dict[str, Decimal]:
    """Annual projection rates in percent."""
    return {
        "income_growth_rate": _decimal_env("PROJECTION_INCOME_GROWTH", Decimal("3")),
        "expense_growth_rate": _decimal_env("PROJECTION_EXPENSE_GROWTH", Decimal("2")),
        "savings_interest_rate": _decimal_env("PROJECTION_SAVINGS_RATE", Decimal("4")),
        "investment_return_rate": _decimal_env("PROJECTION_INVESTMENT_RETURN", Decimal("8")),
    }


def get_frontend_origin() -> str:
    return os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"


def _decimal_env(name: str, default: Decimal, minimum: Decimal | None = None) -> Decimal:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        return default
    if not value.is_finite():
        return default
    if minimum is not None and value < minimum:
        return default
    return value
