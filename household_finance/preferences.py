from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from household_finance.config import (
    SUPPORTED_CURRENCIES,
    SUPPORTED_LOCALES,
    get_default_currency,
    get_default_locale,
)
from household_finance.money import coerce_amount

NBSP = "\u00a0"
CURRENCY_SYMBOLS = {"USD": "$", "SEK": "kr"}
CURRENCY_LOCALES = {"USD": "en", "SEK": "sv"}
THOUSAND = Decimal("1000")
MILLION = Decimal("1000000")


@dataclass(frozen=True)
class UserPreferences:
    locale: str = "en"
    currency: str = "USD"


def normalize_locale(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in SUPPORTED_LOCALES:
        raise ValueError(f"Unsupported locale: {value}")
    return normalized


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a 3-letter ISO 4217 code.")
    if normalized not in SUPPORTED_CURRENCIES:
        raise ValueError(f"Unsupported currency: {normalized}")
    return normalized


def normalize_preferences(
    locale: str | None = None,
    currency: str | None = None,
) -> UserPreferences:
    """Validate stored or submitted preferences, filling gaps with the defaults."""
    return UserPreferences(
        locale=normalize_locale(locale) if locale else get_default_locale(),
        currency=normalize_currency(currency) if currency else get_default_currency(),
    )


def format_currency(value: Decimal | int | str, currency: str, decimals: int = 0) -> str:
    code = normalize_currency(currency)
    amount = _round(coerce_amount(value), decimals)
    digits = _group(abs(amount), decimals, CURRENCY_LOCALES[code])
    sign = "-" if amount < 0 else ""
    if code == "SEK":
        return f"{sign}{digits}{NBSP}{CURRENCY_SYMBOLS[code]}"
    return f"{sign}{CURRENCY_SYMBOLS[code]}{digits}"


def format_currency_compact(value: Decimal | int | str, currency: str) -> str:
    """Abbreviate large amounts as ``12k USD`` or ``1,5 mn SEK``."""
    code = normalize_currency(currency)
    locale = CURRENCY_LOCALES[code]
    amount = coerce_amount(value)
    thousands = _round(amount / THOUSAND, 0)
    # Compare rounded values so 999 999 becomes 1.0M rather than 1,000k.
    if abs(thousands) >= THOUSAND:
        scaled = _round(amount / MILLION, 1)
        suffix = " mn" if code == "SEK" else "M"
        return f"{_signed(scaled, 1, locale)}{suffix} {code}"
    if abs(_round(amount, 0)) >= THOUSAND:
        return f"{_signed(thousands, 0, locale)}k {code}"
    return format_currency(amount, code)


def format_percent(value: Decimal | int | str, locale: str = "en", decimals: int = 1) -> str:
    """Format a value already expressed in percent (``12.5`` -> ``12.5%``)."""
    normalized = normalize_locale(locale)
    amount = _round(coerce_amount(value), decimals)
    text = _signed(amount, decimals, normalized)
    if normalized == "sv":
        return f"{text}{NBSP}%"
    return f"{text}%"


def _round(value: Decimal, decimals: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def _signed(value: Decimal, decimals: int, locale: str) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}{_group(abs(value), decimals, locale)}"


def _group(value: Decimal, decimals: int, locale: str) -> str:
    text = f"{value:,.{decimals}f}"
    if locale == "sv":
        text = text.replace(",", NBSP).replace(".", ",")
    return text
