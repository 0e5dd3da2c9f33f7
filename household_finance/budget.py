from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List

import structlog

from household_finance.frequency import to_monthly_amount
from household_finance.money import ZERO, coerce_amount, percentage
from household_finance.records import BudgetExpense, Expense

logger = structlog.get_logger(__name__)

BUDGET_CATEGORIES = (
    "housing",
    "utilities",
    "transportation",
    "food",
    "healthcare",
    "insurance",
    "debt",
    "entertainment",
    "personal",
    "other",
)
DEFAULT_CATEGORY = "other"


@dataclass(frozen=True)
class CategoryBreakdown:
    category: str
    monthly_total: Decimal
    percentage_of_total: Decimal
    item_count: int


@dataclass(frozen=True)
class BudgetSummary:
    total_monthly: Decimal
    fixed_monthly: Decimal
    variable_monthly: Decimal
    categories: List[CategoryBreakdown]


def normalize_category(category: str | None) -> str:
    if category is None:
        return DEFAULT_CATEGORY
    normalized = category.strip().lower()
    if normalized not in BUDGET_CATEGORIES:
        logger.warning("unknown_budget_category", category=category)
        return DEFAULT_CATEGORY
    return normalized


def summarize_budget(
    budget_expenses: Iterable[BudgetExpense],
    expenses: Iterable[Expense] = (),
) -> BudgetSummary:
    """Monthly spending per category, largest first.

    Budget lines are already monthly and count as fixed. Recurring expenses
    are normalized and split by their ``is_fixed`` flag; inactive ones are
    skipped.
    """
    totals: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    fixed_total = ZERO
    variable_total = ZERO

    for budget_expense in budget_expenses:
        category = normalize_category(budget_expense.category)
        amount = coerce_amount(budget_expense.amount)
        totals[category] = totals.get(category, ZERO) + amount
        counts[category] = counts.get(category, 0) + 1
        fixed_total += amount

    for expense in expenses:
        if not expense.is_active:
            continue
        category = normalize_category(expense.category)
        amount = to_monthly_amount(expense.amount, expense.frequency)
        totals[category] = totals.get(category, ZERO) + amount
        counts[category] = counts.get(category, 0) + 1
        if expense.is_fixed:
            fixed_total += amount
        else:
            variable_total += amount

    grand_total = fixed_total + variable_total
    categories = [
        CategoryBreakdown(
            category=category,
            monthly_total=total,
            percentage_of_total=percentage(total, grand_total),
            item_count=counts[category],
        )
        for category, total in totals.items()
    ]
    categories.sort(key=lambda item: (-item.monthly_total, BUDGET_CATEGORIES.index(item.category)))

    return BudgetSummary(
        total_monthly=grand_total,
        fixed_monthly=fixed_total,
        variable_monthly=variable_total,
        categories=categories,
    )
