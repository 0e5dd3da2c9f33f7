from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_CEILING, Decimal
from typing import Iterable, List, Optional

from household_finance.config import get_goal_surplus_share
from household_finance.dates import add_months
from household_finance.money import HUNDRED, ZERO, clamp, coerce_amount, safe_divide
from household_finance.records import SavingsAccount, SavingsGoal, SavingsGoalAccountLink


@dataclass(frozen=True)
class GoalProgress:
    goal: SavingsGoal
    current_amount: Decimal
    progress_percentage: Decimal
    remaining_amount: Decimal
    monthly_contribution: Decimal
    estimated_months_to_goal: Optional[int]
    estimated_completion_date: Optional[date]
    linked_account_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class GoalSummary:
    total_target_amount: Decimal
    total_current_amount: Decimal
    total_progress: Decimal
    active_count: int
    completed_count: int


def calculate_months_to_goal(
    current_amount: Decimal | int | str,
    goal_amount: Decimal | int | str,
    monthly_savings: Decimal | int | str,
) -> Optional[int]:
    """Months of saving ``monthly_savings`` needed to reach ``goal_amount``.

    ``None`` means the goal cannot be reached at that pace.
    """
    current = coerce_amount(current_amount)
    goal = coerce_amount(goal_amount)
    savings = coerce_amount(monthly_savings)
    if savings <= ZERO:
        return None
    if current >= goal:
        return 0
    months = safe_divide(goal - current, savings)
    return int(months.to_integral_value(rounding=ROUND_CEILING))


def calculate_progress_percentage(
    current_amount: Decimal | int | str,
    target_amount: Decimal | int | str,
) -> Decimal:
    current = coerce_amount(current_amount)
    target = coerce_amount(target_amount)
    if target == ZERO:
        return HUNDRED if current > ZERO else ZERO
    return clamp(current / target * HUNDRED, ZERO, HUNDRED)


def calculate_remaining_amount(
    current_amount: Decimal | int | str,
    target_amount: Decimal | int | str,
) -> Decimal:
    return max(coerce_amount(target_amount) - coerce_amount(current_amount), ZERO)


def default_monthly_contribution(monthly_surplus: Decimal | int | str | None) -> Decimal:
    if monthly_surplus is None:
        return ZERO
    return coerce_amount(monthly_surplus) * get_goal_surplus_share()


def enrich_savings_goal(
    goal: SavingsGoal,
    linked_accounts: Iterable[SavingsAccount],
    *,
    monthly_contribution: Decimal | None = None,
    monthly_surplus: Decimal | None = None,
    today: date | None = None,
) -> GoalProgress:
    accounts = list(linked_accounts)
    current_amount = ZERO
    for account in accounts:
        current_amount += coerce_amount(account.current_balance)

    if monthly_contribution is None:
        contribution = default_monthly_contribution(monthly_surplus)
    else:
        contribution = coerce_amount(monthly_contribution)

    target = coerce_amount(goal.target_amount)
    if goal.is_completed:
        months: Optional[int] = 0
    else:
        months = calculate_months_to_goal(current_amount, target, contribution)

    completion_date = None
    if months is not None:
        completion_date = add_months(today or date.today(), months)

    return GoalProgress(
        goal=goal,
        current_amount=current_amount,
        progress_percentage=calculate_progress_percentage(current_amount, target),
        remaining_amount=calculate_remaining_amount(current_amount, target),
        monthly_contribution=contribution,
        estimated_months_to_goal=months,
        estimated_completion_date=completion_date,
        linked_account_ids=tuple(account.id for account in accounts),
    )


def enrich_savings_goals(
    goals: Iterable[SavingsGoal],
    links: Iterable[SavingsGoalAccountLink],
    accounts: Iterable[SavingsAccount],
    *,
    monthly_surplus: Decimal | None = None,
    today: date | None = None,
) -> List[GoalProgress]:
    accounts_by_id = {account.id: account for account in accounts}
    account_ids_by_goal: dict[int, list[int]] = {}
    for link in links:
        linked = account_ids_by_goal.setdefault(link.goal_id, [])
        if link.savings_account_id not in linked:
            linked.append(link.savings_account_id)

    enriched: List[GoalProgress] = []
    for goal in goals:
        linked_accounts = [
            accounts_by_id[account_id]
            for account_id in account_ids_by_goal.get(goal.id, [])
            if account_id in accounts_by_id
        ]
        enriched.append(
            enrich_savings_goal(
                goal,
                linked_accounts,
                monthly_surplus=monthly_surplus,
                today=today,
            )
        )
    return enriched


def summarize_goals(progress: Iterable[GoalProgress]) -> GoalSummary:
    total_target = ZERO
    total_current = ZERO
    active_count = 0
    completed_count = 0
    for item in progress:
        if item.goal.is_completed:
            completed_count += 1
            continue
        active_count += 1
        total_target += coerce_amount(item.goal.target_amount)
        total_current += item.current_amount

    if total_target == ZERO:
        total_progress = ZERO
    else:
        total_progress = calculate_progress_percentage(total_current, total_target)

    return GoalSummary(
        total_target_amount=total_target,
        total_current_amount=total_current,
        total_progress=total_progress,
        active_count=active_count,
        completed_count=completed_count,
    )


def format_duration(months: Optional[int]) -> Optional[str]:
    if months is None:
        return None
    years, remaining_months = divmod(months, 12)
    parts = []
    if years:
        parts.append(f"{years} year{'s' if years > 1 else ''}")
    if remaining_months or not years:
        parts.append(f"{remaining_months} month{'s' if remaining_months != 1 else ''}")
    return " and ".join(parts)

