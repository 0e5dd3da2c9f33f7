"""Month-by-month projection of a household's finances.

Each period, in order:

1. every twelfth month income and expenses grow by their annual rates;
2. savings and investments earn one month of interest/returns;
3. scenario modifications in effect on the period date are applied, oldest
   effective date first (input order breaks ties);
4. debt accrues one month of interest and the monthly payment is taken out,
   interest first, then any loan payoff lump;
5. the remaining cash flow is split 70/30 between savings and investments,
   or a deficit is drawn from savings, then investments, then borrowed.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog

from household_finance.aggregation import FinancialTotals, calculate_totals
from household_finance.config import get_default_growth_rates, get_projection_months
from household_finance.dates import add_months, months_between
from household_finance.frequency import to_monthly_amount
from household_finance.money import (
    HUNDRED,
    MONTHS_PER_YEAR,
    ZERO,
    coerce_amount,
    safe_divide,
)
from household_finance.records import HouseholdSnapshot

logger = structlog.get_logger(__name__)

INCOME_TYPES = {"income_change", "new_income"}
EXPENSE_TYPES = {"expense_change", "new_expense"}
MODIFICATION_TYPES = INCOME_TYPES | EXPENSE_TYPES | {"loan_payoff", "new_investment"}
MODIFICATION_FREQUENCIES = {"monthly", "yearly", "one_time"}

SAVINGS_ALLOCATION = Decimal("0.7")
NET_WORTH_MILESTONES = tuple(
    Decimal(amount) for amount in ("50000", "100000", "250000", "500000", "1000000")
)

ADJUSTABLE_FIELDS = {
    "income": ("income_sources", {"amount", "frequency", "is_active"}),
    "savings": ("savings_accounts", {"current_balance", "monthly_deposit", "interest_rate"}),
    "loan": ("loans", {"current_balance", "monthly_payment", "interest_rate"}),
    "broker": ("broker_accounts", {"current_value"}),
    "expense": ("expenses", {"amount", "frequency", "is_active"}),
}
NON_NEGATIVE_FIELDS = {"amount", "current_balance", "monthly_payment", "monthly_deposit"}
NULLABLE_FIELDS = {"monthly_deposit", "interest_rate"}


@dataclass(frozen=True)
class ProjectionAssumptions:
    """Annual rates in percent."""

    income_growth_rate: Decimal = Decimal("3")
    expense_growth_rate: Decimal = Decimal("2")
    savings_interest_rate: Decimal = Decimal("4")
    investment_return_rate: Decimal = Decimal("8")
    additional_monthly_savings: Decimal = ZERO

    @classmethod
    def from_config(cls, **overrides: Any) -> "ProjectionAssumptions":
        values: dict[str, Any] = dict(get_default_growth_rates())
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**{key: coerce_amount(value) for key, value in values.items()})


@dataclass(frozen=True)
class BaselineState:
    monthly_income: Decimal
    monthly_expenses: Decimal
    monthly_debt_payment: Decimal
    savings: Decimal
    investments: Decimal
    debt: Decimal
    debt_interest_rate: Decimal = ZERO
    savings_interest_rate: Optional[Decimal] = None

    @property
    def net_worth(self) -> Decimal:
        return self.savings + self.investments - self.debt

    @classmethod
    def from_totals(
        cls,
        totals: FinancialTotals,
        debt_interest_rate: Decimal = ZERO,
        savings_interest_rate: Optional[Decimal] = None,
    ) -> "BaselineState":
        return cls(
            monthly_income=totals.total_monthly_income,
            monthly_expenses=totals.total_monthly_expenses,
            monthly_debt_payment=totals.total_monthly_debt_payments,
            savings=totals.total_savings,
            investments=totals.total_investments,
            debt=totals.total_debt,
            debt_interest_rate=debt_interest_rate,
            savings_interest_rate=savings_interest_rate,
        )

    @classmethod
    def from_snapshot(cls, snapshot: HouseholdSnapshot) -> "BaselineState":
        debt_rate = weighted_interest_rate(
            (loan.current_balance, loan.interest_rate) for loan in snapshot.loans
        )
        savings_rate = weighted_interest_rate(
            (account.current_balance, account.interest_rate)
            for account in snapshot.savings_accounts
            if account.interest_rate is not None
        )
        return cls.from_totals(
            calculate_totals(snapshot),
            debt_interest_rate=debt_rate if debt_rate is not None else ZERO,
            savings_interest_rate=savings_rate,
        )


@dataclass(frozen=True)
class ScenarioModification:
    type: str
    effective_date: date
    amount: Optional[Decimal] = None
    end_date: Optional[date] = None
    frequency: str = "monthly"
    target_id: Optional[int] = None
    target_type: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class Scenario:
    name: str
    start_date: date
    end_date: date
    modifications: Tuple[ScenarioModification, ...] = ()
    id: Optional[int] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ProjectionSnapshot:
    month: int
    date: date
    monthly_income: Decimal
    monthly_expenses: Decimal
    monthly_debt_payment: Decimal
    interest_paid: Decimal
    net_cash_flow: Decimal
    savings: Decimal
    investments: Decimal
    debt: Decimal
    cumulative_savings: Decimal
    cumulative_debt_paid: Decimal

    @property
    def total_assets(self) -> Decimal:
        return self.savings + self.investments

    @property
    def net_worth(self) -> Decimal:
        return self.total_assets - self.debt


@dataclass(frozen=True)
class Milestone:
    month: int
    date: date
    type: str
    title: str
    amount: Optional[Decimal] = None


@dataclass(frozen=True)
class ProjectionSummary:
    start_net_worth: Decimal
    end_net_worth: Decimal
    total_growth: Decimal
    total_debt_paid: Decimal
    total_interest_paid: Decimal
    total_savings_accumulated: Decimal
    average_monthly_income: Decimal
    average_monthly_expenses: Decimal
    debt_free_date: Optional[date] = None


@dataclass(frozen=True)
class Projection:
    snapshots: List[ProjectionSnapshot]
    milestones: List[Milestone]
    summary: ProjectionSummary
    scenario_name: Optional[str] = None


@dataclass(frozen=True)
class ScenarioDifference:
    date: date
    net_worth_difference: Decimal
    cash_flow_difference: Decimal
    interest_savings: Decimal
    total_savings_difference: Decimal
    debt_difference: Decimal


@dataclass(frozen=True)
class ScenarioComparison:
    baseline_name: Optional[str]
    comparison_name: Optional[str]
    differences: List[ScenarioDifference] = field(default_factory=list)
    final_net_worth_difference: Decimal = ZERO
    total_interest_savings: Decimal = ZERO


@dataclass(frozen=True)
class InstrumentAdjustment:
    record_type: str
    record_id: int
    changes: Mapping[str, Any]


def weighted_interest_rate(
    balances_and_rates: Iterable[Tuple[Decimal, Optional[Decimal]]],
) -> Optional[Decimal]:
    """Balance-weighted average rate, ``None`` when there is no balance."""
    weighted = ZERO
    total_balance = ZERO
    for balance, rate in balances_and_rates:
        amount = coerce_amount(balance)
        if amount <= ZERO:
            continue
        weighted += amount * coerce_amount(rate or ZERO)
        total_balance += amount
    return safe_divide(weighted, total_balance, default=None)


def project(
    baseline: BaselineState,
    assumptions: ProjectionAssumptions | None = None,
    start_date: date | None = None,
    months: int | None = None,
    modifications: Sequence[ScenarioModification] = (),
    scenario_name: str | None = None,
) -> Projection:
    if months is None:
        months = get_projection_months()
    if months < 0:
        raise ValueError("months must not be negative.")
    return _run_projection(
        baseline,
        assumptions or ProjectionAssumptions.from_config(),
        start_date or date.today(),
        months,
        _ordered_modifications(modifications),
        scenario_name,
    )


def project_scenario(
    baseline: BaselineState,
    scenario: Scenario,
    assumptions: ProjectionAssumptions | None = None,
) -> Projection:
    if scenario.start_date > scenario.end_date:
        raise ValueError("start_date must be on or before end_date.")
    months = months_between(scenario.start_date, scenario.end_date)
    if add_months(scenario.start_date, months) > scenario.end_date:
        months -= 1
    return project(
        baseline,
        assumptions,
        start_date=scenario.start_date,
        months=months,
        modifications=scenario.modifications,
        scenario_name=scenario.name,
    )


def compare_projections(baseline: Projection, comparison: Projection) -> ScenarioComparison:
    """Diff two projections on the dates they share."""
    comparison_by_date = {snapshot.date: snapshot for snapshot in comparison.snapshots}
    differences: List[ScenarioDifference] = []
    for base in baseline.snapshots:
        other = comparison_by_date.get(base.date)
        if other is None:
            continue
        differences.append(
            ScenarioDifference(
                date=base.date,
                net_worth_difference=other.net_worth - base.net_worth,
                cash_flow_difference=other.net_cash_flow - base.net_cash_flow,
                interest_savings=base.interest_paid - other.interest_paid,
                total_savings_difference=other.savings - base.savings,
                debt_difference=other.debt - base.debt,
            )
        )

    total_interest_savings = ZERO
    for difference in differences:
        total_interest_savings += difference.interest_savings

    return ScenarioComparison(
        baseline_name=baseline.scenario_name,
        comparison_name=comparison.scenario_name,
        differences=differences,
        final_net_worth_difference=(
            differences[-1].net_worth_difference if differences else ZERO
        ),
        total_interest_savings=total_interest_savings,
    )


def apply_adjustments(
    snapshot: HouseholdSnapshot,
    adjustments: Iterable[InstrumentAdjustment],
) -> HouseholdSnapshot:
    """Return a copy of ``snapshot`` with what-if overrides applied to records."""
    collections = {
        attribute: list(getattr(snapshot, attribute))
        for attribute, _ in ADJUSTABLE_FIELDS.values()
    }
    for adjustment in adjustments:
        try:
            attribute, allowed = ADJUSTABLE_FIELDS[adjustment.record_type]
        except KeyError as exc:
            raise ValueError(f"Unsupported record type: {adjustment.record_type}") from exc
        unknown = set(adjustment.changes) - allowed
        if unknown:
            raise ValueError(
                f"Cannot adjust {', '.join(sorted(unknown))} on {adjustment.record_type}."
            )
        changes = _coerce_changes(adjustment.changes)
        records = collections[attribute]
        for index, record in enumerate(records):
            if record.id == adjustment.record_id:
                records[index] = replace(record, **changes)
    return replace(snapshot, **collections)


def _coerce_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    coerced: dict[str, Any] = {}
    for key, value in changes.items():
        if key == "frequency":
            if not isinstance(value, str):
                raise ValueError("frequency must be a string.")
            coerced[key] = value.strip().lower()
        elif key == "is_active":
            if not isinstance(value, bool):
                raise ValueError("is_active must be true or false.")
            coerced[key] = value
        elif value is None:
            if key not in NULLABLE_FIELDS:
                raise ValueError(f"{key} is required.")
            coerced[key] = None
        else:
            if isinstance(value, bool):
                raise ValueError(f"{key} must be a number.")
            amount = coerce_amount(value)
            if key in NON_NEGATIVE_FIELDS and amount < ZERO:
                raise ValueError(f"{key} must not be negative.")
            if key == "interest_rate" and not ZERO <= amount <= HUNDRED:
                raise ValueError("interest_rate must be between 0 and 100.")
            coerced[key] = amount
    return coerced


def _ordered_modifications(
    modifications: Sequence[ScenarioModification],
) -> List[ScenarioModification]:
    valid: List[ScenarioModification] = []
    for modification in modifications:
        if modification.type not in MODIFICATION_TYPES:
            logger.warning("unknown_modification_type", type=modification.type)
            continue
        if modification.frequency not in MODIFICATION_FREQUENCIES:
            logger.warning(
                "unknown_modification_frequency",
                type=modification.type,
                frequency=modification.frequency,
            )
            continue
        valid.append(modification)
    return sorted(valid, key=lambda modification: modification.effective_date)


def _monthly_rate(annual_percent: Decimal) -> Decimal:
    return coerce_amount(annual_percent) / HUNDRED / MONTHS_PER_YEAR


def _run_projection(
    baseline: BaselineState,
    assumptions: ProjectionAssumptions,
    start_date: date,
    months: int,
    modifications: List[ScenarioModification],
    scenario_name: Optional[str],
) -> Projection:
    savings = coerce_amount(baseline.savings)
    investments = coerce_amount(baseline.investments)
    debt = coerce_amount(baseline.debt)
    base_income = coerce_amount(baseline.monthly_income)
    base_expenses = coerce_amount(baseline.monthly_expenses)
    debt_payment = coerce_amount(baseline.monthly_debt_payment)
    additional = coerce_amount(assumptions.additional_monthly_savings)

    savings_annual = (
        baseline.savings_interest_rate
        if baseline.savings_interest_rate is not None
        else assumptions.savings_interest_rate
    )
    savings_rate = _monthly_rate(savings_annual)
    investment_rate = _monthly_rate(assumptions.investment_return_rate)
    debt_rate = _monthly_rate(baseline.debt_interest_rate)
    income_growth = 1 + coerce_amount(assumptions.income_growth_rate) / HUNDRED
    expense_growth = 1 + coerce_amount(assumptions.expense_growth_rate) / HUNDRED

    opening_payment = debt_payment if debt > ZERO else ZERO
    snapshots = [
        ProjectionSnapshot(
            month=0,
            date=start_date,
            monthly_income=base_income,
            monthly_expenses=base_expenses,
            monthly_debt_payment=opening_payment,
            interest_paid=ZERO,
            net_cash_flow=base_income - base_expenses - opening_payment - additional,
            savings=savings,
            investments=investments,
            debt=debt,
            cumulative_savings=ZERO,
            cumulative_debt_paid=ZERO,
        )
    ]
    milestones: List[Milestone] = []
    cumulative_savings = ZERO
    cumulative_debt_paid = ZERO
    total_interest = ZERO
    debt_free_date: Optional[date] = None
    was_in_debt = debt > ZERO
    previous_date = start_date

    for month in range(1, months + 1):
        current_date = add_months(start_date, month, start_date.day)

        if month % 12 == 0:
            base_income *= income_growth
            base_expenses *= expense_growth

        if savings > ZERO:
            savings += savings * savings_rate
        if investments > ZERO:
            investments += investments * investment_rate

        effects = _collect_effects(modifications, month, previous_date, current_date)
        for modification in effects.one_time:
            milestones.append(
                Milestone(
                    month=month,
                    date=current_date,
                    type="custom",
                    title=modification.description or modification.type,
                    amount=coerce_amount(modification.amount) if modification.amount is not None else None,
                )
            )

        monthly_income = max(base_income + effects.income_delta, ZERO)
        monthly_expenses = max(base_expenses + effects.expense_delta, ZERO)

        interest = ZERO
        payment = ZERO
        extra = ZERO
        if debt > ZERO:
            interest = debt * debt_rate
            payment = min(debt + interest, debt_payment)
            debt = debt + interest - payment
            extra = debt if effects.pay_off_all else min(debt, effects.extra_principal)
            debt -= extra
        total_interest += interest
        cumulative_debt_paid += payment + extra

        net_cash_flow = (
            monthly_income
            - monthly_expenses
            - payment
            - extra
            - additional
            - effects.investment_contribution
            + effects.cash_in
            - effects.cash_out
        )

        savings += additional
        investments += effects.investment_contribution
        if net_cash_flow > ZERO:
            to_savings = net_cash_flow * SAVINGS_ALLOCATION
            savings += to_savings
            investments += net_cash_flow - to_savings
        elif net_cash_flow < ZERO:
            shortfall = -net_cash_flow
            drawn = min(max(savings, ZERO), shortfall)
            savings -= drawn
            shortfall -= drawn
            drawn = min(max(investments, ZERO), shortfall)
            investments -= drawn
            shortfall -= drawn
            debt += shortfall
        cumulative_savings += net_cash_flow + additional

        if was_in_debt and debt_free_date is None and debt <= ZERO:
            debt_free_date = current_date
            milestones.append(
                Milestone(
                    month=month,
                    date=current_date,
                    type="debt_free",
                    title="Debt free",
                    amount=cumulative_debt_paid,
                )
            )
        if debt <= ZERO:
            debt_payment = ZERO

        snapshot = ProjectionSnapshot(
            month=month,
            date=current_date,
            monthly_income=monthly_income,
            monthly_expenses=monthly_expenses,
            monthly_debt_payment=payment,
            interest_paid=interest,
            net_cash_flow=net_cash_flow,
            savings=savings,
            investments=investments,
            debt=debt,
            cumulative_savings=cumulative_savings,
            cumulative_debt_paid=cumulative_debt_paid,
        )
        previous_net_worth = snapshots[-1].net_worth
        for threshold in NET_WORTH_MILESTONES:
            if previous_net_worth < threshold <= snapshot.net_worth:
                milestones.append(
                    Milestone(
                        month=month,
                        date=current_date,
                        type="net_worth_milestone",
                        title=f"Net worth {threshold:,.0f}",
                        amount=threshold,
                    )
                )
        snapshots.append(snapshot)
        previous_date = current_date

    count = Decimal(len(snapshots))
    income_sum = ZERO
    expense_sum = ZERO
    for snapshot in snapshots:
        income_sum += snapshot.monthly_income
        expense_sum += snapshot.monthly_expenses

    start_net_worth = snapshots[0].net_worth
    end_net_worth = snapshots[-1].net_worth
    milestones.sort(key=lambda milestone: milestone.month)
    return Projection(
        snapshots=snapshots,
        milestones=milestones,
        summary=ProjectionSummary(
            start_net_worth=start_net_worth,
            end_net_worth=end_net_worth,
            total_growth=end_net_worth - start_net_worth,
            total_debt_paid=cumulative_debt_paid,
            total_interest_paid=total_interest,
            total_savings_accumulated=cumulative_savings,
            average_monthly_income=income_sum / count,
            average_monthly_expenses=expense_sum / count,
            debt_free_date=debt_free_date,
        ),
        scenario_name=scenario_name,
    )


@dataclass
class _PeriodEffects:
    income_delta: Decimal = ZERO
    expense_delta: Decimal = ZERO
    investment_contribution: Decimal = ZERO
    extra_principal: Decimal = ZERO
    pay_off_all: bool = False
    cash_in: Decimal = ZERO
    cash_out: Decimal = ZERO
    one_time: List[ScenarioModification] = field(default_factory=list)


def _collect_effects(
    modifications: List[ScenarioModification],
    month: int,
    previous_date: date,
    current_date: date,
) -> _PeriodEffects:
    effects = _PeriodEffects()
    for modification in modifications:
        if modification.effective_date > current_date:
            break
        amount = coerce_amount(modification.amount) if modification.amount is not None else None

        if modification.frequency == "one_time":
            first_period = month == 1 or modification.effective_date > previous_date
            if not first_period:
                continue
            effects.one_time.append(modification)
            if modification.type == "loan_payoff":
                if amount is None:
                    effects.pay_off_all = True
                else:
                    effects.extra_principal += amount
            elif amount is None:
                continue
            elif modification.type in INCOME_TYPES:
                effects.cash_in += amount
            elif modification.type in EXPENSE_TYPES:
                effects.cash_out += amount
            else:
                effects.investment_contribution += amount
            continue

        if modification.end_date is not None and modification.end_date < current_date:
            continue
        if amount is None:
            continue
        monthly = to_monthly_amount(amount, modification.frequency)
        if modification.type in INCOME_TYPES:
            effects.income_delta += monthly
        elif modification.type in EXPENSE_TYPES:
            effects.expense_delta += monthly
        elif modification.type == "loan_payoff":
            effects.extra_principal += monthly
        else:
            effects.investment_contribution += monthly
    return effects
