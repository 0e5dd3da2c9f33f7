"""Financial health report for a household.

Every metric is classified with the same four statuses using the band table
below. A band lists the cut-points for ``excellent``, ``good`` and ``fair``;
anything past the last cut-point is ``poor``. Cut-points are inclusive.

    metric            measured as                     excellent  good   fair
    cash_flow         savings rate, % of income       >= 20      >= 10  >= 0
    debt_to_income    debt payments, % of income      <= 20      <= 36  <= 43
    emergency_fund    savings / monthly expenses      >= 6       >= 3   >= 1
    net_worth         net worth / annual income       >= 1       >= 0.25 >= 0

A household without income has no income multiple, so its net worth is rated
on the raw amount instead: negative is ``poor``.

The overall status is the worst of the four.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from household_finance.aggregation import FinancialTotals
from household_finance.config import get_emergency_fund_target_months
from household_finance.money import MONTHS_PER_YEAR, ZERO, percentage, safe_divide

STATUSES = ("excellent", "good", "fair", "poor")


@dataclass(frozen=True)
class StatusBand:
    excellent: Decimal
    good: Decimal
    fair: Decimal
    higher_is_better: bool = True

    def classify(self, value: Decimal) -> str:
        for status, cut_point in (
            ("excellent", self.excellent),
            ("good", self.good),
            ("fair", self.fair),
        ):
            if self.higher_is_better and value >= cut_point:
                return status
            if not self.higher_is_better and value <= cut_point:
                return status
        return "poor"


HEALTH_BANDS: dict[str, StatusBand] = {
    "cash_flow": StatusBand(Decimal("20"), Decimal("10"), Decimal("0")),
    "debt_to_income": StatusBand(
        Decimal("20"), Decimal("36"), Decimal("43"), higher_is_better=False
    ),
    "emergency_fund": StatusBand(Decimal("6"), Decimal("3"), Decimal("1")),
    "net_worth": StatusBand(Decimal("1"), Decimal("0.25"), Decimal("0")),
}


@dataclass(frozen=True)
class NetWorthBreakdown:
    savings: Decimal
    investments: Decimal
    debt: Decimal


@dataclass(frozen=True)
class NetWorth:
    total: Decimal
    assets: Decimal
    liabilities: Decimal
    breakdown: NetWorthBreakdown
    income_multiple: Decimal
    status: Optional[str]


@dataclass(frozen=True)
class CashFlowPeriod:
    income: Decimal
    expenses: Decimal
    debt_payments: Decimal
    net_cash_flow: Decimal


@dataclass(frozen=True)
class CashFlow:
    monthly: CashFlowPeriod
    annual: CashFlowPeriod
    savings_rate: Decimal
    status: Optional[str]


@dataclass(frozen=True)
class DebtToIncome:
    ratio: Decimal
    monthly_payments: Decimal
    monthly_income: Decimal
    status: Optional[str]


@dataclass(frozen=True)
class EmergencyFund:
    current_balance: Decimal
    months_of_expenses: Decimal
    target_months: Decimal
    is_adequate: bool
    status: Optional[str]


@dataclass(frozen=True)
class HealthSummary:
    overall_health: Optional[str]
    has_data: bool


@dataclass(frozen=True)
class FinancialHealthReport:
    net_worth: NetWorth
    cash_flow: CashFlow
    debt_to_income: DebtToIncome
    emergency_fund: EmergencyFund
    summary: HealthSummary


def classify(metric: str, value: Decimal) -> str:
    try:
        band = HEALTH_BANDS[metric]
    except KeyError as exc:
        raise ValueError(f"Unknown health metric: {metric}") from exc
    return band.classify(value)


def worst_status(statuses: list[str]) -> str:
    if not statuses:
        raise ValueError("At least one status is required.")
    return max(statuses, key=STATUSES.index)


def analyze_financial_health(
    totals: FinancialTotals,
    target_months: Decimal | None = None,
) -> FinancialHealthReport:
    """Derive the health report from aggregated household totals.

    A household without members or without any financial record gets a
    zero-valued report with every status set to ``None`` instead of an
    error.
    """
    if target_months is None:
        target_months = get_emergency_fund_target_months()
    if target_months < ZERO:
        raise ValueError("target_months must not be negative.")

    income = totals.total_monthly_income
    expenses = totals.total_monthly_expenses
    debt_payments = totals.total_monthly_debt_payments
    net_cash_flow = income - expenses - debt_payments

    savings_rate = percentage(net_cash_flow, income)
    debt_to_income_ratio = percentage(debt_payments, income)
    months_of_expenses = safe_divide(totals.total_savings, expenses)

    assets = totals.total_savings + totals.total_investments
    liabilities = totals.total_debt
    net_worth_total = assets - liabilities
    annual_income = income * MONTHS_PER_YEAR
    income_multiple = safe_divide(net_worth_total, annual_income)
    # Without income the multiple is undefined; rate the net worth itself.
    net_worth_measure = income_multiple if annual_income > ZERO else net_worth_total

    has_data = totals.member_count > 0 and totals.record_count > 0
    if has_data:
        statuses = {
            "cash_flow": classify("cash_flow", savings_rate),
            "debt_to_income": classify("debt_to_income", debt_to_income_ratio),
            "emergency_fund": classify("emergency_fund", months_of_expenses),
            "net_worth": classify("net_worth", net_worth_measure),
        }
        overall = worst_status(list(statuses.values()))
    else:
        statuses = dict.fromkeys(HEALTH_BANDS)
        overall = None

    return FinancialHealthReport(
        net_worth=NetWorth(
            total=net_worth_total,
            assets=assets,
            liabilities=liabilities,
            breakdown=NetWorthBreakdown(
                savings=totals.total_savings,
                investments=totals.total_investments,
                debt=totals.total_debt,
            ),
            income_multiple=income_multiple,
            status=statuses["net_worth"],
        ),
        cash_flow=CashFlow(
            monthly=CashFlowPeriod(
                income=income,
                expenses=expenses,
                debt_payments=debt_payments,
                net_cash_flow=net_cash_flow,
            ),
            annual=CashFlowPeriod(
                income=income * MONTHS_PER_YEAR,
                expenses=expenses * MONTHS_PER_YEAR,
                debt_payments=debt_payments * MONTHS_PER_YEAR,
                net_cash_flow=net_cash_flow * MONTHS_PER_YEAR,
            ),
            savings_rate=savings_rate,
            status=statuses["cash_flow"],
        ),
        debt_to_income=DebtToIncome(
            ratio=debt_to_income_ratio,
            monthly_payments=debt_payments,
            monthly_income=income,
            status=statuses["debt_to_income"],
        ),
        emergency_fund=EmergencyFund(
            current_balance=totals.total_savings,
            months_of_expenses=months_of_expenses,
            target_months=target_months,
            is_adequate=has_data and months_of_expenses >= target_months,
            status=statuses["emergency_fund"],
        ),
        summary=HealthSummary(overall_health=overall, has_data=has_data),
    )
