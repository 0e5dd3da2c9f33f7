from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable

import structlog

from household_finance.frequency import is_valid_frequency, to_monthly_amount
from household_finance.money import MONTHS_PER_YEAR, ZERO, coerce_amount
from household_finance.records import (
    BrokerAccount,
    BudgetExpense,
    Expense,
    HouseholdSnapshot,
    IncomeSource,
    Loan,
    SavingsAccount,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FinancialTotals:
    total_monthly_income: Decimal = ZERO
    total_monthly_expenses: Decimal = ZERO
    total_debt: Decimal = ZERO
    total_monthly_debt_payments: Decimal = ZERO
    total_savings: Decimal = ZERO
    total_investments: Decimal = ZERO
    member_count: int = 0
    income_sources_count: int = 0
    expenses_count: int = 0
    budget_expenses_count: int = 0
    loans_count: int = 0
    savings_accounts_count: int = 0
    investment_accounts_count: int = 0

    @property
    def total_annual_income(self) -> Decimal:
        return self.total_monthly_income * MONTHS_PER_YEAR

    @property
    def monthly_surplus(self) -> Decimal:
        return calculate_monthly_surplus(
            self.total_monthly_income,
            self.total_monthly_expenses,
            self.total_monthly_debt_payments,
        )

    @property
    def record_count(self) -> int:
        return (
            self.income_sources_count
            + self.expenses_count
            + self.budget_expenses_count
            + self.loans_count
            + self.savings_accounts_count
            + self.investment_accounts_count
        )

    def __add__(self, other: "FinancialTotals") -> "FinancialTotals":
        if not isinstance(other, FinancialTotals):
            return NotImplemented
        return FinancialTotals(
            total_monthly_income=self.total_monthly_income + other.total_monthly_income,
            total_monthly_expenses=self.total_monthly_expenses + other.total_monthly_expenses,
            total_debt=self.total_debt + other.total_debt,
            total_monthly_debt_payments=(
                self.total_monthly_debt_payments + other.total_monthly_debt_payments
            ),
            total_savings=self.total_savings + other.total_savings,
            total_investments=self.total_investments + other.total_investments,
            member_count=self.member_count + other.member_count,
            income_sources_count=self.income_sources_count + other.income_sources_count,
            expenses_count=self.expenses_count + other.expenses_count,
            budget_expenses_count=self.budget_expenses_count + other.budget_expenses_count,
            loans_count=self.loans_count + other.loans_count,
            savings_accounts_count=self.savings_accounts_count + other.savings_accounts_count,
            investment_accounts_count=(
                self.investment_accounts_count + other.investment_accounts_count
            ),
        )


@dataclass(frozen=True)
class HouseholdAggregate:
    household_id: int
    totals: FinancialTotals
    per_person: Dict[int, FinancialTotals] = field(default_factory=dict)
    household_level: FinancialTotals = field(default_factory=FinancialTotals)


def calculate_monthly_income(incomes: Iterable[IncomeSource]) -> Decimal:
    """Sum active income sources as monthly amounts."""
    total = ZERO
    for income in incomes:
        if not income.is_active:
            continue
        _warn_unknown_frequency("income_source", income.id, income.frequency)
        total += to_monthly_amount(income.amount, income.frequency)
    return total


def calculate_monthly_expenses(
    expenses: Iterable[Expense],
    budget_expenses: Iterable[BudgetExpense] = (),
) -> Decimal:
    """Sum active expenses as monthly amounts plus budget lines as-is."""
    total = ZERO
    for expense in expenses:
        if not expense.is_active:
            continue
        _warn_unknown_frequency("expense", expense.id, expense.frequency)
        total += to_monthly_amount(expense.amount, expense.frequency)
    for budget_expense in budget_expenses:
        total += coerce_amount(budget_expense.amount)
    return total


def calculate_total_debt(loans: Iterable[Loan]) -> Decimal:
    return _sum(loan.current_balance for loan in loans)


def calculate_monthly_debt_payments(loans: Iterable[Loan]) -> Decimal:
    return _sum(loan.monthly_payment for loan in loans)


def calculate_total_savings(accounts: Iterable[SavingsAccount]) -> Decimal:
    return _sum(account.current_balance for account in accounts)


def calculate_total_investments(accounts: Iterable[BrokerAccount]) -> Decimal:
    return _sum(account.current_value for account in accounts)


def calculate_monthly_surplus(
    monthly_income: Decimal,
    monthly_expenses: Decimal,
    monthly_debt_payments: Decimal,
) -> Decimal:
    return monthly_income - monthly_expenses - monthly_debt_payments


def calculate_totals(snapshot: HouseholdSnapshot) -> FinancialTotals:
    """Aggregate every record of ``snapshot`` without any ownership filtering."""
    income_sources = list(snapshot.income_sources)
    expenses = list(snapshot.expenses)
    budget_expenses = list(snapshot.budget_expenses)
    loans = list(snapshot.loans)
    savings_accounts = list(snapshot.savings_accounts)
    broker_accounts = list(snapshot.broker_accounts)

    return FinancialTotals(
        total_monthly_income=calculate_monthly_income(income_sources),
        total_monthly_expenses=calculate_monthly_expenses(expenses, budget_expenses),
        total_debt=calculate_total_debt(loans),
        total_monthly_debt_payments=calculate_monthly_debt_payments(loans),
        total_savings=calculate_total_savings(savings_accounts),
        total_investments=calculate_total_investments(broker_accounts),
        member_count=len(snapshot.persons),
        income_sources_count=sum(1 for income in income_sources if income.is_active),
        expenses_count=sum(1 for expense in expenses if expense.is_active),
        budget_expenses_count=len(budget_expenses),
        loans_count=len(loans),
        savings_accounts_count=len(savings_accounts),
        investment_accounts_count=len(broker_accounts),
    )


def scope_to_household(snapshot: HouseholdSnapshot, household_id: int) -> HouseholdSnapshot:
    """Keep the persons of one household and the records they or it own."""
    persons = [person for person in snapshot.persons if person.household_id == household_id]
    person_ids = {person.id for person in persons}
    goals = [goal for goal in snapshot.savings_goals if goal.household_id == household_id]
    goal_ids = {goal.id for goal in goals}
    return HouseholdSnapshot(
        persons=persons,
        income_sources=[i for i in snapshot.income_sources if i.person_id in person_ids],
        expenses=[e for e in snapshot.expenses if _expense_in_household(e, household_id, person_ids)],
        budget_expenses=[b for b in snapshot.budget_expenses if b.household_id == household_id],
        loans=[loan for loan in snapshot.loans if loan.person_id in person_ids],
        savings_accounts=[s for s in snapshot.savings_accounts if s.person_id in person_ids],
        broker_accounts=[b for b in snapshot.broker_accounts if b.person_id in person_ids],
        savings_goals=goals,
        goal_links=[link for link in snapshot.goal_links if link.goal_id in goal_ids],
    )


def scope_to_person(snapshot: HouseholdSnapshot, person_id: int) -> HouseholdSnapshot:
    return HouseholdSnapshot(
        persons=[person for person in snapshot.persons if person.id == person_id],
        income_sources=[i for i in snapshot.income_sources if i.person_id == person_id],
        expenses=[e for e in snapshot.expenses if e.person_id == person_id],
        loans=[loan for loan in snapshot.loans if loan.person_id == person_id],
        savings_accounts=[s for s in snapshot.savings_accounts if s.person_id == person_id],
        broker_accounts=[b for b in snapshot.broker_accounts if b.person_id == person_id],
    )


def aggregate_person(snapshot: HouseholdSnapshot, person_id: int) -> FinancialTotals:
    return calculate_totals(scope_to_person(snapshot, person_id))


def aggregate_household(snapshot: HouseholdSnapshot, household_id: int) -> HouseholdAggregate:
    """Totals for one household, broken down by person.

    Person-owned records are counted under their owner only; expenses without
    an owner and budget lines form the household-level bucket. The household
    totals are the sum of both, so nothing is counted twice.
    """
    scoped = scope_to_household(snapshot, household_id)
    person_ids = sorted({person.id for person in scoped.persons})

    per_person = {
        person_id: aggregate_person(scoped, person_id)
        for person_id in person_ids
    }
    household_level = calculate_totals(
        HouseholdSnapshot(
            expenses=[e for e in scoped.expenses if e.person_id is None],
            budget_expenses=scoped.budget_expenses,
        )
    )

    totals = household_level
    for person_totals in per_person.values():
        totals = totals + person_totals

    return HouseholdAggregate(
        household_id=household_id,
        totals=totals,
        per_person=per_person,
        household_level=household_level,
    )


def _expense_in_household(expense: Expense, household_id: int, person_ids: set[int]) -> bool:
    if expense.person_id is not None:
        return expense.person_id in person_ids
    return expense.household_id == household_id


def _warn_unknown_frequency(kind: str, record_id: int, frequency: str | None) -> None:
    if not is_valid_frequency(frequency):
        logger.warning(
            "unrecognized_frequency",
            record_kind=kind,
            record_id=record_id,
            frequency=frequency,
        )


def _sum(amounts: Iterable[Decimal | int | str | None]) -> Decimal:
    total = ZERO
    for amount in amounts:
        if amount is None:
            continue
        total += coerce_amount(amount)
    return total

