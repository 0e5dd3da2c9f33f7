from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple


@dataclass(frozen=True)
class Person:
    id: int
    household_id: int
    name: str
    age: Optional[int] = None


@dataclass(frozen=True)
class IncomeSource:
    id: int
    person_id: int
    amount: Decimal
    frequency: str = "monthly"
    name: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class Expense:
    """A recurring expense owned by a person or by the household itself."""

    id: int
    amount: Decimal
    frequency: str = "monthly"
    category: str = "other"
    person_id: Optional[int] = None
    household_id: Optional[int] = None
    name: str = ""
    is_active: bool = True
    is_fixed: bool = False


@dataclass(frozen=True)
class BudgetExpense:
    """A line of the household budget. Amounts are already monthly."""

    id: int
    household_id: int
    amount: Decimal
    category: str = "other"
    name: str = ""


@dataclass(frozen=True)
class Loan:
    id: int
    person_id: int
    current_balance: Decimal
    monthly_payment: Decimal
    original_amount: Optional[Decimal] = None
    interest_rate: Decimal = Decimal("0")
    loan_type: Optional[str] = None
    name: str = ""


@dataclass(frozen=True)
class SavingsAccount:
    id: int
    person_id: int
    current_balance: Decimal
    interest_rate: Optional[Decimal] = None
    monthly_deposit: Optional[Decimal] = None
    account_type: Optional[str] = None
    name: str = ""


@dataclass(frozen=True)
class BrokerAccount:
    id: int
    person_id: int
    current_value: Decimal
    broker_name: Optional[str] = None
    account_type: Optional[str] = None
    name: str = ""


@dataclass(frozen=True)
class SavingsGoal:
    id: int
    household_id: int
    name: str
    target_amount: Decimal
    target_date: Optional[date] = None
    priority: Optional[int] = None
    category: Optional[str] = None
    description: Optional[str] = None
    is_completed: bool = False


@dataclass(frozen=True)
class SavingsGoalAccountLink:
    goal_id: int
    savings_account_id: int


@dataclass(frozen=True)
class HouseholdSnapshot:
    """Every record of one or more households, as fetched from storage."""

    persons: Tuple[Person, ...] = ()
    income_sources: Tuple[IncomeSource, ...] = ()
    expenses: Tuple[Expense, ...] = ()
    budget_expenses: Tuple[BudgetExpense, ...] = ()
    loans: Tuple[Loan, ...] = ()
    savings_accounts: Tuple[SavingsAccount, ...] = ()
    broker_accounts: Tuple[BrokerAccount, ...] = ()
    savings_goals: Tuple[SavingsGoal, ...] = ()
    goal_links: Tuple[SavingsGoalAccountLink, ...] = field(default=())

    def __post_init__(self) -> None:
        for name in (
            "persons",
            "income_sources",
            "expenses",
            "budget_expenses",
            "loans",
            "savings_accounts",
            "broker_accounts",
            "savings_goals",
            "goal_links",
        ):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @property
    def financial_record_count(self) -> int:
        return (
            len(self.income_sources)
            + len(self.expenses)
            + len(self.budget_expenses)
            + len(self.loans)
            + len(self.savings_accounts)
            + len(self.broker_accounts)
        )
