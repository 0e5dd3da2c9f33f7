from datetime import date
from decimal import Decimal

import structlog
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from household_finance.aggregation import FinancialTotals, aggregate_household, scope_to_household
from household_finance.budget import summarize_budget
from household_finance.config import get_frontend_origin
from household_finance.health import analyze_financial_health
from household_finance.log import configure_logging
from household_finance.money import HUNDRED, ZERO
from household_finance.preferences import normalize_preferences
from household_finance.projection import (
    BaselineState,
    InstrumentAdjustment,
    ProjectionAssumptions,
    Scenario,
    ScenarioModification,
    apply_adjustments,
    compare_projections,
    project,
    project_scenario,
)
from household_finance.records import (
    BrokerAccount,
    BudgetExpense,
    Expense,
    HouseholdSnapshot,
    IncomeSource,
    Loan,
    Person,
    SavingsAccount,
    SavingsGoal,
    SavingsGoalAccountLink,
)
from household_finance.savings_goals import enrich_savings_goals, format_duration, summarize_goals

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_frontend_origin()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_non_negative(value: Decimal | None, label: str) -> None:
    if value is not None and value < ZERO:
        raise ValueError(f"{label} must not be negative.")


def _require_rate(value: Decimal | None, label: str) -> None:
    if value is not None and not ZERO <= value <= HUNDRED:
        raise ValueError(f"{label} must be between 0 and 100.")


class PersonPayload(BaseModel):
    id: int
    name: str
    household_id: int | None = None
    age: int | None = None

    @classmethod
    def validate_payload(cls, payload: "PersonPayload") -> "PersonPayload":
        payload.name = payload.name.strip()
        if not payload.name:
            raise ValueError("Person name required.")
        if payload.age is not None and payload.age < 0:
            raise ValueError("Age must not be negative.")
        return payload


class IncomeSourcePayload(BaseModel):
    id: int
    person_id: int
    amount: Decimal
    frequency: str = "monthly"
    name: str = ""
    is_active: bool = True

    @classmethod
    def validate_payload(cls, payload: "IncomeSourcePayload") -> "IncomeSourcePayload":
        _require_non_negative(payload.amount, "Income amount")
        payload.frequency = payload.frequency.strip().lower()
        return payload


class ExpensePayload(BaseModel):
    id: int
    amount: Decimal
    frequency: str = "monthly"
    category: str = "other"
    person_id: int | None = None
    household_id: int | None = None
    name: str = ""
    is_active: bool = True
    is_fixed: bool = False

    @classmethod
    def validate_payload(cls, payload: "ExpensePayload") -> "ExpensePayload":
        _require_non_negative(payload.amount, "Expense amount")
        payload.frequency = payload.frequency.strip().lower()
        return payload


class BudgetExpensePayload(BaseModel):
    id: int
    amount: Decimal
    category: str = "other"
    name: str = ""
    household_id: int | None = None

    @classmethod
    def validate_payload(cls, payload: "BudgetExpensePayload") -> "BudgetExpensePayload":
        _require_non_negative(payload.amount, "Budget expense amount")
        return payload


class LoanPayload(BaseModel):
    id: int
    person_id: int
    current_balance: Decimal
    monthly_payment: Decimal
    original_amount: Decimal | None = None
    interest_rate: Decimal = ZERO
    loan_type: str | None = None
    name: str = ""

    @classmethod
    def validate_payload(cls, payload: "LoanPayload") -> "LoanPayload":
        _require_non_negative(payload.current_balance, "Loan balance")
        _require_non_negative(payload.monthly_payment, "Monthly payment")
        _require_non_negative(payload.original_amount, "Original amount")
        _require_rate(payload.interest_rate, "Interest rate")
        return payload


class SavingsAccountPayload(BaseModel):
    id: int
    person_id: int
    current_balance: Decimal
    interest_rate: Decimal | None = None
    monthly_deposit: Decimal | None = None
    account_type: str | None = None
    name: str = ""

    @classmethod
    def validate_payload(cls, payload: "SavingsAccountPayload") -> "SavingsAccountPayload":
        _require_rate(payload.interest_rate, "Interest rate")
        _require_non_negative(payload.monthly_deposit, "Monthly deposit")
        return payload


class BrokerAccountPayload(BaseModel):
    id: int
    person_id: int
    current_value: Decimal
    broker_name: str | None = None
    account_type: str | None = None
    name: str = ""


class SavingsGoalPayload(BaseModel):
    id: int
    name: str
    target_amount: Decimal
    target_date: date | None = None
    priority: int | None = None
    category: str | None = None
    description: str | None = None
    is_completed: bool = False
    account_ids: list[int] = []

    @classmethod
    def validate_payload(cls, payload: "SavingsGoalPayload") -> "SavingsGoalPayload":
        _require_non_negative(payload.target_amount, "Target amount")
        return payload


class HouseholdPayload(BaseModel):
    household_id: int
    persons: list[PersonPayload] = []
    income_sources: list[IncomeSourcePayload] = []
    expenses: list[ExpensePayload] = []
    budget_expenses: list[BudgetExpensePayload] = []
    loans: list[LoanPayload] = []
    savings_accounts: list[SavingsAccountPayload] = []
    broker_accounts: list[BrokerAccountPayload] = []
    savings_goals: list[SavingsGoalPayload] = []

    def to_snapshot(self) -> HouseholdSnapshot:
        household_id = self.household_id
        persons = [PersonPayload.validate_payload(p) for p in self.persons]
        income_sources = [IncomeSourcePayload.validate_payload(i) for i in self.income_sources]
        expenses = [ExpensePayload.validate_payload(e) for e in self.expenses]
        budget_expenses = [BudgetExpensePayload.validate_payload(b) for b in self.budget_expenses]
        loans = [LoanPayload.validate_payload(loan) for loan in self.loans]
        savings_accounts = [SavingsAccountPayload.validate_payload(s) for s in self.savings_accounts]
        goals = [SavingsGoalPayload.validate_payload(g) for g in self.savings_goals]

        snapshot = HouseholdSnapshot(
            persons=[
                Person(
                    id=p.id,
                    household_id=p.household_id if p.household_id is not None else household_id,
                    name=p.name,
                    age=p.age,
                )
                for p in persons
            ],
            income_sources=[IncomeSource(**i.model_dump()) for i in income_sources],
            expenses=[
                Expense(
                    **e.model_dump(exclude={"household_id"}),
                    household_id=(
                        e.household_id
                        if e.household_id is not None or e.person_id is not None
                        else household_id
                    ),
                )
                for e in expenses
            ],
            budget_expenses=[
                BudgetExpense(
                    **b.model_dump(exclude={"household_id"}),
                    household_id=b.household_id if b.household_id is not None else household_id,
                )
                for b in budget_expenses
            ],
            loans=[Loan(**loan.model_dump()) for loan in loans],
            savings_accounts=[SavingsAccount(**s.model_dump()) for s in savings_accounts],
            broker_accounts=[BrokerAccount(**b.model_dump()) for b in self.broker_accounts],
            savings_goals=[
                SavingsGoal(household_id=household_id, **g.model_dump(exclude={"account_ids"}))
                for g in goals
            ],
            goal_links=[
                SavingsGoalAccountLink(goal_id=g.id, savings_account_id=account_id)
                for g in goals
                for account_id in g.account_ids
            ],
        )
        return scope_to_household(snapshot, household_id)


class AssumptionsPayload(BaseModel):
    income_growth_rate: Decimal | None = None
    expense_growth_rate: Decimal | None = None
    savings_interest_rate: Decimal | None = None
    investment_return_rate: Decimal | None = None
    additional_monthly_savings: Decimal | None = None

    def to_assumptions(self) -> ProjectionAssumptions:
        _require_non_negative(self.additional_monthly_savings, "Additional monthly savings")
        return ProjectionAssumptions.from_config(**self.model_dump())


class AdjustmentPayload(BaseModel):
    record_type: str
    record_id: int
    changes: dict[str, Decimal | str | bool | None]


class ScenarioModificationPayload(BaseModel):
    type: str
    effective_date: date
    amount: Decimal | None = None
    end_date: date | None = None
    frequency: str = "monthly"
    target_id: int | None = None
    target_type: str | None = None
    description: str | None = None

    @classmethod
    def validate_payload(
        cls, payload: "ScenarioModificationPayload"
    ) -> "ScenarioModificationPayload":
        payload.type = payload.type.strip().lower()
        payload.frequency = payload.frequency.strip().lower()
        if payload.end_date is not None and payload.end_date < payload.effective_date:
            raise ValueError("Modification end date must be on or after its effective date.")
        return payload


class ScenarioPayload(BaseModel):
    name: str
    start_date: date
    end_date: date
    id: int | None = None
    description: str | None = None
    modifications: list[ScenarioModificationPayload] = []

    def to_scenario(self) -> Scenario:
        name = self.name.strip()
        if not name:
            raise ValueError("Scenario name required.")
        if self.start_date > self.end_date:
            raise ValueError("Scenario start date must be on or before end date.")
        modifications = tuple(
            ScenarioModification(**ScenarioModificationPayload.validate_payload(m).model_dump())
            for m in self.modifications
        )
        return Scenario(
            name=name,
            start_date=self.start_date,
            end_date=self.end_date,
            modifications=modifications,
            id=self.id,
            description=self.description,
        )


class ProjectionRequest(BaseModel):
    household: HouseholdPayload
    assumptions: AssumptionsPayload = AssumptionsPayload()
    start_date: date | None = None
    months: int | None = None
    adjustments: list[AdjustmentPayload] = []


class ScenarioProjectionRequest(BaseModel):
    household: HouseholdPayload
    scenario: ScenarioPayload
    assumptions: AssumptionsPayload = AssumptionsPayload()


class ScenarioCompareRequest(BaseModel):
    household: HouseholdPayload
    baseline: ScenarioPayload
    comparison: ScenarioPayload
    assumptions: AssumptionsPayload = AssumptionsPayload()


class PreferencesPayload(BaseModel):
    locale: str | None = None
    currency: str | None = None


class ResponseModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class TotalsResponse(ResponseModel):
    total_monthly_income: Decimal
    total_annual_income: Decimal
    total_monthly_expenses: Decimal
    total_debt: Decimal
    total_monthly_debt_payments: Decimal
    total_savings: Decimal
    total_investments: Decimal
    monthly_surplus: Decimal
    member_count: int
    income_sources_count: int
    expenses_count: int
    budget_expenses_count: int
    loans_count: int
    savings_accounts_count: int
    investment_accounts_count: int


class PersonTotalsResponse(BaseModel):
    person_id: int
    name: str
    totals: TotalsResponse


class HouseholdSummaryResponse(BaseModel):
    household_id: int
    totals: TotalsResponse
    household_level: TotalsResponse
    persons: list[PersonTotalsResponse]


class NetWorthBreakdownResponse(ResponseModel):
    savings: Decimal
    investments: Decimal
    debt: Decimal


class NetWorthResponse(ResponseModel):
    total: Decimal
    assets: Decimal
    liabilities: Decimal
    breakdown: NetWorthBreakdownResponse
    income_multiple: Decimal
    status: str | None = None


class CashFlowPeriodResponse(ResponseModel):
    income: Decimal
    expenses: Decimal
    debt_payments: Decimal
    net_cash_flow: Decimal


class CashFlowResponse(ResponseModel):
    monthly: CashFlowPeriodResponse
    annual: CashFlowPeriodResponse
    savings_rate: Decimal
    status: str | None = None


class DebtToIncomeResponse(ResponseModel):
    ratio: Decimal
    monthly_payments: Decimal
    monthly_income: Decimal
    status: str | None = None


class EmergencyFundResponse(ResponseModel):
    current_balance: Decimal
    months_of_expenses: Decimal
    target_months: Decimal
    is_adequate: bool
    status: str | None = None


class HealthSummaryResponse(ResponseModel):
    overall_health: str | None = None
    has_data: bool


class FinancialHealthResponse(ResponseModel):
    net_worth: NetWorthResponse
    cash_flow: CashFlowResponse
    debt_to_income: DebtToIncomeResponse
    emergency_fund: EmergencyFundResponse
    summary: HealthSummaryResponse


class CategoryBreakdownResponse(ResponseModel):
    category: str
    monthly_total: Decimal
    percentage_of_total: Decimal
    item_count: int


class BudgetSummaryResponse(ResponseModel):
    total_monthly: Decimal
    fixed_monthly: Decimal
    variable_monthly: Decimal
    categories: list[CategoryBreakdownResponse]


class GoalProgressResponse(BaseModel):
    id: int
    name: str
    target_amount: Decimal
    target_date: date | None = None
    priority: int | None = None
    category: str | None = None
    is_completed: bool
    account_ids: list[int]
    current_amount: Decimal
    progress_percentage: Decimal
    remaining_amount: Decimal
    monthly_contribution: Decimal
    estimated_months_to_goal: int | None = None
    estimated_completion_date: date | None = None
    estimated_duration: str | None = None


class GoalSummaryResponse(ResponseModel):
    total_target_amount: Decimal
    total_current_amount: Decimal
    total_progress: Decimal
    active_count: int
    completed_count: int


class SavingsGoalsResponse(BaseModel):
    goals: list[GoalProgressResponse]
    summary: GoalSummaryResponse


class ProjectionSnapshotResponse(ResponseModel):
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
    total_assets: Decimal
    net_worth: Decimal
    cumulative_savings: Decimal
    cumulative_debt_paid: Decimal


class MilestoneResponse(ResponseModel):
    month: int
    date: date
    type: str
    title: str
    amount: Decimal | None = None


class ProjectionSummaryResponse(ResponseModel):
    start_net_worth: Decimal
    end_net_worth: Decimal
    total_growth: Decimal
    total_debt_paid: Decimal
    total_interest_paid: Decimal
    total_savings_accumulated: Decimal
    average_monthly_income: Decimal
    average_monthly_expenses: Decimal
    debt_free_date: date | None = None


class ProjectionResponse(ResponseModel):
    scenario_name: str | None = None
    snapshots: list[ProjectionSnapshotResponse]
    milestones: list[MilestoneResponse]
    summary: ProjectionSummaryResponse


class ScenarioDifferenceResponse(ResponseModel):
    date: date
    net_worth_difference: Decimal
    cash_flow_difference: Decimal
    interest_savings: Decimal
    total_savings_difference: Decimal
    debt_difference: Decimal


class ScenarioComparisonResponse(ResponseModel):
    baseline_name: str | None = None
    comparison_name: str | None = None
    differences: list[ScenarioDifferenceResponse]
    final_net_worth_difference: Decimal
    total_interest_savings: Decimal


class PreferencesResponse(ResponseModel):
    locale: str
    currency: str


def _snapshot_or_400(payload: HouseholdPayload) -> HouseholdSnapshot:
    try:
        return payload.to_snapshot()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _totals_response(totals: FinancialTotals) -> TotalsResponse:
    return TotalsResponse.model_validate(totals)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/households/summary", response_model=HouseholdSummaryResponse)
def household_summary(payload: HouseholdPayload) -> HouseholdSummaryResponse:
    snapshot = _snapshot_or_400(payload)
    aggregate = aggregate_household(snapshot, payload.household_id)
    names = {person.id: person.name for person in snapshot.persons}
    return HouseholdSummaryResponse(
        household_id=aggregate.household_id,
        totals=_totals_response(aggregate.totals),
        household_level=_totals_response(aggregate.household_level),
        persons=[
            PersonTotalsResponse(
                person_id=person_id,
                name=names[person_id],
                totals=_totals_response(totals),
            )
            for person_id, totals in aggregate.per_person.items()
        ],
    )


@app.post("/households/financial-health", response_model=FinancialHealthResponse)
def financial_health(
    payload: HouseholdPayload,
    target_months: Decimal | None = Query(None),
) -> FinancialHealthResponse:
    snapshot = _snapshot_or_400(payload)
    aggregate = aggregate_household(snapshot, payload.household_id)
    try:
        report = analyze_financial_health(aggregate.totals, target_months=target_months)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info(
        "financial_health_calculated",
        household_id=payload.household_id,
        overall_health=report.summary.overall_health,
        has_data=report.summary.has_data,
    )
    return FinancialHealthResponse.model_validate(report)


@app.post("/households/budget", response_model=BudgetSummaryResponse)
def household_budget(payload: HouseholdPayload) -> BudgetSummaryResponse:
    snapshot = _snapshot_or_400(payload)
    summary = summarize_budget(snapshot.budget_expenses, snapshot.expenses)
    return BudgetSummaryResponse.model_validate(summary)


@app.post("/savings-goals/progress", response_model=SavingsGoalsResponse)
def savings_goal_progress(
    payload: HouseholdPayload,
    as_of: date | None = Query(None),
) -> SavingsGoalsResponse:
    snapshot = _snapshot_or_400(payload)
    aggregate = aggregate_household(snapshot, payload.household_id)
    progress = enrich_savings_goals(
        snapshot.savings_goals,
        snapshot.goal_links,
        snapshot.savings_accounts,
        monthly_surplus=aggregate.totals.monthly_surplus,
        today=as_of,
    )
    goals = [
        GoalProgressResponse(
            id=item.goal.id,
            name=item.goal.name,
            target_amount=item.goal.target_amount,
            target_date=item.goal.target_date,
            priority=item.goal.priority,
            category=item.goal.category,
            is_completed=item.goal.is_completed,
            account_ids=list(item.linked_account_ids),
            current_amount=item.current_amount,
            progress_percentage=item.progress_percentage,
            remaining_amount=item.remaining_amount,
            monthly_contribution=item.monthly_contribution,
            estimated_months_to_goal=item.estimated_months_to_goal,
            estimated_completion_date=item.estimated_completion_date,
            estimated_duration=format_duration(item.estimated_months_to_goal),
        )
        for item in progress
    ]
    return SavingsGoalsResponse(
        goals=goals,
        summary=GoalSummaryResponse.model_validate(summarize_goals(progress)),
    )


@app.post("/projections", response_model=ProjectionResponse)
def projections(payload: ProjectionRequest) -> ProjectionResponse:
    snapshot = _snapshot_or_400(payload.household)
    try:
        snapshot = apply_adjustments(
            snapshot,
            [
                InstrumentAdjustment(
                    record_type=adjustment.record_type,
                    record_id=adjustment.record_id,
                    changes=adjustment.changes,
                )
                for adjustment in payload.adjustments
            ],
        )
        projection = project(
            BaselineState.from_snapshot(snapshot),
            payload.assumptions.to_assumptions(),
            start_date=payload.start_date,
            months=payload.months,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ProjectionResponse.model_validate(projection)


@app.post("/scenarios/projections", response_model=ProjectionResponse)
def scenario_projection(payload: ScenarioProjectionRequest) -> ProjectionResponse:
    snapshot = _snapshot_or_400(payload.household)
    try:
        projection = project_scenario(
            BaselineState.from_snapshot(snapshot),
            payload.scenario.to_scenario(),
            payload.assumptions.to_assumptions(),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ProjectionResponse.model_validate(projection)


@app.post("/scenarios/compare", response_model=ScenarioComparisonResponse)
def scenario_compare(payload: ScenarioCompareRequest) -> ScenarioComparisonResponse:
    snapshot = _snapshot_or_400(payload.household)
    baseline_state = BaselineState.from_snapshot(snapshot)
    try:
        assumptions = payload.assumptions.to_assumptions()
        baseline = project_scenario(baseline_state, payload.baseline.to_scenario(), assumptions)
        comparison = project_scenario(
            baseline_state, payload.comparison.to_scenario(), assumptions
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ScenarioComparisonResponse.model_validate(compare_projections(baseline, comparison))


@app.post("/preferences", response_model=PreferencesResponse)
def preferences(payload: PreferencesPayload) -> PreferencesResponse:
    try:
        normalized = normalize_preferences(payload.locale, payload.currency)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return PreferencesResponse.model_validate(normalized)
