import unittest
from datetime import date
from decimal import Decimal

from structlog.testing import capture_logs

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
    weighted_interest_rate,
)
from household_finance.records import HouseholdSnapshot, IncomeSource, Loan, Person, SavingsAccount

FLAT = ProjectionAssumptions(
    income_growth_rate=Decimal("0"),
    expense_growth_rate=Decimal("0"),
    savings_interest_rate=Decimal("0"),
    investment_return_rate=Decimal("0"),
)


def make_baseline(**overrides) -> BaselineState:
    values = {
        "monthly_income": Decimal("5000"),
        "monthly_expenses": Decimal("3000"),
        "monthly_debt_payment": Decimal("0"),
        "savings": Decimal("10000"),
        "investments": Decimal("0"),
        "debt": Decimal("0"),
    }
    values.update(overrides)
    return BaselineState(**values)


class ProjectionEngineTests(unittest.TestCase):
    def test_surplus_split_and_debt_repayment(self) -> None:
        baseline = make_baseline(monthly_debt_payment=Decimal("500"), debt=Decimal("1000"))

        projection = project(baseline, FLAT, start_date=date(2025, 1, 15), months=3)

        self.assertEqual(len(projection.snapshots), 4)
        self.assertEqual(projection.snapshots[0].net_cash_flow, Decimal("1500"))
        self.assertEqual(projection.snapshots[1].debt, Decimal("500"))
        self.assertEqual(projection.snapshots[1].savings, Decimal("11050"))
        self.assertEqual(projection.snapshots[1].investments, Decimal("450"))
        self.assertEqual(projection.snapshots[3].monthly_debt_payment, Decimal("0"))
        self.assertEqual(projection.snapshots[3].net_cash_flow, Decimal("2000"))
        final = projection.snapshots[-1]
        self.assertEqual(final.date, date(2025, 4, 15))
        self.assertEqual(final.savings, Decimal("13500"))
        self.assertEqual(final.investments, Decimal("1500"))
        self.assertEqual(final.debt, Decimal("0"))

        summary = projection.summary
        self.assertEqual(summary.start_net_worth, Decimal("9000"))
        self.assertEqual(summary.end_net_worth, Decimal("15000"))
        self.assertEqual(summary.total_growth, Decimal("6000"))
        self.assertEqual(summary.total_debt_paid, Decimal("1000"))
        self.assertEqual(summary.total_interest_paid, Decimal("0"))
        self.assertEqual(summary.total_savings_accumulated, Decimal("5000"))
        self.assertEqual(summary.debt_free_date, date(2025, 3, 15))
        self.assertEqual(
            [(milestone.type, milestone.month) for milestone in projection.milestones],
            [("debt_free", 2)],
        )

    def test_growth_applies_every_twelfth_month(self) -> None:
        assumptions = ProjectionAssumptions(
            income_growth_rate=Decimal("12"),
            expense_growth_rate=Decimal("0"),
            savings_interest_rate=Decimal("0"),
            investment_return_rate=Decimal("0"),
        )

        projection = project(make_baseline(), assumptions, start_date=date(2025, 1, 1), months=12)

        self.assertEqual(projection.snapshots[11].monthly_income, Decimal("5000"))
        self.assertEqual(projection.snapshots[12].monthly_income, Decimal("5600"))

    def test_debt_interest_is_paid_first(self) -> None:
        baseline = make_baseline(
            monthly_debt_payment=Decimal("500"),
            debt=Decimal("12000"),
            debt_interest_rate=Decimal("12"),
        )

        projection = project(baseline, FLAT, start_date=date(2025, 1, 1), months=1)

        self.assertEqual(projection.snapshots[1].interest_paid, Decimal("120"))
        self.assertEqual(projection.snapshots[1].debt, Decimal("11620"))

    def test_deficit_draws_savings_then_investments_then_borrows(self) -> None:
        baseline = make_baseline(
            monthly_income=Decimal("1000"),
            savings=Decimal("1500"),
            investments=Decimal("1000"),
        )

        projection = project(baseline, FLAT, start_date=date(2025, 1, 1), months=2)

        first, second = projection.snapshots[1], projection.snapshots[2]
        self.assertEqual(first.savings, Decimal("0"))
        self.assertEqual(first.investments, Decimal("500"))
        self.assertEqual(first.debt, Decimal("0"))
        self.assertEqual(second.investments, Decimal("0"))
        self.assertEqual(second.debt, Decimal("1500"))

    def test_net_worth_milestone(self) -> None:
        projection = project(
            make_baseline(savings=Decimal("49000")),
            FLAT,
            start_date=date(2025, 1, 1),
            months=1,
        )

        self.assertEqual(len(projection.milestones), 1)
        milestone = projection.milestones[0]
        self.assertEqual(milestone.type, "net_worth_milestone")
        self.assertEqual(milestone.amount, Decimal("50000"))
        self.assertEqual(milestone.month, 1)

    def test_negative_months_rejected(self) -> None:
        with self.assertRaises(ValueError):
            project(make_baseline(), FLAT, start_date=date(2025, 1, 1), months=-1)

    def test_scenario_modifications(self) -> None:
        scenario = Scenario(
            name="Raise and bonus",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 6, 1),
            modifications=(
                ScenarioModification(
                    type="income_change",
                    effective_date=date(2025, 4, 1),
                    end_date=date(2025, 5, 1),
                    amount=Decimal("500"),
                ),
                ScenarioModification(
                    type="new_investment",
                    effective_date=date(2025, 3, 1),
                    amount=Decimal("1000"),
                    frequency="one_time",
                    description="Index fund",
                ),
            ),
        )

        projection = project_scenario(make_baseline(), scenario, FLAT)

        self.assertEqual(projection.scenario_name, "Raise and bonus")
        self.assertEqual(len(projection.snapshots), 6)
        incomes = [snapshot.monthly_income for snapshot in projection.snapshots]
        self.assertEqual(
            incomes,
            [Decimal(v) for v in ("5000", "5000", "5000", "5500", "5500", "5000")],
        )
        self.assertEqual(projection.snapshots[2].net_cash_flow, Decimal("1000"))
        self.assertEqual(projection.snapshots[2].investments, Decimal("1900"))
        custom = [m for m in projection.milestones if m.type == "custom"]
        self.assertEqual([(m.month, m.title) for m in custom], [(2, "Index fund")])

    def test_unknown_modifications_are_ignored(self) -> None:
        scenario = Scenario(
            name="Noise",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 4, 1),
            modifications=(
                ScenarioModification(
                    type="lottery_win",
                    effective_date=date(2025, 2, 1),
                    amount=Decimal("1000000"),
                ),
                ScenarioModification(
                    type="new_income",
                    effective_date=date(2025, 2, 1),
                    amount=Decimal("100"),
                    frequency="hourly",
                ),
            ),
        )
        plain = Scenario(name="Plain", start_date=date(2025, 1, 1), end_date=date(2025, 4, 1))

        noisy = project_scenario(make_baseline(), scenario, FLAT)
        baseline = project_scenario(make_baseline(), plain, FLAT)

        self.assertEqual(noisy.snapshots, baseline.snapshots)

    def test_loan_payoff_clears_debt(self) -> None:
        scenario = Scenario(
            name="Pay off",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 3, 1),
            modifications=(
                ScenarioModification(
                    type="loan_payoff",
                    effective_date=date(2025, 2, 1),
                    frequency="one_time",
                ),
            ),
        )
        baseline = make_baseline(
            savings=Decimal("20000"),
            debt=Decimal("10000"),
            monthly_debt_payment=Decimal("500"),
        )

        projection = project_scenario(baseline, scenario, FLAT)

        self.assertEqual(projection.snapshots[1].debt, Decimal("0"))
        self.assertEqual(projection.snapshots[1].cumulative_debt_paid, Decimal("10000"))
        self.assertEqual(projection.summary.debt_free_date, date(2025, 2, 1))

    def test_scenario_dates_must_be_ordered(self) -> None:
        scenario = Scenario(name="Backwards", start_date=date(2025, 6, 1), end_date=date(2025, 1, 1))
        with self.assertRaises(ValueError):
            project_scenario(make_baseline(), scenario, FLAT)

    def test_compare_projections(self) -> None:
        baseline = make_baseline(
            savings=Decimal("20000"),
            debt=Decimal("10000"),
            monthly_debt_payment=Decimal("500"),
            debt_interest_rate=Decimal("12"),
        )
        keep = Scenario(name="Keep loan", start_date=date(2025, 1, 1), end_date=date(2025, 6, 1))
        pay = Scenario(
            name="Pay off",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 6, 1),
            modifications=(
                ScenarioModification(
                    type="loan_payoff",
                    effective_date=date(2025, 2, 1),
                    frequency="one_time",
                ),
            ),
        )
        first = project_scenario(baseline, keep, FLAT)
        second = project_scenario(baseline, pay, FLAT)

        comparison = compare_projections(first, second)

        self.assertEqual(comparison.baseline_name, "Keep loan")
        self.assertEqual(comparison.comparison_name, "Pay off")
        self.assertEqual(len(comparison.differences), len(first.snapshots))
        self.assertGreater(comparison.total_interest_savings, Decimal("0"))
        self.assertEqual(
            comparison.final_net_worth_difference,
            second.summary.end_net_worth - first.summary.end_net_worth,
        )

    def test_weighted_interest_rate(self) -> None:
        rate = weighted_interest_rate(
            [(Decimal("1000"), Decimal("10")), (Decimal("3000"), Decimal("2"))]
        )
        self.assertEqual(rate, Decimal("4"))
        self.assertIsNone(weighted_interest_rate([]))
        self.assertIsNone(weighted_interest_rate([(Decimal("0"), Decimal("5"))]))

    def test_baseline_from_snapshot(self) -> None:
        snapshot = HouseholdSnapshot(
            persons=[Person(id=1, household_id=1, name="Alex")],
            income_sources=[IncomeSource(id=1, person_id=1, amount=Decimal("4000"))],
            loans=[
                Loan(
                    id=1,
                    person_id=1,
                    current_balance=Decimal("10000"),
                    monthly_payment=Decimal("200"),
                    interest_rate=Decimal("5"),
                ),
                Loan(
                    id=2,
                    person_id=1,
                    current_balance=Decimal("30000"),
                    monthly_payment=Decimal("300"),
                    interest_rate=Decimal("3"),
                ),
            ],
            savings_accounts=[
                SavingsAccount(id=1, person_id=1, current_balance=Decimal("5000")),
            ],
        )

        baseline = BaselineState.from_snapshot(snapshot)

        self.assertEqual(baseline.monthly_income, Decimal("4000"))
        self.assertEqual(baseline.monthly_debt_payment, Decimal("500"))
        self.assertEqual(baseline.debt, Decimal("40000"))
        self.assertEqual(baseline.debt_interest_rate, Decimal("3.5"))
        self.assertIsNone(baseline.savings_interest_rate)
        self.assertEqual(baseline.net_worth, Decimal("-35000"))

    def test_apply_adjustments(self) -> None:
        snapshot = HouseholdSnapshot(
            income_sources=[
                IncomeSource(id=1, person_id=1, amount=Decimal("5000")),
                IncomeSource(id=2, person_id=1, amount=Decimal("700")),
            ],
        )

        adjusted = apply_adjustments(
            snapshot,
            [InstrumentAdjustment(record_type="income", record_id=1, changes={"amount": "6000"})],
        )

        self.assertEqual(adjusted.income_sources[0].amount, Decimal("6000"))
        self.assertEqual(adjusted.income_sources[1].amount, Decimal("700"))
        self.assertEqual(snapshot.income_sources[0].amount, Decimal("5000"))

        with self.assertRaises(ValueError):
            apply_adjustments(
                snapshot,
                [InstrumentAdjustment(record_type="car", record_id=1, changes={})],
            )
        with self.assertRaises(ValueError):
            apply_adjustments(
                snapshot,
                [InstrumentAdjustment(record_type="income", record_id=1, changes={"name": "x"})],
            )

    def test_opening_snapshot_without_debt_ignores_payment(self) -> None:
        baseline = make_baseline(monthly_debt_payment=Decimal("500"))

        projection = project(baseline, FLAT, start_date=date(2025, 1, 1), months=0)

        opening = projection.snapshots[0]
        self.assertEqual(opening.monthly_debt_payment, Decimal("0"))
        self.assertEqual(opening.net_cash_flow, Decimal("2000"))

    def test_adjustments_are_validated(self) -> None:
        snapshot = HouseholdSnapshot(
            income_sources=[IncomeSource(id=1, person_id=1, amount=Decimal("5000"))],
            loans=[
                Loan(
                    id=1,
                    person_id=1,
                    current_balance=Decimal("1000"),
                    monthly_payment=Decimal("100"),
                ),
            ],
        )
        rejected = [
            ("income", {"frequency": Decimal("12")}),
            ("income", {"is_active": "yes"}),
            ("income", {"amount": Decimal("-1")}),
            ("income", {"amount": None}),
            ("income", {"amount": "plenty"}),
            ("loan", {"interest_rate": Decimal("500")}),
            ("loan", {"monthly_payment": True}),
        ]
        for record_type, changes in rejected:
            with self.subTest(record_type=record_type, changes=changes):
                with self.assertRaises(ValueError):
                    apply_adjustments(
                        snapshot,
                        [InstrumentAdjustment(record_type=record_type, record_id=1, changes=changes)],
                    )

        adjusted = apply_adjustments(
            snapshot,
            [
                InstrumentAdjustment(
                    record_type="income",
                    record_id=1,
                    changes={"frequency": " Yearly ", "is_active": False},
                ),
                InstrumentAdjustment(
                    record_type="loan",
                    record_id=1,
                    changes={"interest_rate": "4.5"},
                ),
            ],
        )
        self.assertEqual(adjusted.income_sources[0].frequency, "yearly")
        self.assertFalse(adjusted.income_sources[0].is_active)
        self.assertEqual(adjusted.loans[0].interest_rate, Decimal("4.5"))

    def test_adjustments_for_missing_records_are_still_validated(self) -> None:
        with self.assertRaises(ValueError):
            apply_adjustments(
                HouseholdSnapshot(),
                [InstrumentAdjustment(record_type="income", record_id=99, changes={"amount": "-5"})],
            )

    def test_ignored_modifications_are_logged(self) -> None:
        scenario = Scenario(
            name="Noise",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 2, 1),
            modifications=(
                ScenarioModification(
                    type="lottery_win",
                    effective_date=date(2025, 2, 1),
                    amount=Decimal("1000000"),
                ),
                ScenarioModification(
                    type="new_income",
                    effective_date=date(2025, 2, 1),
                    amount=Decimal("100"),
                    frequency="hourly",
                ),
            ),
        )

        with capture_logs() as logs:
            project_scenario(make_baseline(), scenario, FLAT)

        warnings = [entry for entry in logs if entry["log_level"] == "warning"]
        self.assertEqual(
            [(entry["event"], entry["type"]) for entry in warnings],
            [
                ("unknown_modification_type", "lottery_win"),
                ("unknown_modification_frequency", "new_income"),
            ],
        )
        self.assertEqual(warnings[1]["frequency"], "hourly")


if __name__ == "__main__":
    unittest.main()
