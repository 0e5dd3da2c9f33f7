import unittest
from datetime import date
from decimal import Decimal

from household_finance.records import SavingsAccount, SavingsGoal, SavingsGoalAccountLink
from household_finance.savings_goals import (
    calculate_months_to_goal,
    calculate_progress_percentage,
    calculate_remaining_amount,
    enrich_savings_goal,
    enrich_savings_goals,
    format_duration,
    summarize_goals,
)


def make_goal(goal_id: int = 1, target: str = "10000", **kwargs) -> SavingsGoal:
    return SavingsGoal(
        id=goal_id,
        household_id=1,
        name=f"Goal {goal_id}",
        target_amount=Decimal(target),
        **kwargs,
    )


class SavingsGoalTests(unittest.TestCase):
    def test_months_to_goal(self) -> None:
        self.assertIsNone(calculate_months_to_goal(Decimal("400"), Decimal("1000"), Decimal("0")))
        self.assertIsNone(calculate_months_to_goal(Decimal("400"), Decimal("1000"), Decimal("-5")))
        self.assertEqual(calculate_months_to_goal(Decimal("1000"), Decimal("1000"), Decimal("50")), 0)
        self.assertEqual(calculate_months_to_goal(Decimal("0"), Decimal("600"), Decimal("200")), 3)
        self.assertEqual(calculate_months_to_goal(Decimal("100"), Decimal("1000"), Decimal("200")), 5)

    def test_progress_is_clamped(self) -> None:
        self.assertEqual(calculate_progress_percentage(Decimal("250"), Decimal("1000")), Decimal("25"))
        self.assertEqual(calculate_progress_percentage(Decimal("1500"), Decimal("1000")), Decimal("100"))
        self.assertEqual(calculate_progress_percentage(Decimal("0"), Decimal("0")), Decimal("0"))
        self.assertEqual(calculate_progress_percentage(Decimal("10"), Decimal("0")), Decimal("100"))
        self.assertEqual(calculate_remaining_amount(Decimal("1500"), Decimal("1000")), Decimal("0"))
        self.assertEqual(calculate_remaining_amount(Decimal("400"), Decimal("1000")), Decimal("600"))

    def test_enrich_uses_linked_balances_and_surplus_share(self) -> None:
        accounts = [
            SavingsAccount(id=1, person_id=1, current_balance=Decimal("2000")),
            SavingsAccount(id=2, person_id=1, current_balance=Decimal("1000")),
        ]

        progress = enrich_savings_goal(
            make_goal(),
            accounts,
            monthly_surplus=Decimal("1000"),
            today=date(2024, 1, 31),
        )

        self.assertEqual(progress.current_amount, Decimal("3000"))
        self.assertEqual(progress.progress_percentage, Decimal("30"))
        self.assertEqual(progress.remaining_amount, Decimal("7000"))
        self.assertEqual(progress.monthly_contribution, Decimal("500"))
        self.assertEqual(progress.estimated_months_to_goal, 14)
        self.assertEqual(progress.estimated_completion_date, date(2025, 3, 31))
        self.assertEqual(progress.linked_account_ids, (1, 2))

    def test_explicit_contribution_overrides_surplus(self) -> None:
        progress = enrich_savings_goal(
            make_goal(target="1200"),
            [],
            monthly_contribution=Decimal("100"),
            monthly_surplus=Decimal("5000"),
            today=date(2024, 6, 15),
        )

        self.assertEqual(progress.monthly_contribution, Decimal("100"))
        self.assertEqual(progress.estimated_months_to_goal, 12)
        self.assertEqual(progress.estimated_completion_date, date(2025, 6, 15))

    def test_negative_surplus_leaves_goal_unreachable(self) -> None:
        progress = enrich_savings_goal(
            make_goal(),
            [],
            monthly_surplus=Decimal("-300"),
            today=date(2024, 1, 1),
        )

        self.assertIsNone(progress.estimated_months_to_goal)
        self.assertIsNone(progress.estimated_completion_date)

    def test_completed_goal_needs_no_more_months(self) -> None:
        progress = enrich_savings_goal(
            make_goal(is_completed=True),
            [],
            monthly_surplus=Decimal("0"),
            today=date(2024, 1, 1),
        )

        self.assertEqual(progress.estimated_months_to_goal, 0)
        self.assertEqual(progress.estimated_completion_date, date(2024, 1, 1))

    def test_enrich_many_resolves_links(self) -> None:
        goals = [make_goal(1, "5000"), make_goal(2, "2000")]
        accounts = [
            SavingsAccount(id=10, person_id=1, current_balance=Decimal("1000")),
            SavingsAccount(id=11, person_id=2, current_balance=Decimal("500")),
        ]
        links = [
            SavingsGoalAccountLink(goal_id=1, savings_account_id=10),
            SavingsGoalAccountLink(goal_id=1, savings_account_id=10),
            SavingsGoalAccountLink(goal_id=1, savings_account_id=99),
            SavingsGoalAccountLink(goal_id=2, savings_account_id=11),
        ]

        progress = enrich_savings_goals(
            goals,
            links,
            accounts,
            monthly_surplus=Decimal("200"),
            today=date(2024, 1, 1),
        )

        self.assertEqual([item.goal.id for item in progress], [1, 2])
        self.assertEqual(progress[0].current_amount, Decimal("1000"))
        self.assertEqual(progress[0].linked_account_ids, (10,))
        self.assertEqual(progress[1].current_amount, Decimal("500"))
        self.assertEqual(progress[1].estimated_months_to_goal, 15)

    def test_summary_counts_active_goals_only(self) -> None:
        progress = [
            enrich_savings_goal(
                make_goal(1, "4000"),
                [SavingsAccount(id=1, person_id=1, current_balance=Decimal("1000"))],
                today=date(2024, 1, 1),
            ),
            enrich_savings_goal(make_goal(2, "1000"), [], today=date(2024, 1, 1)),
            enrich_savings_goal(make_goal(3, "9000", is_completed=True), [], today=date(2024, 1, 1)),
        ]

        summary = summarize_goals(progress)

        self.assertEqual(summary.total_target_amount, Decimal("5000"))
        self.assertEqual(summary.total_current_amount, Decimal("1000"))
        self.assertEqual(summary.total_progress, Decimal("20"))
        self.assertEqual(summary.active_count, 2)
        self.assertEqual(summary.completed_count, 1)

    def test_format_duration(self) -> None:
        self.assertEqual(format_duration(14), "1 year and 2 months")
        self.assertEqual(format_duration(24), "2 years")
        self.assertEqual(format_duration(3), "3 months")
        self.assertEqual(format_duration(1), "1 month")
        self.assertEqual(format_duration(0), "0 months")
        self.assertIsNone(format_duration(None))


if __name__ == "__main__":
    unittest.main()
