"""Tests for scope, category and period comparisons."""

from datetime import date
from decimal import Decimal

from carbonledger.comparison import ComparisonAnalyzer
from carbonledger.models import CalculationResult


def _result(fuel="0", electricity="0", commuting="0", refrigerants="0"):
    fuel, electricity, commuting, refrigerants = (
        Decimal(fuel), Decimal(electricity), Decimal(commuting), Decimal(refrigerants)
    )
    return CalculationResult(
        reporting_record_id="r",
        total_co2e=fuel + electricity + commuting + refrigerants,
        total_scope1_co2e=fuel + refrigerants,
        total_scope2_co2e=electricity,
        total_scope3_co2e=commuting,
        breakdown_by_category={
            "fuel": fuel,
            "vehicles": Decimal(0),
            "refrigerants": refrigerants,
            "electricity": electricity,
            "commuting": commuting,
        },
    )


class TestByScope:

    def test_shares(self):
        items = ComparisonAnalyzer().by_scope([_result(fuel="50", electricity="30", commuting="20")])
        assert [i.label for i in items] == ["Scope 1", "Scope 2", "Scope 3"]
        assert [i.percentage for i in items] == [Decimal("50.00"), Decimal("30.00"), Decimal("20.00")]

    def test_sums_across_results(self):
        items = ComparisonAnalyzer().by_scope([_result(fuel="1"), _result(fuel="2", electricity="1")])
        assert items[0].value == Decimal("3")
        assert items[0].percentage == Decimal("75.00")

    def test_zero_total(self):
        items = ComparisonAnalyzer().by_scope([_result()])
        assert all(i.percentage == 0 for i in items)

    def test_no_results(self):
        assert [i.value for i in ComparisonAnalyzer().by_scope([])] == [0, 0, 0]


class TestByCategory:

    def test_largest_first_and_zero_dropped(self):
        items = ComparisonAnalyzer().by_category(
            [_result(fuel="10", electricity="60", refrigerants="30")]
        )
        assert [i.label for i in items] == ["electricity", "refrigerants", "fuel"]
        assert [i.percentage for i in items] == [Decimal("60.00"), Decimal("30.00"), Decimal("10.00")]

    def test_rounding_of_shares(self):
        items = ComparisonAnalyzer().by_category([_result(fuel="1", electricity="2")])
        assert [i.percentage for i in items] == [Decimal("66.67"), Decimal("33.33")]


class TestByPeriod:

    def test_month_over_month_change(self):
        pairs = [
            (date(2026, 1, 1), _result(fuel="100")),
            (date(2026, 2, 1), _result(fuel="150")),
            (date(2026, 3, 1), _result(fuel="120")),
        ]
        changes = ComparisonAnalyzer().by_period(pairs)
        assert [c.month for c in changes] == ["2026-01", "2026-02", "2026-03"]
        assert changes[0].change is None
        assert changes[1].change == Decimal("50")
        assert changes[1].change_percentage == Decimal("50.00")
        assert changes[2].change == Decimal("-30")
        assert changes[2].change_percentage == Decimal("-20.00")

    def test_change_from_zero_has_no_percentage(self):
        pairs = [(date(2026, 1, 1), _result()), (date(2026, 2, 1), _result(fuel="5"))]
        changes = ComparisonAnalyzer().by_period(pairs)
        assert changes[1].change == Decimal("5")
        assert changes[1].change_percentage is None

    def test_same_month_is_merged(self):
        pairs = [(date(2026, 1, 1), _result(fuel="1")), (date(2026, 1, 16), _result(fuel="2"))]
        changes = ComparisonAnalyzer().by_period(pairs)
        assert len(changes) == 1
        assert changes[0].total_co2e == Decimal("3")
