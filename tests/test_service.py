"""Tests for the emissions service facade."""

from datetime import date
from decimal import Decimal

import pytest

from carbonledger.exceptions import EmptySeries, RecordNotFound
from carbonledger.models import ReportingRecord
from carbonledger.service import EmissionsService, months_before


@pytest.fixture
def service(repository, registry, config):
    return EmissionsService(repository, registry=registry, config=config)


@pytest.fixture
def year_of_records(repository, make_activity):
    """Six monthly records for org-1; diesel use grows by 100 L a month."""
    for month in range(1, 7):
        record_id = f"rec-2026-{month:02d}"
        repository.add_reporting_record(
            ReportingRecord(
                id=record_id,
                organization_id="org-1",
                period_start=date(2026, month, 1),
                period_end=date(2026, month + 1, 1),
                employee_count=10,
            )
        )
        repository.add_activity(
            make_activity("fuel", reporting_record_id=record_id, quantity=Decimal(100 * month))
        )
    return repository


class TestMonthsBefore:

    @pytest.mark.parametrize("anchor,months,expected", [
        (date(2026, 7, 15), 6, date(2026, 1, 15)),
        (date(2026, 3, 31), 1, date(2026, 2, 28)),
        (date(2026, 1, 10), 12, date(2025, 1, 10)),
        (date(2026, 2, 1), 3, date(2025, 11, 1)),
    ])
    def test_calendar_arithmetic(self, anchor, months, expected):
        assert months_before(anchor, months) == expected


class TestCalculate:

    def test_delegates_to_engine(self, service, year_of_records):
        outcome = service.calculate("rec-2026-01")
        assert outcome.result.total_co2e == Decimal("269.0000")

    def test_unknown_record(self, service):
        with pytest.raises(RecordNotFound):
            service.calculate("nope")


class TestTrends:

    def test_only_calculated_records_in_range(self, service, year_of_records):
        for month in (2, 3, 4, 5, 6):
            service.calculate(f"rec-2026-{month:02d}")

        report = service.trends("org-1", months_back=3, as_of=date(2026, 6, 15))

        # Since 2026-03-15: April, May and June
        assert [p.month for p in report.series] == ["2026-04", "2026-05", "2026-06"]
        assert report.statistics.min == Decimal("1076.0000")
        assert report.statistics.max == Decimal("1614.0000")
        assert report.moving_average[-1] == Decimal("1345.0000")

    def test_nothing_calculated(self, service, year_of_records):
        with pytest.raises(EmptySeries):
            service.trends("org-1", as_of=date(2026, 6, 15))

    def test_other_organization_not_included(self, service, year_of_records):
        service.calculate("rec-2026-01")
        with pytest.raises(EmptySeries):
            service.trends("org-2", as_of=date(2026, 6, 15))

    def test_months_back_must_be_positive(self, service):
        with pytest.raises(ValueError):
            service.trends("org-1", months_back=0)


class TestRecalculateOrganization:

    def test_failures_are_isolated(self, service, year_of_records, make_activity):
        year_of_records.replace_activities(
            "rec-2026-03", [make_activity("fuel", reporting_record_id="rec-2026-03", unit="furlong")]
        )

        summary = service.recalculate_organization("org-1")

        assert summary.succeeded == 5
        assert summary.failed == 1
        assert set(summary.failures) == {"rec-2026-03"}
        assert all(outcome.forced for outcome in summary.outcomes.values())
        data = summary.to_dict()
        assert data["failures"]["rec-2026-03"]["error_code"] == "CL_CALC_CALCULATION_FAILED"
        assert data["results"]["rec-2026-01"]["total_co2e"] == "269.0000"


class TestCompare:

    def test_by_scope(self, service, year_of_records):
        service.calculate("rec-2026-01")
        items = service.compare("org-1", by="scope")
        assert items[0].label == "Scope 1"
        assert items[0].percentage == Decimal("100.00")

    def test_by_period(self, service, year_of_records):
        service.calculate("rec-2026-01")
        service.calculate("rec-2026-02")
        changes = service.compare("org-1", by="period")
        assert [c.month for c in changes] == ["2026-01", "2026-02"]
        assert changes[1].change_percentage == Decimal("100.00")

    def test_by_category_with_window(self, service, year_of_records):
        service.calculate("rec-2026-01")
        service.calculate("rec-2026-06")
        items = service.compare("org-1", by="category", months_back=2, as_of=date(2026, 6, 20))
        assert [(i.label, i.value) for i in items] == [("fuel", Decimal("1614.0000"))]

    def test_unknown_mode(self, service):
        with pytest.raises(ValueError):
            service.compare("org-1", by="planet")
