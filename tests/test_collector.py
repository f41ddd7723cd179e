"""Tests for the activity collector."""

from datetime import date

from carbonledger.collector import ActivityCollector
from carbonledger.models import ReportingRecord, ScopeSelection


class TestActivityCollector:

    def test_category_then_id_order(self, repository, reporting_record, make_activity):
        for activity in (
            make_activity("commuting", id=1),
            make_activity("fuel", id=5),
            make_activity("electricity", id=2),
            make_activity("fuel", id=3),
            make_activity("refrigerant", id=4, quantity_leaked=1),
            make_activity("vehicle", id=6, mileage=10),
        ):
            repository.add_activity(activity)

        collected = ActivityCollector(repository).collect(reporting_record)

        assert [(a.category, a.id) for a in collected] == [
            ("fuel", 3),
            ("fuel", 5),
            ("vehicle", 6),
            ("refrigerant", 4),
            ("electricity", 2),
            ("commuting", 1),
        ]

    def test_scope_selection_filters_categories(self, repository, make_activity):
        record = repository.add_reporting_record(
            ReportingRecord(
                id="rec-s2", organization_id="org-1",
                period_start=date(2026, 1, 1), period_end=date(2026, 2, 1),
                scope_selection=ScopeSelection(scope1=False, scope3=False),
            )
        )
        for category in ("fuel", "vehicle", "refrigerant", "electricity", "commuting"):
            extra = {"mileage": 1} if category == "vehicle" else {}
            repository.add_activity(make_activity(category, reporting_record_id="rec-s2", **extra))

        collected = ActivityCollector(repository).collect(record)

        assert [a.category for a in collected] == ["electricity"]

    def test_other_records_are_not_collected(self, repository, reporting_record, make_activity):
        repository.add_activity(make_activity("fuel", reporting_record_id="elsewhere"))
        assert ActivityCollector(repository).collect(reporting_record) == []
