"""Tests for the SQLAlchemy repository."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from carbonledger.calculation_engine import CalculationEngine
from carbonledger.db import CalculationResultRow, SqlAlchemyRepository, build_engine, init_db
from carbonledger.exceptions import CalculationFailed, RepositoryError
from carbonledger.models import (
    CommuteSurveyEntry,
    ElectricityEntry,
    FuelEntry,
    ReportingRecord,
    ScopeSelection,
    VehicleEntry,
)


@pytest.fixture
def sql_repository(sqlite_engine):
    repo = SqlAlchemyRepository(sqlite_engine)
    repo.add_reporting_record(
        ReportingRecord(
            id="rec-1",
            organization_id="org-1",
            period_start=date(2026, 1, 1),
            period_end=date(2026, 2, 1),
            employee_count=4,
        )
    )
    return repo


def _result_count(engine):
    with sessionmaker(bind=engine)() as session:
        return session.scalar(select(func.count()).select_from(CalculationResultRow))


class TestReportingRecords:

    def test_round_trip(self, sql_repository):
        record = sql_repository.get_reporting_record("rec-1")
        assert record.organization_id == "org-1"
        assert record.period_start == date(2026, 1, 1)
        assert record.scope_selection is None

    def test_scope_selection_round_trip(self, sql_repository):
        sql_repository.add_reporting_record(
            ReportingRecord(
                id="rec-2", organization_id="org-1",
                period_start=date(2026, 2, 1), period_end=date(2026, 3, 1),
                scope_selection=ScopeSelection(scope3=False),
            )
        )
        selection = sql_repository.get_reporting_record("rec-2").scope_selection
        assert selection == ScopeSelection(scope1=True, scope2=True, scope3=False)

    def test_missing(self, sql_repository):
        assert sql_repository.get_reporting_record("nope") is None

    def test_list_by_organization_and_since(self, sql_repository):
        for month in (3, 2):
            sql_repository.add_reporting_record(
                ReportingRecord(
                    id=f"rec-{month}", organization_id="org-1",
                    period_start=date(2026, month, 1), period_end=date(2026, month + 1, 1),
                )
            )
        sql_repository.add_reporting_record(
            ReportingRecord(
                id="other", organization_id="org-2",
                period_start=date(2026, 1, 1), period_end=date(2026, 2, 1),
            )
        )
        ids = [r.id for r in sql_repository.list_reporting_records("org-1")]
        assert ids == ["rec-1", "rec-2", "rec-3"]
        since = sql_repository.list_reporting_records("org-1", since=date(2026, 2, 1))
        assert [r.id for r in since] == ["rec-2", "rec-3"]

    def test_duplicate_id_is_repository_error(self, sql_repository):
        with pytest.raises(RepositoryError):
            sql_repository.add_reporting_record(
                ReportingRecord(
                    id="rec-1", organization_id="org-1",
                    period_start=date(2026, 1, 1), period_end=date(2026, 2, 1),
                )
            )


class TestActivities:

    def test_every_variant_round_trips(self, sql_repository):
        sql_repository.add_activity(
            FuelEntry(id=1, reporting_record_id="rec-1", fuel_type="diesel", quantity=Decimal("12.5"), unit="liters")
        )
        sql_repository.add_activity(
            VehicleEntry(id=1, reporting_record_id="rec-1", vehicle_type="van", fuel_type="diesel",
                         mileage=Decimal("300"))
        )
        sql_repository.add_activity(
            ElectricityEntry(id=1, reporting_record_id="rec-1", quantity=Decimal("500"),
                             billing_period_start=date(2026, 1, 1), billing_period_end=date(2026, 1, 31))
        )
        sql_repository.add_activity(
            CommuteSurveyEntry(id=1, reporting_record_id="rec-1", transport_mode="jeepney",
                               employee_count=3, avg_distance=Decimal("8"), days_per_week=6, wfh_days=1)
        )

        activities = sql_repository.list_activity_records("rec-1")

        assert [a.category for a in activities] == ["fuel", "vehicle", "electricity", "commuting"]
        fuel, vehicle, electricity, commuting = activities
        assert fuel.quantity == Decimal("12.5")
        assert vehicle.fuel_consumed is None and vehicle.mileage == Decimal("300")
        assert electricity.billing_period_end == date(2026, 1, 31)
        assert electricity.grid is None
        assert commuting.wfh_days == 1

    def test_electricity_grid_round_trips(self, sql_repository):
        sql_repository.add_activity(
            ElectricityEntry(id=2, reporting_record_id="rec-1", grid="visayas_grid", quantity=Decimal("5"),
                             billing_period_start=date(2026, 1, 1), billing_period_end=date(2026, 1, 31))
        )
        assert sql_repository.list_activity_records("rec-1")[0].grid == "visayas_grid"

    def test_activity_for_unknown_record_rejected(self, sql_repository):
        with pytest.raises(RepositoryError):
            sql_repository.add_activity(
                FuelEntry(id=7, reporting_record_id="ghost", fuel_type="diesel", quantity=1, unit="l")
            )


class TestCalculationResults:

    @pytest.fixture
    def sql_engine(self, sql_repository, registry, config):
        return CalculationEngine(sql_repository, registry=registry, config=config)

    def test_calculate_and_read_back(self, sql_repository, sql_engine):
        sql_repository.add_activity(
            FuelEntry(id=1, reporting_record_id="rec-1", fuel_type="diesel", quantity=Decimal("100"), unit="liters")
        )
        outcome = sql_engine.calculate("rec-1")

        stored = sql_repository.get_calculation_result("rec-1")
        assert stored.total_co2e == Decimal("269.0000")
        assert stored.breakdown_by_category["fuel"] == Decimal("269.0000")
        assert stored.emissions_per_employee == Decimal("67.2500")
        assert stored.emission_factors_used == {"fuel/diesel/liters": Decimal("2.69")}
        assert stored.provenance_hash == outcome.result.provenance_hash
        assert stored.persisted_values() == outcome.result.persisted_values()

    def test_upsert_keeps_a_single_row(self, sql_repository, sql_engine, sqlite_engine):
        sql_repository.add_activity(
            FuelEntry(id=1, reporting_record_id="rec-1", fuel_type="diesel", quantity=Decimal("1"), unit="liters")
        )
        first = sql_engine.calculate("rec-1").result
        second = sql_engine.calculate("rec-1", force=True).result

        assert _result_count(sqlite_engine) == 1
        stored = sql_repository.get_calculation_result("rec-1")
        assert stored.calculation_id == second.calculation_id
        assert stored.persisted_values() == first.persisted_values()

    def test_failed_calculation_writes_nothing(self, sql_repository, sql_engine, sqlite_engine):
        sql_repository.add_activity(
            FuelEntry(id=1, reporting_record_id="rec-1", fuel_type="diesel", quantity=Decimal("1"), unit="furlong")
        )
        with pytest.raises(CalculationFailed):
            sql_engine.calculate("rec-1")
        assert _result_count(sqlite_engine) == 0
        assert sql_repository.get_calculation_result("rec-1") is None


class TestFileDatabase:

    def test_data_survives_a_new_engine(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'ledger.db'}"
        engine = build_engine(url)
        init_db(engine)
        SqlAlchemyRepository(engine).add_reporting_record(
            ReportingRecord(
                id="rec-1", organization_id="org-1",
                period_start=date(2026, 1, 1), period_end=date(2026, 2, 1),
            )
        )
        engine.dispose()

        reopened = build_engine(url)
        assert SqlAlchemyRepository(reopened).get_reporting_record("rec-1") is not None
        reopened.dispose()
