# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

from datetime import date
from decimal import Decimal
from itertools import count

import pytest

from carbonledger.calculation_engine import CalculationEngine
from carbonledger.config import EngineConfig, reset_config, set_config
from carbonledger.factor_registry import load_default_registry
from carbonledger.models import (
    CommuteSurveyEntry,
    ElectricityEntry,
    FuelEntry,
    RefrigerantEntry,
    ReportingRecord,
    VehicleEntry,
)
from carbonledger.repository import InMemoryRepository


@pytest.fixture
def config():
    """Engine configuration with metrics export disabled."""
    cfg = EngineConfig(enable_metrics=False)
    set_config(cfg)
    yield cfg
    reset_config()


@pytest.fixture(scope="session")
def registry():
    """The packaged emission factor table."""
    return load_default_registry()


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def engine(repository, registry, config):
    return CalculationEngine(repository, registry=registry, config=config)


@pytest.fixture
def reporting_record(repository):
    """A January 2026 reporting record for ``org-1`` with 10 employees."""
    record = ReportingRecord(
        id="rec-2026-01",
        organization_id="org-1",
        period_start=date(2026, 1, 1),
        period_end=date(2026, 2, 1),
        employee_count=10,
    )
    return repository.add_reporting_record(record)


@pytest.fixture
def make_activity():
    """Factory building activity records with sequential ids per category."""
    ids = count(1)

    def _make(category, reporting_record_id="rec-2026-01", **fields):
        fields.setdefault("id", next(ids))
        fields["reporting_record_id"] = reporting_record_id
        if category == "fuel":
            fields.setdefault("fuel_type", "diesel")
            fields.setdefault("quantity", Decimal("100"))
            fields.setdefault("unit", "liters")
            return FuelEntry(**fields)
        if category == "vehicle":
            fields.setdefault("vehicle_type", "truck")
            fields.setdefault("fuel_type", "diesel")
            return VehicleEntry(**fields)
        if category == "electricity":
            fields.setdefault("quantity", Decimal("1000"))
            fields.setdefault("billing_period_start", date(2026, 1, 1))
            fields.setdefault("billing_period_end", date(2026, 1, 31))
            return ElectricityEntry(**fields)
        if category == "refrigerant":
            fields.setdefault("refrigerant_type", "R_134a")
            return RefrigerantEntry(**fields)
        if category == "commuting":
            fields.setdefault("transport_mode", "bus")
            fields.setdefault("employee_count", 10)
            fields.setdefault("avg_distance", Decimal("15"))
            fields.setdefault("days_per_week", 5)
            return CommuteSurveyEntry(**fields)
        raise ValueError(f"unknown category {category}")

    return _make


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine with the ledger tables created."""
    from carbonledger.db import build_engine, init_db

    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()
