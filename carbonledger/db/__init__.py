"""
Database module for carbonledger
Provides SQLAlchemy models and the relational emissions repository
"""

from carbonledger.db.base import Base, build_engine, get_engine, get_session, init_db, reset_engine
from carbonledger.db.models import (
    ACTIVITY_TABLES,
    CalculationResultRow,
    CommutingDataRow,
    ElectricityUsageRow,
    FuelUsageRow,
    RefrigerantUsageRow,
    ReportingRecordRow,
    VehicleUsageRow,
)
from carbonledger.db.repository import SqlAlchemyRepository

__all__ = [
    "Base",
    "build_engine",
    "get_engine",
    "get_session",
    "init_db",
    "reset_engine",
    "ACTIVITY_TABLES",
    "ReportingRecordRow",
    "FuelUsageRow",
    "VehicleUsageRow",
    "ElectricityUsageRow",
    "RefrigerantUsageRow",
    "CommutingDataRow",
    "CalculationResultRow",
    "SqlAlchemyRepository",
]
