"""
Database models for the emissions ledger

Tables:
- reporting_records: one organization's reporting period
- fuel_usage, vehicle_usage, electricity_usage, refrigerant_usage,
  commuting_data: activity records, one table per category
- calculation_results: at most one stored result per reporting record
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from carbonledger.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _quantity():
    return Numeric(18, 4, asdecimal=True)


class ReportingRecordRow(Base):
    """Reporting period of an organization"""

    __tablename__ = "reporting_records"

    id = Column(String(64), primary_key=True)
    organization_id = Column(String(64), nullable=False, index=True)
    period_start = Column(Date, nullable=False, index=True)
    period_end = Column(Date, nullable=False)
    employee_count = Column(Integer, nullable=True)

    # Scope selection; all NULL means every scope is collected
    scope1 = Column(Boolean, nullable=True)
    scope2 = Column(Boolean, nullable=True)
    scope3 = Column(Boolean, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    result = relationship(
        "CalculationResultRow",
        back_populates="reporting_record",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<ReportingRecordRow(id={self.id}, organization_id={self.organization_id})>"


class FuelUsageRow(Base):
    """Stationary fuel combustion entry"""

    __tablename__ = "fuel_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reporting_record_id = Column(
        String(64), ForeignKey("reporting_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    fuel_type = Column(String(64), nullable=False)
    quantity = Column(_quantity(), nullable=False)
    unit = Column(String(32), nullable=False)
    entry_date = Column(Date, nullable=True)


class VehicleUsageRow(Base):
    """Company vehicle entry"""

    __tablename__ = "vehicle_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reporting_record_id = Column(
        String(64), ForeignKey("reporting_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vehicle_type = Column(String(64), nullable=False)
    fuel_type = Column(String(64), nullable=False)
    fuel_consumed = Column(_quantity(), nullable=True)
    unit = Column(String(32), nullable=False, default="liters")
    mileage = Column(_quantity(), nullable=True)
    distance_unit = Column(String(32), nullable=False, default="km")
    entry_date = Column(Date, nullable=True)


class ElectricityUsageRow(Base):
    """Purchased electricity entry"""

    __tablename__ = "electricity_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reporting_record_id = Column(
        String(64), ForeignKey("reporting_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    grid = Column(String(64), nullable=True)
    quantity = Column(_quantity(), nullable=False)
    unit = Column(String(32), nullable=False, default="kwh")
    peak_hours_kwh = Column(_quantity(), nullable=True)
    offpeak_hours_kwh = Column(_quantity(), nullable=True)
    billing_period_start = Column(Date, nullable=False)
    billing_period_end = Column(Date, nullable=False)


class RefrigerantUsageRow(Base):
    """Refrigerant purchase / leak entry"""

    __tablename__ = "refrigerant_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reporting_record_id = Column(
        String(64), ForeignKey("reporting_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    refrigerant_type = Column(String(64), nullable=False)
    quantity_leaked = Column(_quantity(), nullable=True)
    quantity_purchased = Column(_quantity(), nullable=True)
    unit = Column(String(32), nullable=False, default="kg")
    entry_date = Column(Date, nullable=True)


class CommutingDataRow(Base):
    """Employee commuting survey entry"""

    __tablename__ = "commuting_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reporting_record_id = Column(
        String(64), ForeignKey("reporting_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    transport_mode = Column(String(64), nullable=False)
    employee_count = Column(Integer, nullable=False)
    avg_distance = Column(_quantity(), nullable=False)
    unit = Column(String(32), nullable=False, default="km")
    days_per_week = Column(Integer, nullable=False)
    wfh_days = Column(Integer, nullable=False, default=0)
    survey_date = Column(Date, nullable=True)


class CalculationResultRow(Base):
    """Stored emissions result; unique per reporting record"""

    __tablename__ = "calculation_results"
    __table_args__ = (
        UniqueConstraint("reporting_record_id", name="uq_calculation_results_reporting_record"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    reporting_record_id = Column(
        String(64), ForeignKey("reporting_records.id", ondelete="CASCADE"), nullable=False
    )
    calculation_id = Column(String(32), nullable=False)

    total_co2e = Column(_quantity(), nullable=False)
    total_scope1_co2e = Column(_quantity(), nullable=False)
    total_scope2_co2e = Column(_quantity(), nullable=False)
    total_scope3_co2e = Column(_quantity(), nullable=False)
    emissions_per_employee = Column(_quantity(), nullable=False)

    # Decimal values are stored as strings to keep full precision
    breakdown_by_category = Column(JSON, nullable=False)
    emission_factors_used = Column(JSON, nullable=False)
    gas_totals = Column(JSON, nullable=False)

    provenance_hash = Column(String(64), nullable=True)
    calculated_at = Column(DateTime(timezone=True), nullable=False)

    reporting_record = relationship("ReportingRecordRow", back_populates="result")

    def __repr__(self):
        return (
            f"<CalculationResultRow(reporting_record_id={self.reporting_record_id}, "
            f"total_co2e={self.total_co2e})>"
        )


#: Activity table per category tag.
ACTIVITY_TABLES = {
    "fuel": FuelUsageRow,
    "vehicle": VehicleUsageRow,
    "electricity": ElectricityUsageRow,
    "refrigerant": RefrigerantUsageRow,
    "commuting": CommutingDataRow,
}
