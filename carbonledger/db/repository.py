"""
SQLAlchemy implementation of the emissions repository

The calculation result upsert runs in a single transaction: the existing
row is selected ``FOR UPDATE`` (a no-op on SQLite) and replaced in place,
and the unique constraint on ``reporting_record_id`` guarantees that a
reporting record never holds two results.
"""

import logging
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Generator, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from carbonledger.db.models import (
    ACTIVITY_TABLES,
    CalculationResultRow,
    ReportingRecordRow,
)
from carbonledger.exceptions import RepositoryError
from carbonledger.models import (
    CATEGORY_ORDER,
    ActivityRecord,
    CalculationResult,
    ReportingRecord,
    ScopeSelection,
    parse_activity,
)
from carbonledger.repository import EmissionsRepository

logger = logging.getLogger(__name__)


def _decimal_map(values: Dict[str, Any]) -> Dict[str, str]:
    return {key: str(value) for key, value in values.items()}


class SqlAlchemyRepository(EmissionsRepository):
    """
    Repository backed by a relational database

    Args:
        bind: Session factory or engine; an engine gets its own factory

    Example:
        >>> engine = build_engine("sqlite://")
        >>> init_db(engine)
        >>> repo = SqlAlchemyRepository(engine)
    """

    def __init__(self, bind: Union[sessionmaker, Engine]):
        if isinstance(bind, Engine):
            bind = sessionmaker(autocommit=False, autoflush=False, bind=bind)
        self._session_factory = bind

    @contextmanager
    def _session(self, operation: str) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Database error during %s: %s", operation, e)
            raise RepositoryError(
                f"Database error during {operation}: {e}",
                context={"operation": operation},
            ) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def add_reporting_record(self, record: ReportingRecord) -> ReportingRecord:
        selection = record.scope_selection
        row = ReportingRecordRow(
            id=record.id,
            organization_id=record.organization_id,
            period_start=record.period_start,
            period_end=record.period_end,
            employee_count=record.employee_count,
            scope1=selection.scope1 if selection else None,
            scope2=selection.scope2 if selection else None,
            scope3=selection.scope3 if selection else None,
        )
        with self._session("add_reporting_record") as session:
            session.add(row)
        return record

    def add_activity(self, activity: ActivityRecord) -> ActivityRecord:
        """Insert an activity record; the stored row keeps ``activity.id``."""
        table = ACTIVITY_TABLES[activity.category]
        values = activity.model_dump(exclude={"category"})
        with self._session("add_activity") as session:
            session.add(table(**values))
        return activity

    # ------------------------------------------------------------------
    # EmissionsRepository
    # ------------------------------------------------------------------

    def get_reporting_record(self, reporting_record_id: str) -> Optional[ReportingRecord]:
        with self._session("get_reporting_record") as session:
            row = session.get(ReportingRecordRow, reporting_record_id)
            return self._to_record(row) if row is not None else None

    def list_activity_records(self, reporting_record_id: str) -> List[ActivityRecord]:
        activities: List[ActivityRecord] = []
        with self._session("list_activity_records") as session:
            for category in CATEGORY_ORDER:
                table = ACTIVITY_TABLES[category.value]
                rows = session.scalars(
                    select(table)
                    .where(table.reporting_record_id == reporting_record_id)
                    .order_by(table.id)
                ).all()
                for row in rows:
                    data = {column.name: getattr(row, column.name) for column in table.__table__.columns}
                    data["category"] = category.value
                    activities.append(parse_activity(data))
        return activities

    def get_calculation_result(self, reporting_record_id: str) -> Optional[CalculationResult]:
        with self._session("get_calculation_result") as session:
            row = session.scalars(
                select(CalculationResultRow).where(
                    CalculationResultRow.reporting_record_id == reporting_record_id
                )
            ).one_or_none()
            return self._to_result(row) if row is not None else None

    def upsert_calculation_result(
        self,
        reporting_record_id: str,
        result: CalculationResult,
    ) -> CalculationResult:
        try:
            self._upsert(reporting_record_id, result)
        except RepositoryError as e:
            # A concurrent writer inserted first; replace its row instead.
            if not isinstance(e.__cause__, IntegrityError):
                raise
            logger.info("Concurrent insert for %s, retrying as update", reporting_record_id)
            self._upsert(reporting_record_id, result)
        return result

    def list_reporting_records(
        self,
        organization_id: str,
        since: Optional[date] = None,
    ) -> List[ReportingRecord]:
        query = select(ReportingRecordRow).where(ReportingRecordRow.organization_id == organization_id)
        if since is not None:
            query = query.where(ReportingRecordRow.period_start >= since)
        query = query.order_by(ReportingRecordRow.period_start, ReportingRecordRow.id)
        with self._session("list_reporting_records") as session:
            return [self._to_record(row) for row in session.scalars(query).all()]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _upsert(self, reporting_record_id: str, result: CalculationResult) -> None:
        values = {
            "calculation_id": result.calculation_id,
            "total_co2e": result.total_co2e,
            "total_scope1_co2e": result.total_scope1_co2e,
            "total_scope2_co2e": result.total_scope2_co2e,
            "total_scope3_co2e": result.total_scope3_co2e,
            "emissions_per_employee": result.emissions_per_employee,
            "breakdown_by_category": _decimal_map(result.breakdown_by_category),
            "emission_factors_used": _decimal_map(result.emission_factors_used),
            "gas_totals": _decimal_map(result.gas_totals),
            "provenance_hash": result.provenance_hash,
            "calculated_at": result.calculated_at,
        }
        with self._session("upsert_calculation_result") as session:
            row = session.scalars(
                select(CalculationResultRow)
                .where(CalculationResultRow.reporting_record_id == reporting_record_id)
                .with_for_update()
            ).one_or_none()
            if row is None:
                session.add(CalculationResultRow(reporting_record_id=reporting_record_id, **values))
                action = "Inserted"
            else:
                for name, value in values.items():
                    setattr(row, name, value)
                action = "Replaced"
            session.flush()
        logger.debug("%s calculation result for %s", action, reporting_record_id)

    @staticmethod
    def _to_record(row: ReportingRecordRow) -> ReportingRecord:
        flags = (row.scope1, row.scope2, row.scope3)
        selection = None
        if any(flag is not None for flag in flags):
            selection = ScopeSelection(
                scope1=bool(row.scope1), scope2=bool(row.scope2), scope3=bool(row.scope3)
            )
        return ReportingRecord(
            id=row.id,
            organization_id=row.organization_id,
            period_start=row.period_start,
            period_end=row.period_end,
            scope_selection=selection,
            employee_count=row.employee_count,
        )

    @staticmethod
    def _to_result(row: CalculationResultRow) -> CalculationResult:
        return CalculationResult(
            calculation_id=row.calculation_id,
            reporting_record_id=row.reporting_record_id,
            total_co2e=Decimal(row.total_co2e),
            total_scope1_co2e=Decimal(row.total_scope1_co2e),
            total_scope2_co2e=Decimal(row.total_scope2_co2e),
            total_scope3_co2e=Decimal(row.total_scope3_co2e),
            breakdown_by_category=row.breakdown_by_category,
            emissions_per_employee=Decimal(row.emissions_per_employee),
            emission_factors_used=row.emission_factors_used,
            gas_totals=row.gas_totals,
            provenance_hash=row.provenance_hash,
            calculated_at=row.calculated_at,
        )


__all__ = ["SqlAlchemyRepository"]
