# -*- coding: utf-8 -*-
"""
Emissions Repository

Abstract record-repository interface consumed by the calculation engine and
the service facade, plus an in-memory implementation used for embedding
and tests. The SQLAlchemy implementation lives in
``carbonledger.db.repository``.

The engine always receives a repository explicitly; there is no global
repository instance.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from carbonledger.models import ActivityRecord, CalculationResult, ReportingRecord

logger = logging.getLogger(__name__)


class EmissionsRepository(ABC):
    """Storage contract for reporting records, activities and results."""

    @abstractmethod
    def get_reporting_record(self, reporting_record_id: str) -> Optional[ReportingRecord]:
        """Return the reporting record, or None if it does not exist."""

    @abstractmethod
    def list_activity_records(self, reporting_record_id: str) -> List[ActivityRecord]:
        """Return every activity record (all five variants) of a reporting record."""

    @abstractmethod
    def get_calculation_result(self, reporting_record_id: str) -> Optional[CalculationResult]:
        """Return the stored result, or None if never calculated."""

    @abstractmethod
    def upsert_calculation_result(
        self,
        reporting_record_id: str,
        result: CalculationResult,
    ) -> CalculationResult:
        """Atomically insert or replace the single result of a reporting record."""

    @abstractmethod
    def list_reporting_records(
        self,
        organization_id: str,
        since: Optional[date] = None,
    ) -> List[ReportingRecord]:
        """Reporting records of an organization ordered by period start.

        Args:
            organization_id: Owning organization
            since: When given, only records with ``period_start >= since``
        """


class InMemoryRepository(EmissionsRepository):
    """Dictionary-backed repository.

    Stored objects are deep-copied on the way in and out, so callers cannot
    mutate stored state. ``write_count`` counts successful result upserts.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._records: Dict[str, ReportingRecord] = {}
        self._activities: Dict[str, List[ActivityRecord]] = defaultdict(list)
        self._results: Dict[str, CalculationResult] = {}
        self.write_count = 0

    # -- Seeding -----------------------------------------------------------

    def add_reporting_record(self, record: ReportingRecord) -> ReportingRecord:
        with self._lock:
            self._records[record.id] = record
        return record

    def add_activity(self, activity: ActivityRecord) -> ActivityRecord:
        with self._lock:
            self._activities[activity.reporting_record_id].append(activity)
        return activity

    def replace_activities(self, reporting_record_id: str, activities: List[ActivityRecord]) -> None:
        """Swap the activity set of a record, e.g. after an edit."""
        with self._lock:
            self._activities[reporting_record_id] = list(activities)

    # -- EmissionsRepository -----------------------------------------------

    def get_reporting_record(self, reporting_record_id: str) -> Optional[ReportingRecord]:
        with self._lock:
            return self._records.get(reporting_record_id)

    def list_activity_records(self, reporting_record_id: str) -> List[ActivityRecord]:
        with self._lock:
            return list(self._activities.get(reporting_record_id, []))

    def get_calculation_result(self, reporting_record_id: str) -> Optional[CalculationResult]:
        with self._lock:
            result = self._results.get(reporting_record_id)
            return copy.deepcopy(result) if result is not None else None

    def upsert_calculation_result(
        self,
        reporting_record_id: str,
        result: CalculationResult,
    ) -> CalculationResult:
        with self._lock:
            replaced = reporting_record_id in self._results
            self._results[reporting_record_id] = copy.deepcopy(result)
            self.write_count += 1
        logger.debug(
            "%s calculation result for %s",
            "Replaced" if replaced else "Inserted",
            reporting_record_id,
        )
        return result

    def list_reporting_records(
        self,
        organization_id: str,
        since: Optional[date] = None,
    ) -> List[ReportingRecord]:
        with self._lock:
            records = [
                r for r in self._records.values()
                if r.organization_id == organization_id
                and (since is None or r.period_start >= since)
            ]
        return sorted(records, key=lambda r: (r.period_start, r.id))


__all__ = ["EmissionsRepository", "InMemoryRepository"]
