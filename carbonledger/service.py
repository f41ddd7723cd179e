# -*- coding: utf-8 -*-
"""
Emissions Service

Entry points exposed to request handlers and the CLI:

- ``calculate``: trigger a (re)calculation of one reporting record
- ``trends``: trend report for an organization over the last N months
- ``recalculate_organization``: recalculate every reporting record of an
  organization, isolating failures per record
- ``compare``: scope / category / month comparison for an organization

Authorization is the caller's job; the service trusts its arguments.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from carbonledger.calculation_engine import CalculationEngine
from carbonledger.comparison import ComparisonAnalyzer
from carbonledger.config import EngineConfig, get_config
from carbonledger.exceptions import CalculationFailed, CarbonLedgerException
from carbonledger.factor_registry import EmissionFactorRegistry
from carbonledger.models import CalculationOutcome, CalculationResult
from carbonledger.repository import EmissionsRepository
from carbonledger.trend_analyzer import TrendAnalyzer, TrendReport

logger = logging.getLogger(__name__)

COMPARISON_MODES = ("scope", "category", "period")


def months_before(anchor: date, months: int) -> date:
    """``anchor`` moved back by whole calendar months, clamping the day."""
    index = anchor.year * 12 + (anchor.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(anchor.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass
class OrganizationRecalculation:
    """Summary of ``recalculate_organization``."""

    organization_id: str
    outcomes: Dict[str, CalculationOutcome] = field(default_factory=dict)
    failures: Dict[str, CarbonLedgerException] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "organization_id": self.organization_id,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": {
                record_id: outcome.result.model_dump(mode="json")
                for record_id, outcome in self.outcomes.items()
            },
            "failures": {record_id: error.to_dict() for record_id, error in self.failures.items()},
        }


class EmissionsService:
    """Facade over the engine, trend and comparison analyzers."""

    def __init__(
        self,
        repository: EmissionsRepository,
        registry: Optional[EmissionFactorRegistry] = None,
        config: Optional[EngineConfig] = None,
        engine: Optional[CalculationEngine] = None,
    ):
        self.repository = repository
        self.config = config or get_config()
        self.engine = engine or CalculationEngine(repository, registry=registry, config=self.config)
        self.trend_analyzer = TrendAnalyzer(self.config)
        self.comparison = ComparisonAnalyzer()

    def calculate(self, reporting_record_id: str, force: bool = False) -> CalculationOutcome:
        return self.engine.calculate(reporting_record_id, force=force)

    def trends(
        self,
        organization_id: str,
        months_back: int = 12,
        as_of: Optional[date] = None,
    ) -> TrendReport:
        """
        Trend report over the organization's calculated records whose period
        starts within ``months_back`` months of ``as_of`` (today by default).

        Raises:
            EmptySeries: No calculated record in range
        """
        if months_back < 1:
            raise ValueError(f"months_back must be >= 1, got {months_back}")
        since = months_before(as_of or date.today(), months_back)
        pairs = self._calculated_pairs(organization_id, since)
        logger.debug(
            "Trend query for %s since %s: %d calculated records",
            organization_id, since, len(pairs),
        )
        return self.trend_analyzer.trends(pairs)

    def recalculate_organization(self, organization_id: str) -> OrganizationRecalculation:
        """Recalculate every reporting record; one failure does not stop the rest."""
        summary = OrganizationRecalculation(organization_id=organization_id)
        for record in self.repository.list_reporting_records(organization_id):
            try:
                summary.outcomes[record.id] = self.engine.calculate(record.id, force=True)
            except CalculationFailed as e:
                summary.failures[record.id] = e
        logger.info(
            "Recalculated organization %s: %d succeeded, %d failed",
            organization_id, summary.succeeded, summary.failed,
        )
        return summary

    def compare(
        self,
        organization_id: str,
        by: str = "scope",
        months_back: Optional[int] = None,
        as_of: Optional[date] = None,
    ) -> List[Any]:
        """Comparison items (``scope``/``category``) or month changes (``period``)."""
        if by not in COMPARISON_MODES:
            raise ValueError(f"by must be one of {COMPARISON_MODES}, got '{by}'")
        since = months_before(as_of or date.today(), months_back) if months_back else None
        pairs = self._calculated_pairs(organization_id, since)
        if by == "scope":
            return self.comparison.by_scope(result for _, result in pairs)
        if by == "category":
            return self.comparison.by_category(result for _, result in pairs)
        return self.comparison.by_period(pairs)

    def _calculated_pairs(
        self,
        organization_id: str,
        since: Optional[date],
    ) -> List[Tuple[date, CalculationResult]]:
        pairs: List[Tuple[date, CalculationResult]] = []
        for record in self.repository.list_reporting_records(organization_id, since=since):
            result = self.repository.get_calculation_result(record.id)
            if result is not None:
                pairs.append((record.period_start, result))
        return pairs


__all__ = ["EmissionsService", "OrganizationRecalculation", "months_before", "COMPARISON_MODES"]
