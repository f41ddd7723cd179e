# -*- coding: utf-8 -*-
"""
Trend Analyzer

Derives time-series views from an ordered sequence of stored calculation
results: the per-period series itself, a trailing moving average of the
total CO2e, and min / max / mean statistics.

The analyzer never sorts. Callers pass ``(period_start, result)`` pairs
already ordered by ascending period start.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from carbonledger import metrics
from carbonledger.config import EngineConfig, get_config
from carbonledger.exceptions import EmptySeries
from carbonledger.models import CalculationResult, TrendPoint, TrendStatistics

logger = logging.getLogger(__name__)

ResultPair = Tuple[date, CalculationResult]

_QUANTUM = Decimal("0.0001")


def _quantize(value: Decimal, quantum: Decimal, rounding: str) -> Decimal:
    return value.quantize(quantum, rounding=rounding)


def moving_average(
    values: Sequence[Decimal],
    window: int = 3,
    quantum: Decimal = _QUANTUM,
    rounding: str = ROUND_HALF_EVEN,
) -> List[Optional[Decimal]]:
    """Trailing mean over ``window`` points; ``None`` until enough points exist.

    Example:
        >>> moving_average([Decimal(10), Decimal(20), Decimal(30), Decimal(40)])
        [None, None, Decimal('20.0000'), Decimal('30.0000')]
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    averages: List[Optional[Decimal]] = []
    for i in range(len(values)):
        if i < window - 1:
            averages.append(None)
            continue
        points = values[i - window + 1:i + 1]
        averages.append(_quantize(sum(points, Decimal(0)) / Decimal(window), quantum, rounding))
    return averages


def series_statistics(
    values: Sequence[Decimal],
    quantum: Decimal = _QUANTUM,
    rounding: str = ROUND_HALF_EVEN,
) -> TrendStatistics:
    """Min, max and arithmetic mean of a non-empty series.

    Raises:
        EmptySeries: ``values`` is empty
    """
    if not values:
        raise EmptySeries("Cannot compute statistics of an empty series")
    return TrendStatistics(
        min=_quantize(min(values), quantum, rounding),
        max=_quantize(max(values), quantum, rounding),
        average=_quantize(sum(values, Decimal(0)) / Decimal(len(values)), quantum, rounding),
        data_points=len(values),
    )


def to_trend_point(period_start: date, result: CalculationResult) -> TrendPoint:
    """Project a stored result onto a TrendPoint."""
    if isinstance(period_start, datetime):
        period_start = period_start.date()
    iso = period_start.isoformat()
    return TrendPoint(
        date=iso,
        month=iso[:7],
        total_co2e=result.total_co2e,
        scope1=result.total_scope1_co2e,
        scope2=result.total_scope2_co2e,
        scope3=result.total_scope3_co2e,
        breakdown=dict(result.breakdown_by_category),
    )


class TrendSeries:
    """Finite, restartable, lazily projected sequence of TrendPoints.

    Each iteration walks the underlying pairs again in input order.
    """

    def __init__(self, pairs: Sequence[ResultPair]):
        self._pairs = tuple(pairs)

    def __iter__(self) -> Iterator[TrendPoint]:
        for period_start, result in self._pairs:
            yield to_trend_point(period_start, result)

    def __len__(self) -> int:
        return len(self._pairs)

    def __getitem__(self, index: int) -> TrendPoint:
        period_start, result = self._pairs[index]
        return to_trend_point(period_start, result)

    def totals(self) -> List[Decimal]:
        return [result.total_co2e for _, result in self._pairs]


@dataclass(frozen=True)
class TrendReport:
    """Output of ``TrendAnalyzer.trends``."""

    series: TrendSeries
    moving_average: List[Optional[Decimal]]
    statistics: TrendStatistics

    def to_dict(self) -> Dict[str, Any]:
        return {
            "series": [point.model_dump(mode="json") for point in self.series],
            "moving_average": [str(v) if v is not None else None for v in self.moving_average],
            "statistics": self.statistics.model_dump(mode="json"),
        }


class TrendAnalyzer:
    """
    Computes trend reports over stored calculation results.

    Example:
        >>> report = TrendAnalyzer().trends(pairs)
        >>> report.statistics.data_points
        12
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_config()

    def trends(
        self,
        results: Iterable[ResultPair],
        window_months: Optional[int] = None,
    ) -> TrendReport:
        """
        Build the series, moving average and statistics.

        Args:
            results: ``(period_start, CalculationResult)`` pairs in ascending
                period order
            window_months: Keep only the trailing ``window_months`` calendar
                months ending at the last result's month

        Raises:
            EmptySeries: No result remains to analyse
            ValueError: ``window_months`` is less than 1
        """
        pairs = list(results)
        if window_months is not None:
            pairs = self._trailing_window(pairs, window_months)

        if not pairs:
            self._record("empty")
            raise EmptySeries(
                "Trend analysis requires at least one calculation result",
                context={"window_months": window_months},
            )

        series = TrendSeries(pairs)
        totals = series.totals()
        report = TrendReport(
            series=series,
            moving_average=moving_average(
                totals,
                window=self.config.moving_average_window,
                quantum=self.config.quantum,
                rounding=self.config.rounding,
            ),
            statistics=series_statistics(
                totals, quantum=self.config.quantum, rounding=self.config.rounding
            ),
        )
        self._record("success")
        logger.info(
            "Trend computed over %d points: min=%s max=%s average=%s",
            report.statistics.data_points,
            report.statistics.min,
            report.statistics.max,
            report.statistics.average,
        )
        return report

    @staticmethod
    def _trailing_window(pairs: List[ResultPair], window_months: int) -> List[ResultPair]:
        if window_months < 1:
            raise ValueError(f"window_months must be >= 1, got {window_months}")
        if not pairs:
            return pairs
        last = pairs[-1][0]
        last_index = last.year * 12 + last.month
        return [
            (period_start, result)
            for period_start, result in pairs
            if last_index - (period_start.year * 12 + period_start.month) < window_months
        ]

    def _record(self, status: str) -> None:
        if self.config.enable_metrics:
            metrics.record_trend(status)


__all__ = [
    "TrendAnalyzer",
    "TrendReport",
    "TrendSeries",
    "moving_average",
    "series_statistics",
    "to_trend_point",
]
