# -*- coding: utf-8 -*-
"""
Prometheus Metrics - carbonledger emissions engine

All metric names use the ``cl_`` prefix for consistent identification in
Prometheus queries and dashboards.

Metrics:
    1.  cl_calculations_total                 (Counter,   labels: status, forced)
    2.  cl_record_errors_total                (Counter,   labels: category, error_code)
    3.  cl_contribution_co2e_kg_total         (Counter,   labels: scope, category)
    4.  cl_trend_requests_total               (Counter,   labels: status)
    5.  cl_calculation_duration_seconds       (Histogram, labels: operation)
    6.  cl_activity_records_per_calculation   (Histogram)
    7.  cl_active_calculations                (Gauge)

Example:
    >>> from carbonledger.metrics import record_calculation, observe_duration
    >>> record_calculation("success", forced=False)
    >>> observe_duration("calculate", 0.012)

Author: carbonledger Team
Date: October 2026
Status: Production Ready
"""

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

cl_calculations_total = Counter(
    "cl_calculations_total",
    "Emission calculations by outcome",
    labelnames=["status", "forced"],
)

cl_record_errors_total = Counter(
    "cl_record_errors_total",
    "Activity records excluded from a calculation",
    labelnames=["category", "error_code"],
)

cl_contribution_co2e_kg_total = Counter(
    "cl_contribution_co2e_kg_total",
    "Cumulative kg CO2e aggregated by scope and category",
    labelnames=["scope", "category"],
)

cl_trend_requests_total = Counter(
    "cl_trend_requests_total",
    "Trend analyses by outcome",
    labelnames=["status"],
)

cl_calculation_duration_seconds = Histogram(
    "cl_calculation_duration_seconds",
    "Duration of engine operations in seconds",
    labelnames=["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

cl_activity_records_per_calculation = Histogram(
    "cl_activity_records_per_calculation",
    "Activity records considered per calculation",
    buckets=(0, 1, 5, 10, 25, 50, 100, 250, 500, 1000),
)

cl_active_calculations = Gauge(
    "cl_active_calculations",
    "Calculations currently holding a reporting record lock",
)


# ---------------------------------------------------------------------------
# MetricsCollector
# ---------------------------------------------------------------------------


class MetricsCollector:
    """Facade for recording engine metrics.

    Example:
        >>> MetricsCollector.record_calculation("success", forced=True)
    """

    @staticmethod
    def record_calculation(status: str, forced: bool = False) -> None:
        """Record a finished calculation.

        Args:
            status: ``success``, ``partial``, ``failed`` or ``not_found``.
            forced: Whether recompute was explicitly requested.
        """
        cl_calculations_total.labels(status=status, forced=str(bool(forced)).lower()).inc()

    @staticmethod
    def record_record_error(category: str, error_code: str) -> None:
        cl_record_errors_total.labels(category=category, error_code=error_code).inc()

    @staticmethod
    def record_contribution(scope: int, category: str, kg_co2e: float) -> None:
        """Add aggregated emissions to the cumulative counter."""
        if kg_co2e <= 0:
            return
        cl_contribution_co2e_kg_total.labels(scope=str(int(scope)), category=category).inc(kg_co2e)

    @staticmethod
    def record_trend(status: str) -> None:
        cl_trend_requests_total.labels(status=status).inc()

    @staticmethod
    def observe_duration(operation: str, seconds: float) -> None:
        cl_calculation_duration_seconds.labels(operation=operation).observe(seconds)

    @staticmethod
    def observe_record_count(count: int) -> None:
        cl_activity_records_per_calculation.observe(count)

    @staticmethod
    def track_active_calculation():
        """Context manager counting in-flight calculations."""
        return cl_active_calculations.track_inprogress()


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------


def record_calculation(status: str, forced: bool = False) -> None:
    MetricsCollector.record_calculation(status, forced)


def record_record_error(category: str, error_code: str) -> None:
    MetricsCollector.record_record_error(category, error_code)


def record_contribution(scope: int, category: str, kg_co2e: float) -> None:
    MetricsCollector.record_contribution(scope, category, kg_co2e)


def record_trend(status: str) -> None:
    MetricsCollector.record_trend(status)


def observe_duration(operation: str, seconds: float) -> None:
    MetricsCollector.observe_duration(operation, seconds)


def observe_record_count(count: int) -> None:
    MetricsCollector.observe_record_count(count)


__all__ = [
    "MetricsCollector",
    "record_calculation",
    "record_record_error",
    "record_contribution",
    "record_trend",
    "observe_duration",
    "observe_record_count",
]
