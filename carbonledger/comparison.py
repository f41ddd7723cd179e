# -*- coding: utf-8 -*-
"""
Comparison Analyzer

Splits a set of stored calculation results by scope, by category, or by
month, with each part's share of the whole. Percentages are rounded to two
decimals (half-even); a zero total yields zero shares.
"""

import logging
from collections import OrderedDict
from datetime import date, datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Dict, Iterable, List, Sequence, Tuple

from carbonledger.models import ZERO, CalculationResult, ComparisonItem, PeriodChange

logger = logging.getLogger(__name__)

_PERCENT_QUANTUM = Decimal("0.01")
_VALUE_QUANTUM = Decimal("0.0001")
_HUNDRED = Decimal(100)

SCOPE_LABELS = ("Scope 1", "Scope 2", "Scope 3")


def _share(value: Decimal, total: Decimal) -> Decimal:
    if total == 0:
        return ZERO.quantize(_PERCENT_QUANTUM)
    return (value / total * _HUNDRED).quantize(_PERCENT_QUANTUM, rounding=ROUND_HALF_EVEN)


class ComparisonAnalyzer:
    """Aggregate views across several reporting periods."""

    def by_scope(self, results: Iterable[CalculationResult]) -> List[ComparisonItem]:
        """Scope 1, 2 and 3 totals summed across ``results``."""
        sums = [ZERO, ZERO, ZERO]
        for result in results:
            sums[0] += result.total_scope1_co2e
            sums[1] += result.total_scope2_co2e
            sums[2] += result.total_scope3_co2e
        total = sum(sums, ZERO)
        return [
            ComparisonItem(label=label, value=value, percentage=_share(value, total))
            for label, value in zip(SCOPE_LABELS, sums)
        ]

    def by_category(self, results: Iterable[CalculationResult]) -> List[ComparisonItem]:
        """Non-zero category totals, largest first."""
        sums: Dict[str, Decimal] = OrderedDict()
        for result in results:
            for category, value in result.breakdown_by_category.items():
                sums[category] = sums.get(category, ZERO) + value
        total = sum(sums.values(), ZERO)
        items = [
            ComparisonItem(label=category, value=value, percentage=_share(value, total))
            for category, value in sums.items()
            if value > 0
        ]
        return sorted(items, key=lambda item: item.value, reverse=True)

    def by_period(self, pairs: Sequence[Tuple[date, CalculationResult]]) -> List[PeriodChange]:
        """Monthly totals in input order with change against the previous month."""
        monthly: Dict[str, Decimal] = OrderedDict()
        for period_start, result in pairs:
            if isinstance(period_start, datetime):
                period_start = period_start.date()
            month = period_start.isoformat()[:7]
            monthly[month] = monthly.get(month, ZERO) + result.total_co2e

        changes: List[PeriodChange] = []
        previous = None
        for month, total in monthly.items():
            change = change_pct = None
            if previous is not None:
                change = (total - previous).quantize(_VALUE_QUANTUM, rounding=ROUND_HALF_EVEN)
                if previous != 0:
                    change_pct = ((total - previous) / previous * _HUNDRED).quantize(
                        _PERCENT_QUANTUM, rounding=ROUND_HALF_EVEN
                    )
            changes.append(
                PeriodChange(month=month, total_co2e=total, change=change, change_percentage=change_pct)
            )
            previous = total
        logger.debug("Compared %d months", len(changes))
        return changes


__all__ = ["ComparisonAnalyzer", "SCOPE_LABELS"]
