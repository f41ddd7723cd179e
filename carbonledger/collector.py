# -*- coding: utf-8 -*-
"""
Activity Collector

Reads the activity records of a reporting period from the repository and
returns them in the stable order the calculation engine aggregates in:
category order first, then ascending record id.
"""

import logging
from typing import List

from carbonledger.models import (
    CATEGORY_ORDER,
    CATEGORY_SCOPES,
    ActivityCategory,
    ActivityRecord,
    ReportingRecord,
)
from carbonledger.repository import EmissionsRepository

logger = logging.getLogger(__name__)

_CATEGORY_RANK = {category: rank for rank, category in enumerate(CATEGORY_ORDER)}


class ActivityCollector:
    """Collects a reporting record's activities."""

    def __init__(self, repository: EmissionsRepository):
        self.repository = repository

    def collect(self, record: ReportingRecord) -> List[ActivityRecord]:
        """
        Activities of ``record`` in aggregation order.

        Categories whose scope is switched off by the record's scope
        selection are dropped.
        """
        activities = self.repository.list_activity_records(record.id)
        selection = record.scope_selection

        collected: List[ActivityRecord] = []
        for activity in activities:
            category = ActivityCategory(activity.category)
            if selection is not None and not selection.includes(CATEGORY_SCOPES[category]):
                logger.debug(
                    "Skipping %s record %s: scope %d not selected for %s",
                    category.value, activity.id, CATEGORY_SCOPES[category], record.id,
                )
                continue
            collected.append(activity)

        collected.sort(key=lambda a: (_CATEGORY_RANK[ActivityCategory(a.category)], a.id))
        logger.debug(
            "Collected %d of %d activity records for %s",
            len(collected), len(activities), record.id,
        )
        return collected


__all__ = ["ActivityCollector"]
