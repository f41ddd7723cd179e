# -*- coding: utf-8 -*-
"""
Scope Selection Policy

Default scope selection per organization occupancy type. The matrix is
configuration data: the packaged YAML is only the default, callers may
supply their own mapping. The calculation engine never consults the
policy; callers attach the chosen ``ScopeSelection`` to the reporting
record, or build records through ``build_reporting_record``.
"""

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from carbonledger.exceptions import ConfigurationError
from carbonledger.models import ReportingRecord, ScopeSelection

logger = logging.getLogger(__name__)

DEFAULT_SCOPE_FILE = Path(__file__).parent / "data" / "scope_defaults.yaml"


class ScopeSelectionPolicy:
    """
    Maps occupancy types to default scope selections.

    Example:
        >>> policy = ScopeSelectionPolicy.load()
        >>> policy.selection_for("residential").scope3
        False
    """

    def __init__(self, matrix: Mapping[str, Any]):
        selections: Dict[str, ScopeSelection] = {}
        for occupancy, flags in matrix.items():
            try:
                selections[occupancy.strip().lower()] = (
                    flags if isinstance(flags, ScopeSelection) else ScopeSelection(**flags)
                )
            except (TypeError, ValidationError) as e:
                raise ConfigurationError(
                    f"Invalid scope selection for occupancy type '{occupancy}': {e}",
                    context={"occupancy_type": occupancy},
                ) from e
        self._selections = MappingProxyType(selections)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "ScopeSelectionPolicy":
        """Read the matrix from YAML (the packaged defaults if no path is given)."""
        path = Path(path) if path else DEFAULT_SCOPE_FILE
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to read scope defaults from {path}: {e}", context={"path": str(path)}
            ) from e
        return cls(data.get("occupancy_types") or {})

    def selection_for(self, occupancy_type: str) -> ScopeSelection:
        """
        Default selection for an occupancy type.

        Raises:
            ConfigurationError: Unknown occupancy type
        """
        selection = self._selections.get((occupancy_type or "").strip().lower())
        if selection is None:
            raise ConfigurationError(
                f"Unknown occupancy type '{occupancy_type}'",
                context={"occupancy_type": occupancy_type, "known": self.occupancy_types},
            )
        return selection

    def build_reporting_record(self, data: Mapping[str, Any]) -> ReportingRecord:
        """
        Build a ReportingRecord from a plain mapping that may name an
        ``occupancy_type``. An explicit ``scope_selection`` wins over the
        occupancy default.

        Raises:
            ConfigurationError: Unknown occupancy type
            ValidationError: Invalid record fields
        """
        values = dict(data)
        occupancy_type = values.pop("occupancy_type", None)
        if occupancy_type is not None and values.get("scope_selection") is None:
            values["scope_selection"] = self.selection_for(occupancy_type)
            logger.debug("Applied %s scope defaults to %s", occupancy_type, values.get("id"))
        return ReportingRecord(**values)

    @property
    def occupancy_types(self) -> List[str]:
        return sorted(self._selections)


__all__ = ["ScopeSelectionPolicy", "DEFAULT_SCOPE_FILE"]
