# -*- coding: utf-8 -*-
"""
Emission Factor Registry

Immutable lookup table of emission factors keyed by
``(category, subtype, canonical unit)``. Built once from YAML reference
data and shared freely between threads; there are no mutators.

Resolution is exact: no partial matches, no fallback between regions or
units. A canonical unit that differs from the stored factor's unit is a
configuration defect and surfaces as ``FactorNotFound``.
"""

import logging
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from carbonledger.exceptions import ConfigurationError, FactorNotFound
from carbonledger.models import ActivityCategory, EmissionFactor, GasSpecies

logger = logging.getLogger(__name__)

DEFAULT_FACTOR_FILE = Path(__file__).parent / "data" / "emission_factors.yaml"

FactorKey = Tuple[ActivityCategory, str, str]


def _key(category: Union[ActivityCategory, str], subtype: str, unit: str) -> FactorKey:
    return (ActivityCategory(category), subtype.strip().lower(), unit.strip().lower())


class EmissionFactorRegistry:
    """
    Read-only emission factor table.

    Example:
        >>> registry = load_default_registry()
        >>> registry.lookup("refrigerant", "R_134a", "kg").gwp
        Decimal('1430')
    """

    def __init__(self, factors: Iterable[EmissionFactor], version: str = "custom"):
        table: Dict[FactorKey, EmissionFactor] = {}
        for factor in factors:
            key = _key(factor.category, factor.subtype, factor.unit)
            if key in table:
                raise ConfigurationError(
                    f"Duplicate emission factor for {factor.label}",
                    context={"key": factor.label},
                )
            table[key] = factor

        self._factors: Mapping[FactorKey, EmissionFactor] = MappingProxyType(table)
        self._version = version
        logger.info("Emission factor registry %s loaded with %d factors", version, len(table))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EmissionFactorRegistry":
        """Build a registry from the YAML document structure.

        Expected shape::

            version: "2024.1"
            factors:
              fuel:
                - {subtype: diesel, unit: liters, co2e_per_unit: "2.69",
                   gases: {co2: "2.68"}}
        """
        if not isinstance(data, Mapping) or not isinstance(data.get("factors"), Mapping):
            raise ConfigurationError("Emission factor data must contain a 'factors' mapping")

        factors: List[EmissionFactor] = []
        for category, entries in data["factors"].items():
            for entry in entries or []:
                gases = entry.get("gases") or {}
                try:
                    factors.append(
                        EmissionFactor(
                            category=category,
                            subtype=entry["subtype"],
                            unit=entry["unit"],
                            co2e_per_unit=_decimal(entry.get("co2e_per_unit")),
                            gwp=_decimal(entry.get("gwp")),
                            co2=_decimal(gases.get("co2")),
                            ch4=_decimal(gases.get("ch4")),
                            n2o=_decimal(gases.get("n2o")),
                            source=entry.get("source", ""),
                            description=entry.get("description", ""),
                        )
                    )
                except (KeyError, InvalidOperation, ValidationError) as e:
                    raise ConfigurationError(
                        f"Invalid emission factor entry in category '{category}': {e}",
                        context={"category": category, "entry": dict(entry)},
                    ) from e

        return cls(factors, version=str(data.get("version", "custom")))

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "EmissionFactorRegistry":
        """Load a registry from a YAML file."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"Emission factor file not found: {path}", context={"path": str(path)}
            ) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse emission factor file {path}: {e}", context={"path": str(path)}
            ) from e
        return cls.from_mapping(data)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def lookup(
        self,
        category: Union[ActivityCategory, str],
        subtype: str,
        canonical_unit: str,
    ) -> EmissionFactor:
        """
        Resolve the factor for an exact key.

        Raises:
            FactorNotFound: No factor is stored under the key
        """
        key = _key(category, subtype, canonical_unit)
        factor = self._factors.get(key)
        if factor is not None:
            return factor

        registered_units = sorted(
            unit for (cat, sub, unit) in self._factors if cat == key[0] and sub == key[1]
        )
        if registered_units:
            message = (
                f"No {key[0].value} factor for '{subtype}' in unit '{canonical_unit}' "
                f"(registered units: {', '.join(registered_units)})"
            )
        else:
            message = f"No {key[0].value} factor registered for '{subtype}'"
        raise FactorNotFound(
            message,
            context={
                "category": key[0].value,
                "subtype": subtype,
                "unit": canonical_unit,
                "registered_units": registered_units,
            },
        )

    def gas_breakdown(
        self,
        factor: EmissionFactor,
        canonical_quantity: Decimal = Decimal("1"),
    ) -> Dict[str, Decimal]:
        """Per-gas masses (kg) for ``canonical_quantity`` of the activity.

        GWP-based refrigerant factors report the whole CO2e as a single
        ``co2e_direct`` component. Factors without gas components return an
        empty mapping. Audit use only; totals never depend on it.
        """
        if factor.gwp is not None:
            return {GasSpecies.CO2E_DIRECT.value: canonical_quantity * factor.gwp}

        breakdown: Dict[str, Decimal] = {}
        for gas in (GasSpecies.CO2, GasSpecies.CH4, GasSpecies.N2O):
            per_unit = getattr(factor, gas.value)
            if per_unit is not None:
                breakdown[gas.value] = canonical_quantity * per_unit
        return breakdown

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def version(self) -> str:
        return self._version

    def list_factors(self, category: Optional[Union[ActivityCategory, str]] = None) -> List[EmissionFactor]:
        """Factors sorted by (category, subtype, unit), optionally for one category."""
        wanted = ActivityCategory(category) if category is not None else None
        return [
            self._factors[key]
            for key in sorted(self._factors, key=lambda k: (k[0].value, k[1], k[2]))
            if wanted is None or key[0] == wanted
        ]

    def __len__(self) -> int:
        return len(self._factors)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 3:
            return False
        try:
            return _key(*key) in self._factors
        except (ValueError, AttributeError):
            return False


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


@lru_cache(maxsize=8)
def load_default_registry(factor_file: Optional[str] = None) -> EmissionFactorRegistry:
    """Registry built once per factor file; the packaged table by default."""
    return EmissionFactorRegistry.from_yaml(factor_file or DEFAULT_FACTOR_FILE)


__all__ = ["EmissionFactorRegistry", "load_default_registry", "DEFAULT_FACTOR_FILE"]
