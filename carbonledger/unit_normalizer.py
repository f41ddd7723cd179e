# -*- coding: utf-8 -*-
"""
Unit Normalizer

Deterministic conversion of activity quantities into the single canonical
unit the emission factor table is keyed by. Pure Decimal arithmetic, no
I/O. Unknown units fail loudly with ``UnsupportedUnit``.

Canonical units:
- Volume: liters
- Mass: kg
- Energy: kwh
- Distance: km

Dimensions accepted per category:
- fuel: volume, mass
- vehicle: volume (fuel consumed), distance (mileage)
- electricity: energy
- refrigerant: mass
- commuting: distance
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple, Union

from carbonledger.exceptions import InvalidQuantity, UnsupportedUnit
from carbonledger.models import ActivityCategory

logger = logging.getLogger(__name__)

Number = Union[int, float, str, Decimal]

VOLUME = "volume"
MASS = "mass"
ENERGY = "energy"
DISTANCE = "distance"


class UnitNormalizer:
    """
    Converts (category, quantity, unit) into (canonical quantity, canonical unit).

    GUARANTEES:
    - Same input -> same output (Decimal, no floats)
    - Negative or non-finite quantities -> InvalidQuantity
    - Canonical quantities above MAX_CANONICAL_QUANTITY -> InvalidQuantity
    - Units outside the category's dimensions -> UnsupportedUnit
    """

    #: Largest canonical quantity accepted for a single activity record.
    MAX_CANONICAL_QUANTITY: Decimal = Decimal("1e15")

    # Volume conversions (to liters as base unit)
    VOLUME_TO_LITERS: Dict[str, Decimal] = {
        'liter': Decimal('1'),
        'liters': Decimal('1'),
        'litre': Decimal('1'),
        'litres': Decimal('1'),
        'l': Decimal('1'),
        'gallon': Decimal('3.78541'),  # US gallon
        'gallons': Decimal('3.78541'),
        'gal': Decimal('3.78541'),
        'imperial_gallon': Decimal('4.54609'),
        'm3': Decimal('1000'),
        'cubic_meter': Decimal('1000'),
        'cubic_meters': Decimal('1000'),
        'cubic_metre': Decimal('1000'),
        'ft3': Decimal('28.3168'),
        'cubic_feet': Decimal('28.3168'),
        'scf': Decimal('28.3168'),  # Standard cubic foot
        'ccf': Decimal('2831.68'),  # 100 cubic feet
        'mcf': Decimal('28316.8'),  # 1000 cubic feet
    }

    # Mass conversions (to kg as base unit)
    MASS_TO_KG: Dict[str, Decimal] = {
        'kg': Decimal('1'),
        'kgs': Decimal('1'),
        'kilogram': Decimal('1'),
        'kilograms': Decimal('1'),
        'g': Decimal('0.001'),
        'gram': Decimal('0.001'),
        'grams': Decimal('0.001'),
        'lb': Decimal('0.45359237'),
        'lbs': Decimal('0.45359237'),
        'pound': Decimal('0.45359237'),
        'pounds': Decimal('0.45359237'),
        'tonne': Decimal('1000'),
        'tonnes': Decimal('1000'),
        'metric_ton': Decimal('1000'),
        't': Decimal('1000'),
        'ton': Decimal('907.18474'),  # US short ton
        'tons': Decimal('907.18474'),
    }

    # Energy conversions (to kWh as base unit)
    ENERGY_TO_KWH: Dict[str, Decimal] = {
        'wh': Decimal('0.001'),
        'kwh': Decimal('1'),
        'mwh': Decimal('1000'),
        'gwh': Decimal('1000000'),
        'mmbtu': Decimal('293.071'),  # 1 MMBtu = 293.071 kWh
        'therm': Decimal('29.3071'),  # 1 Therm = 29.3071 kWh
        'therms': Decimal('29.3071'),
        'gj': Decimal('277.778'),  # 1 GJ = 277.778 kWh
        'mj': Decimal('0.277778'),
        'btu': Decimal('0.000293071'),
    }

    # Distance conversions (to km as base unit)
    DISTANCE_TO_KM: Dict[str, Decimal] = {
        'km': Decimal('1'),
        'kilometer': Decimal('1'),
        'kilometers': Decimal('1'),
        'kilometre': Decimal('1'),
        'kilometres': Decimal('1'),
        'm': Decimal('0.001'),
        'meter': Decimal('0.001'),
        'meters': Decimal('0.001'),
        'mile': Decimal('1.609344'),
        'miles': Decimal('1.609344'),
        'mi': Decimal('1.609344'),
        'ft': Decimal('0.0003048'),
    }

    CANONICAL_UNITS: Dict[str, str] = {
        VOLUME: 'liters',
        MASS: 'kg',
        ENERGY: 'kwh',
        DISTANCE: 'km',
    }

    CATEGORY_DIMENSIONS: Dict[ActivityCategory, Tuple[str, ...]] = {
        ActivityCategory.FUEL: (VOLUME, MASS),
        ActivityCategory.VEHICLE: (VOLUME, DISTANCE),
        ActivityCategory.ELECTRICITY: (ENERGY,),
        ActivityCategory.REFRIGERANT: (MASS,),
        ActivityCategory.COMMUTING: (DISTANCE,),
    }

    def __init__(self):
        self.conversion_tables: Dict[str, Dict[str, Decimal]] = {
            VOLUME: self.VOLUME_TO_LITERS,
            MASS: self.MASS_TO_KG,
            ENERGY: self.ENERGY_TO_KWH,
            DISTANCE: self.DISTANCE_TO_KM,
        }

    def normalize(
        self,
        category: Union[ActivityCategory, str],
        subtype: str,
        quantity: Number,
        source_unit: str,
    ) -> Tuple[Decimal, str]:
        """
        Convert a quantity into its category's canonical unit.

        Args:
            category: Activity category of the record
            subtype: Fuel type, grid, refrigerant or transport mode (context only)
            quantity: Non-negative amount in ``source_unit``
            source_unit: Unit as reported (case-insensitive, aliases accepted)

        Returns:
            Tuple of (canonical quantity, canonical unit)

        Raises:
            InvalidQuantity: Quantity is negative or not a finite number
            UnsupportedUnit: Unit is unknown or not valid for the category
        """
        category = ActivityCategory(category)
        value = self._to_decimal(quantity, category, subtype)

        unit = self._clean_unit(source_unit)
        dimension = self._get_dimension(unit, category)
        if dimension is None:
            raise UnsupportedUnit(
                f"Unit '{source_unit}' is not supported for category '{category.value}'",
                context={
                    "category": category.value,
                    "subtype": subtype,
                    "unit": source_unit,
                },
                supported_units=self.list_supported_units(category),
            )

        canonical_unit = self.CANONICAL_UNITS[dimension]
        canonical_quantity = value * self.conversion_tables[dimension][unit]
        self.ensure_in_range(category, subtype, canonical_quantity, canonical_unit)
        logger.debug(
            "Normalized %s/%s: %s %s -> %s %s",
            category.value, subtype, value, unit, canonical_quantity, canonical_unit,
        )
        return canonical_quantity, canonical_unit

    def ensure_in_range(
        self,
        category: Union[ActivityCategory, str],
        subtype: str,
        canonical_quantity: Decimal,
        canonical_unit: str,
    ) -> Decimal:
        """
        Reject canonical quantities above ``MAX_CANONICAL_QUANTITY``.

        Raises:
            InvalidQuantity: Quantity exceeds the accepted range
        """
        if canonical_quantity > self.MAX_CANONICAL_QUANTITY:
            category = ActivityCategory(category)
            raise InvalidQuantity(
                f"Quantity {canonical_quantity} {canonical_unit} exceeds the maximum of "
                f"{self.MAX_CANONICAL_QUANTITY} {canonical_unit}",
                context={
                    "category": category.value,
                    "subtype": subtype,
                    "quantity": str(canonical_quantity),
                    "unit": canonical_unit,
                },
            )
        return canonical_quantity

    def list_supported_units(self, category: Union[ActivityCategory, str]) -> List[str]:
        """All unit spellings accepted for a category."""
        units: List[str] = []
        for dimension in self.CATEGORY_DIMENSIONS[ActivityCategory(category)]:
            units.extend(self.conversion_tables[dimension].keys())
        return sorted(units)

    def _get_dimension(self, unit: str, category: ActivityCategory) -> Optional[str]:
        for dimension in self.CATEGORY_DIMENSIONS[category]:
            if unit in self.conversion_tables[dimension]:
                return dimension
        return None

    @staticmethod
    def _clean_unit(unit: str) -> str:
        return (unit or "").strip().lower().replace(" ", "_").replace("-", "_")

    @staticmethod
    def _to_decimal(quantity: Number, category: ActivityCategory, subtype: str) -> Decimal:
        context = {"category": category.value, "subtype": subtype, "quantity": str(quantity)}
        if quantity is None:
            raise InvalidQuantity("Quantity is required", context=context)
        try:
            value = quantity if isinstance(quantity, Decimal) else Decimal(str(quantity))
        except (InvalidOperation, ValueError) as e:
            raise InvalidQuantity(f"Quantity {quantity!r} is not a number", context=context) from e
        if not value.is_finite():
            raise InvalidQuantity(f"Quantity {quantity!r} is not finite", context=context)
        if value < 0:
            raise InvalidQuantity(f"Quantity must be >= 0, got {quantity}", context=context)
        return value


_default_normalizer = UnitNormalizer()


def normalize(
    category: Union[ActivityCategory, str],
    subtype: str,
    quantity: Number,
    source_unit: str,
) -> Tuple[Decimal, str]:
    """Module-level shortcut for ``UnitNormalizer().normalize``."""
    return _default_normalizer.normalize(category, subtype, quantity, source_unit)


__all__ = ["UnitNormalizer", "normalize"]
