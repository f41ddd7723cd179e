"""Tests for the unit normalizer."""

from decimal import Decimal

import pytest

from carbonledger.exceptions import InvalidQuantity, UnsupportedUnit
from carbonledger.models import ActivityCategory
from carbonledger.unit_normalizer import UnitNormalizer, normalize


@pytest.fixture
def normalizer():
    return UnitNormalizer()


class TestCanonicalConversion:
    """Quantities land in the category's canonical unit."""

    def test_liters_are_identity(self, normalizer):
        assert normalizer.normalize("fuel", "diesel", Decimal("12.5"), "liters") == (
            Decimal("12.5"),
            "liters",
        )

    def test_gallons_to_liters(self, normalizer):
        quantity, unit = normalizer.normalize("fuel", "diesel", 10, "gallons")
        assert unit == "liters"
        assert quantity == Decimal("37.8541")

    def test_fuel_accepts_mass(self, normalizer):
        quantity, unit = normalizer.normalize(ActivityCategory.FUEL, "propane", "2", "tonnes")
        assert (quantity, unit) == (Decimal("2000"), "kg")

    def test_electricity_mwh_to_kwh(self, normalizer):
        assert normalizer.normalize("electricity", "luzon_grid", "1.5", "MWh") == (
            Decimal("1500.0"),
            "kwh",
        )

    def test_vehicle_mileage_in_miles(self, normalizer):
        quantity, unit = normalizer.normalize("vehicle", "car", 100, "miles")
        assert unit == "km"
        assert quantity == Decimal("160.9344")

    def test_refrigerant_pounds(self, normalizer):
        quantity, unit = normalizer.normalize("refrigerant", "R_410A", 1, "lb")
        assert (quantity, unit) == (Decimal("0.45359237"), "kg")

    def test_unit_spelling_is_cleaned(self, normalizer):
        quantity, unit = normalizer.normalize("fuel", "natural_gas", 1, " Cubic Meter ")
        assert (quantity, unit) == (Decimal("1000"), "liters")

    def test_zero_is_valid(self, normalizer):
        assert normalizer.normalize("commuting", "bus", 0, "km") == (Decimal("0"), "km")

    def test_module_shortcut(self):
        assert normalize("fuel", "diesel", "1", "l") == (Decimal("1"), "liters")


class TestRejections:
    """Invalid quantities and units fail loudly."""

    def test_negative_quantity(self, normalizer):
        with pytest.raises(InvalidQuantity) as exc_info:
            normalizer.normalize("fuel", "diesel", -5, "liters")
        assert exc_info.value.error_code == "CL_CALC_INVALID_QUANTITY"

    @pytest.mark.parametrize("value", [None, "abc", "NaN", float("inf")])
    def test_non_numeric_or_non_finite(self, normalizer, value):
        with pytest.raises(InvalidQuantity):
            normalizer.normalize("fuel", "diesel", value, "liters")

    def test_unknown_unit(self, normalizer):
        with pytest.raises(UnsupportedUnit) as exc_info:
            normalizer.normalize("fuel", "diesel", 10, "furlong")
        assert "liters" in exc_info.value.context["supported_units"]
        assert exc_info.value.context["unit"] == "furlong"

    def test_unit_from_wrong_dimension(self, normalizer):
        with pytest.raises(UnsupportedUnit):
            normalizer.normalize("electricity", "ph_grid_average", 10, "liters")

    def test_refrigerant_rejects_volume(self, normalizer):
        with pytest.raises(UnsupportedUnit):
            normalizer.normalize("refrigerant", "R_32", 10, "gallons")

    def test_quantity_above_maximum(self, normalizer):
        with pytest.raises(InvalidQuantity) as exc_info:
            normalizer.normalize("fuel", "diesel", Decimal("1e30"), "liters")
        assert exc_info.value.context["unit"] == "liters"

    def test_maximum_applies_after_conversion(self, normalizer):
        limit = UnitNormalizer.MAX_CANONICAL_QUANTITY
        assert normalizer.normalize("electricity", "luzon_grid", limit, "kwh")[0] == limit
        with pytest.raises(InvalidQuantity):
            normalizer.normalize("electricity", "luzon_grid", limit, "MWh")


class TestIntrospection:

    def test_supported_units_are_sorted(self, normalizer):
        units = normalizer.list_supported_units("electricity")
        assert units == sorted(units)
        assert "kwh" in units and "km" not in units
