"""Tests for the carbonledger exception hierarchy."""

import json

from carbonledger.exceptions import (
    RECOVERABLE_RECORD_ERRORS,
    CalculationException,
    CalculationFailed,
    CarbonLedgerException,
    ConfigurationError,
    EmptySeries,
    FactorNotFound,
    InvalidQuantity,
    RecordNotFound,
    RepositoryError,
    TrendException,
    UnsupportedUnit,
)


class TestCarbonLedgerException:

    def test_create_basic_exception(self):
        exc = CarbonLedgerException("Something went wrong")
        assert exc.message == "Something went wrong"
        assert exc.error_code == "CL_CARBON_LEDGER_EXCEPTION"
        assert exc.context == {}
        assert str(exc) == "[CL_CARBON_LEDGER_EXCEPTION] - Something went wrong"

    def test_explicit_error_code(self):
        exc = CarbonLedgerException("x", error_code="CUSTOM")
        assert exc.error_code == "CUSTOM"

    def test_serialization(self):
        exc = FactorNotFound("No factor", context={"subtype": "diesel"})
        data = json.loads(exc.to_json())
        assert data["error_type"] == "FactorNotFound"
        assert data["error_code"] == "CL_CALC_FACTOR_NOT_FOUND"
        assert data["context"] == {"subtype": "diesel"}
        assert "timestamp" in data

    def test_repr(self):
        assert repr(RecordNotFound("gone")) == (
            "RecordNotFound(message='gone', error_code='CL_CALC_RECORD_NOT_FOUND')"
        )


class TestHierarchy:

    def test_calculation_errors(self):
        for cls in (InvalidQuantity, UnsupportedUnit, FactorNotFound, RecordNotFound, CalculationFailed):
            assert issubclass(cls, CalculationException)

    def test_error_prefixes(self):
        assert EmptySeries("e").error_code == "CL_TREND_EMPTY_SERIES"
        assert issubclass(EmptySeries, TrendException)
        assert ConfigurationError("c").error_code.startswith("CL_CONFIG_")
        assert RepositoryError("r").error_code.startswith("CL_DATA_")

    def test_recoverable_errors(self):
        assert RECOVERABLE_RECORD_ERRORS == (InvalidQuantity, UnsupportedUnit, FactorNotFound)
        assert not issubclass(CalculationFailed, RECOVERABLE_RECORD_ERRORS)


class TestSpecialisedErrors:

    def test_unsupported_unit_lists_units(self):
        exc = UnsupportedUnit("bad unit", context={"unit": "furlong"}, supported_units=["l", "kg"])
        assert exc.context == {"unit": "furlong", "supported_units": ["kg", "l"]}

    def test_calculation_failed_carries_record_errors(self):
        exc = CalculationFailed("all failed", record_errors=["a", "b"])
        assert exc.record_errors == ["a", "b"]
        assert exc.context["error_count"] == 2
