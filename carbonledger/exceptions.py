"""carbonledger Exception Hierarchy.

Every error raised by the emissions engine carries a machine-readable error
code and a context dictionary so that callers can log, serialize, or surface
it without string parsing.

Exception Hierarchy:
    CarbonLedgerException (base)
    ├── CalculationException
    │   ├── InvalidQuantity        (per-record, recoverable)
    │   ├── UnsupportedUnit        (per-record, recoverable)
    │   ├── FactorNotFound         (per-record, recoverable)
    │   ├── RecordNotFound         (fatal)
    │   └── CalculationFailed      (fatal)
    ├── TrendException
    │   └── EmptySeries            (fatal)
    ├── ConfigurationError
    └── RepositoryError

Per-record errors are caught by the calculation engine, converted into
``RecordError`` warnings and excluded from totals. Fatal errors abort the
calculation before anything is persisted.

Example:
    >>> from carbonledger.exceptions import UnsupportedUnit
    >>> raise UnsupportedUnit(
    ...     "Unit 'furlong' is not supported for category 'fuel'",
    ...     context={"category": "fuel", "unit": "furlong"},
    ... )

Author: carbonledger Team
Date: October 2026
Status: Production Ready
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class CarbonLedgerException(Exception):
    """Base exception for all carbonledger errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "CL_CALC_FACTOR_NOT_FOUND")
        context: Dictionary with error-specific details
        timestamp: When the error occurred (UTC)
    """

    ERROR_PREFIX = "CL"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def _generate_error_code(self) -> str:
        """Derive the error code from the class name.

        Returns:
            Error code like "CL_CALC_INVALID_QUANTITY"
        """
        error_type = re.sub(r"(?<!^)(?=[A-Z])", "_", self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        return f"[{self.error_code}] - {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}')"
        )


# ==============================================================================
# Calculation Exceptions
# ==============================================================================

class CalculationException(CarbonLedgerException):
    """Base exception for the emission calculation pipeline."""
    ERROR_PREFIX = "CL_CALC"


class InvalidQuantity(CalculationException):
    """A quantity was negative or not a finite number.

    Example:
        >>> raise InvalidQuantity(
        ...     "Quantity must be >= 0, got -5",
        ...     context={"quantity": "-5", "category": "fuel"},
        ... )
    """


class UnsupportedUnit(CalculationException):
    """The unit is not recognized for the activity category."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        supported_units: Optional[List[str]] = None,
    ):
        if supported_units:
            context = context or {}
            context["supported_units"] = sorted(supported_units)
        super().__init__(message, context=context)


class FactorNotFound(CalculationException):
    """No emission factor is registered for (category, subtype, unit).

    A canonical unit that does not match the stored factor unit is a
    configuration defect and is reported with this error as well.
    """


class RecordNotFound(CalculationException):
    """The reporting record does not exist."""


class CalculationFailed(CalculationException):
    """No activity record of a non-empty set could be aggregated.

    Attributes:
        record_errors: The per-record errors that caused the failure
    """

    def __init__(
        self,
        message: str,
        record_errors: Optional[List[Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.record_errors = list(record_errors or [])
        context = context or {}
        context.setdefault("error_count", len(self.record_errors))
        super().__init__(message, context=context)


# ==============================================================================
# Trend Exceptions
# ==============================================================================

class TrendException(CarbonLedgerException):
    """Base exception for trend analysis."""
    ERROR_PREFIX = "CL_TREND"


class EmptySeries(TrendException):
    """Trend statistics were requested over an empty series."""


# ==============================================================================
# Configuration / Data Exceptions
# ==============================================================================

class ConfigurationError(CarbonLedgerException):
    """Reference data or engine configuration is invalid."""
    ERROR_PREFIX = "CL_CONFIG"


class RepositoryError(CarbonLedgerException):
    """The backing store failed to read or write."""
    ERROR_PREFIX = "CL_DATA"


RECOVERABLE_RECORD_ERRORS = (InvalidQuantity, UnsupportedUnit, FactorNotFound)


__all__ = [
    "CarbonLedgerException",
    "CalculationException",
    "InvalidQuantity",
    "UnsupportedUnit",
    "FactorNotFound",
    "RecordNotFound",
    "CalculationFailed",
    "TrendException",
    "EmptySeries",
    "ConfigurationError",
    "RepositoryError",
    "RECOVERABLE_RECORD_ERRORS",
]
