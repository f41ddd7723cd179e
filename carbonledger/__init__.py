"""
carbonledger: Organizational GHG Emissions Ledger
==================================================

Calculates Scope 1, 2 and 3 emissions for an organization's reporting
periods from fuel, vehicle, electricity, refrigerant and commuting
activity data, stores one result per period and derives trends.
"""

from ._version import __version__

__author__ = "carbonledger Team"
__license__ = "MIT"

from carbonledger.calculation_engine import CalculationEngine
from carbonledger.config import EngineConfig, get_config, reset_config, set_config
from carbonledger.exceptions import (
    CalculationFailed,
    CarbonLedgerException,
    EmptySeries,
    FactorNotFound,
    InvalidQuantity,
    RecordNotFound,
    UnsupportedUnit,
)
from carbonledger.factor_registry import EmissionFactorRegistry, load_default_registry
from carbonledger.models import (
    ActivityCategory,
    CalculationOutcome,
    CalculationResult,
    CommuteSurveyEntry,
    ElectricityEntry,
    FuelEntry,
    RefrigerantEntry,
    ReportingRecord,
    Scope,
    ScopeSelection,
    VehicleEntry,
)
from carbonledger.repository import EmissionsRepository, InMemoryRepository
from carbonledger.scope_policy import ScopeSelectionPolicy
from carbonledger.service import EmissionsService
from carbonledger.trend_analyzer import TrendAnalyzer
from carbonledger.unit_normalizer import UnitNormalizer

__all__ = [
    "__version__",
    "CalculationEngine",
    "EmissionsService",
    "TrendAnalyzer",
    "UnitNormalizer",
    "EmissionFactorRegistry",
    "load_default_registry",
    "EmissionsRepository",
    "InMemoryRepository",
    "EngineConfig",
    "get_config",
    "set_config",
    "reset_config",
    "ActivityCategory",
    "Scope",
    "ScopeSelection",
    "ScopeSelectionPolicy",
    "ReportingRecord",
    "FuelEntry",
    "VehicleEntry",
    "ElectricityEntry",
    "RefrigerantEntry",
    "CommuteSurveyEntry",
    "CalculationResult",
    "CalculationOutcome",
    "CarbonLedgerException",
    "InvalidQuantity",
    "UnsupportedUnit",
    "FactorNotFound",
    "RecordNotFound",
    "CalculationFailed",
    "EmptySeries",
]
