# -*- coding: utf-8 -*-
"""
carbonledger Data Models

Pydantic v2 data models for the emission calculation engine. Covers the
five activity categories an organization reports each period (fuel,
vehicles, electricity, refrigerants, employee commuting), the emission
factor reference records, the ephemeral per-record contributions, the
persisted calculation result, and the derived trend / comparison views.

Activity records are a tagged union discriminated on ``category``; each
variant carries only the fields its category needs and no behaviour. The
calculation engine dispatches on the tag.

Enumerations (3):
    ActivityCategory, Scope, GasSpecies

Data Models:
    ScopeSelection, ReportingRecord, FuelEntry, VehicleEntry,
    ElectricityEntry, RefrigerantEntry, CommuteSurveyEntry,
    EmissionFactor, Contribution, RecordError, CalculationResult,
    CalculationOutcome, TrendPoint, TrendStatistics, ComparisonItem,
    PeriodChange

Author: carbonledger Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Service version string.
VERSION: str = "1.0.0"

#: Tolerance used when checking result invariants (kg CO2e).
INVARIANT_TOLERANCE: Decimal = Decimal("0.0001")

ZERO: Decimal = Decimal("0")


# =============================================================================
# Enumerations
# =============================================================================


class ActivityCategory(str, Enum):
    """Activity data category, the tag of the activity union.

    FUEL: Stationary fuel combustion (generators, boilers, cooking).
    VEHICLE: Company-operated vehicles.
    ELECTRICITY: Purchased grid electricity.
    REFRIGERANT: Refrigerant purchased and leaked from equipment.
    COMMUTING: Employee commuting survey.
    """

    FUEL = "fuel"
    VEHICLE = "vehicle"
    ELECTRICITY = "electricity"
    REFRIGERANT = "refrigerant"
    COMMUTING = "commuting"


class Scope(int, Enum):
    """GHG Protocol reporting scope."""

    SCOPE_1 = 1
    SCOPE_2 = 2
    SCOPE_3 = 3


class GasSpecies(str, Enum):
    """Gas components reported in the audit breakdown."""

    CO2 = "co2"
    CH4 = "ch4"
    N2O = "n2o"
    CO2E_DIRECT = "co2e_direct"


#: Fixed scope of every category.
CATEGORY_SCOPES: Dict[ActivityCategory, Scope] = {
    ActivityCategory.FUEL: Scope.SCOPE_1,
    ActivityCategory.VEHICLE: Scope.SCOPE_1,
    ActivityCategory.REFRIGERANT: Scope.SCOPE_1,
    ActivityCategory.ELECTRICITY: Scope.SCOPE_2,
    ActivityCategory.COMMUTING: Scope.SCOPE_3,
}

#: Key used for each category in ``CalculationResult.breakdown_by_category``.
BREAKDOWN_KEYS: Dict[ActivityCategory, str] = {
    ActivityCategory.FUEL: "fuel",
    ActivityCategory.VEHICLE: "vehicles",
    ActivityCategory.REFRIGERANT: "refrigerants",
    ActivityCategory.ELECTRICITY: "electricity",
    ActivityCategory.COMMUTING: "commuting",
}

#: Stable aggregation order.
CATEGORY_ORDER: Tuple[ActivityCategory, ...] = (
    ActivityCategory.FUEL,
    ActivityCategory.VEHICLE,
    ActivityCategory.REFRIGERANT,
    ActivityCategory.ELECTRICITY,
    ActivityCategory.COMMUTING,
)


# =============================================================================
# Reporting record
# =============================================================================


class ScopeSelection(BaseModel):
    """Which scopes an organization collects data for."""

    model_config = ConfigDict(frozen=True)

    scope1: bool = Field(default=True, description="Collect Scope 1 activities")
    scope2: bool = Field(default=True, description="Collect Scope 2 activities")
    scope3: bool = Field(default=True, description="Collect Scope 3 activities")

    def includes(self, scope: Scope) -> bool:
        return {
            Scope.SCOPE_1: self.scope1,
            Scope.SCOPE_2: self.scope2,
            Scope.SCOPE_3: self.scope3,
        }[Scope(scope)]


class ReportingRecord(BaseModel):
    """One organization's reporting period ``[period_start, period_end)``.

    Attributes:
        id: Reporting record identifier.
        organization_id: Owning organization.
        period_start: First day of the period (inclusive).
        period_end: End of the period (exclusive).
        scope_selection: Scopes collected for this organization; ``None``
            collects all three.
        employee_count: Headcount used for emissions per employee.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Reporting record identifier")
    organization_id: str = Field(..., min_length=1, description="Owning organization")
    period_start: date = Field(..., description="Period start (inclusive)")
    period_end: date = Field(..., description="Period end (exclusive)")
    scope_selection: Optional[ScopeSelection] = Field(
        default=None,
        description="Scopes collected; None collects every scope",
    )
    employee_count: Optional[int] = Field(
        default=None,
        ge=0,
        description="Headcount used for emissions per employee",
    )

    @field_validator("period_end")
    @classmethod
    def end_after_start(cls, v: date, info: Any) -> date:
        """Validate that period_end is after period_start."""
        start = info.data.get("period_start")
        if start is not None and v <= start:
            raise ValueError("period_end must be after period_start")
        return v


# =============================================================================
# Activity records (tagged union)
# =============================================================================


class FuelEntry(BaseModel):
    """Stationary fuel burned during the period."""

    model_config = ConfigDict(frozen=True)

    category: Literal["fuel"] = "fuel"
    id: int = Field(..., description="Activity record identifier")
    reporting_record_id: str = Field(..., description="Owning reporting record")
    fuel_type: str = Field(..., min_length=1, description="Fuel subtype, e.g. diesel")
    quantity: Decimal = Field(..., description="Quantity burned in ``unit``")
    unit: str = Field(..., min_length=1, description="Unit of ``quantity``")
    entry_date: Optional[date] = Field(default=None, description="Date of the entry")

    @property
    def subtype(self) -> str:
        return self.fuel_type


class VehicleEntry(BaseModel):
    """Vehicle operated during the period.

    Fuel consumed is preferred; mileage alone is accepted and priced with a
    distance-based factor for the vehicle type.
    """

    model_config = ConfigDict(frozen=True)

    category: Literal["vehicle"] = "vehicle"
    id: int = Field(..., description="Activity record identifier")
    reporting_record_id: str = Field(..., description="Owning reporting record")
    vehicle_type: str = Field(..., min_length=1, description="Vehicle subtype, e.g. truck")
    fuel_type: str = Field(..., min_length=1, description="Fuel burned by the vehicle")
    fuel_consumed: Optional[Decimal] = Field(default=None, description="Fuel consumed in ``unit``")
    unit: str = Field(default="liters", description="Unit of ``fuel_consumed``")
    mileage: Optional[Decimal] = Field(default=None, description="Distance driven in ``distance_unit``")
    distance_unit: str = Field(default="km", description="Unit of ``mileage``")
    entry_date: Optional[date] = Field(default=None, description="Date of the entry")

    @model_validator(mode="after")
    def validate_quantity_present(self) -> VehicleEntry:
        """Validate that fuel consumed or mileage is provided."""
        if self.fuel_consumed is None and self.mileage is None:
            raise ValueError("At least one of fuel_consumed or mileage must be provided")
        return self

    @property
    def subtype(self) -> str:
        return self.fuel_type if self.fuel_consumed is not None else self.vehicle_type


class ElectricityEntry(BaseModel):
    """Purchased electricity for one billing window."""

    model_config = ConfigDict(frozen=True)

    category: Literal["electricity"] = "electricity"
    id: int = Field(..., description="Activity record identifier")
    reporting_record_id: str = Field(..., description="Owning reporting record")
    grid: Optional[str] = Field(
        default=None,
        min_length=1,
        description="Grid subtype; None uses the configured default grid",
    )
    quantity: Decimal = Field(..., description="Energy consumed in ``unit``")
    unit: str = Field(default="kwh", description="Unit of ``quantity``")
    peak_hours_kwh: Optional[Decimal] = Field(default=None, ge=0, description="Peak-hour share")
    offpeak_hours_kwh: Optional[Decimal] = Field(default=None, ge=0, description="Off-peak share")
    billing_period_start: date = Field(..., description="Billing window start")
    billing_period_end: date = Field(..., description="Billing window end")

    @field_validator("billing_period_end")
    @classmethod
    def billing_end_after_start(cls, v: date, info: Any) -> date:
        """Validate that the billing window is not empty."""
        start = info.data.get("billing_period_start")
        if start is not None and v <= start:
            raise ValueError("billing_period_end must be after billing_period_start")
        return v

    @property
    def subtype(self) -> Optional[str]:
        return self.grid


class RefrigerantEntry(BaseModel):
    """Refrigerant purchased for and leaked from equipment.

    Only the leaked mass produces emissions; purchases are informational.
    """

    model_config = ConfigDict(frozen=True)

    category: Literal["refrigerant"] = "refrigerant"
    id: int = Field(..., description="Activity record identifier")
    reporting_record_id: str = Field(..., description="Owning reporting record")
    refrigerant_type: str = Field(..., min_length=1, description="Refrigerant subtype, e.g. R_134a")
    quantity_leaked: Optional[Decimal] = Field(default=None, description="Mass leaked in ``unit``")
    quantity_purchased: Optional[Decimal] = Field(default=None, description="Mass purchased in ``unit``")
    unit: str = Field(default="kg", description="Mass unit of both quantities")
    entry_date: Optional[date] = Field(default=None, description="Date of the entry")

    @property
    def subtype(self) -> str:
        return self.refrigerant_type


class CommuteSurveyEntry(BaseModel):
    """Commuting pattern of a group of employees using one transport mode.

    ``avg_distance`` is the one-way distance per employee per working day.
    """

    model_config = ConfigDict(frozen=True)

    category: Literal["commuting"] = "commuting"
    id: int = Field(..., description="Activity record identifier")
    reporting_record_id: str = Field(..., description="Owning reporting record")
    transport_mode: str = Field(..., min_length=1, description="Transport mode, e.g. bus")
    employee_count: int = Field(..., gt=0, description="Employees using this mode")
    avg_distance: Decimal = Field(..., description="One-way distance in ``unit``")
    unit: str = Field(default="km", description="Unit of ``avg_distance``")
    days_per_week: int = Field(..., ge=0, le=7, description="Commuting days per week")
    wfh_days: int = Field(default=0, ge=0, description="Work-from-home days per week")
    survey_date: Optional[date] = Field(default=None, description="Survey date")

    @model_validator(mode="after")
    def validate_wfh_days(self) -> CommuteSurveyEntry:
        """Validate that work-from-home days fit within the working week."""
        if self.wfh_days > self.days_per_week:
            raise ValueError("wfh_days must not exceed days_per_week")
        return self

    @property
    def subtype(self) -> str:
        return self.transport_mode


ActivityRecord = Annotated[
    Union[FuelEntry, VehicleEntry, ElectricityEntry, RefrigerantEntry, CommuteSurveyEntry],
    Field(discriminator="category"),
]

_ACTIVITY_ADAPTER: TypeAdapter = TypeAdapter(ActivityRecord)


def parse_activity(data: Dict[str, Any]) -> Any:
    """Build the right activity variant from a plain mapping.

    Example:
        >>> parse_activity({"category": "fuel", "id": 1, "reporting_record_id": "r1",
        ...                 "fuel_type": "diesel", "quantity": "10", "unit": "liters"})
        FuelEntry(...)
    """
    return _ACTIVITY_ADAPTER.validate_python(data)


# =============================================================================
# Reference data
# =============================================================================


class EmissionFactor(BaseModel):
    """Emission factor keyed by (category, subtype, canonical unit).

    Exactly one of ``co2e_per_unit`` (kg CO2e per canonical unit) or
    ``gwp`` (multiplier on refrigerant mass) is set. Per-gas components are
    kg of gas per canonical unit and are used for audit only.
    """

    model_config = ConfigDict(frozen=True)

    category: ActivityCategory = Field(..., description="Activity category")
    subtype: str = Field(..., min_length=1, description="Fuel type, grid, refrigerant or mode")
    unit: str = Field(..., min_length=1, description="Canonical unit the factor applies to")
    co2e_per_unit: Optional[Decimal] = Field(default=None, ge=0, description="kg CO2e per unit")
    gwp: Optional[Decimal] = Field(default=None, ge=0, description="Global warming potential")
    co2: Optional[Decimal] = Field(default=None, ge=0, description="kg CO2 per unit")
    ch4: Optional[Decimal] = Field(default=None, ge=0, description="kg CH4 per unit")
    n2o: Optional[Decimal] = Field(default=None, ge=0, description="kg N2O per unit")
    source: str = Field(default="", description="Publishing authority")
    description: str = Field(default="", description="Human-readable description")

    @model_validator(mode="after")
    def validate_single_multiplier(self) -> EmissionFactor:
        """Validate that exactly one of co2e_per_unit / gwp is present."""
        if (self.co2e_per_unit is None) == (self.gwp is None):
            raise ValueError(
                f"Factor {self.category.value}/{self.subtype} must define exactly "
                "one of co2e_per_unit or gwp"
            )
        return self

    @property
    def key(self) -> Tuple[ActivityCategory, str, str]:
        return (self.category, self.subtype, self.unit)

    @property
    def label(self) -> str:
        """``category/subtype/unit`` string used in audit output."""
        return f"{self.category.value}/{self.subtype}/{self.unit}"

    @property
    def multiplier(self) -> Decimal:
        """kg CO2e produced by one canonical unit."""
        return self.gwp if self.gwp is not None else self.co2e_per_unit


# =============================================================================
# Calculation models
# =============================================================================


class Contribution(BaseModel):
    """CO2e produced by one activity record. Never persisted on its own."""

    model_config = ConfigDict(frozen=True)

    record_id: int = Field(..., description="Source activity record")
    scope: Scope = Field(..., description="Reporting scope")
    category: ActivityCategory = Field(..., description="Activity category")
    subtype: str = Field(..., description="Activity subtype")
    co2e: Decimal = Field(..., ge=0, description="Unrounded kg CO2e")
    canonical_quantity: Decimal = Field(..., ge=0, description="Quantity in canonical unit")
    canonical_unit: str = Field(..., description="Canonical unit")
    factor_key: Optional[str] = Field(default=None, description="Factor label, None when no factor applied")
    factor_value: Optional[Decimal] = Field(default=None, description="Multiplier applied")
    gases: Dict[str, Decimal] = Field(default_factory=dict, description="Audit gas masses (kg)")


class RecordError(BaseModel):
    """A recoverable per-record failure reported alongside a result."""

    model_config = ConfigDict(frozen=True)

    category: ActivityCategory = Field(..., description="Category of the failing record")
    record_id: int = Field(..., description="Failing activity record")
    error_code: str = Field(..., description="Machine-readable error code")
    reason: str = Field(..., description="Human-readable reason")


class CalculationResult(BaseModel):
    """Persisted emissions result for one reporting record.

    Totals are kg CO2e quantized to the configured precision. The totals
    and the breakdown satisfy ``total == scope1 + scope2 + scope3`` and
    ``sum(breakdown) == total`` within ``INVARIANT_TOLERANCE``.

    Attributes:
        calculation_id: Identifier of the run that produced this result.
        reporting_record_id: Reporting record the result belongs to.
        total_co2e: Grand total.
        total_scope1_co2e: Scope 1 total.
        total_scope2_co2e: Scope 2 total.
        total_scope3_co2e: Scope 3 total.
        breakdown_by_category: Category key to kg CO2e; every category
            is present.
        emissions_per_employee: Total divided by the record's headcount.
        emission_factors_used: Factor label to multiplier for every factor
            that priced at least one record.
        gas_totals: Audit-only gas masses (kg) summed across records.
        provenance_hash: SHA-256 chain hash of the run.
        calculated_at: UTC timestamp of the run.
    """

    model_config = ConfigDict(frozen=True)

    calculation_id: str = Field(
        default_factory=lambda: f"calc_{uuid.uuid4().hex[:12]}",
        description="Unique identifier for this calculation",
    )
    reporting_record_id: str = Field(..., description="Reporting record")
    total_co2e: Decimal = Field(default=ZERO, ge=0, description="Total kg CO2e")
    total_scope1_co2e: Decimal = Field(default=ZERO, ge=0, description="Scope 1 kg CO2e")
    total_scope2_co2e: Decimal = Field(default=ZERO, ge=0, description="Scope 2 kg CO2e")
    total_scope3_co2e: Decimal = Field(default=ZERO, ge=0, description="Scope 3 kg CO2e")
    breakdown_by_category: Dict[str, Decimal] = Field(
        default_factory=lambda: {key: ZERO for key in BREAKDOWN_KEYS.values()},
        description="Category to kg CO2e",
    )
    emissions_per_employee: Decimal = Field(default=ZERO, ge=0, description="kg CO2e per employee")
    emission_factors_used: Dict[str, Decimal] = Field(
        default_factory=dict,
        description="Factor label to multiplier",
    )
    gas_totals: Dict[str, Decimal] = Field(default_factory=dict, description="Audit gas masses (kg)")
    provenance_hash: Optional[str] = Field(default=None, description="SHA-256 provenance hash")
    calculated_at: datetime = Field(default_factory=_utcnow, description="UTC calculation time")

    @model_validator(mode="after")
    def validate_totals(self) -> CalculationResult:
        """Validate the scope and breakdown invariants."""
        scope_sum = self.total_scope1_co2e + self.total_scope2_co2e + self.total_scope3_co2e
        if abs(self.total_co2e - scope_sum) > INVARIANT_TOLERANCE:
            raise ValueError(
                f"total_co2e {self.total_co2e} does not equal scope sum {scope_sum}"
            )
        breakdown_sum = sum(self.breakdown_by_category.values(), ZERO)
        if abs(self.total_co2e - breakdown_sum) > INVARIANT_TOLERANCE:
            raise ValueError(
                f"total_co2e {self.total_co2e} does not equal breakdown sum {breakdown_sum}"
            )
        return self

    def persisted_values(self) -> Dict[str, Any]:
        """Numeric content of the result, excluding run metadata."""
        return {
            "total_co2e": self.total_co2e,
            "total_scope1_co2e": self.total_scope1_co2e,
            "total_scope2_co2e": self.total_scope2_co2e,
            "total_scope3_co2e": self.total_scope3_co2e,
            "breakdown_by_category": dict(self.breakdown_by_category),
            "emissions_per_employee": self.emissions_per_employee,
            "emission_factors_used": dict(self.emission_factors_used),
            "gas_totals": dict(self.gas_totals),
        }


class CalculationOutcome(BaseModel):
    """Result of one ``calculate`` call: the stored result plus warnings."""

    model_config = ConfigDict(frozen=True)

    result: CalculationResult = Field(..., description="Persisted result")
    record_errors: List[RecordError] = Field(default_factory=list, description="Per-record warnings")
    forced: bool = Field(default=False, description="Whether recompute was explicitly forced")
    records_processed: int = Field(default=0, ge=0, description="Activity records considered")
    provenance: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Provenance chain entries of this run, oldest first",
    )
    provenance_chain_valid: Optional[bool] = Field(
        default=None,
        description="Chain verification result; None when provenance is disabled",
    )

    @property
    def has_warnings(self) -> bool:
        return bool(self.record_errors)


# =============================================================================
# Trend / comparison views
# =============================================================================


class TrendPoint(BaseModel):
    """One point of a trend series, taken from a stored result."""

    model_config = ConfigDict(frozen=True)

    date: str = Field(..., description="ISO date of the period start")
    month: str = Field(..., description="ISO year-month of the period start")
    total_co2e: Decimal = Field(..., description="Total kg CO2e")
    scope1: Decimal = Field(..., description="Scope 1 kg CO2e")
    scope2: Decimal = Field(..., description="Scope 2 kg CO2e")
    scope3: Decimal = Field(..., description="Scope 3 kg CO2e")
    breakdown: Dict[str, Decimal] = Field(default_factory=dict, description="Category breakdown")


class TrendStatistics(BaseModel):
    """Summary statistics over a total CO2e series."""

    model_config = ConfigDict(frozen=True)

    min: Decimal = Field(..., description="Smallest total")
    max: Decimal = Field(..., description="Largest total")
    average: Decimal = Field(..., description="Arithmetic mean of totals")
    data_points: int = Field(..., ge=1, description="Number of points")


class ComparisonItem(BaseModel):
    """One labelled value of a comparison and its share of the whole."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Scope or category label")
    value: Decimal = Field(..., description="kg CO2e")
    percentage: Decimal = Field(..., description="Share of the total, in percent")


class PeriodChange(BaseModel):
    """Monthly total and its change against the previous month."""

    model_config = ConfigDict(frozen=True)

    month: str = Field(..., description="ISO year-month")
    total_co2e: Decimal = Field(..., description="kg CO2e in the month")
    change: Optional[Decimal] = Field(default=None, description="Absolute change vs previous")
    change_percentage: Optional[Decimal] = Field(
        default=None,
        description="Relative change vs previous, in percent",
    )


__all__ = [
    "VERSION",
    "INVARIANT_TOLERANCE",
    "ActivityCategory",
    "Scope",
    "GasSpecies",
    "CATEGORY_SCOPES",
    "BREAKDOWN_KEYS",
    "CATEGORY_ORDER",
    "ScopeSelection",
    "ReportingRecord",
    "FuelEntry",
    "VehicleEntry",
    "ElectricityEntry",
    "RefrigerantEntry",
    "CommuteSurveyEntry",
    "ActivityRecord",
    "parse_activity",
    "EmissionFactor",
    "Contribution",
    "RecordError",
    "CalculationResult",
    "CalculationOutcome",
    "TrendPoint",
    "TrendStatistics",
    "ComparisonItem",
    "PeriodChange",
]
