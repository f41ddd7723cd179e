# -*- coding: utf-8 -*-
"""
Calculation Engine

Turns the activity records of one reporting period into a single persisted
CalculationResult.

Pipeline per ``calculate`` call:
    1. Fetch the reporting record (RecordNotFound if absent)
    2. Take the advisory lock for the record id
    3. Collect activities in (category, id) order
    4. Per record: normalize -> factor lookup -> Contribution
       (recoverable failures become RecordError warnings)
    5. Aggregate per category, quantize once, derive scope and grand totals
    6. Upsert the result, replacing any previous one

If every record of a non-empty activity set fails, CalculationFailed is
raised and nothing is written. The calculation is always recomputed;
``force`` only marks the run as an explicit recalculation in logs, metrics
and provenance.

Scopes:
    fuel, vehicle, refrigerant  -> Scope 1
    electricity                 -> Scope 2
    commuting                   -> Scope 3
"""

import logging
import time
from contextlib import nullcontext
from decimal import Decimal, localcontext
from typing import Any, Dict, List, Optional

from carbonledger import metrics
from carbonledger.collector import ActivityCollector
from carbonledger.config import EngineConfig, get_config
from carbonledger.exceptions import (
    RECOVERABLE_RECORD_ERRORS,
    CalculationFailed,
    CarbonLedgerException,
    RecordNotFound,
)
from carbonledger.factor_registry import EmissionFactorRegistry, load_default_registry
from carbonledger.locks import KeyedLockRegistry
from carbonledger.models import (
    BREAKDOWN_KEYS,
    CATEGORY_ORDER,
    CATEGORY_SCOPES,
    ZERO,
    ActivityCategory,
    ActivityRecord,
    CalculationOutcome,
    CalculationResult,
    CommuteSurveyEntry,
    Contribution,
    ElectricityEntry,
    EmissionFactor,
    FuelEntry,
    RecordError,
    RefrigerantEntry,
    ReportingRecord,
    Scope,
    VehicleEntry,
)
from carbonledger.provenance import ProvenanceChain
from carbonledger.repository import EmissionsRepository
from carbonledger.unit_normalizer import UnitNormalizer

logger = logging.getLogger(__name__)

#: Decimal precision for category, scope and grand totals.
AGGREGATION_PRECISION = 60


class CalculationEngine:
    """
    Emission calculation and aggregation engine.

    The repository is injected; the factor registry and normalizer are
    shared, read-only collaborators.

    Example:
        >>> engine = CalculationEngine(repository)
        >>> outcome = engine.calculate("rec-2026-01")
        >>> outcome.result.total_co2e
        Decimal('2860.0000')
    """

    def __init__(
        self,
        repository: EmissionsRepository,
        registry: Optional[EmissionFactorRegistry] = None,
        normalizer: Optional[UnitNormalizer] = None,
        config: Optional[EngineConfig] = None,
        locks: Optional[KeyedLockRegistry] = None,
    ):
        self.repository = repository
        self.config = config or get_config()
        self.registry = registry or load_default_registry(self.config.factor_file)
        self.normalizer = normalizer or UnitNormalizer()
        self.collector = ActivityCollector(repository)
        self.locks = locks or KeyedLockRegistry()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def calculate(self, reporting_record_id: str, force: bool = False) -> CalculationOutcome:
        """
        Recompute and persist the emissions of one reporting record.

        Args:
            reporting_record_id: Reporting record to calculate
            force: Marks the run as an explicit recalculation

        Returns:
            CalculationOutcome with the stored result, per-record warnings and
            the provenance entries of the run

        Raises:
            RecordNotFound: The reporting record does not exist
            CalculationFailed: Every record of a non-empty set failed
        """
        start = time.perf_counter()
        record = self.repository.get_reporting_record(reporting_record_id)
        if record is None:
            self._record_outcome_metric("not_found", force)
            raise RecordNotFound(
                f"Reporting record '{reporting_record_id}' not found",
                context={"reporting_record_id": reporting_record_id},
            )

        logger.info(
            "%s emissions for reporting record %s",
            "Recalculating" if force else "Calculating",
            reporting_record_id,
        )

        with self.locks.hold(reporting_record_id), self._active_gauge():
            activities = self.collector.collect(record)
            chain = (
                ProvenanceChain(self.config.genesis_hash)
                if self.config.enable_provenance else None
            )

            contributions: List[Contribution] = []
            record_errors: List[RecordError] = []
            for activity in activities:
                try:
                    contribution = self.contribution_for(activity)
                except RECOVERABLE_RECORD_ERRORS as e:
                    record_errors.append(self._reject(activity, e, chain))
                    continue
                contributions.append(contribution)
                if chain is not None:
                    chain.add_entry(
                        "activity",
                        "lookup",
                        f"{contribution.category.value}:{contribution.record_id}",
                        data={
                            "canonical_quantity": contribution.canonical_quantity,
                            "canonical_unit": contribution.canonical_unit,
                            "factor": contribution.factor_key,
                            "co2e": contribution.co2e,
                        },
                    )

            if activities and not contributions:
                self._record_outcome_metric("failed", force)
                logger.error(
                    "Calculation failed for %s: all %d activity records were rejected",
                    reporting_record_id, len(activities),
                )
                raise CalculationFailed(
                    f"None of the {len(activities)} activity records of "
                    f"'{reporting_record_id}' could be calculated",
                    record_errors=record_errors,
                    context={"reporting_record_id": reporting_record_id},
                )

            result = self._build_result(record, contributions, chain, force)
            stored = self.repository.upsert_calculation_result(record.id, result)

        provenance: List[Dict[str, Any]] = []
        chain_valid = None
        if chain is not None:
            provenance = [entry.to_dict() for entry in chain.entries]
            chain_valid = chain.verify_chain()
            if not chain_valid:
                logger.warning("Provenance chain for %s failed verification", reporting_record_id)

        elapsed = time.perf_counter() - start
        if self.config.enable_metrics:
            metrics.observe_duration("calculate", elapsed)
            metrics.observe_record_count(len(activities))
            for contribution in contributions:
                metrics.record_contribution(
                    contribution.scope, contribution.category.value, float(contribution.co2e)
                )
        self._record_outcome_metric("partial" if record_errors else "success", force)

        logger.info(
            "Calculation completed for %s: total=%s kg CO2e (s1=%s, s2=%s, s3=%s), "
            "%d records, %d rejected, %.1f ms",
            reporting_record_id,
            stored.total_co2e,
            stored.total_scope1_co2e,
            stored.total_scope2_co2e,
            stored.total_scope3_co2e,
            len(activities),
            len(record_errors),
            elapsed * 1000,
        )
        return CalculationOutcome(
            result=stored,
            record_errors=record_errors,
            forced=force,
            records_processed=len(activities),
            provenance=provenance,
            provenance_chain_valid=chain_valid,
        )

    def contribution_for(self, activity: ActivityRecord) -> Contribution:
        """
        Produce the CO2e contribution of one activity record.

        Raises:
            InvalidQuantity, UnsupportedUnit, FactorNotFound
        """
        category = ActivityCategory(activity.category)
        if category is ActivityCategory.FUEL:
            return self._fuel(activity)
        if category is ActivityCategory.VEHICLE:
            return self._vehicle(activity)
        if category is ActivityCategory.ELECTRICITY:
            return self._electricity(activity)
        if category is ActivityCategory.REFRIGERANT:
            return self._refrigerant(activity)
        return self._commuting(activity)

    # ------------------------------------------------------------------
    # Per-category rules
    # ------------------------------------------------------------------

    def _fuel(self, entry: FuelEntry) -> Contribution:
        quantity, unit = self.normalizer.normalize(
            ActivityCategory.FUEL, entry.fuel_type, entry.quantity, entry.unit
        )
        factor = self.registry.lookup(ActivityCategory.FUEL, entry.fuel_type, unit)
        return self._priced(entry, entry.fuel_type, quantity, unit, factor)

    def _vehicle(self, entry: VehicleEntry) -> Contribution:
        # Fuel consumed is priced by fuel type, mileage alone by vehicle type.
        if entry.fuel_consumed is not None:
            subtype, amount, source_unit = entry.fuel_type, entry.fuel_consumed, entry.unit
        else:
            subtype, amount, source_unit = entry.vehicle_type, entry.mileage, entry.distance_unit
        quantity, unit = self.normalizer.normalize(
            ActivityCategory.VEHICLE, subtype, amount, source_unit
        )
        factor = self.registry.lookup(ActivityCategory.VEHICLE, subtype, unit)
        return self._priced(entry, subtype, quantity, unit, factor)

    def _electricity(self, entry: ElectricityEntry) -> Contribution:
        grid = entry.grid or self.config.default_grid
        quantity, unit = self.normalizer.normalize(
            ActivityCategory.ELECTRICITY, grid, entry.quantity, entry.unit
        )
        factor = self.registry.lookup(ActivityCategory.ELECTRICITY, grid, unit)
        return self._priced(entry, grid, quantity, unit, factor)

    def _refrigerant(self, entry: RefrigerantEntry) -> Contribution:
        leaked = entry.quantity_leaked if entry.quantity_leaked is not None else ZERO
        quantity, unit = self.normalizer.normalize(
            ActivityCategory.REFRIGERANT, entry.refrigerant_type, leaked, entry.unit
        )
        if entry.quantity_purchased is not None:
            self.normalizer.normalize(
                ActivityCategory.REFRIGERANT,
                entry.refrigerant_type,
                entry.quantity_purchased,
                entry.unit,
            )

        if quantity == 0:
            # Purchased but not leaked refrigerant emits nothing.
            return Contribution(
                record_id=entry.id,
                scope=Scope.SCOPE_1,
                category=ActivityCategory.REFRIGERANT,
                subtype=entry.refrigerant_type,
                co2e=ZERO,
                canonical_quantity=quantity,
                canonical_unit=unit,
            )

        factor = self.registry.lookup(ActivityCategory.REFRIGERANT, entry.refrigerant_type, unit)
        return self._priced(entry, entry.refrigerant_type, quantity, unit, factor)

    def _commuting(self, entry: CommuteSurveyEntry) -> Contribution:
        distance, unit = self.normalizer.normalize(
            ActivityCategory.COMMUTING, entry.transport_mode, entry.avg_distance, entry.unit
        )
        factor = self.registry.lookup(ActivityCategory.COMMUTING, entry.transport_mode, unit)

        work_days = Decimal((entry.days_per_week - entry.wfh_days) * self.config.weeks_per_year)
        annual_km = (
            Decimal(entry.employee_count)
            * distance
            * Decimal(self.config.round_trip_factor)
            * work_days
        )
        monthly_km = annual_km / Decimal(self.config.months_per_year)
        self.normalizer.ensure_in_range(
            ActivityCategory.COMMUTING, entry.transport_mode, monthly_km, unit
        )
        return self._priced(entry, entry.transport_mode, monthly_km, unit, factor)

    def _priced(
        self,
        entry: ActivityRecord,
        subtype: str,
        quantity: Decimal,
        unit: str,
        factor: EmissionFactor,
    ) -> Contribution:
        category = ActivityCategory(entry.category)
        return Contribution(
            record_id=entry.id,
            scope=CATEGORY_SCOPES[category],
            category=category,
            subtype=subtype,
            co2e=quantity * factor.multiplier,
            canonical_quantity=quantity,
            canonical_unit=unit,
            factor_key=factor.label,
            factor_value=factor.multiplier,
            gases=self.registry.gas_breakdown(factor, quantity),
        )

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def aggregate(
        self,
        contributions: List[Contribution],
        employee_count: Optional[int] = None,
    ) -> Dict[str, object]:
        """
        Sum contributions into the persisted numeric fields.

        Each category total is quantized exactly once; scope totals and the
        grand total are exact sums of those quantized values, so both
        result invariants hold without tolerance.
        """
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, AGGREGATION_PRECISION)
            return self._aggregate(contributions, employee_count)

    def _aggregate(
        self,
        contributions: List[Contribution],
        employee_count: Optional[int],
    ) -> Dict[str, object]:
        category_totals: Dict[ActivityCategory, Decimal] = {c: ZERO for c in CATEGORY_ORDER}
        gas_sums: Dict[str, Decimal] = {}
        factors_used: Dict[str, Decimal] = {}
        for contribution in contributions:
            category_totals[contribution.category] += contribution.co2e
            for gas, mass in contribution.gases.items():
                gas_sums[gas] = gas_sums.get(gas, ZERO) + mass
            if contribution.factor_key is not None:
                factors_used[contribution.factor_key] = contribution.factor_value

        breakdown = {
            BREAKDOWN_KEYS[category]: self._quantize(category_totals[category])
            for category in CATEGORY_ORDER
        }
        scope_totals: Dict[Scope, Decimal] = {scope: ZERO for scope in Scope}
        for category in CATEGORY_ORDER:
            scope_totals[CATEGORY_SCOPES[category]] += breakdown[BREAKDOWN_KEYS[category]]

        total = scope_totals[Scope.SCOPE_1] + scope_totals[Scope.SCOPE_2] + scope_totals[Scope.SCOPE_3]
        per_employee = (
            self._quantize(total / Decimal(employee_count)) if employee_count else self._quantize(ZERO)
        )
        return {
            "total_co2e": total,
            "total_scope1_co2e": scope_totals[Scope.SCOPE_1],
            "total_scope2_co2e": scope_totals[Scope.SCOPE_2],
            "total_scope3_co2e": scope_totals[Scope.SCOPE_3],
            "breakdown_by_category": breakdown,
            "emissions_per_employee": per_employee,
            "emission_factors_used": dict(sorted(factors_used.items())),
            "gas_totals": {gas: self._quantize(gas_sums[gas]) for gas in sorted(gas_sums)},
        }

    def _build_result(
        self,
        record: ReportingRecord,
        contributions: List[Contribution],
        chain: Optional[ProvenanceChain],
        force: bool,
    ) -> CalculationResult:
        values = self.aggregate(contributions, record.employee_count)
        provenance_hash = None
        if chain is not None:
            chain.add_entry(
                "calculation",
                "recalculate" if force else "calculate",
                record.id,
                data=values,
                metadata={"contributions": len(contributions)},
            )
            provenance_hash = chain.get_hash()
        return CalculationResult(
            reporting_record_id=record.id,
            provenance_hash=provenance_hash,
            **values,
        )

    def _quantize(self, value: Decimal) -> Decimal:
        return value.quantize(self.config.quantum, rounding=self.config.rounding)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _reject(
        self,
        activity: ActivityRecord,
        error: CarbonLedgerException,
        chain: Optional[ProvenanceChain],
    ) -> RecordError:
        category = ActivityCategory(activity.category)
        record_error = RecordError(
            category=category,
            record_id=activity.id,
            error_code=error.error_code,
            reason=error.message,
        )
        logger.warning(
            "Excluding %s record %s from %s: %s",
            category.value, activity.id, activity.reporting_record_id, error,
        )
        if chain is not None:
            chain.add_entry(
                "activity",
                "reject",
                f"{category.value}:{activity.id}",
                data=record_error.model_dump(mode="json"),
            )
        if self.config.enable_metrics:
            metrics.record_record_error(category.value, error.error_code)
        return record_error

    def _record_outcome_metric(self, status: str, force: bool) -> None:
        if self.config.enable_metrics:
            metrics.record_calculation(status, forced=force)

    def _active_gauge(self):
        if self.config.enable_metrics:
            return metrics.MetricsCollector.track_active_calculation()
        return nullcontext()


__all__ = ["CalculationEngine"]
