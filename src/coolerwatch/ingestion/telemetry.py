"""Telemetry ingestion: apply a temperature sample to a cooler and its drugs.

Samples for one cooler are applied one at a time under that cooler's lock;
samples for different coolers are applied in parallel.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import structlog

from coolerwatch.compliance.status import CoolerStatusAggregator
from coolerwatch.compliance.usability import DrugUsabilityMachine, UsabilityEvaluation
from coolerwatch.exceptions import StaleSampleError, ValidationError
from coolerwatch.models.cooler import Cooler
from coolerwatch.models.drug import Drug
from coolerwatch.models.history import TemperatureRecord
from coolerwatch.storage.base import FleetStore
from coolerwatch.utils.locks import KeyedLocks, shared_locks
from coolerwatch.utils.timestamps import normalize_timestamp, utcnow

log = structlog.get_logger()

DEFAULT_HISTORY_DAYS = 7


@dataclass
class SampleResult:
    """Outcome of one accepted sample.

    Attributes:
        cooler: Cooler with the sample applied
        drugs: Drugs of the cooler after evaluation
        evaluations: Usability evaluation per evaluated drug
        skipped: Drug id -> reason, for drugs with invalid thresholds
    """

    cooler: Cooler
    drugs: List[Drug] = field(default_factory=list)
    evaluations: List[UsabilityEvaluation] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)

    @property
    def newly_unusable(self) -> List[Drug]:
        return [e.drug for e in self.evaluations if e.became_unusable]


def _require_number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f"{name} must be a finite number, got {value!r}")
    return float(value)


class TelemetryIngestor:
    """Applies sampler readings to the store."""

    def __init__(
        self,
        store: FleetStore,
        aggregator: Optional[CoolerStatusAggregator] = None,
        machine: Optional[DrugUsabilityMachine] = None,
        locks: Optional[KeyedLocks] = None,
    ) -> None:
        self.store = store
        self.aggregator = aggregator or CoolerStatusAggregator()
        self.machine = machine or DrugUsabilityMachine()
        self.locks = locks if locks is not None else shared_locks(store)

    def apply_temperature_sample(
        self,
        cooler_id: str,
        temperature: float,
        battery_level: Optional[float] = None,
        availability: Optional[bool] = None,
        timestamp: Any = None,
    ) -> SampleResult:
        """Apply one telemetry sample.

        Records the temperature, refreshes the cooler's derived warnings,
        and steps every drug in the cooler through the usability machine.

        Args:
            cooler_id: Reporting cooler
            temperature: Temperature in Celsius
            battery_level: Battery percent, if reported
            availability: Device availability signal, if reported
            timestamp: Sample time (datetime, ISO string, or epoch); now by default

        Returns:
            SampleResult

        Raises:
            ValidationError: If a value is malformed
            StaleSampleError: If the sample is not newer than the last one
            NotFoundError: If the cooler does not exist
        """
        temperature = _require_number("temperature", temperature)
        if battery_level is not None:
            battery_level = _require_number("battery_level", battery_level)
            if not 0 <= battery_level <= 100:
                raise ValidationError(f"battery_level must be between 0 and 100, got {battery_level:g}")
        sampled_at = self._sample_time(timestamp)

        with self.locks.hold(cooler_id), self.store.transaction():
            cooler = self.store.get_cooler(cooler_id)
            if cooler.last_updated_at is not None and sampled_at <= cooler.last_updated_at:
                raise StaleSampleError(
                    cooler_id,
                    sampled_at.isoformat(),
                    cooler.last_updated_at.isoformat(),
                )

            result = SampleResult(cooler=cooler)
            for drug in self.store.get_drugs_by_cooler(cooler_id):
                try:
                    evaluation = self.machine.apply_sample(drug, temperature, sampled_at)
                except ValidationError as e:
                    log.warning("drug_skipped", drug_id=drug.id, cooler_id=cooler_id, reason=e.message)
                    result.skipped[drug.id] = e.message
                    result.drugs.append(drug)
                    continue
                if evaluation.changes:
                    evaluation.drug = self.store.update_drug_fields(drug.id, evaluation.changes)
                result.evaluations.append(evaluation)
                result.drugs.append(evaluation.drug)

            fields: Dict[str, Any] = {
                "current_temperature": temperature,
                "last_updated_at": sampled_at,
                "temperature_warning": any(d.is_over_max(temperature) for d in result.drugs),
            }
            if battery_level is not None:
                fields["battery_level"] = battery_level
            fields["battery_warning"] = self.aggregator.is_battery_warning(
                battery_level if battery_level is not None else cooler.battery_level
            )
            if availability is not None:
                fields["availability"] = bool(availability)

            result.cooler = self.store.update_cooler_fields(cooler_id, fields)
            self.store.append_temperature(
                TemperatureRecord(cooler_id=cooler_id, temperature=temperature, timestamp=sampled_at)
            )

        log.info(
            "sample_applied",
            cooler_id=cooler_id,
            temperature=temperature,
            temperature_warning=result.cooler.temperature_warning,
            newly_unusable=[d.id for d in result.newly_unusable],
        )
        return result

    def temperature_history(
        self,
        cooler_id: str,
        days: int = DEFAULT_HISTORY_DAYS,
        now: Optional[datetime] = None,
    ) -> List[TemperatureRecord]:
        """Samples of a cooler over the last ``days`` days, oldest first.

        Raises:
            NotFoundError: If the cooler does not exist
            ValidationError: If days is not positive
        """
        if days <= 0:
            raise ValidationError(f"days must be positive, got {days}")
        self.store.get_cooler(cooler_id)
        until = now or utcnow()
        return self.store.temperature_history(cooler_id, since=until - timedelta(days=days), until=until)

    @staticmethod
    def _sample_time(timestamp: Any) -> datetime:
        if timestamp is None:
            return utcnow()
        try:
            return normalize_timestamp(timestamp)
        except (ValueError, OverflowError, OSError) as e:
            raise ValidationError(f"Invalid sample timestamp {timestamp!r}: {e}") from e
