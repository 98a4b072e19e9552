"""Cooler status aggregator.

Derives the composite health of a cooler from its latest telemetry and
the drugs it holds. Pure: nothing here reads or writes the store.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from coolerwatch.compliance.thresholds import DEFAULT_THRESHOLDS, StatusThresholds
from coolerwatch.exceptions import ValidationError
from coolerwatch.models.cooler import Cooler
from coolerwatch.models.drug import Drug


@dataclass
class CoolerStatus:
    """Derived health flags for one cooler."""

    cooler_id: str
    temperature_warning: bool
    is_unreachable: bool
    battery_warning: bool
    battery_below_average: bool
    availability: bool
    disabled: bool
    unusable_drug_count: int = 0
    expired_drug_count: int = 0
    total_drug_count: int = 0
    drugs_over_max: List[str] = field(default_factory=list)
    battery_recovered: bool = False

    @property
    def is_reachable(self) -> bool:
        return not self.is_unreachable

    @property
    def all_clear(self) -> bool:
        """Nothing about this cooler needs attention."""
        return (
            not self.is_unreachable
            and not self.temperature_warning
            and not self.battery_warning
            and self.availability
            and not self.disabled
            and self.unusable_drug_count == 0
            and self.expired_drug_count == 0
        )


@dataclass
class FleetStatus:
    """Aggregated status across all coolers."""

    statuses: List[CoolerStatus] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)

    @property
    def total_coolers(self) -> int:
        return len(self.statuses)

    @property
    def all_clear_count(self) -> int:
        return sum(1 for s in self.statuses if s.all_clear)

    @property
    def attention_required(self) -> List[CoolerStatus]:
        return [s for s in self.statuses if not s.all_clear]


class CoolerStatusAggregator:
    """Computes CoolerStatus from a cooler and its drugs.

    Called on every telemetry sample and on every alert sweep.
    """

    def __init__(self, thresholds: Optional[StatusThresholds] = None):
        """Initialize the aggregator with optional custom thresholds.

        Args:
            thresholds: Custom thresholds. Defaults to DEFAULT_THRESHOLDS.
        """
        self._thresholds = thresholds or DEFAULT_THRESHOLDS

    @property
    def thresholds(self) -> StatusThresholds:
        return self._thresholds

    def evaluate(self, cooler: Cooler, drugs: Sequence[Drug], now: datetime) -> CoolerStatus:
        """Derive status flags for one cooler.

        Args:
            cooler: Cooler with its latest telemetry
            drugs: Drugs stored in the cooler
            now: Evaluation time

        Returns:
            CoolerStatus

        Raises:
            ValidationError: If the stored temperature or a drug maximum is not finite
        """
        temperature = cooler.current_temperature
        if temperature is not None and not math.isfinite(temperature):
            raise ValidationError(
                f"Cooler '{cooler.id}' has a non-finite temperature: {temperature!r}"
            )

        drugs_over_max: List[str] = []
        for drug in drugs:
            if not math.isfinite(drug.max_temperature):
                raise ValidationError(
                    f"Drug '{drug.id}' has an invalid max temperature: {drug.max_temperature!r}"
                )
            if drug.is_over_max(temperature):
                drugs_over_max.append(drug.id)

        return CoolerStatus(
            cooler_id=cooler.id,
            temperature_warning=len(drugs_over_max) > 0,
            is_unreachable=self.is_unreachable(cooler, now),
            battery_warning=self.is_battery_warning(cooler.battery_level),
            battery_below_average=self.is_battery_below_average(cooler.battery_level),
            availability=cooler.availability,
            disabled=cooler.disabled,
            unusable_drug_count=sum(1 for d in drugs if d.unusable),
            expired_drug_count=sum(1 for d in drugs if d.is_expired(now)),
            total_drug_count=len(drugs),
            drugs_over_max=drugs_over_max,
            battery_recovered=self.is_battery_recovered(cooler.battery_level),
        )

    def evaluate_fleet(
        self,
        coolers: Sequence[Cooler],
        drugs_by_cooler: Dict[str, List[Drug]],
        now: datetime,
    ) -> FleetStatus:
        """Evaluate every cooler, skipping the ones with invalid data."""
        fleet = FleetStatus()
        for cooler in coolers:
            try:
                fleet.statuses.append(
                    self.evaluate(cooler, drugs_by_cooler.get(cooler.id, []), now)
                )
            except ValidationError as e:
                fleet.skipped[cooler.id] = e.message
        return fleet

    def is_unreachable(self, cooler: Cooler, now: datetime) -> bool:
        """A cooler that never reported, or went silent past the timeout."""
        if cooler.last_updated_at is None:
            return True
        silence = (now - cooler.last_updated_at).total_seconds()
        return silence > self._thresholds.reachability_timeout_seconds

    def is_battery_warning(self, battery_level: Optional[float]) -> bool:
        if battery_level is None:
            return False
        return battery_level < self._thresholds.battery_warning_level

    def is_battery_below_average(self, battery_level: Optional[float]) -> bool:
        """Display-only tier between the warning and average levels."""
        if battery_level is None or self.is_battery_warning(battery_level):
            return False
        return battery_level < self._thresholds.battery_below_average_level

    def is_battery_recovered(self, battery_level: Optional[float]) -> bool:
        """Battery is back above the reset level (dedup hysteresis)."""
        if battery_level is None:
            return False
        return battery_level >= self._thresholds.battery_reset_level
