"""Point-in-time view of the fleet used by one alert sweep."""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple, Union

from coolerwatch.alerts.dedup import EntityScope, flag_spec, with_flag
from coolerwatch.alerts.models import FlagTarget
from coolerwatch.compliance.status import CoolerStatus, CoolerStatusAggregator
from coolerwatch.exceptions import ValidationError
from coolerwatch.models.cooler import Cooler
from coolerwatch.models.drug import Drug
from coolerwatch.storage.base import FleetStore


@dataclass
class FleetSnapshot:
    """Coolers, their drugs, and derived statuses at one instant.

    Coolers whose status cannot be computed are listed in ``skipped`` and
    get no entry in ``statuses``; cooler-level rules pass over them.
    """

    now: datetime
    coolers: Dict[str, Cooler] = field(default_factory=dict)
    drugs: Dict[str, Drug] = field(default_factory=dict)
    statuses: Dict[str, CoolerStatus] = field(default_factory=dict)
    skipped: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(
        cls,
        store: FleetStore,
        aggregator: CoolerStatusAggregator,
        now: datetime,
    ) -> "FleetSnapshot":
        """Read the fleet from the store and evaluate every cooler.

        Raises:
            PersistenceError: If the store cannot be read
        """
        snapshot = cls(now=now)
        snapshot.coolers = {c.id: c for c in store.list_coolers()}
        snapshot.drugs = {d.id: d for d in store.list_drugs()}

        for cooler in snapshot.coolers.values():
            try:
                snapshot.statuses[cooler.id] = aggregator.evaluate(
                    cooler, snapshot.drugs_in(cooler.id), now
                )
            except ValidationError as e:
                snapshot.skipped[cooler.id] = e.message
        return snapshot

    def drugs_in(self, cooler_id: str) -> List[Drug]:
        return [d for d in self.drugs.values() if d.cooler_id == cooler_id]

    def drugs_by_cooler(self) -> Dict[str, List[Drug]]:
        grouped: Dict[str, List[Drug]] = defaultdict(list)
        for drug in self.drugs.values():
            grouped[drug.cooler_id].append(drug)
        return dict(grouped)

    def evaluated_coolers(self, include_disabled: bool = True) -> Iterator[Tuple[Cooler, CoolerStatus]]:
        """Yield (cooler, status) for every cooler with a status."""
        for cooler_id, status in self.statuses.items():
            cooler = self.coolers[cooler_id]
            if cooler.disabled and not include_disabled:
                continue
            yield cooler, status

    def cooler_label(self, cooler_id: str) -> str:
        cooler: Optional[Cooler] = self.coolers.get(cooler_id)
        return cooler.label if cooler else cooler_id

    def apply_flag(self, target: FlagTarget, value: bool) -> None:
        """Mirror a dedup flag write so later stages see it."""
        entity: Union[Cooler, Drug, None]
        if flag_spec(target.kind).scope == EntityScope.COOLER:
            entity = self.coolers.get(target.entity_id)
            if entity is not None:
                self.coolers[target.entity_id] = with_flag(entity, target.kind, value)
        else:
            entity = self.drugs.get(target.entity_id)
            if entity is not None:
                self.drugs[target.entity_id] = with_flag(entity, target.kind, value)
