"""Alert engine models: pending alerts, flag targets, and sweep results."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from coolerwatch.models.enums import AlertKind


@dataclass(frozen=True)
class FlagTarget:
    """One dedup flag: a rule activation type on one entity."""

    kind: AlertKind
    entity_id: str


@dataclass
class PendingAlert:
    """An alert ready for dispatch.

    targets lists the dedup flags to set once the alert is dispatched;
    level-triggered alerts have none.
    """

    kind: AlertKind
    title: str
    body: str
    cooler_id: Optional[str] = None
    targets: List[FlagTarget] = field(default_factory=list)

    @property
    def entity_ids(self) -> List[str]:
        return [t.entity_id for t in self.targets]


@dataclass
class StageOutcome:
    """Result of one sweep stage (a rule, the refresh, or the reset pass)."""

    stage: str
    candidates: int = 0
    dispatched: int = 0
    dispatch_failures: int = 0
    flags_set: int = 0
    flags_cleared: int = 0
    flag_write_failures: int = 0
    updated: int = 0
    skipped: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class SweepReport:
    """Summary of one alert sweep."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    stages: List[StageOutcome] = field(default_factory=list)

    @property
    def alerts_dispatched(self) -> int:
        return sum(s.dispatched for s in self.stages)

    @property
    def dispatch_failures(self) -> int:
        return sum(s.dispatch_failures for s in self.stages)

    @property
    def flags_cleared(self) -> int:
        return sum(s.flags_cleared for s in self.stages)

    @property
    def failed_stages(self) -> List[StageOutcome]:
        return [s for s in self.stages if not s.succeeded]

    def stage(self, name: str) -> Optional[StageOutcome]:
        for outcome in self.stages:
            if outcome.stage == name:
                return outcome
        return None
