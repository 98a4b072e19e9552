"""Per-entity, per-rule dedup state.

Every AlertKind maps to exactly one flag on a cooler or a drug and to a
reset policy. The reset pass consults this table, so a one-shot flag
(expiration tiers, unusable) can never be cleared by any rule.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Union

import structlog

from coolerwatch.alerts.models import FlagTarget
from coolerwatch.models.cooler import Cooler
from coolerwatch.models.drug import Drug
from coolerwatch.models.enums import AlertKind
from coolerwatch.storage.base import FleetStore

log = structlog.get_logger()


class EntityScope(str, Enum):
    COOLER = "cooler"
    DRUG = "drug"


class DedupPolicy(str, Enum):
    """How a dedup flag is released."""

    REVERSIBLE = "reversible"  # cleared once the condition no longer holds
    ONE_SHOT = "one_shot"  # never cleared


@dataclass(frozen=True)
class FlagSpec:
    scope: EntityScope
    attribute: str
    policy: DedupPolicy


FLAG_SPECS: Dict[AlertKind, FlagSpec] = {
    AlertKind.TEMPERATURE_WARNING: FlagSpec(EntityScope.COOLER, "temperature_warning", DedupPolicy.REVERSIBLE),
    AlertKind.BATTERY_WARNING: FlagSpec(EntityScope.COOLER, "battery_warning", DedupPolicy.REVERSIBLE),
    AlertKind.UNAVAILABLE: FlagSpec(EntityScope.COOLER, "unavailable", DedupPolicy.REVERSIBLE),
    AlertKind.UNREACHABLE: FlagSpec(EntityScope.COOLER, "unreachable", DedupPolicy.REVERSIBLE),
    AlertKind.EXPIRY_THREE_MONTHS: FlagSpec(EntityScope.DRUG, "three_month", DedupPolicy.ONE_SHOT),
    AlertKind.EXPIRY_ONE_MONTH: FlagSpec(EntityScope.DRUG, "one_month", DedupPolicy.ONE_SHOT),
    AlertKind.EXPIRY_ONE_WEEK: FlagSpec(EntityScope.DRUG, "one_week", DedupPolicy.ONE_SHOT),
    AlertKind.EXPIRED: FlagSpec(EntityScope.DRUG, "expired", DedupPolicy.ONE_SHOT),
    AlertKind.UNUSABLE: FlagSpec(EntityScope.DRUG, "unusable", DedupPolicy.ONE_SHOT),
}


def flag_spec(kind: AlertKind) -> FlagSpec:
    return FLAG_SPECS[kind]


def is_resettable(kind: AlertKind) -> bool:
    return FLAG_SPECS[kind].policy == DedupPolicy.REVERSIBLE


def is_notified(entity: Union[Cooler, Drug], kind: AlertKind) -> bool:
    """Whether the dedup flag for kind is set on entity."""
    return bool(getattr(entity.notified, FLAG_SPECS[kind].attribute))


def flag_update(kind: AlertKind, value: bool) -> Dict[str, Any]:
    """Partial store update writing a single dedup flag."""
    return {"notified": {FLAG_SPECS[kind].attribute: value}}


def with_flag(entity: Union[Cooler, Drug], kind: AlertKind, value: bool) -> Union[Cooler, Drug]:
    """Copy of entity with one dedup flag changed."""
    notified = entity.notified.model_copy(update={FLAG_SPECS[kind].attribute: value})
    return entity.model_copy(update={"notified": notified})


class DedupLedger:
    """Writes dedup flags through the store."""

    def __init__(self, store: FleetStore) -> None:
        self._store = store

    def mark(self, target: FlagTarget) -> None:
        """Set a flag after its alert was dispatched."""
        self._write(target, True)

    def clear(self, target: FlagTarget) -> None:
        """Clear a reversible flag.

        Raises:
            ValueError: If the flag is one-shot
        """
        if not is_resettable(target.kind):
            raise ValueError(f"Dedup flag '{target.kind.value}' is one-shot and cannot be cleared")
        self._write(target, False)

    def _write(self, target: FlagTarget, value: bool) -> None:
        spec = FLAG_SPECS[target.kind]
        update = flag_update(target.kind, value)
        if spec.scope == EntityScope.COOLER:
            self._store.update_cooler_fields(target.entity_id, update)
        else:
            self._store.update_drug_fields(target.entity_id, update)
        log.debug(
            "dedup_flag_written",
            kind=target.kind.value,
            entity=spec.scope.value,
            entity_id=target.entity_id,
            value=value,
        )
