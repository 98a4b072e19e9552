"""Administrative updates to coolers and drugs.

Two fields are guarded:
- ``unusable`` is write-once: an unusable drug can never be made usable
- ``disabled`` can only be changed through the admin path

Guarded fields are dropped from the update (not rejected) and reported in
UpdateResult.notes, so a form that re-submits every field still saves.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

import structlog

from coolerwatch.models.cooler import Cooler
from coolerwatch.models.drug import Drug
from coolerwatch.models.enums import UnusableReason
from coolerwatch.storage.base import FleetStore

log = structlog.get_logger()

# Written by the sweep and telemetry only
_SYSTEM_MANAGED = ("notified", "temperature_exceeded_since")


@dataclass
class UpdateResult:
    entity: Union[Cooler, Drug]
    notes: List[str] = field(default_factory=list)


def update_drug(store: FleetStore, drug_id: str, fields: Dict[str, Any]) -> UpdateResult:
    """Apply an admin update to a drug.

    Marking a drug unusable by hand records the MANUAL reason unless one
    is given.

    Raises:
        NotFoundError: If the drug does not exist
        ValidationError: If the update produces an invalid drug
    """
    fields = dict(fields)
    notes: List[str] = []

    for key in _SYSTEM_MANAGED:
        if key in fields:
            fields.pop(key)
            notes.append(f"'{key}' is managed by the monitor and was not changed")

    with store.transaction():
        current = store.get_drug(drug_id)
        if "unusable" in fields:
            requested = bool(fields["unusable"])
            if current.unusable and not requested:
                fields.pop("unusable")
                notes.append("Drug is unusable; this cannot be reverted")
            elif requested and not current.unusable:
                fields.setdefault("unusable_reason", UnusableReason.MANUAL)
        if current.unusable:
            fields.pop("unusable_reason", None)

        updated = store.update_drug_fields(drug_id, fields) if fields else current
    log.info("drug_updated", drug_id=drug_id, fields=sorted(fields), notes=notes)
    return UpdateResult(entity=updated, notes=notes)


def update_cooler(
    store: FleetStore,
    cooler_id: str,
    fields: Dict[str, Any],
    admin: bool = False,
) -> UpdateResult:
    """Apply an update to a cooler.

    Args:
        store: Fleet store
        cooler_id: Cooler to update
        fields: Partial update
        admin: Whether the caller may change ``disabled``

    Raises:
        NotFoundError: If the cooler does not exist
        ValidationError: If the update produces an invalid cooler
    """
    current = store.get_cooler(cooler_id)
    fields = dict(fields)
    notes: List[str] = []

    if "notified" in fields:
        fields.pop("notified")
        notes.append("'notified' is managed by the monitor and was not changed")
    if "disabled" in fields and not admin:
        fields.pop("disabled")
        notes.append("Only administrators can enable or disable a cooler")

    updated = store.update_cooler_fields(cooler_id, fields) if fields else current
    log.info("cooler_updated", cooler_id=cooler_id, fields=sorted(fields), admin=admin, notes=notes)
    return UpdateResult(entity=updated, notes=notes)
