"""Store interface for coolers, drugs, and their dedup flags.

The engine only needs get-by-id, list, drugs-by-cooler, and field updates.
Any document store can back it; this package ships an in-memory store and
a JSON file store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ContextManager, Dict, List, Optional, Protocol, runtime_checkable

from coolerwatch.models.cooler import Cooler
from coolerwatch.models.drug import Drug
from coolerwatch.models.history import AlertRecord, TemperatureRecord


@runtime_checkable
class FleetStore(Protocol):
    """Persistence contract for the fleet.

    Field updates are partial: keys in ``fields`` overwrite, except
    ``notified`` which is merged one level deep so a single dedup flag
    can be written without touching the others.

    Implementations raise NotFoundError for unknown ids, ValidationError
    for updates that produce an invalid record, and PersistenceError for
    storage failures.
    """

    def get_cooler(self, cooler_id: str) -> Cooler:
        """Get a cooler by id."""
        ...

    def list_coolers(self) -> List[Cooler]:
        """All coolers."""
        ...

    def get_drug(self, drug_id: str) -> Drug:
        """Get a drug by id."""
        ...

    def list_drugs(self) -> List[Drug]:
        """All drugs."""
        ...

    def get_drugs_by_cooler(self, cooler_id: str) -> List[Drug]:
        """Drugs stored in the given cooler."""
        ...

    def add_cooler(self, cooler: Cooler) -> Cooler:
        """Insert or replace a cooler."""
        ...

    def add_drug(self, drug: Drug) -> Drug:
        """Insert or replace a drug. The owning cooler must exist."""
        ...

    def update_cooler_fields(self, cooler_id: str, fields: Dict[str, Any]) -> Cooler:
        """Apply a partial update and return the updated cooler."""
        ...

    def update_drug_fields(self, drug_id: str, fields: Dict[str, Any]) -> Drug:
        """Apply a partial update and return the updated drug."""
        ...

    def append_temperature(self, record: TemperatureRecord) -> None:
        """Record an accepted temperature sample."""
        ...

    def temperature_history(
        self,
        cooler_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[TemperatureRecord]:
        """Samples for a cooler in [since, until], oldest first."""
        ...

    def append_alert(self, record: AlertRecord) -> None:
        """Record a dispatched alert."""
        ...

    def alert_history(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        cooler_id: Optional[str] = None,
    ) -> List[AlertRecord]:
        """Dispatched alerts in [since, until], oldest first."""
        ...

    def register_endpoint(self, endpoint: str) -> bool:
        """Register a notification endpoint. Returns True if newly added."""
        ...

    def remove_endpoint(self, endpoint: str) -> bool:
        """Unregister an endpoint. Returns True if it was registered."""
        ...

    def list_endpoints(self) -> List[str]:
        """Registered notification endpoints."""
        ...

    def transaction(self) -> ContextManager[None]:
        """Scope a read-modify-write.

        Reads inside the scope see the latest persisted state and no other
        writer can commit until it exits. Scopes nest.
        """
        ...


def merge_fields(document: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of document with a partial update applied.

    Args:
        document: Current document
        fields: Partial update; ``notified`` is merged one level deep

    Returns:
        New document dict
    """
    merged = dict(document)
    for key, value in fields.items():
        if key == "notified" and isinstance(value, dict):
            notified = dict(merged.get("notified") or {})
            notified.update(value)
            merged["notified"] = notified
        else:
            merged[key] = value
    return merged
