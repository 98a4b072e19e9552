"""In-memory fleet store.

Documents are kept in their JSON form so the file-backed store can reuse
every operation and only add load/flush.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from coolerwatch.exceptions import NotFoundError, PersistenceError, ValidationError
from coolerwatch.models.cooler import Cooler
from coolerwatch.models.drug import Drug
from coolerwatch.models.history import AlertRecord, TemperatureRecord
from coolerwatch.storage.base import merge_fields

log = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


class InMemoryFleetStore:
    """Thread-safe in-memory implementation of FleetStore."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._coolers: Dict[str, Dict[str, Any]] = {}
        self._drugs: Dict[str, Dict[str, Any]] = {}
        self._history: List[Dict[str, Any]] = []
        self._alerts: List[Dict[str, Any]] = []
        self._endpoints: List[str] = []

    # -- coolers -----------------------------------------------------------

    def get_cooler(self, cooler_id: str) -> Cooler:
        with self._lock:
            document = self._coolers.get(cooler_id)
            if document is None:
                raise NotFoundError("cooler", cooler_id)
            return Cooler.from_document(document)

    def list_coolers(self) -> List[Cooler]:
        with self._lock:
            return [Cooler.from_document(doc) for doc in self._coolers.values()]

    def add_cooler(self, cooler: Cooler) -> Cooler:
        with self.transaction():
            self._write(self._coolers, cooler.id, cooler.model_dump(mode="json"))
        log.debug("cooler_saved", cooler_id=cooler.id)
        return cooler

    def update_cooler_fields(self, cooler_id: str, fields: Dict[str, Any]) -> Cooler:
        with self.transaction():
            current = self.get_cooler(cooler_id)
            updated = self._apply(Cooler, current, fields, "cooler", cooler_id)
            self._write(self._coolers, cooler_id, updated.model_dump(mode="json"))
            return updated

    # -- drugs -------------------------------------------------------------

    def get_drug(self, drug_id: str) -> Drug:
        with self._lock:
            document = self._drugs.get(drug_id)
            if document is None:
                raise NotFoundError("drug", drug_id)
            return Drug.from_document(document)

    def list_drugs(self) -> List[Drug]:
        with self._lock:
            return [Drug.from_document(doc) for doc in self._drugs.values()]

    def get_drugs_by_cooler(self, cooler_id: str) -> List[Drug]:
        with self._lock:
            return [
                Drug.from_document(doc)
                for doc in self._drugs.values()
                if str(doc.get("cooler_id")) == cooler_id
            ]

    def add_drug(self, drug: Drug) -> Drug:
        with self.transaction():
            if drug.cooler_id not in self._coolers:
                raise NotFoundError("cooler", drug.cooler_id)
            self._write(self._drugs, drug.id, drug.model_dump(mode="json"))
        log.debug("drug_saved", drug_id=drug.id, cooler_id=drug.cooler_id)
        return drug

    def update_drug_fields(self, drug_id: str, fields: Dict[str, Any]) -> Drug:
        with self.transaction():
            current = self.get_drug(drug_id)
            updated = self._apply(Drug, current, fields, "drug", drug_id)
            self._write(self._drugs, drug_id, updated.model_dump(mode="json"))
            return updated

    # -- temperature history -----------------------------------------------

    def append_temperature(self, record: TemperatureRecord) -> None:
        with self.transaction():
            self._history.append(record.model_dump(mode="json"))
            try:
                self._commit()
            except PersistenceError:
                self._history.pop()
                raise

    def temperature_history(
        self,
        cooler_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[TemperatureRecord]:
        with self._lock:
            records = [
                TemperatureRecord.model_validate(doc)
                for doc in self._history
                if doc.get("cooler_id") == cooler_id
            ]
        if since is not None:
            records = [r for r in records if r.timestamp >= since]
        if until is not None:
            records = [r for r in records if r.timestamp <= until]
        return sorted(records, key=lambda r: r.timestamp)

    # -- alert history -----------------------------------------------------

    def append_alert(self, record: AlertRecord) -> None:
        document = record.model_dump(mode="json")
        with self.transaction():
            self._mutate(lambda: self._alerts.append(document), self._alerts.pop)

    def alert_history(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        cooler_id: Optional[str] = None,
    ) -> List[AlertRecord]:
        with self._lock:
            records = [AlertRecord.model_validate(doc) for doc in self._alerts]
        if cooler_id is not None:
            records = [r for r in records if r.cooler_id == cooler_id]
        if since is not None:
            records = [r for r in records if r.sent_at >= since]
        if until is not None:
            records = [r for r in records if r.sent_at <= until]
        return sorted(records, key=lambda r: r.sent_at)

    # -- endpoints ---------------------------------------------------------

    def register_endpoint(self, endpoint: str) -> bool:
        endpoint = endpoint.strip()
        if not endpoint:
            raise ValidationError("Endpoint cannot be empty")
        with self.transaction():
            if endpoint in self._endpoints:
                return False
            self._mutate(lambda: self._endpoints.append(endpoint), lambda: self._endpoints.remove(endpoint))
        log.info("endpoint_registered", endpoint=endpoint)
        return True

    def remove_endpoint(self, endpoint: str) -> bool:
        with self.transaction():
            if endpoint not in self._endpoints:
                return False
            index = self._endpoints.index(endpoint)
            self._mutate(
                lambda: self._endpoints.remove(endpoint),
                lambda: self._endpoints.insert(index, endpoint),
            )
        log.info("endpoint_removed", endpoint=endpoint)
        return True

    def list_endpoints(self) -> List[str]:
        with self._lock:
            return list(self._endpoints)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group reads and writes that must see no concurrent writer."""
        with self._lock:
            yield

    # -- internals ---------------------------------------------------------

    def _commit(self) -> None:
        """Persist the current state. Nothing to do in memory."""

    def _write(self, collection: Dict[str, Dict[str, Any]], key: str, document: Dict[str, Any]) -> None:
        """Replace one document, rolling back if the commit fails."""
        previous = collection.get(key)
        collection[key] = document
        try:
            self._commit()
        except PersistenceError:
            if previous is None:
                collection.pop(key, None)
            else:
                collection[key] = previous
            raise

    def _mutate(self, apply: Callable[[], None], undo: Callable[[], None]) -> None:
        apply()
        try:
            self._commit()
        except PersistenceError:
            undo()
            raise

    @staticmethod
    def _apply(
        model_cls: Type[ModelT],
        current: ModelT,
        fields: Dict[str, Any],
        entity: str,
        entity_id: str,
    ) -> ModelT:
        unknown = set(fields) - set(model_cls.model_fields)
        if unknown:
            raise ValidationError(
                f"Unknown {entity} field(s) for '{entity_id}': {', '.join(sorted(unknown))}"
            )
        if "id" in fields and fields["id"] != entity_id:
            raise ValidationError(f"Cannot change the id of {entity} '{entity_id}'")

        merged = merge_fields(current.model_dump(), fields)
        try:
            return model_cls.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid update for {entity} '{entity_id}': {e.error_count()} error(s)",
                hint=str(e),
            ) from e
