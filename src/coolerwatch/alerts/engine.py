"""Alert sweep engine.

One sweep runs these stages in order:

1. usability refresh: drugs whose exceedance outlasted their threshold, or
   whose expiration date passed, are made unusable even if their cooler
   stopped reporting
2. one stage per registered rule: evaluate, dispatch, then set the dedup
   flags of dispatched alerts and append them to the alert history
3. reset pass: release reversible flags whose condition no longer holds

Stages are isolated: an exception in one rule is logged and the next rule
still runs. Flags are written only after a dispatch is accepted, so a
failed dispatch is retried on the next sweep.

Usage:
    engine = AlertEngine(store, DispatchManager(PushGateway(store.list_endpoints)))
    report = engine.sweep()
    print(report.alerts_dispatched)
"""

import threading
import uuid
from datetime import datetime
from typing import List, Optional

import structlog

from coolerwatch.alerts.dedup import DedupLedger, EntityScope, flag_spec, is_resettable
from coolerwatch.alerts.models import PendingAlert, StageOutcome, SweepReport
from coolerwatch.alerts.rules import RuleRegistry, get_default_registry
from coolerwatch.alerts.rules.base import AlertRule
from coolerwatch.alerts.snapshot import FleetSnapshot
from coolerwatch.compliance.status import CoolerStatusAggregator
from coolerwatch.compliance.usability import DrugUsabilityMachine
from coolerwatch.delivery.base import DispatchResult
from coolerwatch.delivery.manager import DispatchManager
from coolerwatch.exceptions import (
    GatewayError,
    NotFoundError,
    PersistenceError,
    SweepError,
    SweepInProgressError,
    ValidationError,
)
from coolerwatch.logging import bind_sweep_context, clear_sweep_context
from coolerwatch.models.history import AlertRecord
from coolerwatch.storage.base import FleetStore
from coolerwatch.utils.locks import KeyedLocks, shared_locks
from coolerwatch.utils.timestamps import utcnow

log = structlog.get_logger()

REFRESH_STAGE = "usability_refresh"
RESET_STAGE = "reset"

# Errors that affect one entity only
ENTITY_ERRORS = (ValidationError, NotFoundError, PersistenceError)


class AlertEngine:
    """Runs alert sweeps over the fleet.

    Sweeps are serialized: starting a sweep while another is running in
    the same engine raises SweepInProgressError instead of waiting.
    """

    def __init__(
        self,
        store: FleetStore,
        dispatcher: DispatchManager,
        registry: Optional[RuleRegistry] = None,
        aggregator: Optional[CoolerStatusAggregator] = None,
        machine: Optional[DrugUsabilityMachine] = None,
        locks: Optional[KeyedLocks] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Fleet store
            dispatcher: Dispatch manager wrapping the alert gateway
            registry: Rules to run (all built-in rules by default)
            aggregator: Cooler status aggregator
            machine: Drug usability state machine
            locks: Per-cooler locks shared with telemetry ingestion
                (shared_locks(store) by default)
        """
        self.store = store
        self.dispatcher = dispatcher
        self.registry = registry or get_default_registry()
        self.aggregator = aggregator or CoolerStatusAggregator()
        self.machine = machine or DrugUsabilityMachine()
        self.locks = locks if locks is not None else shared_locks(store)
        self.ledger = DedupLedger(store)
        self._sweep_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._sweep_lock.locked()

    def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """Run one sweep.

        Args:
            now: Sweep time (current UTC time by default)

        Returns:
            SweepReport with one StageOutcome per stage

        Raises:
            SweepInProgressError: If a sweep is already running
            SweepError: If the fleet cannot be loaded or every rule failed
        """
        if not self._sweep_lock.acquire(blocking=False):
            log.warning("sweep_already_running")
            raise SweepInProgressError()

        try:
            bind_sweep_context(sweep_id=uuid.uuid4().hex[:12])
            return self._run(now or utcnow())
        finally:
            clear_sweep_context()
            self._sweep_lock.release()

    def _run(self, now: datetime) -> SweepReport:
        report = SweepReport(started_at=now)
        rules = self.registry.all_rules
        log.info("sweep_started", rules=[r.name for r in rules])

        report.stages.append(self._refresh_usability(now))

        try:
            snapshot = FleetSnapshot.load(self.store, self.aggregator, now)
        except PersistenceError as e:
            log.error("sweep_fleet_load_failed", error=e.message)
            raise SweepError("Fleet could not be loaded", [f"load: {e.message}"]) from e

        for cooler_id, reason in snapshot.skipped.items():
            log.warning("cooler_skipped", cooler_id=cooler_id, reason=reason)

        rule_stages: List[StageOutcome] = []
        for rule in rules:
            try:
                outcome = self._run_rule(rule, snapshot)
            except Exception as e:
                log.exception("rule_failed", rule=rule.name, error=str(e))
                outcome = StageOutcome(stage=rule.name, error=str(e))
            if _is_cooler_rule(rule):
                outcome.skipped.update(snapshot.skipped)
            rule_stages.append(outcome)
        report.stages.extend(rule_stages)

        report.stages.append(self._reset_flags(rules, snapshot))
        report.finished_at = utcnow()

        failed = [s for s in rule_stages if not s.succeeded]
        if rule_stages and len(failed) == len(rule_stages):
            raise SweepError(
                "Every alert rule failed",
                [f"{s.stage}: {s.error}" for s in failed],
            )

        log.info(
            "sweep_completed",
            alerts_dispatched=report.alerts_dispatched,
            dispatch_failures=report.dispatch_failures,
            flags_cleared=report.flags_cleared,
            failed_stages=[s.stage for s in report.failed_stages],
        )
        return report

    def _refresh_usability(self, now: datetime) -> StageOutcome:
        outcome = StageOutcome(stage=REFRESH_STAGE)
        try:
            drugs = self.store.list_drugs()
        except PersistenceError as e:
            log.error("usability_refresh_failed", error=e.message)
            outcome.error = e.message
            return outcome

        for listed in drugs:
            if listed.unusable:
                continue
            outcome.candidates += 1
            try:
                with self.locks.hold(listed.cooler_id), self.store.transaction():
                    drug = self.store.get_drug(listed.id)
                    evaluation = self.machine.refresh(drug, now)
                    if evaluation.changes:
                        self.store.update_drug_fields(drug.id, evaluation.changes)
                        outcome.updated += 1
            except ENTITY_ERRORS as e:
                log.warning("drug_skipped", drug_id=listed.id, reason=e.message)
                outcome.skipped[listed.id] = e.message

        log.debug("usability_refreshed", checked=outcome.candidates, updated=outcome.updated)
        return outcome

    def _run_rule(self, rule: AlertRule, snapshot: FleetSnapshot) -> StageOutcome:
        outcome = StageOutcome(stage=rule.name)
        alerts = rule.evaluate(snapshot)
        outcome.candidates = len(alerts)

        for alert in alerts:
            try:
                result = self.dispatcher.dispatch(alert.title, alert.body)
            except GatewayError as e:
                outcome.dispatch_failures += 1
                log.warning(
                    "alert_dispatch_failed",
                    rule=rule.name,
                    kind=alert.kind.value,
                    cooler_id=alert.cooler_id,
                    error=e.message,
                )
                continue

            outcome.dispatched += 1
            log.info(
                "alert_dispatched",
                rule=rule.name,
                kind=alert.kind.value,
                cooler_id=alert.cooler_id,
                title=alert.title,
            )
            self._mark_dispatched(alert, snapshot, outcome)
            self._record_alert(alert, result, snapshot.now)
        return outcome

    def _mark_dispatched(
        self,
        alert: PendingAlert,
        snapshot: FleetSnapshot,
        outcome: StageOutcome,
    ) -> None:
        for target in alert.targets:
            try:
                self.ledger.mark(target)
            except ENTITY_ERRORS as e:
                outcome.flag_write_failures += 1
                log.error(
                    "dedup_flag_write_failed",
                    kind=target.kind.value,
                    entity_id=target.entity_id,
                    error=e.message,
                    duplicate_risk=True,
                )
                continue
            snapshot.apply_flag(target, True)
            outcome.flags_set += 1

    def _record_alert(self, alert: PendingAlert, result: DispatchResult, sent_at: datetime) -> None:
        record = AlertRecord(
            kind=alert.kind,
            title=alert.title,
            body=alert.body,
            cooler_id=alert.cooler_id,
            entity_ids=alert.entity_ids,
            delivered=result.success_count,
            sent_at=sent_at,
        )
        try:
            self.store.append_alert(record)
        except PersistenceError as e:
            log.warning(
                "alert_history_write_failed",
                kind=alert.kind.value,
                cooler_id=alert.cooler_id,
                error=e.message,
            )

    def _reset_flags(self, rules: List[AlertRule], snapshot: FleetSnapshot) -> StageOutcome:
        outcome = StageOutcome(stage=RESET_STAGE)
        errors: List[str] = []

        for rule in rules:
            try:
                targets = rule.resets(snapshot)
            except Exception as e:
                log.exception("reset_failed", rule=rule.name, error=str(e))
                errors.append(f"{rule.name}: {e}")
                continue

            for target in targets:
                if not is_resettable(target.kind):
                    log.error("one_shot_reset_refused", rule=rule.name, kind=target.kind.value)
                    continue
                outcome.candidates += 1
                try:
                    self.ledger.clear(target)
                except ENTITY_ERRORS as e:
                    outcome.flag_write_failures += 1
                    log.warning(
                        "dedup_flag_reset_failed",
                        kind=target.kind.value,
                        entity_id=target.entity_id,
                        error=e.message,
                    )
                    continue
                snapshot.apply_flag(target, False)
                outcome.flags_cleared += 1
                log.info("dedup_flag_reset", kind=target.kind.value, entity_id=target.entity_id)

        if errors:
            outcome.error = "; ".join(errors)
        return outcome


def _is_cooler_rule(rule: AlertRule) -> bool:
    return all(flag_spec(kind).scope == EntityScope.COOLER for kind in rule.kinds)
