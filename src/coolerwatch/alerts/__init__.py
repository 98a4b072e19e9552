"""Alert sweep: rules, dedup flags, and the engine that runs them."""

from coolerwatch.alerts.dedup import (
    FLAG_SPECS,
    DedupLedger,
    DedupPolicy,
    EntityScope,
    FlagSpec,
    is_notified,
    is_resettable,
)
from coolerwatch.alerts.engine import AlertEngine
from coolerwatch.alerts.models import FlagTarget, PendingAlert, StageOutcome, SweepReport
from coolerwatch.alerts.rules import RuleOptions, RuleRegistry, get_default_registry
from coolerwatch.alerts.snapshot import FleetSnapshot

__all__ = [
    "AlertEngine",
    "DedupLedger",
    "DedupPolicy",
    "EntityScope",
    "FLAG_SPECS",
    "FlagSpec",
    "FlagTarget",
    "FleetSnapshot",
    "PendingAlert",
    "RuleOptions",
    "RuleRegistry",
    "StageOutcome",
    "SweepReport",
    "get_default_registry",
    "is_notified",
    "is_resettable",
]
