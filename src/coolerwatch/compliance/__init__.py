"""Compliance derivation: drug usability and cooler status."""

from coolerwatch.compliance.status import CoolerStatus, CoolerStatusAggregator, FleetStatus
from coolerwatch.compliance.thresholds import DEFAULT_THRESHOLDS, StatusThresholds
from coolerwatch.compliance.usability import (
    DrugUsabilityMachine,
    Exceeding,
    Unusable,
    Usable,
    UsabilityEvaluation,
    UsabilityState,
    state_of,
    step,
)

__all__ = [
    "CoolerStatus",
    "CoolerStatusAggregator",
    "DEFAULT_THRESHOLDS",
    "DrugUsabilityMachine",
    "Exceeding",
    "FleetStatus",
    "StatusThresholds",
    "Unusable",
    "Usable",
    "UsabilityEvaluation",
    "UsabilityState",
    "state_of",
    "step",
]
