"""Exception taxonomy for CoolerWatch.

All exceptions inherit from CoolerWatchError so callers can handle the
whole family in one place. Each carries a human-readable message and an
optional troubleshooting hint.

Handling policy inside an alert sweep:
- ValidationError / NotFoundError: skip the affected entity only
- GatewayError: log, leave the dedup flag unset, retry next sweep
- PersistenceError: fatal when loading the fleet, logged as a
  duplicate-alert risk when writing a flag after a dispatch
"""

from typing import List, Optional


class CoolerWatchError(Exception):
    """Base exception for all CoolerWatch errors.

    Attributes:
        message: Human-readable error message.
        hint: Optional troubleshooting hint.
    """

    def __init__(self, message: str, hint: Optional[str] = None) -> None:
        self.message = message
        self.hint = hint
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.hint:
            return f"{self.message}\n\nHint: {self.hint}"
        return self.message


class ValidationError(CoolerWatchError):
    """Malformed threshold, temperature, or telemetry value."""


class StaleSampleError(ValidationError):
    """Telemetry sample is not newer than the last accepted sample."""

    def __init__(self, cooler_id: str, timestamp: str, last_updated_at: str) -> None:
        self.cooler_id = cooler_id
        super().__init__(
            message=(
                f"Sample for cooler '{cooler_id}' at {timestamp} is not newer "
                f"than the last accepted sample at {last_updated_at}"
            ),
            hint="Check the device clock or the sampler's retry queue.",
        )


class NotFoundError(CoolerWatchError):
    """Unknown cooler, drug, or endpoint id."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message=f"{entity.capitalize()} '{entity_id}' not found")


class GatewayError(CoolerWatchError):
    """Alert dispatch failed."""


class PersistenceError(CoolerWatchError):
    """Document store read or write failed."""


class SweepError(CoolerWatchError):
    """Every stage of an alert sweep failed, or the fleet could not be loaded.

    Attributes:
        failures: "stage: error" strings for each failed stage.
    """

    def __init__(self, message: str, failures: Optional[List[str]] = None) -> None:
        self.failures = failures or []
        hint = "; ".join(self.failures) if self.failures else None
        super().__init__(message=message, hint=hint)


class SweepInProgressError(CoolerWatchError):
    """Another sweep is still running in this process."""

    def __init__(self) -> None:
        super().__init__(
            message="An alert sweep is already running",
            hint="Sweeps are serialized; wait for the active sweep to finish.",
        )
