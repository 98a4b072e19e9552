"""Telemetry ingestion and administrative updates."""

from coolerwatch.ingestion.telemetry import DEFAULT_HISTORY_DAYS, SampleResult, TelemetryIngestor
from coolerwatch.ingestion.updates import UpdateResult, update_cooler, update_drug

__all__ = [
    "DEFAULT_HISTORY_DAYS",
    "SampleResult",
    "TelemetryIngestor",
    "UpdateResult",
    "update_cooler",
    "update_drug",
]
