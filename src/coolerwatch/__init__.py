"""
CoolerWatch - Cold-chain compliance monitoring for pharmaceutical coolers.

This package tracks refrigeration units and the drugs stored in them,
derives drug usability and cooler health from telemetry and expiration
dates, and raises deduplicated alerts to the admin group.

Features:
- Drug usability state machine driven by temperature-exceedance duration
- Per-cooler health aggregation (reachability, battery, temperature)
- Periodic alert sweep with persisted per-rule dedup flags
- Configuration via YAML with environment variable overrides
- Structured logging (JSON for production, text for development)
"""

__version__ = "0.3.0"
__all__ = ["__version__"]
