"""Cooler status threshold configuration.

Defines the configurable limits used to derive cooler health flags:
reachability timeout and battery levels.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class StatusThresholds:
    """Configurable thresholds for cooler status derivation.

    Attributes:
        reachability_timeout_seconds: Silence after which a cooler is unreachable
            (now - last_updated_at > timeout)
        battery_warning_level: battery_level below this raises a battery warning
        battery_reset_level: battery_level at or above this clears the
            battery dedup flag (hysteresis above the warning level)
        battery_below_average_level: battery_level below this is shown as
            "below average"; never alerts
    """

    reachability_timeout_seconds: float = 180.0

    # Battery levels (percent)
    battery_warning_level: float = 20.0
    battery_reset_level: float = 25.0
    battery_below_average_level: float = 35.0


# Default thresholds for production use
DEFAULT_THRESHOLDS = StatusThresholds()
