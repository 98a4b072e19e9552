"""Named sweep schedules."""

from typing import Any, Dict, List, Optional

# Cron trigger parameters per preset
SCHEDULE_PRESETS: Dict[str, Dict[str, Any]] = {
    "every_5_minutes": {"minute": "*/5"},
    "every_15_minutes": {"minute": "*/15"},
    "hourly": {"minute": 0},
}


def get_preset(name: str) -> Optional[Dict[str, Any]]:
    """Cron parameters for a preset, or None if unknown."""
    return SCHEDULE_PRESETS.get(name)


def list_presets() -> List[str]:
    return sorted(SCHEDULE_PRESETS)
