"""Sweep scheduling."""

from coolerwatch.scheduler.presets import SCHEDULE_PRESETS, get_preset, list_presets
from coolerwatch.scheduler.runner import ScheduledRunner, SchedulerError

__all__ = [
    "ScheduledRunner",
    "SchedulerError",
    "SCHEDULE_PRESETS",
    "get_preset",
    "list_presets",
]
