"""Sweep bookkeeping."""

from coolerwatch.state.manager import StateManager, SweepState

__all__ = ["StateManager", "SweepState"]
