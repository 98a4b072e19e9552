"""Persistence for coolers, drugs, dedup flags, and temperature history."""

from coolerwatch.storage.base import FleetStore, merge_fields
from coolerwatch.storage.json_store import JsonFleetStore
from coolerwatch.storage.memory import InMemoryFleetStore

__all__ = [
    "FleetStore",
    "InMemoryFleetStore",
    "JsonFleetStore",
    "merge_fields",
]
