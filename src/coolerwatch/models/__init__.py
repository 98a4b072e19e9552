"""Data models for CoolerWatch."""

from .cooler import Cooler, CoolerNotifications
from .drug import Drug, DrugNotifications
from .enums import AlertKind, DispatchPolicy, TemperatureAlertMode, UnusableReason
from .history import AlertRecord, TemperatureRecord

__all__ = [
    "AlertKind",
    "AlertRecord",
    "Cooler",
    "CoolerNotifications",
    "DispatchPolicy",
    "Drug",
    "DrugNotifications",
    "TemperatureAlertMode",
    "TemperatureRecord",
    "UnusableReason",
]
