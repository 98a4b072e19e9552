"""Shared enumerations for the CoolerWatch models."""

from enum import Enum


class UnusableReason(str, Enum):
    """Why a drug reached the terminal unusable state."""

    TEMPERATURE = "temperature"
    EXPIRED = "expired"
    MANUAL = "manual"


class AlertKind(str, Enum):
    """One alert rule activation type, each with its own dedup flag."""

    TEMPERATURE_WARNING = "temperature_warning"
    BATTERY_WARNING = "battery_warning"
    EXPIRY_THREE_MONTHS = "expiry_three_months"
    EXPIRY_ONE_MONTH = "expiry_one_month"
    EXPIRY_ONE_WEEK = "expiry_one_week"
    EXPIRED = "expired"
    UNUSABLE = "unusable"
    UNAVAILABLE = "unavailable"
    UNREACHABLE = "unreachable"


class TemperatureAlertMode(str, Enum):
    """Whether temperature warnings fire once per excursion or every sweep."""

    EDGE = "edge"
    LEVEL = "level"


class DispatchPolicy(str, Enum):
    """When a gateway result counts as a successful dispatch."""

    ANY = "any"
    ALL = "all"
    NON_EXCEPTION = "non_exception"
