"""Cooler model: one monitored refrigeration unit."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coolerwatch.utils.timestamps import normalize_timestamp

# Document keys written by the earlier dashboard deployment
_LEGACY_COOLER_KEYS = {
    "_id": "id",
    "coolerModel": "cooler_model",
    "currentTemperature": "current_temperature",
    "lastUpdatedTemperature": "last_updated_at",
    "batteryLevel": "battery_level",
    "temperatureWarning": "temperature_warning",
    "batteryWarning": "battery_warning",
}

_LEGACY_COOLER_FLAGS = {
    "notificationSentForUnavailable": "unavailable",
    "notificationSentForUnreachable": "unreachable",
    "notificationSentForBatteryWarning": "battery_warning",
}


class CoolerNotifications(BaseModel):
    """Per-rule dedup flags for a cooler.

    A flag is true only after the matching alert was dispatched. All of
    these are reversible and cleared by the sweep's reset pass.
    """

    model_config = ConfigDict(from_attributes=True)

    unavailable: bool = False
    unreachable: bool = False
    battery_warning: bool = False
    temperature_warning: bool = False


class Cooler(BaseModel):
    """A refrigeration unit with its latest telemetry.

    current_temperature, last_updated_at and battery_level come from the
    sampler; availability and disabled are set by the device or an admin;
    temperature_warning and battery_warning are derived on each sample.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Cooler identifier")
    cooler_model: str = Field(default="Unknown", description="Cooler model name")
    vendor: str = Field(default="", description="Cooler vendor")
    address: str = Field(default="", description="Installation address")
    description: Optional[str] = Field(default=None, description="Free-form notes")

    current_temperature: Optional[float] = Field(
        default=None, description="Last reported temperature in Celsius"
    )
    last_updated_at: Optional[datetime] = Field(
        default=None, description="Timestamp of the last accepted telemetry sample"
    )
    availability: bool = Field(default=True, description="Device/admin availability signal")
    battery_level: Optional[float] = Field(
        default=None, ge=0, le=100, description="Battery charge percent"
    )
    disabled: bool = Field(default=False, description="Admin switch excluding the cooler from alerts")

    temperature_warning: bool = Field(default=False, description="Any drug currently over max")
    battery_warning: bool = Field(default=False, description="Battery below warning level")

    notified: CoolerNotifications = Field(default_factory=CoolerNotifications)

    @field_validator("last_updated_at", mode="before")
    @classmethod
    def normalize_last_updated(cls, v: Any) -> Any:
        """Store telemetry timestamps as aware UTC."""
        if v is None:
            return None
        return normalize_timestamp(v)

    @property
    def label(self) -> str:
        """Name used in alert titles."""
        return self.cooler_model or self.id

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Cooler":
        """Build a Cooler from a stored document.

        Accepts both the snake_case documents this service writes and the
        camelCase documents of the earlier dashboard deployment.

        Args:
            document: Raw document from the store

        Returns:
            Cooler instance
        """
        data: Dict[str, Any] = {}
        notified: Dict[str, Any] = dict(document.get("notified") or {})

        for key, value in document.items():
            if key in _LEGACY_COOLER_FLAGS:
                notified.setdefault(_LEGACY_COOLER_FLAGS[key], bool(value))
            elif key in _LEGACY_COOLER_KEYS:
                data.setdefault(_LEGACY_COOLER_KEYS[key], value)
            elif key != "notified":
                data[key] = value

        if "id" in data:
            data["id"] = str(data["id"])
        data["notified"] = notified
        return cls.model_validate(data)
