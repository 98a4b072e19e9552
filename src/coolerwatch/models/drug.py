"""Drug model: a stock of one drug stored in one cooler."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coolerwatch.models.enums import UnusableReason
from coolerwatch.utils.timestamps import normalize_timestamp

_LEGACY_DRUG_KEYS = {
    "_id": "id",
    "coolingUnitId": "cooler_id",
    "maxTemperature": "max_temperature",
    "unsuitableTimeThreshold": "unsuitable_time_threshold",
    "expirationDate": "expiration_date",
    "numberOfPackages": "number_of_packages",
    "temperatureExceededSince": "temperature_exceeded_since",
}

_LEGACY_DRUG_FLAGS = {
    "notificationThreeMExp": "three_month",
    "notificationOneMExp": "one_month",
    "notificationOneWeekExp": "one_week",
    "notificationSentForExpired": "expired",
    "notificationSentForUnusable": "unusable",
}


class DrugNotifications(BaseModel):
    """Per-rule dedup flags for a drug.

    Expiration tiers and unusable are one-shot: once set they are never
    cleared, so each tier fires at most once per drug.
    """

    model_config = ConfigDict(from_attributes=True)

    three_month: bool = False
    one_month: bool = False
    one_week: bool = False
    expired: bool = False
    unusable: bool = False


class Drug(BaseModel):
    """A drug stock held in a cooler.

    Thresholds are not validated here so that a malformed record can be
    loaded and skipped by the sweep instead of failing the whole fleet.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Drug identifier")
    name: str = Field(default="Unknown", description="Drug name")
    vendor: str = Field(default="", description="Manufacturer")
    cooler_id: str = Field(..., description="Owning cooler")

    max_temperature: float = Field(..., description="Highest safe storage temperature in Celsius")
    unsuitable_time_threshold: float = Field(
        ..., description="Hours above max_temperature before the drug is unusable"
    )
    expiration_date: datetime = Field(..., description="Expiration timestamp")
    number_of_packages: int = Field(default=0, ge=0)

    temperature_exceeded_since: Optional[datetime] = Field(
        default=None, description="Start of the current exceedance"
    )
    unusable: bool = Field(default=False, description="Terminal; never reset to False")
    unusable_reason: Optional[UnusableReason] = None

    notified: DrugNotifications = Field(default_factory=DrugNotifications)

    @field_validator("expiration_date", "temperature_exceeded_since", mode="before")
    @classmethod
    def normalize_datetimes(cls, v: Any) -> Any:
        """Store dates as aware UTC."""
        if v is None:
            return None
        return normalize_timestamp(v)

    def is_expired(self, now: datetime) -> bool:
        """Whether the expiration date has passed."""
        return self.expiration_date < now

    def is_over_max(self, temperature: Optional[float]) -> bool:
        """Whether a cooler temperature exceeds this drug's safe maximum."""
        return temperature is not None and temperature > self.max_temperature

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Drug":
        """Build a Drug from a stored document (snake_case or legacy camelCase)."""
        data: Dict[str, Any] = {}
        notified: Dict[str, Any] = dict(document.get("notified") or {})

        for key, value in document.items():
            if key in _LEGACY_DRUG_FLAGS:
                notified.setdefault(_LEGACY_DRUG_FLAGS[key], bool(value))
            elif key in _LEGACY_DRUG_KEYS:
                data.setdefault(_LEGACY_DRUG_KEYS[key], value)
            elif key != "notified":
                data[key] = value

        for key in ("id", "cooler_id"):
            if key in data:
                data[key] = str(data[key])
        data["notified"] = notified
        return cls.model_validate(data)
