"""Temperature history and alert history records."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coolerwatch.models.enums import AlertKind
from coolerwatch.utils.timestamps import normalize_timestamp


class TemperatureRecord(BaseModel):
    """One accepted temperature sample for a cooler."""

    model_config = ConfigDict(from_attributes=True)

    cooler_id: str
    temperature: float
    timestamp: datetime = Field(..., description="Sample time (UTC)")

    @field_validator("timestamp", mode="before")
    @classmethod
    def normalize(cls, v: Any) -> Any:
        return normalize_timestamp(v)


class AlertRecord(BaseModel):
    """An alert accepted by the gateway, kept for audit."""

    model_config = ConfigDict(from_attributes=True)

    kind: AlertKind
    title: str
    body: str
    cooler_id: Optional[str] = None
    entity_ids: List[str] = Field(default_factory=list, description="Entities whose flags the alert sets")
    delivered: int = Field(0, ge=0, description="Endpoints that accepted the alert")
    sent_at: datetime = Field(..., description="Dispatch time (UTC)")

    @field_validator("sent_at", mode="before")
    @classmethod
    def normalize(cls, v: Any) -> Any:
        return normalize_timestamp(v)
