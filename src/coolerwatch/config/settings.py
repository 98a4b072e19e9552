"""Pydantic settings models for CoolerWatch configuration."""

from __future__ import annotations

import os
from typing import Any, Dict, List, Literal, Optional, Set, Tuple, Type

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from coolerwatch.compliance.thresholds import StatusThresholds
from coolerwatch.models.enums import DispatchPolicy, TemperatureAlertMode


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Settings source that loads values from the YAML file at CONFIG_PATH."""

    def get_field_value(
        self, field: Any, field_name: str
    ) -> Tuple[Any, str, bool]:
        """Get field value from YAML config."""
        yaml_config = self._load_yaml_config()
        field_value = yaml_config.get(field_name)
        return field_value, field_name, False

    def _load_yaml_config(self) -> Dict[str, Any]:
        config_path = os.environ.get("CONFIG_PATH")
        if not config_path:
            return {}

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
                return data if isinstance(data, dict) else {}
        except (FileNotFoundError, yaml.YAMLError, PermissionError):
            # Reported by loader.py
            return {}

    def __call__(self) -> Dict[str, Any]:
        return self._load_yaml_config()


class CoolerWatchSettings(BaseSettings):
    """CoolerWatch configuration settings.

    Configuration is loaded in the following precedence (highest to lowest):
    1. Environment variables (COOLERWATCH_ prefix)
    2. Docker secrets (_FILE pattern, applied via env)
    3. YAML configuration file (via CONFIG_PATH)
    4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="COOLERWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    store_path: str = Field(
        default="./data/fleet.json",
        description="Path of the JSON fleet store",
    )
    state_dir: str = Field(
        default="./data",
        description="Directory for sweep bookkeeping (.last_sweep.json)",
    )

    # Status thresholds
    reachability_timeout_seconds: float = Field(
        default=180.0,
        gt=0,
        description="Seconds without telemetry before a cooler is unreachable",
    )
    battery_warning_level: float = Field(
        default=20.0,
        ge=0,
        le=100,
        description="Battery percent below which a warning is raised",
    )
    battery_reset_level: float = Field(
        default=25.0,
        ge=0,
        le=100,
        description="Battery percent at which the battery warning flag is released",
    )
    battery_below_average_level: float = Field(
        default=35.0,
        ge=0,
        le=100,
        description="Battery percent below which status shows 'below average'",
    )

    # Alert behavior
    temperature_alert_mode: TemperatureAlertMode = Field(
        default=TemperatureAlertMode.EDGE,
        description="edge: once per warning episode; level: every sweep while warning",
    )
    dispatch_success_policy: DispatchPolicy = Field(
        default=DispatchPolicy.ANY,
        description="When a partially delivered alert counts as sent: any, all, non_exception",
    )
    alert_disabled_coolers: bool = Field(
        default=False,
        description="Apply cooler-level alerts to coolers an admin disabled",
    )
    temperature_alerts_enabled: bool = Field(default=True, description="Run the temperature rule")
    battery_alerts_enabled: bool = Field(default=True, description="Run the battery rule")
    expiration_alerts_enabled: bool = Field(default=True, description="Run the expiration rule")
    unusable_alerts_enabled: bool = Field(default=True, description="Run the unusable drug rule")
    availability_alerts_enabled: bool = Field(
        default=True, description="Run the unavailable/unreachable rule"
    )

    # Gateway
    gateway_endpoints: str = Field(
        default="",
        description="Comma-separated endpoint URLs, in addition to registered ones",
    )
    gateway_token: Optional[str] = Field(
        default=None,
        description="Bearer token sent to endpoints (use COOLERWATCH_GATEWAY_TOKEN_FILE)",
    )
    gateway_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Per-request timeout in seconds",
    )
    gateway_max_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts per endpoint for transient connection errors",
    )
    circuit_fail_max: int = Field(
        default=3,
        ge=1,
        description="Consecutive failed dispatches before the circuit opens",
    )
    circuit_reset_timeout: int = Field(
        default=300,
        ge=1,
        description="Seconds before an open circuit allows a probe",
    )

    # Schedule
    schedule_interval_minutes: Optional[int] = Field(
        default=None,
        ge=1,
        description="Run a sweep every N minutes (takes precedence over the preset)",
    )
    schedule_cron: Optional[str] = Field(
        default=None,
        description="5-field cron expression (takes precedence over the preset)",
    )
    schedule_preset: Optional[str] = Field(
        default="every_15_minutes",
        description="Named schedule: every_5_minutes, every_15_minutes, hourly",
    )
    schedule_timezone: str = Field(
        default="UTC",
        description="Timezone for cron schedules",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format: json (production) or text (development)",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Order: init args, env vars, .env file, YAML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL"}
        normalized = v.upper()
        if normalized == "WARN":
            normalized = "WARNING"
        if normalized not in valid_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: DEBUG, INFO, WARNING, ERROR"
            )
        return normalized

    @field_validator("store_path", "state_dir")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Path cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_battery_levels(self) -> "CoolerWatchSettings":
        """The reset level must not be below the warning level."""
        if self.battery_reset_level < self.battery_warning_level:
            raise ValueError(
                "battery_reset_level must be greater than or equal to battery_warning_level"
            )
        return self

    @model_validator(mode="after")
    def validate_schedule(self) -> "CoolerWatchSettings":
        """Interval and cron schedules are mutually exclusive."""
        if self.schedule_interval_minutes and self.schedule_cron:
            raise ValueError("Set either schedule_interval_minutes or schedule_cron, not both")
        return self

    def get_schedule(self) -> Dict[str, Any]:
        """Keyword arguments for ScheduledRunner.run().

        An interval or cron schedule takes precedence over the preset; an
        empty dict means one-shot mode.
        """
        if self.schedule_interval_minutes:
            return {"interval_minutes": self.schedule_interval_minutes}
        if self.schedule_cron:
            return {"cron_expr": self.schedule_cron}
        if self.schedule_preset:
            return {"preset": self.schedule_preset}
        return {}

    def get_gateway_endpoints(self) -> List[str]:
        """Parse gateway_endpoints into a list of URLs."""
        if not self.gateway_endpoints:
            return []
        return [url.strip() for url in self.gateway_endpoints.split(",") if url.strip()]

    def get_thresholds(self) -> StatusThresholds:
        return StatusThresholds(
            reachability_timeout_seconds=self.reachability_timeout_seconds,
            battery_warning_level=self.battery_warning_level,
            battery_reset_level=self.battery_reset_level,
            battery_below_average_level=self.battery_below_average_level,
        )

    def disabled_rules(self) -> Set[str]:
        """Names of alert rules switched off by configuration."""
        switches = {
            "temperature": self.temperature_alerts_enabled,
            "battery": self.battery_alerts_enabled,
            "expiration": self.expiration_alerts_enabled,
            "unusable": self.unusable_alerts_enabled,
            "availability": self.availability_alerts_enabled,
        }
        return {name for name, enabled in switches.items() if not enabled}
