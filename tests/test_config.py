"""Tests for configuration loading."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from coolerwatch.config import ConfigurationError, CoolerWatchSettings, get_config, load_config, reload_config
from coolerwatch.config import loader
from coolerwatch.models.enums import DispatchPolicy, TemperatureAlertMode


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate each test from the process environment and the loaded config."""
    for key in list(os.environ):
        if key.startswith("COOLERWATCH_"):
            monkeypatch.delenv(key)
    # setenv then delenv so values written by load_config() are removed afterwards
    for key in ("CONFIG_PATH", "COOLERWATCH_GATEWAY_TOKEN"):
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.chdir(Path(__file__).parent)
    monkeypatch.setattr(loader, "_config", None)


def write_yaml(tmp_path: Path, text: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


class TestSettings:
    """Tests for CoolerWatchSettings defaults and validation."""

    def test_defaults(self) -> None:
        settings = CoolerWatchSettings()

        assert settings.temperature_alert_mode == TemperatureAlertMode.EDGE
        assert settings.dispatch_success_policy == DispatchPolicy.ANY
        assert settings.get_schedule() == {"preset": "every_15_minutes"}
        assert settings.get_gateway_endpoints() == []
        assert settings.disabled_rules() == set()

        thresholds = settings.get_thresholds()
        assert thresholds.reachability_timeout_seconds == 180
        assert thresholds.battery_warning_level == 20
        assert thresholds.battery_reset_level == 25
        assert thresholds.battery_below_average_level == 35

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COOLERWATCH_BATTERY_WARNING_LEVEL", "15")
        monkeypatch.setenv("COOLERWATCH_TEMPERATURE_ALERT_MODE", "level")
        monkeypatch.setenv("COOLERWATCH_BATTERY_ALERTS_ENABLED", "false")
        monkeypatch.setenv("COOLERWATCH_GATEWAY_ENDPOINTS", "https://a.example/hook, ,https://b.example/hook")

        settings = CoolerWatchSettings()

        assert settings.battery_warning_level == 15
        assert settings.temperature_alert_mode == TemperatureAlertMode.LEVEL
        assert settings.disabled_rules() == {"battery"}
        assert settings.get_gateway_endpoints() == ["https://a.example/hook", "https://b.example/hook"]

    def test_schedule_precedence(self) -> None:
        assert CoolerWatchSettings(schedule_cron="*/10 * * * *").get_schedule() == {"cron_expr": "*/10 * * * *"}
        assert CoolerWatchSettings(schedule_interval_minutes=5).get_schedule() == {"interval_minutes": 5}
        assert CoolerWatchSettings(schedule_preset=None).get_schedule() == {}

    def test_interval_and_cron_conflict(self) -> None:
        with pytest.raises(ValidationError, match="not both"):
            CoolerWatchSettings(schedule_interval_minutes=5, schedule_cron="0 * * * *")

    def test_battery_reset_below_warning(self) -> None:
        with pytest.raises(ValidationError, match="battery_reset_level"):
            CoolerWatchSettings(battery_warning_level=30, battery_reset_level=25)

    @pytest.mark.parametrize("value,expected", [("debug", "DEBUG"), ("warn", "WARNING"), ("Error", "ERROR")])
    def test_log_level_normalized(self, value: str, expected: str) -> None:
        assert CoolerWatchSettings(log_level=value).log_level == expected

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError, match="Invalid log level"):
            CoolerWatchSettings(log_level="LOUD")


class TestLoadConfig:
    """Tests for load_config and friends."""

    def test_yaml_file(self, tmp_path: Path) -> None:
        path = write_yaml(
            tmp_path,
            "store_path: /var/lib/coolerwatch/fleet.json\n"
            "schedule_preset: every_5_minutes\n"
            "dispatch_success_policy: all\n",
        )

        settings = load_config(path)

        assert settings.store_path == "/var/lib/coolerwatch/fleet.json"
        assert settings.get_schedule() == {"preset": "every_5_minutes"}
        assert settings.dispatch_success_policy == DispatchPolicy.ALL
        assert get_config() is settings

    def test_env_beats_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = write_yaml(tmp_path, "log_level: DEBUG\n")
        monkeypatch.setenv("COOLERWATCH_LOG_LEVEL", "ERROR")

        assert load_config(path).log_level == "ERROR"

    def test_file_secret(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        secret = tmp_path / "gateway_token"
        secret.write_text("s3cret\n")
        monkeypatch.setenv("COOLERWATCH_GATEWAY_TOKEN_FILE", str(secret))

        assert load_config().gateway_token == "s3cret"

    def test_missing_secret_file_is_skipped(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COOLERWATCH_GATEWAY_TOKEN_FILE", str(tmp_path / "absent"))

        assert load_config().gateway_token is None

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            load_config(str(tmp_path / "absent.yaml"))

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path, "store_path: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_validation_failure_exits(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = write_yaml(tmp_path, "battery_warning_level: 250\n")

        with pytest.raises(SystemExit) as exc_info:
            load_config(path)

        assert exc_info.value.code == 1
        assert "battery_warning_level" in capsys.readouterr().err

    def test_get_config_before_load(self) -> None:
        with pytest.raises(ConfigurationError, match="not loaded"):
            get_config()

    def test_reload_picks_up_changes(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("alert_disabled_coolers: false\n")
        load_config(str(path))

        path.write_text("alert_disabled_coolers: true\n")
        reloaded = reload_config()

        assert reloaded.alert_disabled_coolers is True
        assert get_config() is reloaded
