"""Configuration loading: YAML file, environment overrides, Docker secrets."""

from __future__ import annotations

import os
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml
from pydantic import ValidationError

from coolerwatch.config.settings import CoolerWatchSettings
from coolerwatch.exceptions import CoolerWatchError

log = structlog.get_logger()

ENV_PREFIX = "COOLERWATCH_"
SECRET_SUFFIX = "_FILE"


class ConfigurationError(CoolerWatchError):
    """Configuration file or secret cannot be read."""


_config: Optional[CoolerWatchSettings] = None
_config_lock = threading.Lock()


def resolve_file_secrets() -> Dict[str, str]:
    """Read Docker secrets referenced by COOLERWATCH_*_FILE variables.

    Example:
        COOLERWATCH_GATEWAY_TOKEN_FILE=/run/secrets/gateway_token
        -> {"GATEWAY_TOKEN": "<file contents>"}

    A missing file is logged and skipped; an unreadable one is an error.
    """
    secrets: Dict[str, str] = {}
    for key, filepath in os.environ.items():
        if not (key.startswith(ENV_PREFIX) and key.endswith(SECRET_SUFFIX)):
            continue
        name = key[len(ENV_PREFIX) : -len(SECRET_SUFFIX)]
        path = Path(filepath)
        if not path.exists():
            log.warning("secret_file_not_found", env_var=key, path=filepath)
            continue
        try:
            secrets[name] = path.read_text().strip()
        except PermissionError as e:
            raise ConfigurationError(
                f"Cannot read secret file '{filepath}' specified by {key}: permission denied"
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Error reading secret file '{filepath}' specified by {key}: {e}"
            ) from e
    return secrets


def load_yaml_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Read the YAML config file.

    Args:
        config_path: Path to the YAML file. Defaults to CONFIG_PATH.

    Returns:
        Mapping from the file, or an empty dict when no file is configured.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or not YAML
    """
    path = config_path or os.environ.get("CONFIG_PATH")
    if not path:
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Configuration file not found: {path}",
            hint="Point CONFIG_PATH at a YAML file, or unset it to use environment variables only.",
        ) from e
    except PermissionError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: permission denied") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}") from e
    return data if isinstance(data, dict) else {}


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[str]:
    """Turn pydantic errors into one line per setting."""
    messages: List[str] = []
    for error in errors:
        loc = ".".join(str(part) for part in error.get("loc", [])) or "settings"
        msg = error.get("msg", "Invalid value")
        if "input" in error and error["input"] is not None and loc != "settings":
            messages.append(
                f"Configuration error: '{loc}' {msg}, got: {error['input']!r} "
                f"(set {ENV_PREFIX}{loc.upper()} or '{loc}:' in the config file)"
            )
        else:
            messages.append(f"Configuration error: '{loc}' {msg}")
    return messages


def load_config(config_path: Optional[str] = None) -> CoolerWatchSettings:
    """Load, validate, and store the configuration.

    Args:
        config_path: Optional YAML path; exported as CONFIG_PATH.

    Returns:
        Validated CoolerWatchSettings.

    Raises:
        ConfigurationError: If the config file or a secret cannot be read.
        SystemExit: If validation fails (errors printed to stderr, exit 1).
    """
    global _config

    if config_path:
        os.environ["CONFIG_PATH"] = config_path

    # Surface file errors here; the settings source swallows them
    load_yaml_config()

    for name, value in resolve_file_secrets().items():
        os.environ.setdefault(f"{ENV_PREFIX}{name}", value)

    try:
        settings = CoolerWatchSettings()
    except ValidationError as e:
        for message in format_validation_errors(e.errors()):
            print(message, file=sys.stderr)
        sys.exit(1)

    with _config_lock:
        _config = settings
    return settings


def get_config() -> CoolerWatchSettings:
    """Get the loaded configuration.

    Raises:
        ConfigurationError: If load_config() has not been called.
    """
    with _config_lock:
        if _config is None:
            raise ConfigurationError("Configuration not loaded. Call load_config() first.")
        return _config


def reload_config() -> CoolerWatchSettings:
    """Reload configuration from disk (SIGHUP)."""
    global _config
    with _config_lock:
        _config = None
    return load_config()
