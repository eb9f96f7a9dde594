"""
Configuration loader for YAML files.

Loads and validates configuration from YAML files into Pydantic models.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import AppConfig


DEFAULT_CONFIG_PATH = Path("configs/app.yaml")

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(Exception):
    """Configuration loading or validation error."""

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        self.path = path
        self.details = details
        super().__init__(message)


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dictionary.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed YAML contents

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}", path=path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in {path}",
            path=path,
            details=str(e),
        ) from e
    except OSError as e:
        raise ConfigError(
            f"Cannot read {path}",
            path=path,
            details=str(e),
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping", path=path)
    return data


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in string values.

    Supports ${VAR} and ${VAR:-default} syntax.
    """
    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2) or ""
        return os.environ.get(var_name, default)

    if isinstance(data, str):
        return _ENV_PATTERN.sub(replacer, data)
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    return data


def load_app_config(
    path: Path | str | None = None,
    expand_env: bool = True,
) -> AppConfig:
    """Load application configuration from YAML file.

    Args:
        path: Path to app.yaml (default: configs/app.yaml)
        expand_env: Whether to expand environment variables

    Returns:
        Validated AppConfig instance; defaults when the default file is absent

    Raises:
        ConfigError: If configuration is invalid, or an explicit path is missing
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
        if not path.exists():
            return AppConfig()
    else:
        path = Path(path)

    data = _load_yaml_file(path)

    if expand_env:
        data = _expand_env_vars(data)

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid app configuration in {path}",
            path=path,
            details=str(e),
        ) from e


def validate_config_file(path: Path | str) -> list[str]:
    """Validate an app configuration file without loading it.

    Returns:
        List of validation error messages (empty if valid)
    """
    path = Path(path)
    errors: list[str] = []

    try:
        data = _load_yaml_file(path)
    except ConfigError as e:
        errors.append(str(e))
        return errors

    try:
        AppConfig.model_validate(_expand_env_vars(data))
    except ValidationError as e:
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"{loc}: {error['msg']}")

    return errors


DEFAULT_APP_YAML = """\
# TenderDesk Configuration

data_dir: data

# Remote tender service
gateway:
  base_url: ${TENDERDESK_API_URL:-http://localhost:8000}
  endpoint: /api/tenders
  timeout_seconds: 15
  max_retries: 3
  retry_backoff_factor: 2.0

# Discovery engine
engine:
  page_size: 20
  urgent_window_days: 7

# Saved tenders storage
storage:
  url: sqlite:///data/tenderdesk.db
  saved_key: savedTenders
  # user_scope: alice

# Logging settings
logging:
  level: INFO
  file: logs/tenderdesk.log
  json_format: true
  rich_console: true
"""


def write_default_config(path: Path | str = DEFAULT_CONFIG_PATH) -> Path:
    """Write the default app.yaml and return its path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_APP_YAML, encoding="utf-8")
    return path
