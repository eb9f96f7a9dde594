"""Configuration loading and validation."""

from .models import (
    # Enums
    IndustryCategory,
    Province,
    PROVINCE_LABELS,
    # Config models
    AppConfig,
    GatewayConfig,
    EngineConfig,
    StorageConfig,
    LoggingConfig,
)
from .loader import ConfigError, load_app_config, validate_config_file, write_default_config

__all__ = [
    # Enums
    "IndustryCategory",
    "Province",
    "PROVINCE_LABELS",
    # Config models
    "AppConfig",
    "GatewayConfig",
    "EngineConfig",
    "StorageConfig",
    "LoggingConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "validate_config_file",
    "write_default_config",
]
