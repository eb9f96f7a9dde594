"""
Pydantic configuration models for TenderDesk.

These models provide type-safe configuration with validation for:
- Tender gateway connection settings
- Engine behaviour (page size, urgency window)
- Durable client storage
- Logging
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class IndustryCategory(str, Enum):
    """Fixed industry tags a tender is classified under."""

    CONSTRUCTION = "Construction"
    ICT_SOFTWARE = "ICT & Software"
    SECURITY_SERVICES = "Security Services"
    CLEANING_HYGIENE = "Cleaning & Hygiene"
    TRANSPORT_FLEET = "Transport & Fleet"
    CATERING_HOSPITALITY = "Catering & Hospitality"
    AGRICULTURE = "Agriculture"
    PRINTING_BRANDING = "Printing & Branding"
    CONSULTING_PROFESSIONAL = "Consulting & Professional Services"
    SUPPLY_DELIVERY = "Supply & Delivery"
    MECHANICAL_ENGINEERING = "Mechanical & Engineering"
    HEALTH_MEDICAL = "Health & Medical Supplies"
    EDUCATION_TRAINING = "Education & Training"
    ENERGY_ELECTRICAL = "Energy & Electrical Services"

    @classmethod
    def from_label(cls, label: str) -> "IndustryCategory":
        """Resolve a label case-insensitively (``"ict & software"`` works)."""
        wanted = label.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        raise ValueError(f"Unknown industry category: {label!r}")


class Province(str, Enum):
    """Region codes a tender can be located in."""

    GP = "GP"
    WC = "WC"
    KZN = "KZN"
    EC = "EC"
    FS = "FS"
    MP = "MP"
    NW = "NW"
    LP = "LP"
    NC = "NC"

    @property
    def label(self) -> str:
        return PROVINCE_LABELS[self]


PROVINCE_LABELS: dict[Province, str] = {
    Province.GP: "Gauteng",
    Province.WC: "Western Cape",
    Province.KZN: "KwaZulu-Natal",
    Province.EC: "Eastern Cape",
    Province.FS: "Free State",
    Province.MP: "Mpumalanga",
    Province.NW: "North West",
    Province.LP: "Limpopo",
    Province.NC: "Northern Cape",
}


# =============================================================================
# Gateway Configuration
# =============================================================================


class GatewayConfig(BaseModel):
    """Remote tender query endpoint settings."""

    base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the tender service",
    )
    endpoint: str = Field(
        default="/api/tenders",
        description="Path of the paged tender query endpoint",
    )
    timeout_seconds: float = Field(
        default=15.0,
        ge=1.0,
        le=300.0,
        description="Request timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum retry attempts on transient failure",
    )
    retry_backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff multiplier for retries",
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Extra headers sent with every request (e.g. API key)",
    )

    @field_validator("endpoint")
    @classmethod
    def endpoint_has_leading_slash(cls, v: str) -> str:
        """Normalize the endpoint to start with a single slash."""
        return "/" + v.lstrip("/")


# =============================================================================
# Engine Configuration
# =============================================================================


class EngineConfig(BaseModel):
    """Discovery engine behaviour."""

    page_size: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Tenders requested per page",
    )
    urgent_window_days: int = Field(
        default=7,
        ge=1,
        le=60,
        description="Tenders closing within this many days count as urgent",
    )


# =============================================================================
# Storage Configuration
# =============================================================================


class StorageConfig(BaseModel):
    """Durable client storage settings (saved tenders)."""

    url: str = Field(
        default="sqlite:///data/tenderdesk.db",
        description="SQLAlchemy database URL for client storage",
    )
    saved_key: str = Field(
        default="savedTenders",
        min_length=1,
        description="Storage key holding the saved tender ids",
    )
    user_scope: str | None = Field(
        default=None,
        description="Optional user id; scopes the saved set per user when set",
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=Path("logs/tenderdesk.log"),
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def level_is_known(cls, v: str) -> str:
        """Reject log levels the logging module does not know."""
        if v.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    data_dir: Path = Field(
        default=Path("data"),
        description="Data storage directory",
    )

    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)
