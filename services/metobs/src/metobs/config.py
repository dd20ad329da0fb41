"""Configuration management for the MetObs service."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Lufttemperatur, momentanvärde 1 gång/tim (degC)
TEMPERATURE_PARAMETER = 1
# Nederbördsmängd, summa 1 månad (mm)
MONTHLY_PRECIPITATION_PARAMETER = 23
# Lund
LUND_STATION_ID = 53430


class MetObsConfig(BaseSettings):
    """MetObs service configuration, overridable with METOBS_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="METOBS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Upstream API
    base_url: str = "https://opendata-download-metobs.smhi.se"
    request_timeout: float = Field(default=15.0, gt=0)
    max_connections: int = Field(default=8, ge=1)

    # Fan-out
    max_concurrency: int = Field(default=6, ge=1)
    queue_capacity: int = Field(default=64, ge=1)
    latest_window_minutes: int = Field(default=120, gt=0)

    # Parameters and stations
    temperature_parameter: int = TEMPERATURE_PARAMETER
    precipitation_parameter: int = MONTHLY_PRECIPITATION_PARAMETER
    rainfall_station_id: int = LUND_STATION_ID

    # Logging
    log_level: str = "INFO"


# Global config instance
_config: Optional[MetObsConfig] = None


def get_config() -> MetObsConfig:
    """Get or create global configuration instance."""
    global _config
    if _config is None:
        _config = MetObsConfig()
    return _config
