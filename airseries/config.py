"""Application configuration pulled from environment variables via pydantic."""
import json
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the airseries service."""
    model_config = SettingsConfigDict(env_prefix="AIRSERIES_", extra="ignore")

    data_source: str = "openweather"  # options: openweather, open_meteo
    openweather_api_key: str | None = None
    nasa_api_key: str | None = None
    nasa_community: str = "AG"

    series_hours: int = Field(default=24, ge=1, le=168)
    min_populated_hours: int = Field(default=2, ge=1)
    history_lookback_hours: int = 48
    history_pad_hours: int = 12
    # Per call, and the overall deadline for the concurrent provider fan-out.
    request_timeout_seconds: float = Field(default=20.0, gt=0)
    # Total budget for the NASA POWER lookback windows.
    climate_deadline_seconds: float = Field(default=45.0, gt=0)
    max_workers: int = 6
    allowed_country_codes: List[str] = Field(default_factory=lambda: ["US", "CA", "MX"])

    # Last-resort sample replicated across the series when every provider is down.
    offline_default: Dict[str, float] | None = None
    offline_default_path: str | None = None

    http_cache_name: str = ".cache"
    http_cache_seconds: int = 600
    http_retries: int = 2
    log_level: str = "INFO"

    @field_validator("data_source", mode="after")
    @classmethod
    def lower_source(cls, v: str) -> str:
        """Normalize backend names so env values are case-insensitive."""
        return str(v).strip().lower()

    @field_validator("allowed_country_codes", mode="after")
    @classmethod
    def upper_country_codes(cls, v: List[str]) -> List[str]:
        """Country codes are compared upper-case."""
        return [str(code).strip().upper() for code in v if str(code).strip()]


def load_offline_default(settings: Settings) -> Optional[Dict[str, float]]:
    """
    Resolve the static offline sample from settings.

    An inline `offline_default` wins; otherwise `offline_default_path` is read
    as JSON, either a flat component mapping or a payload shaped like the
    service response (`{"hourly": [{...}, ...]}`), in which case the first
    hourly entry is used. A missing or unreadable file yields None.
    """
    if settings.offline_default:
        return dict(settings.offline_default)
    if not settings.offline_default_path:
        return None

    path = Path(settings.offline_default_path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning(
            "Could not read offline default payload",
            extra={"path": str(path), "error": str(exc)},
        )
        return None

    if isinstance(payload, dict) and isinstance(payload.get("hourly"), list):
        hourly = payload["hourly"]
        payload = hourly[0] if hourly else None
    if not isinstance(payload, dict):
        logger.warning("Offline default payload has no usable mapping", extra={"path": str(path)})
        return None
    return payload


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4)}")
