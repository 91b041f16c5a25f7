"""Configuration helpers for FIRMS ingestion."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(REPO_ROOT / ".env", override=False)

FIRMS_BASE_URL = "https://firms.modaps.eosdis.nasa.gov/api/area/csv"
WORLD_BBOX = "-180,-90,180,90"
MAX_FIRMS_DAY_RANGE = 10
DEFAULT_SOURCES = ["VIIRS_SNPP_NRT"]


def resolve_area(value: str) -> str:
    """Convert an area label into the FIRMS bbox string."""
    cleaned = value.strip()
    if cleaned.lower() == "world":
        return WORLD_BBOX
    parts = [p.strip() for p in cleaned.split(",")]
    if len(parts) != 4:
        raise ValueError("FIRMS area must be 'world' or 'west,south,east,north'")
    float_parts: Tuple[float, ...] = tuple(float(p) for p in parts)
    return ",".join(str(p) for p in float_parts)


def redact_database_url(url: str) -> str:
    """Hide user and password in a database URL for logs."""
    return re.sub(r"://[^@/]+@", "://****:****@", url)


def split_sources(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [segment.strip() for segment in value.split(",") if segment.strip()]


class FirmsIngestSettings(BaseSettings):
    """Environment-driven configuration for the FIRMS ingestion pipeline."""

    model_config = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    map_key: str = Field(default="", validation_alias="FIRMS_MAP_KEY")
    api_base: str = Field(default=FIRMS_BASE_URL, validation_alias="FIRMS_API_BASE")
    sources: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_SOURCES),
        validation_alias="FIRMS_SOURCES",
    )
    area: str = Field(default="world", validation_alias="FIRMS_AREA")
    day_range: int = Field(default=1, validation_alias="FIRMS_DAY_RANGE")
    request_timeout_seconds: float = Field(
        default=15.0,
        validation_alias="FIRMS_REQUEST_TIMEOUT_SECONDS",
    )
    max_attempts: int = Field(default=3, validation_alias="FIRMS_MAX_ATTEMPTS")
    backoff_seconds: float = Field(default=0.5, validation_alias="FIRMS_BACKOFF_SECONDS")
    max_block_days: int = Field(default=MAX_FIRMS_DAY_RANGE, validation_alias="FIRMS_MAX_BLOCK_DAYS")
    upsert_chunk_size: int = Field(default=800, validation_alias="FIRMS_UPSERT_CHUNK_SIZE")
    continue_on_error: bool = Field(default=False, validation_alias="FIRMS_CONTINUE_ON_ERROR")

    # Database settings
    database_url_override: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")
    postgres_host: str = Field(default="localhost", validation_alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, validation_alias="POSTGRES_PORT")
    postgres_user: str = Field(default="firms", validation_alias="POSTGRES_USER")
    postgres_password: str = Field(default="firms", validation_alias="POSTGRES_PASSWORD")
    postgres_db: str = Field(default="firms", validation_alias="POSTGRES_DB")

    @field_validator("sources", mode="before")
    @classmethod
    def _split_sources(cls, value: object) -> List[str]:
        if value is None:
            return list(DEFAULT_SOURCES)
        if isinstance(value, str):
            return split_sources(value) or list(DEFAULT_SOURCES)
        if isinstance(value, list):
            return value
        raise ValueError("FIRMS_SOURCES must be a comma-separated string or list.")

    @field_validator("area", mode="before")
    @classmethod
    def _normalize_area(cls, value: object) -> str:
        if value is None:
            return "world"
        if isinstance(value, str):
            if value.strip().lower() == "world":
                return "world"
            return resolve_area(value)
        raise ValueError("FIRMS_AREA must be a string")

    @field_validator("day_range", mode="before")
    @classmethod
    def _validate_day_range(cls, value: object) -> int:
        val = int(value)  # raises if not numeric
        if val < 1:
            raise ValueError("FIRMS_DAY_RANGE must be at least 1")
        return val

    @field_validator("max_block_days", mode="before")
    @classmethod
    def _validate_block_days(cls, value: object) -> int:
        val = int(value)
        if not 1 <= val <= MAX_FIRMS_DAY_RANGE:
            raise ValueError(f"FIRMS_MAX_BLOCK_DAYS must be between 1 and {MAX_FIRMS_DAY_RANGE}")
        return val

    @field_validator("max_attempts", "upsert_chunk_size", mode="before")
    @classmethod
    def _validate_positive(cls, value: object) -> int:
        val = int(value)
        if val < 1:
            raise ValueError("value must be a positive integer")
        return val

    @property
    def resolved_area(self) -> str:
        """Convert the configured area label into the FIRMS bbox string."""
        return resolve_area(self.area)

    @property
    def database_url(self) -> str:
        """Prefer DATABASE_URL, else build from the POSTGRES_* components."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def masked_database_url(self) -> str:
        return redact_database_url(self.database_url)


settings = FirmsIngestSettings()
