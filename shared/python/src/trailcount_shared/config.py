"""
config.py — pydantic-settings Settings class.

All environment variables for the trail count importer are declared here.
Both the sink adapters and the pipeline import `settings` from this module.

Usage:
    from trailcount_shared.config import settings
    print(settings.export_path)
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trailcount_shared.errors import ConfigError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Drop location
    # -------------------------------------------------------------------------
    storage_path: Path | None = Field(default=None)
    export_filename: str = Field(default="export.csv")
    log_filename: str = Field(default="log.txt")
    rejected_dirname: str = Field(default="rejected")

    # -------------------------------------------------------------------------
    # Sink
    # -------------------------------------------------------------------------
    sink_backend: Literal["postgres", "duckdb"] = Field(default="postgres")
    database_url: str = Field(default="")
    duckdb_path: str = Field(default="./data/trailcounts.duckdb")
    individual_table: str = Field(default="tblcountdata")
    aggregate_table: str = Field(default="tblheader")

    # The sink caps simultaneous sessions; the pool must cover the busiest phase.
    pool_max_connections: int = Field(default=10, ge=1)
    insert_workers: int = Field(default=10, ge=1)
    pool_timeout_seconds: float = Field(default=30.0, gt=0)
    pool_connect_attempts: int = Field(default=3, ge=1)

    # -------------------------------------------------------------------------
    # Poll loop
    # -------------------------------------------------------------------------
    poll_interval_seconds: float = Field(default=15.0, ge=0)
    failed_export_policy: Literal["delete", "quarantine"] = Field(default="delete")

    # -------------------------------------------------------------------------
    # Station layout
    # -------------------------------------------------------------------------
    station_layout_path: Path | None = Field(default=None)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG"
    )
    log_file_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    # -------------------------------------------------------------------------
    # Derived / computed
    # -------------------------------------------------------------------------
    @property
    def export_path(self) -> Path:
        return self._require_storage() / self.export_filename

    @property
    def log_path(self) -> Path | None:
        if self.storage_path is None:
            return None
        return self.storage_path / self.log_filename

    @property
    def rejected_path(self) -> Path:
        return self._require_storage() / self.rejected_dirname

    @property
    def lock_path(self) -> Path:
        return self._require_storage() / ".trailcounts.lock"

    def _require_storage(self) -> Path:
        if self.storage_path is None:
            raise ConfigError("STORAGE_PATH is not set. Set it in .env.")
        return self.storage_path

    @field_validator("log_level", "log_file_level", mode="before")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @field_validator("individual_table", "aggregate_table")
    @classmethod
    def plain_identifier(cls, v: str) -> str:
        # Table names are interpolated into SQL; parameters cannot bind identifiers.
        if not _IDENTIFIER.match(v):
            raise ValueError(f"not a plain SQL identifier: {v!r}")
        return v

    @model_validator(mode="after")
    def workers_fit_pool(self) -> "Settings":
        if self.insert_workers > self.pool_max_connections:
            raise ValueError(
                f"insert_workers ({self.insert_workers}) exceeds "
                f"pool_max_connections ({self.pool_max_connections})"
            )
        return self

    def check_startup(self) -> None:
        """
        Raise ConfigError if anything the poll loop needs is missing.

        Called once before the loop starts; the loop never re-checks.
        """
        problems: list[str] = []
        if self.storage_path is None:
            problems.append("STORAGE_PATH is not set")
        elif not self.storage_path.is_dir():
            problems.append(f"STORAGE_PATH {str(self.storage_path)!r} is not a directory")
        if self.sink_backend == "postgres" and not self.database_url:
            problems.append("DATABASE_URL is not set (required for the postgres sink)")
        if self.station_layout_path is not None and not self.station_layout_path.is_file():
            problems.append(f"STATION_LAYOUT_PATH {str(self.station_layout_path)!r} not found")
        if problems:
            raise ConfigError("Invalid startup configuration", problems=problems)


# ---------------------------------------------------------------------------
# Module-level singleton: import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
