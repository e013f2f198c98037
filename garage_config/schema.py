"""
GarageConfig schema.

Typed, frozen view of the YAML configuration.  YAML files are parsed into
these types by the loader and handed out by ``get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the persistence adapter."""

    url: str
    echo: bool = False
    pool_size: int = 10


@dataclass(frozen=True)
class ReportingConfig:
    """Knobs of the reporting facade and engines."""

    timezone: str = "UTC"
    max_workers: int = 8
    default_low_stock_threshold: int = 5
    top_value_parts: int = 10

    @property
    def tz(self) -> tzinfo:
        """Reporting timezone used to expand calendar dates into bounds."""
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class GarageConfig:
    """Complete runtime configuration."""

    config_id: str
    database: DatabaseConfig
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
