"""
Configuration Loader (``garage_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``garage_config.schema`` dataclasses.  The public runtime entry point is
``garage_config.get_active_config()``; this module is its implementation.

Invariants enforced
-------------------
* Missing required keys raise ``KeyError``; no silent defaults for
  ``config_id`` or ``database.url``.
* Out-of-range values raise ``ValueError`` with a descriptive message.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown timezone  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from garage_config.schema import (
    DatabaseConfig,
    GarageConfig,
    LoggingConfig,
    ReportingConfig,
)

_LOG_LEVELS = frozenset(logging.getLevelNamesMapping())


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    """Parse a DatabaseConfig from a dict."""
    pool_size = int(data.get("pool_size", 10))
    if pool_size < 1:
        raise ValueError(f"database.pool_size must be >= 1, got {pool_size}")
    return DatabaseConfig(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=pool_size,
    )


def parse_reporting(data: dict[str, Any]) -> ReportingConfig:
    """
    Parse a ReportingConfig from a dict.

    Raises:
        ValueError: if the timezone is unknown or a numeric knob is out of range.
    """
    timezone = data.get("timezone", "UTC")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown reporting.timezone {timezone!r}") from exc

    max_workers = int(data.get("max_workers", 8))
    if max_workers < 1:
        raise ValueError(f"reporting.max_workers must be >= 1, got {max_workers}")

    threshold = int(data.get("default_low_stock_threshold", 5))
    if threshold < 0:
        raise ValueError(
            f"reporting.default_low_stock_threshold cannot be negative, got {threshold}"
        )

    top_n = int(data.get("top_value_parts", 10))
    if top_n < 0:
        raise ValueError(f"reporting.top_value_parts cannot be negative, got {top_n}")

    return ReportingConfig(
        timezone=timezone,
        max_workers=max_workers,
        default_low_stock_threshold=threshold,
        top_value_parts=top_n,
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown logging.level {level!r}")
    return LoggingConfig(level=level)


def parse_config(data: dict[str, Any]) -> GarageConfig:
    """
    Parse a complete GarageConfig from a dict.

    Raises:
        KeyError: if ``config_id`` or ``database.url`` is missing.
        ValueError: if a value is out of range.
    """
    return GarageConfig(
        config_id=data["config_id"],
        database=parse_database(data["database"]),
        reporting=parse_reporting(data.get("reporting") or {}),
        logging=parse_logging(data.get("logging") or {}),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> GarageConfig:
    """Load and parse one YAML configuration file."""
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
