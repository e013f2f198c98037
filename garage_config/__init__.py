"""
garage_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the resulting
    ``GarageConfig`` by injection; they never read YAML themselves.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``KeyError`` / ``ValueError`` -- schema validation failures.
    - ``yaml.YAMLError`` -- malformed YAML.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``GARAGE_CONFIG_TRACE`` log entry with the config_id and checksum, tying
    each generated report to the exact configuration that shaped it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from garage_config.loader import load_config_file
from garage_config.schema import (
    DatabaseConfig,
    GarageConfig,
    LoggingConfig,
    ReportingConfig,
)

_logger = logging.getLogger("garage_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> GarageConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML file.  Defaults to
            garage_config/sets/default.yaml.

    Returns:
        GarageConfig -- frozen, validated configuration.
    """
    path = config_path or _DEFAULT_CONFIG_PATH
    config = load_config_file(path)

    _logger.info(
        "GARAGE_CONFIG_TRACE",
        extra={
            "trace_type": "GARAGE_CONFIG_TRACE",
            "config_id": config.config_id,
            "checksum": config.checksum,
            "config_path": str(path),
            "timezone": config.reporting.timezone,
            "max_workers": config.reporting.max_workers,
        },
    )
    return config


__all__ = [
    "DatabaseConfig",
    "GarageConfig",
    "LoggingConfig",
    "ReportingConfig",
    "get_active_config",
]
