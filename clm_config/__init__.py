"""
clm_config -- single public entrypoint for CLM kernel configuration.

Responsibility:
    ``get_active_config()`` is the only place configuration files and
    environment variables are read.  Services receive the resulting
    settings objects through their constructors.

Resolution order (later wins):
    1. ``clm_config/defaults.yaml``
    2. The YAML file named by the ``path`` argument, else by ``CLM_CONFIG_FILE``
    3. ``CLM_DATABASE_URL`` and ``CLM_LOG_LEVEL`` environment variables

Failure modes:
    - ``FileNotFoundError`` for a named override file that does not exist.
    - ``ValueError`` for unknown keys or invalid values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Mapping

from clm_config.loader import load_config_file
from clm_config.schema import (
    CLMConfig,
    DatabaseSettings,
    LifecycleSettings,
    LoggingSettings,
    PaginationSettings,
)

_logger = logging.getLogger("clm_kernel.config")

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_FILE = "CLM_CONFIG_FILE"
ENV_DATABASE_URL = "CLM_DATABASE_URL"
ENV_LOG_LEVEL = "CLM_LOG_LEVEL"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> CLMConfig:
    """Resolve the active configuration.

    ``environ`` defaults to ``os.environ``; tests pass a plain dict.
    """
    env = os.environ if environ is None else environ

    config = load_config_file(DEFAULTS_FILE)

    override = path or env.get(ENV_CONFIG_FILE)
    if override:
        config = load_config_file(Path(override), base=config)

    if env.get(ENV_DATABASE_URL):
        config = replace(
            config, database=replace(config.database, url=env[ENV_DATABASE_URL]),
        )
    if env.get(ENV_LOG_LEVEL):
        config = replace(
            config, logging=replace(config.logging, level=env[ENV_LOG_LEVEL].upper()),
        )

    _logger.info(
        "CLM_CONFIG_TRACE",
        extra={
            "config_source": config.source,
            "database_dialect": config.database.url.split(":", 1)[0],
            "default_limit": config.pagination.default_limit,
            "max_limit": config.pagination.max_limit,
        },
    )
    return config


__all__ = [
    "CLMConfig",
    "DatabaseSettings",
    "LifecycleSettings",
    "LoggingSettings",
    "PaginationSettings",
    "get_active_config",
]
