"""
Configuration Loader (``clm_config.loader``).

Responsibility
--------------
Reads YAML documents and parses them into the frozen ``clm_config.schema``
dataclasses.  Runtime callers go through ``clm_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import fields, replace
from pathlib import Path
from typing import Any

import yaml

from clm_config.schema import (
    CLMConfig,
    DatabaseSettings,
    LifecycleSettings,
    LoggingSettings,
    PaginationSettings,
)

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "logging": LoggingSettings,
    "pagination": PaginationSettings,
    "lifecycle": LifecycleSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty file yields ``{}``."""
    with open(path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping")
    return data


def _merge_section(current: Any, raw: dict[str, Any], section: str) -> Any:
    if not isinstance(raw, dict):
        raise ValueError(f"config section '{section}' must be a mapping")
    known = {f.name: f.type for f in fields(current)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ValueError(f"unknown keys in config section '{section}': {unknown}")
    return replace(current, **raw)


def _validate(config: CLMConfig) -> None:
    page = config.pagination
    if page.default_limit <= 0 or page.max_limit <= 0:
        raise ValueError("pagination limits must be positive")
    if page.default_limit > page.max_limit:
        raise ValueError("pagination.default_limit exceeds pagination.max_limit")
    life = config.lifecycle
    if life.expiring_soon_days < 0 or life.default_reminder_days < 0:
        raise ValueError("lifecycle day counts must be >= 0")
    if not config.database.url:
        raise ValueError("database.url is required")


def parse_config(data: dict[str, Any], base: CLMConfig | None = None, source: str = "") -> CLMConfig:
    """Overlay ``data`` onto ``base`` (or the schema defaults)."""
    config = base or CLMConfig()
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"unknown config sections: {unknown}")
    changes = {
        name: _merge_section(getattr(config, name), raw or {}, name)
        for name, raw in data.items()
    }
    config = replace(config, **changes)
    if source:
        config = replace(config, source=source)
    _validate(config)
    return config


def load_config_file(path: Path, base: CLMConfig | None = None) -> CLMConfig:
    return parse_config(load_yaml_file(path), base=base, source=str(path))
