"""
CLM configuration schema.

Frozen dataclasses produced by ``clm_config.loader`` and returned by
``clm_config.get_active_config()``.  Defaults here are the values the
kernel uses when a section is absent.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///clm.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class PaginationSettings:
    """Limits applied to every paginated service query."""

    default_limit: int = 50
    max_limit: int = 500

    def normalize(self, offset: int | None, limit: int | None) -> tuple[int, int]:
        """Clamp ``offset`` to >= 0 and ``limit`` to ``1..max_limit``.

        A missing or non-positive limit becomes ``default_limit``.
        """
        offset = max(offset or 0, 0)
        if not limit or limit <= 0:
            limit = self.default_limit
        return offset, min(limit, self.max_limit)


@dataclass(frozen=True)
class LifecycleSettings:
    expiring_soon_days: int = 30
    default_reminder_days: int = 7


@dataclass(frozen=True)
class CLMConfig:
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    pagination: PaginationSettings = field(default_factory=PaginationSettings)
    lifecycle: LifecycleSettings = field(default_factory=LifecycleSettings)
    source: str = "defaults"
