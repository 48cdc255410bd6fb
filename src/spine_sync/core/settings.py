"""Settings for spine-sync.

``SyncSettings`` is read from ``SPINE_SYNC_*`` environment variables and
``.env`` files. Providers consult it for their default unclaimed-filter
policy; ``SyncContainer`` uses it to create the database engine.

Examples:
    >>> import os
    >>> os.environ["SPINE_SYNC_DEFAULT_FILTER_POLICY"] = "return_empty"
    >>> get_settings.cache_clear()
    >>> get_settings().default_filter_policy
    <FilterPolicy.RETURN_EMPTY: 'return_empty'>

Tags:
    settings, configuration, pydantic, environment, spine-sync
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from spine_sync.core.enums import FilterPolicy, ListConformity


class SyncSettings(BaseSettings):
    """spine-sync configuration.

    Fields
    ──────
    default_filter_policy : Provider-level default when a definition sets none
    default_conformity    : Conformity used by the fluent builder when unset
    log_level             : Structlog log level
    log_json              : JSON output (None = auto-detect from TTY)
    database_url          : URL for the container's SQLAlchemy engine
    """

    model_config = SettingsConfigDict(
        env_prefix="SPINE_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Sync behaviour ───────────────────────────────────────────
    default_filter_policy: FilterPolicy | None = Field(
        default=None,
        description="Unclaimed filter policy used when neither definition nor provider sets one",
    )
    default_conformity: ListConformity = ListConformity.NONE

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    # ── Storage ──────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///spine_sync.db")


@lru_cache(maxsize=1)
def get_settings() -> SyncSettings:
    """Return the process-wide settings (cached; call ``cache_clear()`` in tests)."""
    return SyncSettings()


__all__ = ["SyncSettings", "get_settings"]
