"""Service configuration loaded from WORKSHOP_* environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkshopSettings(BaseSettings):
    """Workshop Template Runtime settings.

    All fields are read from environment variables with the ``WORKSHOP_``
    prefix.  For example, ``WORKSHOP_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKSHOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    audit_log_file: str | None = None
    """JSON-lines audit trail.  Defaults to ``{data_root}/{data_prefix}/logs/audit.jsonl``;
    set to ``-`` to emit audit events through loguru only."""

    # -- Data storage ----------------------------------------------------------
    data_root: str = "./data"
    """Unified root directory for all managed data (definitions, catalog, workspaces)."""

    data_prefix: str | None = None
    """Optional namespace prefix inserted into all data paths.

    When set, all paths become ``{data_root}/{data_prefix}/...``.
    """

    # -- Resolution ------------------------------------------------------------
    wildcard_ranking: Literal["first_match", "most_recent"] = "first_match"
    """Tie-break among several catalog items matching a wildcard requirement."""

    # -- Scheduler -------------------------------------------------------------
    scheduler_enabled: bool = True
    scheduler_sync_interval: float = 30.0
    """Seconds between re-reads of the trigger store by the scheduler."""

    max_concurrent_applications: int = 10
    """System-wide bound on trigger-fired applications running at once."""

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000
    graceful_shutdown_timeout: int = 600
    """Seconds to wait for in-flight applications to finish during shutdown.

    Note: uvicorn's ``--timeout-graceful-shutdown`` must be >= this value
    for the wait to be effective.
    """

    # -- Helpers ---------------------------------------------------------------

    @property
    def data_path(self) -> Path:
        base = Path(self.data_root)
        return base / self.data_prefix if self.data_prefix else base

    def resolve_audit_log_file(self) -> Path | None:
        """Return the audit file path, or ``None`` when file auditing is off."""
        if self.audit_log_file == "-":
            return None
        if self.audit_log_file:
            return Path(self.audit_log_file)
        return self.data_path / "logs" / "audit.jsonl"


def get_settings() -> WorkshopSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> WorkshopSettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return WorkshopSettings()


# Apply lru_cache at runtime so the function is only called once.
from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
