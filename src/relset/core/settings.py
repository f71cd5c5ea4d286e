"""Environment-driven settings for relset.

``RelsetSettings`` is read once at startup and turned into an
:class:`~relset.orm.context.ORMContext`; nothing below the context reads
the environment.

Examples:
    >>> from relset.core.settings import RelsetSettings
    >>> settings = RelsetSettings(database_url="sqlite:///blog.db")
    >>> settings.query_timeout
    30.0

Environment variables use the ``RELSET_`` prefix (``RELSET_DATABASE_URL``,
``RELSET_QUERY_TIMEOUT``, ``RELSET_LOG_LEVEL`` ...), and a ``.env`` file in
the working directory is honoured.

Tags:
    settings, configuration, pydantic, environment, relset
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelsetSettings(BaseSettings):
    """Startup configuration.

    Fields
    ──────
    database_url      : Connection URL (``sqlite:///path``, ``postgresql://…``)
    query_timeout     : Per-query timeout in seconds, ``0`` disables it
    log_level         : Structlog log level
    json_logs         : Force JSON (True) / console (False) / auto (None)
    legacy_desc_sort  : Reproduce the historical ``desc`` sort that did not reverse
    """

    model_config = SettingsConfigDict(
        env_prefix="RELSET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────────────
    database_url: str = "sqlite:///:memory:"
    query_timeout: float = Field(default=30.0, ge=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Behaviour ────────────────────────────────────────────────
    legacy_desc_sort: bool = False

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


__all__ = ["RelsetSettings"]
