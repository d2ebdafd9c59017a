from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Leave ledger settings, read from the environment or a ``.env`` file.

    List values (``cors_origins``, ``admin_roles``) are given as JSON arrays,
    e.g. ``ADMIN_ROLES='["ADMIN", "HR_MANAGER"]'``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Leave Ledger"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://leave_ledger:leave_ledger@db:5432/leave_ledger"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    log_level: str = "INFO"
    # Roles allowed to manage catalog, policies and trigger rollover.
    admin_roles: list[str] = ["SUPER_ADMIN", "ADMIN", "HR_MANAGER"]
    # Seconds between rollover checks in the worker loop.
    rollover_interval_seconds: int = 86400

    @field_validator("admin_roles")
    @classmethod
    def _normalize_roles(cls, v: list[str]) -> list[str]:
        # Compared against AuthContext.role, which is upper-cased.
        return [role.strip().upper() for role in v if role.strip()]


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
