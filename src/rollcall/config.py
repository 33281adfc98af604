"""Application settings via pydantic-settings. Loads from environment and .env file."""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings

# Defaults for the signup cooldown.
DEFAULT_COOLDOWN_SECONDS = 3.0
DEFAULT_CLEANUP_INTERVAL_SECONDS = 60.0

# Discord renders at most 25 options in a select menu; the roster card uses the
# same number for its participant list.
DEFAULT_ROSTER_DISPLAY_CAP = 25


class Settings(BaseSettings):
    """Rollcall application configuration.

    All values can be overridden via environment variables or .env file.
    """

    # Discord
    discord_bot_token: str = ""
    discord_guild_id: str = ""
    discord_enabled: bool = False

    # Public web client; enables account links and the View Event button
    client_url: str = ""
    community_name: str = "Raid Ledger"

    # Database
    database_url: str = "sqlite+aiosqlite:///rollcall.db"

    # Environment
    rollcall_env: str = "development"

    # Signup interactions
    signup_cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS
    cooldown_cleanup_interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS
    roster_display_cap: int = DEFAULT_ROSTER_DISPLAY_CAP

    # Logging
    rollcall_log_level: str = "INFO"

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_cooldown_timing(self) -> Settings:
        """Cleanup must not run more often than the cooldown window."""
        if self.signup_cooldown_seconds <= 0:
            msg = "SIGNUP_COOLDOWN_SECONDS must be positive."
            raise ValueError(msg)
        if self.cooldown_cleanup_interval_seconds < self.signup_cooldown_seconds:
            msg = (
                "COOLDOWN_CLEANUP_INTERVAL_SECONDS must be at least "
                "SIGNUP_COOLDOWN_SECONDS."
            )
            raise ValueError(msg)
        return self

    @model_validator(mode="after")
    def _normalize_client_url(self) -> Settings:
        """Strip a trailing slash so links can be joined with ``/path``."""
        self.client_url = self.client_url.rstrip("/")
        return self

    @property
    def guild_id(self) -> int | None:
        """The configured guild as an int, or None when unset."""
        return int(self.discord_guild_id) if self.discord_guild_id else None
