"""
config/settings.py
==================
Loads all configuration from environment variables (via a .env file or
the shell environment).  Nothing is hard-coded here: every secret and
tunable parameter lives in .env so the repo is safe to publish.

Settings are built explicitly with :meth:`Settings.from_env` in ``main.py``
and handed to whoever needs them; importing this module never touches the
environment beyond loading ``.env``.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple
from urllib.parse import urlparse

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=_env_path)

_TRUTHY = {"1", "true", "yes"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigurationError(EnvironmentError):
    """Raised when a required variable is missing or a value is invalid."""


def _get(
    env: Mapping[str, str],
    key: str,
    default: Optional[str] = None,
    required: bool = False,
) -> Optional[str]:
    """Read an env var, optionally requiring it to be set."""
    value = env.get(key, default)
    if value is not None:
        value = value.strip()
    if required and not value:
        raise ConfigurationError(
            f"Required environment variable '{key}' is not set. "
            "Copy .env.example to .env and fill in the values."
        )
    return value or default


def _get_flag(env: Mapping[str, str], key: str, default: bool = True) -> bool:
    """Read a free-text boolean: ``1``, ``true`` or ``yes`` (any case) mean True."""
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _get_list(env: Mapping[str, str], key: str) -> Tuple[str, ...]:
    """Read a comma-separated env var into a tuple (empty = not set)."""
    raw = env.get(key, "").strip()
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _check_snowflake(key: str, value: str) -> str:
    if not (value.isascii() and value.isdigit()):
        raise ConfigurationError(f"Environment variable '{key}' must be a numeric Discord ID, got {value!r}.")
    return value


def _get_snowflakes(env: Mapping[str, str], key: str) -> Tuple[str, ...]:
    return tuple(_check_snowflake(key, item) for item in _get_list(env, key))


def _get_url(env: Mapping[str, str], key: str, default: str) -> str:
    value = _get(env, key, default) or default
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(f"Environment variable '{key}' must be an http(s) URL, got {value!r}.")
    return value.rstrip("/")


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    value = _get(env, key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable '{key}' must be an integer, got {value!r}.") from None


def _get_log_level(env: Mapping[str, str], key: str, default: str = "INFO") -> str:
    value = (_get(env, key, default) or default).upper()
    if value not in _LOG_LEVELS:
        raise ConfigurationError(
            f"Environment variable '{key}' must be one of {', '.join(sorted(_LOG_LEVELS))}, got {value!r}."
        )
    return value


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the Librarian bot."""

    # ── Discord ──────────────────────────────────────────────────────────────
    discord_token: str = field(repr=False)
    app_id: str
    # Optional user ID mentioned in "not available in this server" notices
    contact_user_id: Optional[str] = None
    # Guilds to register slash commands in; empty = register globally
    registration_guild_ids: Tuple[str, ...] = ()

    # ── Permissions ──────────────────────────────────────────────────────────
    # Whether guilds missing from allowed-context.json may use the bot
    default_policy: bool = True

    # ── Librarian backend ────────────────────────────────────────────────────
    librarian_base_url: str = "http://localhost:3000"
    librarian_api_key: Optional[str] = field(default=None, repr=False)
    # Maximum seconds to wait for the backend to respond
    librarian_timeout: int = 120

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from *env* (defaults to ``os.environ``).

        Raises :class:`ConfigurationError` when a required variable is missing or a
        value cannot be parsed.
        """
        env = os.environ if env is None else env
        return cls(
            discord_token=_get(env, "DISCORD_TOKEN", required=True),  # type: ignore[arg-type]
            app_id=_check_snowflake("DISCORD_APP_ID", _get(env, "DISCORD_APP_ID", required=True)),  # type: ignore[arg-type]
            contact_user_id=_get(env, "DISCORD_CONTACT_USER_ID"),
            registration_guild_ids=_get_snowflakes(env, "DISCORD_ALLOWED_GUILD_IDS"),
            default_policy=_get_flag(env, "NONVERIFIED_SERVERS_ALLOWED", default=True),
            librarian_base_url=_get_url(env, "LIBRARIAN_BASE_URL", "http://localhost:3000"),
            librarian_api_key=_get(env, "LIBRARIAN_API_KEY"),
            librarian_timeout=_get_int(env, "LIBRARIAN_TIMEOUT", 120),
            log_level=_get_log_level(env, "LOG_LEVEL"),
        )

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)
