"""callsign_directory.config

Application settings read from the environment (and a local .env file).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

from callsign_directory.import_members import DEFAULT_QUEUE_SIZE, DEFAULT_WRITERS
from callsign_directory.shared import ConfigError


def _int_setting(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class AppConfig:
    db_dsn: str | None = None
    writers: int = DEFAULT_WRITERS
    queue_size: int = DEFAULT_QUEUE_SIZE
    db_pool_size: int = DEFAULT_WRITERS + 1
    auth_header: str = "X-Authenticated-User"
    login_url: str = "/login"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "AppConfig":
        """Build settings from `env` (default: os.environ after loading .env).

        CALLSIGN_DB_DSN         PostgreSQL DSN; unset → in-memory store
        CALLSIGN_WRITERS        write-pool size (default 50)
        CALLSIGN_QUEUE_SIZE     bounded write-queue size (default 500)
        CALLSIGN_DB_POOL_SIZE   max DB connections (default: writers + 1)
        CALLSIGN_AUTH_HEADER    header carrying the authenticated user
        CALLSIGN_LOGIN_URL      where unauthenticated uploads are sent
        """
        if env is None:
            load_dotenv()
            env = os.environ
        writers = _int_setting(env, "CALLSIGN_WRITERS", DEFAULT_WRITERS)
        return cls(
            db_dsn=(env.get("CALLSIGN_DB_DSN") or "").strip() or None,
            writers=writers,
            queue_size=_int_setting(env, "CALLSIGN_QUEUE_SIZE", DEFAULT_QUEUE_SIZE),
            # One spare connection so lookups are served during an import.
            db_pool_size=_int_setting(env, "CALLSIGN_DB_POOL_SIZE", writers + 1),
            auth_header=(env.get("CALLSIGN_AUTH_HEADER") or "").strip() or "X-Authenticated-User",
            login_url=(env.get("CALLSIGN_LOGIN_URL") or "").strip() or "/login",
        )
