"""Environment-driven settings, read once at import into ``SETTINGS``.

Every variable is optional.  Bad values fail fast with ValueError so a
misconfigured deployment never starts.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    raw = _env(name, default).lower()
    if raw not in allowed:
        raise ValueError(f"{name} must be {'|'.join(allowed)} (got {raw!r})")
    return raw


def _int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = _env(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def _flag(name: str, default: bool) -> bool:
    raw = _env(name, "true" if default else "false").lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    # seconds a cached CourseProgress lives in Redis
    progress_cache_ttl: int = 300
    audit_query_max_limit: int = 500
    # Redis lock lease, and how long a caller waits to acquire it
    lock_timeout_seconds: int = 10
    lock_wait_seconds: int = 5
    # PEM of the identity provider's ES256 public key; required in prod
    jwt_public_key: str | None = None
    jwt_issuer: str = "auth-service"
    jwt_audience: str = "completion-service"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    return Settings(
        app_env=_choice("APP_ENV", "dev", ("dev", "test", "prod")),  # type: ignore[arg-type]
        log_level=_choice(  # type: ignore[arg-type]
            "LOG_LEVEL", "info", ("debug", "info", "warning", "error")
        ),
        log_json=_flag("LOG_JSON", False),
        port=_int("PORT", 8000),
        database_url=_env("DATABASE_URL") or None,
        redis_url=_env("REDIS_URL") or None,
        progress_cache_ttl=_int("PROGRESS_CACHE_TTL", 300),
        audit_query_max_limit=_int("AUDIT_QUERY_MAX_LIMIT", 500),
        lock_timeout_seconds=_int("LOCK_TIMEOUT_SECONDS", 10),
        lock_wait_seconds=_int("LOCK_WAIT_SECONDS", 5),
        # Single-line env values carry the PEM with literal \n separators.
        jwt_public_key=_env("JWT_PUBLIC_KEY").replace("\\n", "\n") or None,
        jwt_issuer=_env("JWT_ISSUER", "auth-service"),
        jwt_audience=_env("JWT_AUDIENCE", "completion-service"),
    )


SETTINGS = load_settings()
