"""Immutable configuration handed to the identity core at construction time."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping


def _ttl(value: Any, default: timedelta) -> timedelta:
    if value is None:
        return default
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=int(value))


@dataclass(frozen=True)
class AuthSettings:
    signing_secret: str
    algorithm: str = "HS256"
    issuer: str = "sociofeed"
    access_ttl: timedelta = timedelta(minutes=120)
    refresh_ttl: timedelta = timedelta(days=7)
    activation_ttl: timedelta = timedelta(hours=1)
    reset_ttl: timedelta = timedelta(hours=1)
    base_url: str = "http://localhost:5000"
    rotate_refresh_tokens: bool = True
    revoke_sessions_on_reset: bool = True
    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536
    argon2_parallelism: int = 4

    def __post_init__(self):
        if not self.signing_secret:
            raise ValueError("signing_secret must not be empty")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "AuthSettings":
        """Build settings from a Flask-style config mapping."""
        return cls(
            signing_secret=config["JWT_SECRET"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            issuer=config.get("JWT_ISSUER", "sociofeed"),
            access_ttl=_ttl(config.get("ACCESS_TOKEN_EXPIRES"), cls.access_ttl),
            refresh_ttl=_ttl(config.get("REFRESH_TOKEN_EXPIRES"), cls.refresh_ttl),
            activation_ttl=_ttl(config.get("ACTIVATION_TOKEN_EXPIRES"), cls.activation_ttl),
            reset_ttl=_ttl(config.get("RESET_TOKEN_EXPIRES"), cls.reset_ttl),
            base_url=config.get("BASE_URL", cls.base_url).rstrip("/"),
            rotate_refresh_tokens=bool(config.get("ROTATE_REFRESH_TOKENS", True)),
            revoke_sessions_on_reset=bool(config.get("REVOKE_SESSIONS_ON_RESET", True)),
            argon2_time_cost=int(config.get("ARGON2_TIME_COST", cls.argon2_time_cost)),
            argon2_memory_cost=int(config.get("ARGON2_MEMORY_COST", cls.argon2_memory_cost)),
            argon2_parallelism=int(config.get("ARGON2_PARALLELISM", cls.argon2_parallelism)),
        )
