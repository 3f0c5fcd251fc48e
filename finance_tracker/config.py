"""Environment-driven configuration for the FastAPI application."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Final


def _get_env(name: str, *, default: str | None = None, required: bool = False) -> str | None:
    value = os.getenv(name)
    if value is None:
        if required:
            raise RuntimeError(f"Missing required environment variable: {name}")
        return default
    return value.strip()


_DURATION_PATTERN = re.compile(r"^(\d+)\s*([smhd]?)$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str) -> int:
    """Return ``value`` in seconds; accepts plain seconds or ``15m``/``24h``/``30d``."""

    match = _DURATION_PATTERN.match(value.strip().lower())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    seconds = int(amount) * _DURATION_UNITS[unit]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return seconds


def _get_duration(name: str, default: str) -> int:
    raw = _get_env(name, default=default) or default
    try:
        return parse_duration(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a positive duration such as 900, 15m or 30d") from exc


JWT_ALGORITHM: Final[str] = "HS256"
MIN_SECRET_LENGTH: Final[int] = 32

DEFAULT_ACCESS_TOKEN_TTL = "15m"
DEFAULT_REFRESH_TOKEN_TTL = "30d"
DEFAULT_SWEEP_INTERVAL = "24h"


@dataclass(frozen=True)
class Settings:
    """Process configuration threaded into the app factory and token services."""

    jwt_secret: str
    database_url: str
    access_token_ttl: int = 15 * 60
    refresh_token_ttl: int = 30 * 24 * 3600
    jwt_algorithm: str = JWT_ALGORITHM
    google_client_id: str | None = None
    token_sweep_interval: int = 24 * 3600
    token_pepper: str = ""
    allowed_origins: list[str] = field(default_factory=list)
    app_env: str = "production"

    def __post_init__(self) -> None:
        if len(self.jwt_secret) < MIN_SECRET_LENGTH:
            raise RuntimeError(
                f"JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters long"
            )
        if not self.database_url:
            raise RuntimeError("DATABASE_URL is required")


def load_settings() -> Settings:
    """Build :class:`Settings` from the process environment."""

    secret = _get_env("JWT_SECRET") or _get_env("SECRET_KEY")
    if not secret:
        raise RuntimeError("JWT_SECRET (or legacy SECRET_KEY) is required for HS256 JWTs")

    database_url = _get_env("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL environment variable is required")

    allowed_origins = [
        origin.strip()
        for origin in (_get_env("ALLOWED_ORIGINS", default="") or "").split(",")
        if origin.strip()
    ]

    return Settings(
        jwt_secret=secret,
        database_url=database_url,
        access_token_ttl=_get_duration("ACCESS_TOKEN_TTL", DEFAULT_ACCESS_TOKEN_TTL),
        refresh_token_ttl=_get_duration("REFRESH_TOKEN_TTL", DEFAULT_REFRESH_TOKEN_TTL),
        google_client_id=_get_env("GOOGLE_CLIENT_ID") or None,
        token_sweep_interval=_get_duration("TOKEN_SWEEP_INTERVAL", DEFAULT_SWEEP_INTERVAL),
        token_pepper=_get_env("TOKEN_PEPPER", default="") or "",
        allowed_origins=allowed_origins,
        app_env=(_get_env("APP_ENV", default="production") or "production").lower(),
    )


def _read_header(name: str, default: str | None) -> str | None:
    """Fetch an environment override for a security header."""

    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or None


# Security header defaults keep browsers on HTTPS and enforce safe resource loading.
DEFAULT_STRICT_TRANSPORT_SECURITY = "max-age=63072000; includeSubDomains; preload"
DEFAULT_CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "frame-ancestors 'none'; "
    "base-uri 'self'; "
    "object-src 'none'"
)
DEFAULT_X_FRAME_OPTIONS = "DENY"
DEFAULT_X_CONTENT_TYPE_OPTIONS = "nosniff"
DEFAULT_REFERRER_POLICY = "no-referrer"

STRICT_TRANSPORT_SECURITY = _read_header(
    "STRICT_TRANSPORT_SECURITY", DEFAULT_STRICT_TRANSPORT_SECURITY
)
CONTENT_SECURITY_POLICY = _read_header(
    "CONTENT_SECURITY_POLICY", DEFAULT_CONTENT_SECURITY_POLICY
)

SECURITY_HEADERS = {
    "X-Frame-Options": DEFAULT_X_FRAME_OPTIONS,
    "X-Content-Type-Options": DEFAULT_X_CONTENT_TYPE_OPTIONS,
}

if STRICT_TRANSPORT_SECURITY:
    SECURITY_HEADERS["Strict-Transport-Security"] = STRICT_TRANSPORT_SECURITY

if CONTENT_SECURITY_POLICY:
    SECURITY_HEADERS["Content-Security-Policy"] = CONTENT_SECURITY_POLICY

REFERRER_POLICY = _read_header("REFERRER_POLICY", DEFAULT_REFERRER_POLICY)

if REFERRER_POLICY:
    SECURITY_HEADERS["Referrer-Policy"] = REFERRER_POLICY
