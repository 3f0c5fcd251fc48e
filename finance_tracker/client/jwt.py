"""Inspect the expiry of access tokens held by the client.

Nothing here verifies signatures; the client only reads the ``exp`` claim to
decide when to warn or refresh. The server stays the authority on validity.
"""

from __future__ import annotations

import time
from typing import Any

from jose import JWTError
from jose import jwt as jose_jwt


def decode_claims(token: str | None) -> dict[str, Any] | None:
    """Return the unverified claim set of ``token`` or ``None`` if unreadable."""

    if not token:
        return None
    try:
        return jose_jwt.get_unverified_claims(token)
    except JWTError:
        return None


def get_expiry(token: str | None) -> float | None:
    claims = decode_claims(token)
    if claims is None:
        return None
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return float(exp)


def seconds_until_expiry(token: str | None, now: float | None = None) -> float:
    """Seconds left before ``token`` expires; ``0`` for unreadable tokens."""

    exp = get_expiry(token)
    if exp is None:
        return 0.0
    current = time.time() if now is None else now
    return max(0.0, exp - current)


def is_expired(token: str | None, now: float | None = None) -> bool:
    """Return True once ``exp <= now``; unreadable tokens count as expired."""

    exp = get_expiry(token)
    if exp is None:
        return True
    current = time.time() if now is None else now
    return exp <= current


def is_expiring(token: str | None, threshold: float, now: float | None = None) -> bool:
    """Return True when ``token`` is still live but expires within ``threshold`` seconds."""

    if is_expired(token, now):
        return False
    return seconds_until_expiry(token, now) <= threshold


def format_time_until_expiry(token: str | None, now: float | None = None) -> str:
    remaining = int(seconds_until_expiry(token, now))
    if remaining <= 0:
        return "Expired"
    hours, rest = divmod(remaining, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


__all__ = [
    "decode_claims",
    "format_time_until_expiry",
    "get_expiry",
    "is_expired",
    "is_expiring",
    "seconds_until_expiry",
]
