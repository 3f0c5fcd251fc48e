"""Utilities for removing credentials and oversized values from log records."""

from __future__ import annotations

import re
from typing import Any

SENSITIVE_KEYWORDS = {
    "authorization",
    "cookie",
    "password",
    "passwd",
    "secret",
    "token",
    "apikey",
    "api_key",
    "set-cookie",
    "proxy-authorization",
    "pepper",
}
TOKEN_KEYWORDS = {"token", "authorization", "apikey", "api_key"}
# Bookkeeping fields whose names mention tokens but never hold one.
SAFE_KEYS = {"token_revoked", "token_sweep_deleted", "token_sweep_interval"}
MASKED_VALUE = "<redacted>"
MAX_FIELD_LENGTH = 1024

_BEARER_PATTERN = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9\-_\.=]+")
_JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+")


def _mask_token(value: str) -> str:
    value = value.strip()
    if not value:
        return MASKED_VALUE
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}…{value[-4:]}"


def _normalize_key(key: str) -> str:
    """Return a snake_case lower representation of ``key`` for comparisons."""

    snake = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", key)
    snake = re.sub(r"[^a-zA-Z0-9]+", "_", snake)
    return snake.strip("_").lower()


def _scrub_text(value: str) -> str:
    """Mask bearer credentials and JWT-shaped strings embedded in free text."""

    value = _BEARER_PATTERN.sub("Bearer " + MASKED_VALUE, value)
    return _JWT_PATTERN.sub(MASKED_VALUE, value)


def sanitize_value(key: Any, value: Any) -> Any:
    """Redact sensitive information and limit field size."""

    if isinstance(key, bytes):
        key_text = key.decode("utf-8", "ignore")
    elif isinstance(key, str):
        key_text = key
    else:
        key_text = ""
    normalized = _normalize_key(key_text)
    lowered = key_text.lower()

    if isinstance(value, str):
        if normalized not in SAFE_KEYS and any(
            keyword in lowered or keyword in normalized for keyword in SENSITIVE_KEYWORDS
        ):
            if any(keyword in normalized for keyword in TOKEN_KEYWORDS):
                return _mask_token(value)
            return MASKED_VALUE
        value = _scrub_text(value)
        if len(value) > MAX_FIELD_LENGTH:
            return value[:MAX_FIELD_LENGTH] + "…[truncated]"
        return value
    if isinstance(value, dict):
        return {k: sanitize_value(k, v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        sanitized = [sanitize_value(key, item) for item in value]
        if isinstance(value, tuple):
            return tuple(sanitized)
        if isinstance(value, set):
            return set(sanitized)
        return sanitized
    return value
