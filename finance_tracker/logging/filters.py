"""Logging filters attaching request context and scrubbing credentials."""

from __future__ import annotations

import logging

from .context import (
    client_ip_anonymized_ctx_var,
    client_ip_ctx_var,
    client_ip_raw_ctx_var,
    request_id_ctx_var,
    user_id_ctx_var,
)
from .ip_utils import anonymize_ip
from .privacy import sanitize_value

_UNTOUCHED = frozenset({"exc_info", "exc_text", "stack_info", "msg"})
_CONTEXT_FIELDS = (
    ("request_id", request_id_ctx_var),
    ("user_id", user_id_ctx_var),
    ("client_ip", client_ip_ctx_var),
)


class PrivacyFilter(logging.Filter):
    """Mask tokens, secrets and authorization headers in record attributes."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in list(record.__dict__.items()):
            if key not in _UNTOUCHED:
                record.__dict__[key] = sanitize_value(key, value)
        if isinstance(record.args, tuple):
            record.args = tuple(sanitize_value("arg", arg) for arg in record.args)
        elif isinstance(record.args, dict):
            record.args = {k: sanitize_value(k, v) for k, v in record.args.items()}
        return True


class RequestContextFilter(logging.Filter):
    """Copy request id, user id and client IP from context variables."""

    def filter(self, record: logging.LogRecord) -> bool:
        for attr, var in _CONTEXT_FIELDS:
            value = var.get(None)
            if value and not getattr(record, attr, None):
                setattr(record, attr, value)
        return True


class IPOverrideFilter(logging.Filter):
    """Rewrite ``client_ip`` for one handler, raw or anonymised."""

    def __init__(self, mode: str) -> None:
        super().__init__()
        if mode not in {"raw", "anonymized"}:
            raise ValueError(f"Unsupported IP override mode: {mode}")
        self.mode = mode

    def filter(self, record: logging.LogRecord) -> bool:
        raw_ip = getattr(record, "client_ip_raw", None) or client_ip_raw_ctx_var.get(None)
        if self.mode == "raw":
            if raw_ip:
                record.client_ip = raw_ip
            return True

        anonymized = getattr(record, "client_ip_anonymized", None) or client_ip_anonymized_ctx_var.get(
            None
        )
        if anonymized is None and raw_ip:
            anonymized = anonymize_ip(raw_ip, mode="anonymized")
        if anonymized is not None:
            record.client_ip = anonymized
        for attr in ("client_ip_raw", "client_ip_anonymized"):
            record.__dict__.pop(attr, None)
        return True
