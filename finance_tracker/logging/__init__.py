"""Structured logging for the finance tracker API."""

from .config import configure_logging
from .context import (
    RequestContextTokens,
    bind_request_context,
    request_id_ctx_var,
    reset_request_context,
    set_user_context,
    user_id_ctx_var,
)
from .filters import IPOverrideFilter, PrivacyFilter, RequestContextFilter
from .formatter import ECSJsonFormatter, FIELD_MAP, SERVICE_NAME
from .ip_utils import anonymize_ip
from .privacy import sanitize_value

__all__ = [
    "configure_logging",
    "RequestContextTokens",
    "bind_request_context",
    "request_id_ctx_var",
    "reset_request_context",
    "set_user_context",
    "user_id_ctx_var",
    "IPOverrideFilter",
    "PrivacyFilter",
    "RequestContextFilter",
    "ECSJsonFormatter",
    "FIELD_MAP",
    "SERVICE_NAME",
    "anonymize_ip",
    "sanitize_value",
]
