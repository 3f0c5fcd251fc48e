"""Context variables carrying per-request data into log records."""

from __future__ import annotations

from contextvars import ContextVar, Token
from typing import NamedTuple

from .ip_utils import anonymize_ip

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_ctx_var: ContextVar[str | None] = ContextVar("user_id", default=None)
client_ip_ctx_var: ContextVar[str | None] = ContextVar("client_ip", default=None)
client_ip_raw_ctx_var: ContextVar[str | None] = ContextVar("client_ip_raw", default=None)
client_ip_anonymized_ctx_var: ContextVar[str | None] = ContextVar(
    "client_ip_anonymized", default=None
)

_REQUEST_VARS = (
    request_id_ctx_var,
    user_id_ctx_var,
    client_ip_ctx_var,
    client_ip_raw_ctx_var,
    client_ip_anonymized_ctx_var,
)


class RequestContextTokens(NamedTuple):
    """Reset tokens returned by :func:`bind_request_context`, in ``_REQUEST_VARS`` order."""

    request_id: Token
    user_id: Token
    client_ip: Token
    client_ip_raw: Token
    client_ip_anonymized: Token


def bind_request_context(
    request_id: str,
    client_ip: str | None = None,
    *,
    client_ip_raw: str | None = None,
    client_ip_anonymized: str | None = None,
) -> RequestContextTokens:
    """Bind the request id and client address; the user id starts unset."""

    raw = client_ip_raw if client_ip_raw is not None else client_ip
    if client_ip_anonymized is None and raw:
        client_ip_anonymized = anonymize_ip(raw, mode="anonymized")
    values = (request_id, None, client_ip, raw, client_ip_anonymized)
    return RequestContextTokens(
        *(var.set(value) for var, value in zip(_REQUEST_VARS, values))
    )


def reset_request_context(tokens: RequestContextTokens) -> None:
    for var, token in zip(_REQUEST_VARS, tokens):
        var.reset(token)


def set_user_context(user_id: str | None) -> None:
    """Record the authenticated user id for the rest of the request."""

    user_id_ctx_var.set(user_id)
