"""Verification of Google-issued ID tokens presented at login."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from .errors import InvalidCredential

logger = logging.getLogger("finance_tracker.auth")


@dataclass(frozen=True)
class IdentityClaims:
    """Verified subset of the identity provider's claim set."""

    subject: str
    email: str
    name: str
    picture: str | None = None


class CredentialVerifier(Protocol):
    def verify(self, assertion: str | None) -> IdentityClaims: ...


def claims_from_payload(payload: dict[str, Any]) -> IdentityClaims:
    """Extract :class:`IdentityClaims` from a verified token payload."""

    subject = payload.get("sub")
    email = payload.get("email")
    if not subject or not email:
        raise InvalidCredential("Identity token is missing the subject or email claim")
    name = payload.get("name") or email
    return IdentityClaims(
        subject=str(subject),
        email=str(email),
        name=str(name),
        picture=payload.get("picture") or None,
    )


class GoogleCredentialVerifier:
    """Validate Google ID tokens against Google's published signing keys."""

    def __init__(self, client_id: str | None) -> None:
        self.client_id = client_id
        self._transport = google_requests.Request()

    def verify(self, assertion: str | None) -> IdentityClaims:
        if not assertion or not assertion.strip():
            raise InvalidCredential("idToken required")
        if not self.client_id:
            # Without an audience google-auth would accept tokens minted for any client.
            logger.error(
                "Google client id is not configured",
                extra={
                    "event_dataset": "finance-tracker-api.auth",
                    "event_action": "identity_provider_unconfigured",
                },
            )
            raise InvalidCredential("Identity provider is not configured")
        try:
            payload = id_token.verify_oauth2_token(
                assertion.strip(), self._transport, audience=self.client_id
            )
        except (ValueError, google_exceptions.GoogleAuthError) as exc:
            logger.info(
                "Identity token rejected",
                extra={
                    "event_dataset": "finance-tracker-api.auth",
                    "event_action": "identity_token_rejected",
                    "error_type": type(exc).__name__,
                    "error_message": str(exc)[:256],
                },
            )
            raise InvalidCredential() from exc
        return claims_from_payload(payload)


__all__ = [
    "CredentialVerifier",
    "GoogleCredentialVerifier",
    "IdentityClaims",
    "claims_from_payload",
]
