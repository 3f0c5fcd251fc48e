"""Token issuing, verification and the bearer-token request gate."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal, Protocol, cast

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from . import models
from .config import JWT_ALGORITHM
from .database import get_db
from .errors import AuthError, InvalidOrExpiredToken, MissingCredential
from .middleware.logging import set_user_context

TokenType = Literal["access", "refresh"]

auth_logger = logging.getLogger("finance_tracker.auth")

bearer_scheme = HTTPBearer(
    auto_error=False,
    description="Access token issued by /auth/google or /auth/refresh",
)


def _now() -> datetime:
    return datetime.now(UTC)


class TokenSubject(Protocol):
    id: Any
    email: Any


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    email: str | None
    issued_at: datetime | None
    expires_at: datetime
    token_type: str
    token_id: str | None


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Identity attached to a request once its access token checks out."""

    user_id: uuid.UUID
    email: str | None


class TokenIssuer:
    """Mint and verify HS256 access and refresh tokens.

    The signing secret and lifetimes are fixed at construction so that each
    application instance (and each test) can carry its own configuration.
    """

    def __init__(
        self,
        secret: str,
        *,
        access_ttl: int,
        refresh_ttl: int,
        algorithm: str = JWT_ALGORITHM,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self.access_ttl = timedelta(seconds=access_ttl)
        self.refresh_ttl = timedelta(seconds=refresh_ttl)
        self.algorithm = algorithm
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def _issue(self, user: TokenSubject, token_type: TokenType, lifetime: timedelta) -> IssuedToken:
        issued_at = self._clock()
        exp = int((issued_at + lifetime).timestamp())
        payload: dict[str, Any] = {
            "sub": str(user.id),
            "email": user.email,
            "iat": int(issued_at.timestamp()),
            "exp": exp,
            "jti": str(uuid.uuid4()),
            "typ": token_type,
        }
        token = jwt.encode(payload, self._secret, algorithm=self.algorithm)
        return IssuedToken(token=token, expires_at=datetime.fromtimestamp(exp, UTC))

    def issue_access_token(self, user: TokenSubject) -> IssuedToken:
        """Return a short-lived access token for ``user``."""

        return self._issue(user, "access", self.access_ttl)

    def issue_refresh_token(self, user: TokenSubject) -> IssuedToken:
        """Return a long-lived refresh token for ``user``."""

        return self._issue(user, "refresh", self.refresh_ttl)

    def decode(self, token: str | None, expected_type: TokenType) -> TokenClaims:
        """Verify ``token`` and return its claims.

        Expiry is checked against the issuer's clock: a token whose ``exp``
        equals the current time is already expired.
        """

        if not token:
            raise InvalidOrExpiredToken("Token required")
        try:
            payload = cast(
                dict[str, Any],
                jwt.decode(
                    token,
                    self._secret,
                    algorithms=[self.algorithm],
                    options={"verify_exp": False, "verify_aud": False},
                ),
            )
        except JWTError as exc:
            raise InvalidOrExpiredToken() from exc

        exp = payload.get("exp")
        if not isinstance(exp, int):
            raise InvalidOrExpiredToken("Token has no expiry")
        if exp <= self._clock().timestamp():
            raise InvalidOrExpiredToken("Token expired")

        if payload.get("typ") != expected_type:
            raise InvalidOrExpiredToken("Unexpected token type")

        try:
            user_id = uuid.UUID(str(payload.get("sub")))
        except ValueError as exc:
            raise InvalidOrExpiredToken("Token subject is not a user id") from exc

        iat = payload.get("iat")
        return TokenClaims(
            user_id=user_id,
            email=payload.get("email"),
            issued_at=datetime.fromtimestamp(iat, UTC) if isinstance(iat, int) else None,
            expires_at=datetime.fromtimestamp(exp, UTC),
            token_type=expected_type,
            token_id=payload.get("jti"),
        )


def authenticate_bearer(authorization: str | None, issuer: TokenIssuer) -> AuthenticatedIdentity:
    """Validate an ``Authorization: Bearer <token>`` header value.

    Only the signature and expiry are checked; the refresh token store is not
    consulted, so an access token stays valid for its whole lifetime.
    """

    if not authorization:
        raise MissingCredential()
    scheme, _, credentials = authorization.strip().partition(" ")
    token = credentials.strip()
    if scheme.lower() != "bearer" or not token:
        raise MissingCredential()
    claims = issuer.decode(token, "access")
    return AuthenticatedIdentity(user_id=claims.user_id, email=claims.email)


def get_token_issuer(request: Request) -> TokenIssuer:
    return cast(TokenIssuer, request.app.state.token_issuer)


def get_current_identity(
    request: Request,
    _credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AuthenticatedIdentity:
    """Return the identity carried by the request's access token."""

    try:
        identity = authenticate_bearer(request.headers.get("Authorization"), issuer)
    except AuthError as exc:
        auth_logger.info(
            "Bearer authentication rejected",
            extra={
                "event_dataset": "finance-tracker-api.auth",
                "event_action": "bearer_rejected",
                "auth_failure_reason": type(exc).__name__,
            },
        )
        # Missing and invalid credentials look identical to the client.
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    request.state.identity = identity
    set_user_context(str(identity.user_id))
    return identity


def get_current_user(
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> models.User:
    """Return the user row behind the authenticated identity."""

    user = cast(models.User | None, db.get(models.User, identity.user_id))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
