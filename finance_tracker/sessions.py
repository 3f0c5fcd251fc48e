"""Login, refresh, logout and cleanup of user sessions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import cast

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .auth import IssuedToken, TokenIssuer
from .errors import RefreshTokenRevoked, StoreUnavailable, UserNotFound
from .identity import CredentialVerifier, IdentityClaims
from .middleware.logging import set_user_context
from .token_store import RefreshTokenStore

auth_logger = logging.getLogger("finance_tracker.auth")
maintenance_logger = logging.getLogger("finance_tracker.maintenance")


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class UserFound:
    user: models.User


@dataclass(frozen=True)
class UserCreated:
    user: models.User


ProvisionResult = UserFound | UserCreated


@dataclass(frozen=True)
class LoginResult:
    access_token: IssuedToken
    refresh_token: IssuedToken
    user: models.User
    provisioning: ProvisionResult

    @property
    def created(self) -> bool:
        return isinstance(self.provisioning, UserCreated)


def sweep_expired_tokens(store: RefreshTokenStore, now: datetime) -> int:
    """Delete expired refresh tokens, logging instead of raising on failure."""

    try:
        deleted = store.delete_expired(now)
    except StoreUnavailable:
        maintenance_logger.exception(
            "Expired refresh token sweep failed",
            extra={
                "event_dataset": "finance-tracker-api.maintenance",
                "event_action": "token_sweep_failed",
            },
        )
        return 0
    maintenance_logger.info(
        "Cleaned up %d expired refresh tokens",
        deleted,
        extra={
            "event_dataset": "finance-tracker-api.maintenance",
            "event_action": "token_sweep",
            "token_sweep_deleted": deleted,
        },
    )
    return deleted


class SessionService:
    """Token lifecycle for one request's database session."""

    def __init__(
        self,
        db: Session,
        *,
        issuer: TokenIssuer,
        verifier: CredentialVerifier,
        token_pepper: str = "",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self.issuer = issuer
        self.verifier = verifier
        self.store = RefreshTokenStore(db, pepper=token_pepper)
        self._clock = clock or issuer.now

    def _get_by_google_id(self, subject: str) -> models.User | None:
        return cast(
            models.User | None,
            self.db.execute(
                sa.select(models.User).where(models.User.google_id == subject)
            ).scalar_one_or_none(),
        )

    def find_or_create_user(self, claims: IdentityClaims) -> ProvisionResult:
        """Return the user for ``claims.subject``, creating it on first login."""

        try:
            existing = self._get_by_google_id(claims.subject)
            if existing is not None:
                return UserFound(existing)

            user = models.User(
                google_id=claims.subject,
                email=claims.email,
                name=claims.name,
                picture=claims.picture,
            )
            self.db.add(user)
            try:
                self.db.commit()
            except IntegrityError:
                # A concurrent login for the same subject inserted first.
                self.db.rollback()
                existing = self._get_by_google_id(claims.subject)
                if existing is None:
                    raise
                return UserFound(existing)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailable("Could not load or create the user") from exc

        auth_logger.info(
            "User provisioned on first login",
            extra={
                "event_dataset": "finance-tracker-api.auth",
                "event_action": "user_created",
                "user_id": str(user.id),
            },
        )
        return UserCreated(user)

    def login(self, assertion: str | None) -> LoginResult:
        """Exchange an identity assertion for an access/refresh token pair."""

        claims = self.verifier.verify(assertion)
        provisioning = self.find_or_create_user(claims)
        user = provisioning.user
        set_user_context(str(user.id))

        access = self.issuer.issue_access_token(user)
        refresh = self.issuer.issue_refresh_token(user)

        try:
            self.store.delete_all_for_user(user.id)
            self.store.put(refresh.token, user.id, refresh.expires_at)
        except StoreUnavailable:
            # The pair is valid on its own; only later refresh calls will fail.
            auth_logger.exception(
                "Failed to persist refresh token",
                extra={
                    "event_dataset": "finance-tracker-api.auth",
                    "event_action": "refresh_token_persist_failed",
                    "user_id": str(user.id),
                },
            )

        result = LoginResult(
            access_token=access,
            refresh_token=refresh,
            user=user,
            provisioning=provisioning,
        )
        auth_logger.info(
            "Authentication successful",
            extra={
                "event_dataset": "finance-tracker-api.auth",
                "event_action": "login_success",
                "auth_method": "google",
                "user_id": str(user.id),
                "user_created": result.created,
            },
        )
        return result

    def refresh(self, refresh_token: str | None) -> IssuedToken:
        """Issue a new access token for a live refresh token.

        The refresh token itself is not rotated.
        """

        claims = self.issuer.decode(refresh_token, "refresh")
        record = self.store.find_by_token(cast(str, refresh_token))
        if record is None or record.user_id != claims.user_id:
            raise RefreshTokenRevoked()

        try:
            user = cast(models.User | None, self.db.get(models.User, claims.user_id))
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailable("Could not load the user") from exc
        if user is None:
            auth_logger.error(
                "Refresh token references a missing user",
                extra={
                    "event_dataset": "finance-tracker-api.auth",
                    "event_action": "refresh_user_missing",
                    "user_id": str(claims.user_id),
                },
            )
            raise UserNotFound()

        set_user_context(str(user.id))
        access = self.issuer.issue_access_token(user)
        auth_logger.info(
            "Access token refreshed",
            extra={
                "event_dataset": "finance-tracker-api.auth",
                "event_action": "token_refreshed",
                "user_id": str(user.id),
            },
        )
        return access

    def revoke(self, refresh_token: str | None) -> None:
        """Delete the record for ``refresh_token``; unknown tokens are a no-op."""

        if not refresh_token:
            return
        deleted = self.store.delete_by_token(refresh_token)
        auth_logger.info(
            "Refresh token revoked",
            extra={
                "event_dataset": "finance-tracker-api.auth",
                "event_action": "logout",
                "token_revoked": bool(deleted),
            },
        )

    def sweep_expired(self) -> int:
        return sweep_expired_tokens(self.store, self._clock())


__all__ = [
    "LoginResult",
    "ProvisionResult",
    "SessionService",
    "UserCreated",
    "UserFound",
    "sweep_expired_tokens",
]
