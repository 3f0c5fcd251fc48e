"""Domain exceptions raised by the authentication core and the token store."""

from __future__ import annotations


class FinanceTrackerError(Exception):
    """Base class for errors raised below the HTTP layer."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthError(FinanceTrackerError):
    """Authentication or session failure."""

    default_message = "Authentication failed"


class InvalidCredential(AuthError):
    """Identity assertion missing, forged, expired or issued for another audience."""

    default_message = "Invalid identity token"


class MissingCredential(AuthError):
    """No usable bearer credential was presented."""

    default_message = "Missing or invalid authorization header"


class InvalidOrExpiredToken(AuthError):
    """Token signature, shape or expiry check failed."""

    default_message = "Invalid or expired token"


class RefreshTokenRevoked(AuthError):
    """Refresh token is well formed but no longer present in the store."""

    default_message = "Refresh token revoked or not found"


class UserNotFound(AuthError):
    """A verified token references a user that does not exist."""

    default_message = "User not found"


class StoreUnavailable(FinanceTrackerError):
    """The persistence layer failed."""

    default_message = "Token store unavailable"


__all__ = [
    "AuthError",
    "FinanceTrackerError",
    "InvalidCredential",
    "InvalidOrExpiredToken",
    "MissingCredential",
    "RefreshTokenRevoked",
    "StoreUnavailable",
    "UserNotFound",
]
