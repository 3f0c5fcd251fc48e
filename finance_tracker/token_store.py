"""Persistence of refresh tokens so they can be looked up and revoked."""

from __future__ import annotations

import hashlib
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar, cast

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import StoreUnavailable

T = TypeVar("T")


def hash_refresh_token(raw_token: str, pepper: str = "") -> str:
    """Return a SHA-256 hash of the refresh token using the configured pepper."""

    return hashlib.sha256(pepper.encode("utf-8") + raw_token.encode("utf-8")).hexdigest()


class RefreshTokenStore:
    """Refresh token records keyed by token.

    Every write commits on its own. The store does not enforce the one live
    token per user rule; callers clear a user's records before ``put``.
    """

    def __init__(self, db: Session, *, pepper: str = "") -> None:
        self.db = db
        self._pepper = pepper

    def _run(self, operation: Callable[[], T]) -> T:
        try:
            return operation()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailable(f"Token store operation failed: {type(exc).__name__}") from exc

    def _delete(self, *criteria: sa.ColumnElement[bool]) -> int:
        def operation() -> int:
            result = self.db.execute(
                sa.delete(models.RefreshToken)
                .where(*criteria)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            return int(result.rowcount or 0)

        return self._run(operation)

    def put(self, token: str, user_id: uuid.UUID, expires_at: datetime) -> models.RefreshToken:
        """Insert a record for ``token``."""

        def operation() -> models.RefreshToken:
            record = models.RefreshToken(
                user_id=user_id,
                token_hash=hash_refresh_token(token, self._pepper),
                expires_at=expires_at,
            )
            self.db.add(record)
            self.db.commit()
            return record

        return self._run(operation)

    def find_by_token(self, token: str) -> models.RefreshToken | None:
        token_hash = hash_refresh_token(token, self._pepper)

        def operation() -> models.RefreshToken | None:
            return cast(
                models.RefreshToken | None,
                self.db.execute(
                    sa.select(models.RefreshToken).where(
                        models.RefreshToken.token_hash == token_hash
                    )
                ).scalar_one_or_none(),
            )

        return self._run(operation)

    def delete_by_token(self, token: str) -> int:
        token_hash = hash_refresh_token(token, self._pepper)
        return self._delete(models.RefreshToken.token_hash == token_hash)

    def delete_all_for_user(self, user_id: uuid.UUID) -> int:
        return self._delete(models.RefreshToken.user_id == user_id)

    def delete_expired(self, now: datetime) -> int:
        """Remove records whose expiry is strictly before ``now``."""

        return self._delete(models.RefreshToken.expires_at < now)

    def count_for_user(self, user_id: uuid.UUID) -> int:
        def operation() -> int:
            return int(
                self.db.execute(
                    sa.select(sa.func.count())
                    .select_from(models.RefreshToken)
                    .where(models.RefreshToken.user_id == user_id)
                ).scalar_one()
            )

        return self._run(operation)


__all__ = ["RefreshTokenStore", "hash_refresh_token"]
