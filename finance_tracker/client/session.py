"""In-memory session state shared by the API client and the expiry monitor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class SessionState:
    access_token: str | None = None
    refresh_token: str | None = None
    user: dict[str, Any] | None = None
    is_authenticated: bool = False

    def set_auth(
        self, access_token: str, refresh_token: str, user: dict[str, Any] | None
    ) -> None:
        """Populate the session from a login response."""

        self.access_token = access_token
        self.refresh_token = refresh_token
        self.user = user
        self.is_authenticated = True

    def update_token(self, access_token: str) -> None:
        self.access_token = access_token

    def clear(self) -> None:
        """Forget every credential and the cached profile."""

        self.access_token = None
        self.refresh_token = None
        self.user = None
        self.is_authenticated = False


__all__ = ["SessionState"]
