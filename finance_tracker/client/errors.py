"""Exceptions raised by the API client."""

from __future__ import annotations

from typing import Any


class ClientError(Exception):
    """Base class for client-side failures."""


class SessionExpired(ClientError):
    """The session can no longer be refreshed and has been cleared."""

    def __init__(self, message: str = "Session expired") -> None:
        super().__init__(message)
        self.message = message


class ApiError(ClientError):
    """The API answered with an unexpected error status."""

    def __init__(self, status_code: int, detail: Any = None) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"API request failed with status {status_code}: {detail}")


__all__ = ["ApiError", "ClientError", "SessionExpired"]
