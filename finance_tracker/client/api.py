"""Async HTTP client for the Finance Tracker API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import ApiError, ClientError, SessionExpired
from .session import SessionState

logger = logging.getLogger("finance_tracker.client")

DEFAULT_TIMEOUT = 30.0


def _detail(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict) and "detail" in body:
        return body["detail"]
    return body


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_error:
        raise ApiError(response.status_code, _detail(response))


def _body_field(response: httpx.Response, name: str) -> str:
    try:
        value = response.json().get(name)
    except (ValueError, AttributeError):
        value = None
    if not isinstance(value, str) or not value:
        raise ApiError(response.status_code, f"Response is missing {name}")
    return value


class FinanceTrackerClient:
    """Talk to the API on behalf of one signed-in user.

    Requests carry the session's access token. A 401 triggers exactly one
    refresh followed by one retry; when either fails the session is cleared
    and :class:`SessionExpired` is raised.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        session: SessionState | None = None,
        http: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.session = session or SessionState()
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "FinanceTrackerClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _auth_headers(self) -> dict[str, str]:
        if not self.session.access_token:
            return {}
        return {"Authorization": f"Bearer {self.session.access_token}"}

    async def login_with_google(self, id_token: str) -> dict[str, Any]:
        """Exchange a Google ID token for a session and return the user profile."""

        response = await self._http.post("/auth/google", json={"idToken": id_token})
        _raise_for_status(response)
        body = response.json()
        self.session.set_auth(body["accessToken"], body["refreshToken"], body.get("user"))
        logger.info("Signed in", extra={"event_action": "client_login"})
        return body.get("user") or {}

    async def refresh_access_token(self) -> str:
        """Trade the stored refresh token for a new access token.

        The session is left untouched on failure; callers decide whether that
        ends the session.
        """

        refresh_token = self.session.refresh_token
        if not refresh_token:
            raise SessionExpired("No refresh token")
        response = await self._http.post("/auth/refresh", json={"refreshToken": refresh_token})
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise SessionExpired(str(_detail(response) or "Refresh failed"))
        _raise_for_status(response)
        access_token = _body_field(response, "accessToken")
        self.session.update_token(access_token)
        logger.info("Access token refreshed", extra={"event_action": "client_refresh"})
        return access_token

    async def logout(self) -> None:
        """Clear local state, then ask the server to revoke the refresh token.

        Revocation is best effort; failures are logged and ignored.
        """

        refresh_token = self.session.refresh_token
        self.session.clear()
        if not refresh_token:
            return
        try:
            response = await self._http.post(
                "/auth/logout", json={"refreshToken": refresh_token}
            )
            _raise_for_status(response)
        except (httpx.HTTPError, ApiError) as exc:
            logger.warning(
                "Server-side logout failed",
                extra={
                    "event_action": "client_logout_failed",
                    "error_type": type(exc).__name__,
                },
            )

    async def _send(
        self, method: str, path: str, *, json: Any = None, params: Any = None
    ) -> httpx.Response:
        return await self._http.request(
            method, path, json=json, params=params, headers=self._auth_headers()
        )

    async def request(
        self, method: str, path: str, *, json: Any = None, params: Any = None
    ) -> httpx.Response:
        """Send an authenticated request, refreshing once on 401."""

        response = await self._send(method, path, json=json, params=params)
        if response.status_code == httpx.codes.UNAUTHORIZED:
            try:
                await self.refresh_access_token()
            except (ClientError, httpx.HTTPError) as exc:
                self.session.clear()
                raise SessionExpired("Session expired; please sign in again") from exc
            response = await self._send(method, path, json=json, params=params)
            if response.status_code == httpx.codes.UNAUTHORIZED:
                self.session.clear()
                raise SessionExpired("Session expired; please sign in again")
        _raise_for_status(response)
        return response

    async def fetch_profile(self) -> dict[str, Any]:
        response = await self.request("GET", "/auth/profile")
        user = response.json()["user"]
        self.session.user = user
        return user

    async def list_transactions(self) -> dict[str, Any]:
        """Return ``{"transactions": [...], "summary": {...}}``."""

        response = await self.request("GET", "/api/transactions")
        return response.json()

    async def create_transaction(self, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self.request("POST", "/api/transactions", json=payload)
        return response.json()

    async def transaction_stats(self, period: str = "month") -> dict[str, Any]:
        """Return ``{"period", "categoryStats", "monthlyStats"}`` for ``period``."""

        response = await self.request(
            "GET", "/api/transactions/stats", params={"period": period}
        )
        return response.json()

    async def get_transaction(self, transaction_id: str) -> dict[str, Any]:
        response = await self.request("GET", f"/api/transactions/{transaction_id}")
        return response.json()

    async def update_transaction(
        self, transaction_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        response = await self.request(
            "PUT", f"/api/transactions/{transaction_id}", json=changes
        )
        return response.json()

    async def delete_transaction(self, transaction_id: str) -> None:
        await self.request("DELETE", f"/api/transactions/{transaction_id}")


__all__ = ["FinanceTrackerClient"]
