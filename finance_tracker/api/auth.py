"""Authentication API endpoints."""

from __future__ import annotations

import logging
import time
from collections import defaultdict, deque
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import ORJSONResponse

from .. import models, schemas
from ..auth import get_current_user
from ..errors import AuthError, FinanceTrackerError, StoreUnavailable
from ..logging import anonymize_ip
from ..sessions import SessionService
from ..utils.network import get_client_ip
from .deps import get_session_service

router = APIRouter()

_session_service_dependency = Depends(get_session_service)
_current_user_dependency = Depends(get_current_user)

auth_logger = logging.getLogger("finance_tracker.auth")

_FAILURE_WINDOW_SECONDS = 60
_FAILURE_LOG_LIMIT = 10
_failure_attempts: dict[str, deque[float]] = defaultdict(deque)


def _should_log_failure(ip_key: str) -> bool:
    now = time.monotonic()
    history = _failure_attempts[ip_key]
    while history and now - history[0] > _FAILURE_WINDOW_SECONDS:
        history.popleft()
    history.append(now)
    return len(history) <= _FAILURE_LOG_LIMIT


_CACHE_BUSTER_HEADER_VALUES = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def _cache_busting_headers(response: Response) -> None:
    response.headers.update(_CACHE_BUSTER_HEADER_VALUES)


def _cache_busting_http_exception(status_code: int, detail: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=detail,
        headers=_CACHE_BUSTER_HEADER_VALUES.copy(),
    )


def _json_response(
    payload: dict[str, Any], status_code: int = status.HTTP_200_OK
) -> ORJSONResponse:
    response = ORJSONResponse(payload, status_code=status_code)
    _cache_busting_headers(response)
    return response


# Unreadable bodies on these routes fail the same way as a rejected credential.
BODY_FAILURES: dict[str, tuple[int, str]] = {
    "/auth/google": (status.HTTP_400_BAD_REQUEST, "idToken required"),
    "/auth/refresh": (status.HTTP_401_UNAUTHORIZED, "Invalid refresh token"),
}


def body_failure_response(path: str) -> ORJSONResponse | None:
    """Return the auth failure response for an invalid body on ``path``, if any."""

    failure = BODY_FAILURES.get(path)
    if failure is None:
        return None
    status_code, detail = failure
    return _json_response({"detail": detail}, status_code=status_code)


@router.post("/auth/google", response_model=schemas.LoginResponse)
def google_login(
    request: Request,
    payload: schemas.GoogleLoginRequest | None = None,
    service: SessionService = _session_service_dependency,
) -> ORJSONResponse:
    """Exchange a Google ID token for an access/refresh token pair."""

    try:
        result = service.login(payload.id_token if payload else None)
    except FinanceTrackerError as exc:
        client_ip = get_client_ip(request)
        if _should_log_failure(client_ip or "unknown"):
            auth_logger.warning(
                "Authentication failed",
                extra={
                    "event_dataset": "finance-tracker-api.auth",
                    "event_action": "login_failed",
                    "client_ip": anonymize_ip(client_ip),
                    "auth_method": "google",
                    "auth_failure_reason": type(exc).__name__,
                },
            )
        raise _cache_busting_http_exception(
            status.HTTP_400_BAD_REQUEST, exc.message or "Authentication failed"
        ) from exc

    body = schemas.LoginResponse(
        access_token=result.access_token.token,
        refresh_token=result.refresh_token.token,
        user=schemas.UserProfile.model_validate(result.user),
    )
    return _json_response(body.model_dump(by_alias=True, mode="json"))


@router.post("/auth/refresh", response_model=schemas.AccessTokenResponse)
def refresh_token(
    payload: schemas.RefreshRequest | None = None,
    service: SessionService = _session_service_dependency,
) -> ORJSONResponse:
    """Issue a new access token for a refresh token that is still on record."""

    try:
        access = service.refresh(payload.refresh_token if payload else None)
    except AuthError as exc:
        auth_logger.info(
            "Refresh rejected",
            extra={
                "event_dataset": "finance-tracker-api.auth",
                "event_action": "refresh_failed",
                "auth_failure_reason": type(exc).__name__,
            },
        )
        raise _cache_busting_http_exception(
            status.HTTP_401_UNAUTHORIZED, exc.message
        ) from exc

    body = schemas.AccessTokenResponse(access_token=access.token)
    return _json_response(body.model_dump(by_alias=True, mode="json"))


@router.post("/auth/logout", response_model=schemas.Message)
def logout(
    payload: schemas.LogoutRequest | None = None,
    service: SessionService = _session_service_dependency,
) -> ORJSONResponse:
    """Revoke the caller's refresh token; unknown tokens are accepted."""

    refresh = payload.refresh_token if payload else None
    try:
        service.revoke(refresh)
    except StoreUnavailable as exc:
        auth_logger.exception(
            "Logout error",
            extra={
                "event_dataset": "finance-tracker-api.auth",
                "event_action": "logout_failed",
            },
        )
        raise _cache_busting_http_exception(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to logout"
        ) from exc
    return _json_response({"message": "Logged out"})


@router.get("/auth/profile", response_model=schemas.ProfileResponse)
def profile(
    current_user: models.User = _current_user_dependency,
) -> schemas.ProfileResponse:
    """Return the authenticated user's profile."""

    return schemas.ProfileResponse(user=schemas.UserProfile.model_validate(current_user))
