"""FastAPI application providing the Finance Tracker API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse, Response
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .api import auth_router, transactions_router
from .api.auth import body_failure_response
from .auth import TokenIssuer
from .config import SECURITY_HEADERS, Settings, load_settings
from .database import make_engine, make_session_factory
from .errors import StoreUnavailable
from .identity import CredentialVerifier, GoogleCredentialVerifier
from .logging import configure_logging
from .maintenance import ExpiredTokenSweeper
from .middleware.logging import LoggingMiddleware
from .middleware.security import SecureHeadersMiddleware

logger = logging.getLogger("finance_tracker.main")

_DB_RETRY_AFTER_SECONDS = "600"
_NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    sweeper = ExpiredTokenSweeper(
        app.state.session_factory,
        interval=settings.token_sweep_interval,
        token_pepper=settings.token_pepper,
    )
    app.state.token_sweeper = sweeper
    sweeper.start()
    try:
        yield
    finally:
        await sweeper.stop()
        app.state.engine.dispose()


def _set_request_id_header(response: Response, request: Request) -> None:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        response.headers["X-Request-ID"] = request_id


def _service_unavailable(request: Request, exc: Exception) -> Response:
    logger.exception(
        "Database error while handling request",
        extra={
            "event_dataset": "finance-tracker-api.app",
            "event_action": "database_error",
            "http_status_code": status.HTTP_503_SERVICE_UNAVAILABLE,
            "http_request_method": request.method,
            "url_path": request.url.path,
            "error_type": type(exc).__name__,
        },
        exc_info=exc,
    )
    response = ORJSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Temporary database issue. Please retry later."},
        headers={"Retry-After": _DB_RETRY_AFTER_SECONDS, **_NO_STORE},
    )
    _set_request_id_header(response, request)
    return response


def _jsonable_errors(errors: list) -> list:
    # ctx may carry the raw exception raised by a validator.
    return [{key: err[key] for key in ("type", "loc", "msg") if key in err} for err in errors]


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> Response:
    """Log validation errors and return the standard 422 response.

    Bodies the auth routes cannot read are answered like rejected credentials.
    """

    errors = exc.errors()
    auth_failure = body_failure_response(request.url.path)
    status_code = (
        auth_failure.status_code
        if auth_failure is not None
        else status.HTTP_422_UNPROCESSABLE_ENTITY
    )
    error_types = sorted({err.get("type", "unknown") for err in errors})
    logger.warning(
        "Request validation failed",
        extra={
            "event_dataset": "finance-tracker-api.app",
            "event_action": "validation_failed",
            "http_status_code": status_code,
            "http_request_method": request.method,
            "url_path": request.url.path,
            "error_type": "RequestValidationError",
            "error_message": ",".join(error_types)[:128],
            "validation_error_count": len(errors),
        },
    )
    if auth_failure is not None:
        _set_request_id_header(auth_failure, request)
        return auth_failure
    response = ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": _jsonable_errors(errors)},
        headers=_NO_STORE,
    )
    _set_request_id_header(response, request)
    return response


async def http_exception_handler_logged(request: Request, exc: HTTPException) -> Response:
    """Log HTTP exceptions with path information."""

    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    logger.log(
        level,
        "HTTP exception raised",
        extra={
            "event_dataset": "finance-tracker-api.app",
            "event_action": "http_exception",
            "http_status_code": exc.status_code,
            "http_request_method": request.method,
            "url_path": request.url.path,
            "error_type": type(exc).__name__,
            "error_message": detail[:256],
        },
    )
    response = ORJSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=exc.headers,
    )
    _set_request_id_header(response, request)
    return response


async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> Response:
    return _service_unavailable(request, exc)


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> Response:
    """Convert database errors into a cache-friendly 503 response."""

    return _service_unavailable(request, exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    """Ensure all responses include the request id header on failure."""

    response = ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )
    _set_request_id_header(response, request)
    return response


def create_app(
    settings: Settings | None = None,
    *,
    verifier: CredentialVerifier | None = None,
    engine: Engine | None = None,
) -> FastAPI:
    """Build the API with its own engine, token issuer and identity verifier.

    ``settings`` defaults to :func:`load_settings`. Tests pass a stub
    ``verifier`` instead of calling Google.
    """

    configure_logging()
    settings = settings or load_settings()
    engine = engine or make_engine(settings.database_url, app_env=settings.app_env)

    app = FastAPI(
        title="Finance Tracker API",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.token_issuer = TokenIssuer(
        settings.jwt_secret,
        access_ttl=settings.access_token_ttl,
        refresh_ttl=settings.refresh_token_ttl,
        algorithm=settings.jwt_algorithm,
    )
    app.state.credential_verifier = verifier or GoogleCredentialVerifier(
        settings.google_client_id
    )

    app.add_middleware(SecureHeadersMiddleware, headers=SECURITY_HEADERS)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type"],
        allow_credentials=True,
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler_logged)
    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/")
    def read_root() -> dict[str, object]:
        """Health check endpoint for the API."""
        return {"ok": True, "message": "Finance Tracker API"}

    app.include_router(auth_router)
    app.include_router(transactions_router)
    return app


app = create_app()
