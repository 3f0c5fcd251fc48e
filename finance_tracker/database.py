"""Database configuration used across the application."""

import warnings
from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

_SYNC_POSTGRES_DRIVER = "postgresql+psycopg"
_POSTGRES_DRIVERS = {"postgresql", _SYNC_POSTGRES_DRIVER, "postgresql+psycopg_async"}


def _normalise_url(url: str | URL) -> URL:
    """Return a URL usable by a synchronous engine.

    PostgreSQL URLs are pinned to the psycopg driver; SQLite is accepted for
    local development and the test suite.
    """

    parsed = make_url(url)
    if parsed.drivername in _POSTGRES_DRIVERS:
        return parsed.set(drivername=_SYNC_POSTGRES_DRIVER)
    if parsed.get_backend_name() == "sqlite":
        return parsed
    raise RuntimeError(
        "Finance Tracker requires a PostgreSQL or SQLite connection string."
    )


def _uses_placeholder(url: URL) -> bool:
    """Return True when the connection URL uses the legacy postgres:postgres pair."""

    return bool(url.username == "postgres" and url.password == "postgres")  # noqa: S105


def make_engine(url: str | URL, *, app_env: str = "production") -> Engine:
    """Create the engine for ``url`` with pool settings suited to its backend."""

    parsed = _normalise_url(url)
    if parsed.get_backend_name() == "sqlite":
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if parsed.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(parsed, **kwargs)

    if _uses_placeholder(parsed):
        if app_env == "production":
            raise RuntimeError(
                "Refusing to start in production with the legacy postgres:postgres "
                "placeholder in DATABASE_URL."
            )
        warnings.warn(
            "DATABASE_URL appears to use the 'postgres:postgres' placeholder. "
            "This is acceptable for local development and tests but must not be used in production.",
            RuntimeWarning,
            stacklevel=2,
        )
    return create_engine(
        parsed,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
    )


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,
    )


# Base class for all ORM models
Base = declarative_base()


def get_db(request: Request) -> Generator[Session, None, None]:
    """Provide a database session for a single request."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
