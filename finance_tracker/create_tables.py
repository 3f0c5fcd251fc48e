"""Utility to create database tables."""

from sqlalchemy.engine import Engine

from .config import load_settings
from .database import make_engine
from .models import Base


def create_tables(engine: Engine | None = None) -> None:
    """Create all database tables using the SQLAlchemy metadata."""

    if engine is None:
        settings = load_settings()
        engine = make_engine(settings.database_url, app_env=settings.app_env)
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    create_tables()
