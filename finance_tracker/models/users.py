"""User domain models."""

import uuid

from sqlalchemy import Column, DateTime, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class User(Base):
    """A person who signed in through the external identity provider."""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Stable subject identifier issued by Google; the lookup key for logins.
    google_id = Column(String(255), nullable=False, unique=True)
    email = Column(String(320), nullable=False)
    name = Column(String(255), nullable=False)
    picture = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    transactions = relationship(
        "Transaction",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
