"""Ledger entries recorded by users."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base

TRANSACTION_TYPES = ("credit", "debit")

TRANSACTION_CATEGORIES = (
    "food",
    "transport",
    "entertainment",
    "utilities",
    "healthcare",
    "education",
    "shopping",
    "travel",
    "investment",
    "salary",
    "freelance",
    "business",
    "rent",
    "insurance",
    "other",
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Transaction(Base):
    """A single credit or debit belonging to one user."""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("idx_transactions_user_date", "user_id", "date"),
        Index("idx_transactions_user_category", "user_id", "category"),
        Index("idx_transactions_user_type", "user_id", "type"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    type = Column(String(16), nullable=False)
    category = Column(String(32), nullable=False)
    description = Column(Text, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    # Original free text when the entry was produced by the parsing service.
    parsed_from = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    location = Column(String(255), nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    user = relationship("User", back_populates="transactions")
