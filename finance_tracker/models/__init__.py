"""Domain-specific SQLAlchemy model package."""

from ..database import Base

from .auth_tokens import RefreshToken
from .transactions import TRANSACTION_CATEGORIES, TRANSACTION_TYPES, Transaction
from .users import User

__all__ = [
    "Base",
    "RefreshToken",
    "TRANSACTION_CATEGORIES",
    "TRANSACTION_TYPES",
    "Transaction",
    "User",
]
