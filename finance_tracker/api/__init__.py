"""Router modules for the Finance Tracker API."""

from .auth import router as auth_router
from .transactions import router as transactions_router

__all__ = [
    "auth_router",
    "transactions_router",
]
