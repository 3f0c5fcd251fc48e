"""Python client for the Finance Tracker API with session expiry monitoring."""

from .api import FinanceTrackerClient
from .errors import ApiError, ClientError, SessionExpired
from .monitor import ExpiryMonitor, ExpiryNotifier, ExpiryWarning, MonitorHandle
from .session import SessionState

__all__ = [
    "ApiError",
    "ClientError",
    "ExpiryMonitor",
    "ExpiryNotifier",
    "ExpiryWarning",
    "FinanceTrackerClient",
    "MonitorHandle",
    "SessionExpired",
    "SessionState",
]
