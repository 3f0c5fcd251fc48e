"""Background watcher that warns before the access token lapses.

The monitor polls the session's access token on a fixed interval. When the
token is about to expire it hands the notifier an :class:`ExpiryWarning`
offering to extend the session or log out; once the token has expired it
forces a logout.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Callable
from typing import Protocol

import httpx

from .api import FinanceTrackerClient
from .errors import ClientError
from .jwt import format_time_until_expiry, is_expired, is_expiring, seconds_until_expiry

logger = logging.getLogger("finance_tracker.client")

DEFAULT_CHECK_INTERVAL = 30.0
DEFAULT_WARNING_THRESHOLD = 120.0


class ExpiryNotifier(Protocol):
    def warn_expiring(self, warning: "ExpiryWarning") -> None: ...

    def session_expired(self) -> None: ...

    def session_extended(self) -> None: ...

    def extension_failed(self, error: Exception) -> None: ...


class ExpiryWarning:
    """Prompt shown once per approach to expiry."""

    def __init__(self, monitor: "ExpiryMonitor", seconds_remaining: float, time_left: str) -> None:
        self._monitor = monitor
        self.seconds_remaining = seconds_remaining
        self.time_left = time_left

    @property
    def message(self) -> str:
        return f"Your session will expire in {self.time_left}"

    async def extend(self) -> bool:
        return await self._monitor.extend()

    async def logout(self) -> None:
        await self._monitor.logout()


class MonitorHandle:
    """Owns the polling task; cancel it whenever the caller stops watching."""

    def __init__(self, task: asyncio.Task[None]) -> None:
        self._task = task

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        self._task.cancel()

    async def aclose(self) -> None:
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task


class ExpiryMonitor:
    def __init__(
        self,
        client: FinanceTrackerClient,
        notifier: ExpiryNotifier,
        *,
        interval: float = DEFAULT_CHECK_INTERVAL,
        warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.session = client.session
        self.notifier = notifier
        self.interval = interval
        self.warning_threshold = warning_threshold
        self._clock = clock
        self.warning_shown = False
        self._refresh_task: asyncio.Task[bool] | None = None
        self._handle: MonitorHandle | None = None

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def check(self) -> None:
        """Run a single poll of the access token."""

        token = self.session.access_token
        if not self.session.is_authenticated or not token:
            return
        now = self._clock()
        if is_expired(token, now):
            await self._expire()
            return
        if not self.warning_shown and is_expiring(token, self.warning_threshold, now):
            self.warning_shown = True
            warning = ExpiryWarning(
                self,
                seconds_until_expiry(token, now),
                format_time_until_expiry(token, now),
            )
            logger.info(
                "Session expiring soon",
                extra={"event_action": "session_expiring"},
            )
            self.notifier.warn_expiring(warning)

    async def _expire(self) -> None:
        logger.info("Session expired", extra={"event_action": "session_expired"})
        await self.client.logout()
        self.warning_shown = False
        self.notifier.session_expired()

    async def extend(self) -> bool:
        """Refresh the access token; concurrent callers share one request."""

        if not self.is_refreshing:
            self._refresh_task = asyncio.ensure_future(self._extend())
        return await asyncio.shield(self._refresh_task)

    async def _extend(self) -> bool:
        try:
            await self.client.refresh_access_token()
        except (ClientError, httpx.HTTPError) as exc:
            logger.warning(
                "Session extension failed",
                extra={
                    "event_action": "session_extension_failed",
                    "error_type": type(exc).__name__,
                },
            )
            self.notifier.extension_failed(exc)
            await self.logout()
            return False
        self.warning_shown = False
        self.notifier.session_extended()
        return True

    async def logout(self) -> None:
        await self.client.logout()
        self.warning_shown = False

    async def _run(self) -> None:
        while self.session.is_authenticated:
            try:
                await self.check()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001 - keep polling after a failed tick
                logger.exception(
                    "Session expiry check failed",
                    extra={"event_action": "session_check_failed"},
                )
            if not self.session.is_authenticated:
                break
            await asyncio.sleep(self.interval)

    def start(self) -> MonitorHandle:
        """Start polling from a clean slate and return the task's handle."""

        if self._handle is not None:
            self._handle.cancel()
        self.warning_shown = False
        self._handle = MonitorHandle(asyncio.create_task(self._run()))
        return self._handle

    @contextlib.asynccontextmanager
    async def running(self) -> AsyncIterator[MonitorHandle]:
        handle = self.start()
        try:
            yield handle
        finally:
            await handle.aclose()
            if self._handle is handle:
                self._handle = None


__all__ = [
    "DEFAULT_CHECK_INTERVAL",
    "DEFAULT_WARNING_THRESHOLD",
    "ExpiryMonitor",
    "ExpiryNotifier",
    "ExpiryWarning",
    "MonitorHandle",
]
