"""Background housekeeping tasks run for the lifetime of the application."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime

import anyio
from sqlalchemy.orm import Session, sessionmaker

from .sessions import sweep_expired_tokens
from .token_store import RefreshTokenStore

logger = logging.getLogger("finance_tracker.maintenance")


def _now() -> datetime:
    return datetime.now(UTC)


class ExpiredTokenSweeper:
    """Periodically delete refresh token records that are past expiry.

    The first sweep runs as soon as the task starts. Failures are logged and
    never stop the loop.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        interval: float,
        token_pepper: str = "",
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self.session_factory = session_factory
        self.interval = interval
        self.token_pepper = token_pepper
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        """Run a single sweep synchronously and return the number of deleted rows."""

        with self.session_factory() as db:
            store = RefreshTokenStore(db, pepper=self.token_pepper)
            return sweep_expired_tokens(store, self._clock())

    async def _sweep(self) -> int:
        return await anyio.to_thread.run_sync(self.run_once)

    async def _run_loop(self) -> None:
        try:
            while True:
                try:
                    await self._sweep()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:  # noqa: BLE001 - best-effort cleanup
                    logger.warning(
                        "Token sweep iteration failed",
                        extra={
                            "event_dataset": "finance-tracker-api.maintenance",
                            "event_action": "token_sweep_failed",
                            "error_type": type(exc).__name__,
                            "error_message": str(exc)[:256],
                        },
                    )
                await asyncio.sleep(self.interval)
        except asyncio.CancelledError:
            logger.info(
                "Token sweeper cancelled",
                extra={
                    "event_dataset": "finance-tracker-api.maintenance",
                    "event_action": "token_sweeper_stopped",
                },
            )
            raise

    def start(self) -> None:
        if self.running:
            logger.warning("Token sweeper already running")
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "Token sweeper started",
            extra={
                "event_dataset": "finance-tracker-api.maintenance",
                "event_action": "token_sweeper_started",
                "token_sweep_interval": self.interval,
            },
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None


__all__ = ["ExpiredTokenSweeper"]
