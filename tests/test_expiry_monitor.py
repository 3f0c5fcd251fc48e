import asyncio

import pytest
from jose import jwt

from finance_tracker.client import ExpiryMonitor, SessionExpired, SessionState

NOW = 1_700_000_000.0


def make_token(exp: float) -> str:
    return jwt.encode({"sub": "user-1", "exp": int(exp)}, "k" * 32, algorithm="HS256")


class Clock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeClient:
    """Records refresh and logout calls made by the monitor."""

    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self.session = SessionState()
        self.refresh_calls = 0
        self.logout_calls = 0
        self.refresh_error: Exception | None = None
        self.refreshed_lifetime = 90

    async def refresh_access_token(self) -> str:
        self.refresh_calls += 1
        await asyncio.sleep(0)
        if self.refresh_error is not None:
            raise self.refresh_error
        token = make_token(self.clock() + self.refreshed_lifetime)
        self.session.update_token(token)
        return token

    async def logout(self) -> None:
        self.logout_calls += 1
        self.session.clear()


class RecordingNotifier:
    def __init__(self) -> None:
        self.warnings = []
        self.expired = 0
        self.extended = 0
        self.failures = []

    def warn_expiring(self, warning) -> None:
        self.warnings.append(warning)

    def session_expired(self) -> None:
        self.expired += 1

    def session_extended(self) -> None:
        self.extended += 1

    def extension_failed(self, error: Exception) -> None:
        self.failures.append(error)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def fake_client(clock):
    return FakeClient(clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def monitor(fake_client, notifier, clock):
    return ExpiryMonitor(fake_client, notifier, warning_threshold=120, clock=clock)


def sign_in(fake_client: FakeClient, lifetime: float) -> None:
    fake_client.session.set_auth(make_token(fake_client.clock() + lifetime), "refresh", {})


async def test_warns_once_and_again_after_successful_extend(monitor, fake_client, notifier, clock):
    sign_in(fake_client, 90)

    await monitor.check()
    await monitor.check()

    assert len(notifier.warnings) == 1
    warning = notifier.warnings[0]
    assert warning.seconds_remaining == 90
    assert warning.time_left == "1m 30s"
    assert warning.message == "Your session will expire in 1m 30s"

    clock.now += 60
    assert await warning.extend() is True
    assert notifier.extended == 1
    assert not monitor.warning_shown

    await monitor.check()
    assert len(notifier.warnings) == 2
    assert notifier.warnings[1].seconds_remaining == 90


async def test_no_warning_far_from_expiry(monitor, fake_client, notifier):
    sign_in(fake_client, 600)

    await monitor.check()

    assert notifier.warnings == []
    assert fake_client.session.is_authenticated


async def test_expired_token_forces_logout(monitor, fake_client, notifier):
    sign_in(fake_client, 0)

    await monitor.check()

    assert fake_client.logout_calls == 1
    assert notifier.expired == 1
    assert not fake_client.session.is_authenticated
    assert fake_client.session.access_token is None


async def test_failed_extend_forces_logout_without_retry(monitor, fake_client, notifier):
    sign_in(fake_client, 90)
    fake_client.refresh_error = SessionExpired("Refresh failed")
    await monitor.check()

    assert await notifier.warnings[0].extend() is False

    assert fake_client.refresh_calls == 1
    assert len(notifier.failures) == 1
    assert fake_client.logout_calls == 1
    assert not fake_client.session.is_authenticated
    assert notifier.extended == 0


async def test_warning_logout_ends_session(monitor, fake_client, notifier):
    sign_in(fake_client, 90)
    await monitor.check()

    await notifier.warnings[0].logout()

    assert fake_client.logout_calls == 1
    assert not fake_client.session.is_authenticated


async def test_concurrent_extends_share_one_refresh(monitor, fake_client):
    sign_in(fake_client, 90)

    results = await asyncio.gather(monitor.extend(), monitor.extend(), monitor.extend())

    assert results == [True, True, True]
    assert fake_client.refresh_calls == 1
    assert not monitor.is_refreshing


async def test_check_is_a_no_op_without_session(monitor, fake_client, notifier):
    await monitor.check()

    assert notifier.warnings == []
    assert fake_client.logout_calls == 0


async def test_running_loop_warns_once_and_releases_task(fake_client, notifier, clock):
    monitor = ExpiryMonitor(
        fake_client, notifier, interval=0.01, warning_threshold=120, clock=clock
    )
    sign_in(fake_client, 90)

    async with monitor.running() as handle:
        await asyncio.sleep(0.05)
        assert not handle.done

    assert handle.done
    assert len(notifier.warnings) == 1


async def test_loop_stops_when_session_expires(fake_client, notifier, clock):
    monitor = ExpiryMonitor(fake_client, notifier, interval=0.01, clock=clock)
    sign_in(fake_client, 30)

    handle = monitor.start()
    try:
        await asyncio.sleep(0.03)
        assert not handle.done
        clock.now += 30
        for _ in range(50):
            if handle.done:
                break
            await asyncio.sleep(0.01)
        assert handle.done
    finally:
        await handle.aclose()

    assert notifier.expired == 1
    assert fake_client.logout_calls == 1


async def test_restart_resets_warning_flag(monitor, fake_client):
    sign_in(fake_client, 600)
    monitor.warning_shown = True

    handle = monitor.start()
    try:
        assert monitor.warning_shown is False
    finally:
        await handle.aclose()


class ExplodingNotifier(RecordingNotifier):
    def warn_expiring(self, warning) -> None:
        super().warn_expiring(warning)
        raise RuntimeError("notifier broke")


async def test_loop_survives_notifier_errors_and_still_expires(fake_client, clock, caplog):
    notifier = ExplodingNotifier()
    monitor = ExpiryMonitor(fake_client, notifier, interval=0.01, clock=clock)
    sign_in(fake_client, 90)

    handle = monitor.start()
    try:
        await asyncio.sleep(0.03)
        assert not handle.done
        clock.now += 90
        for _ in range(50):
            if handle.done:
                break
            await asyncio.sleep(0.01)
        assert handle.done
    finally:
        await handle.aclose()

    assert len(notifier.warnings) == 1
    assert notifier.expired == 1
    assert fake_client.logout_calls == 1
    assert not fake_client.session.is_authenticated
    assert any(r.getMessage() == "Session expiry check failed" for r in caplog.records)
