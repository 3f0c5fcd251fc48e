import asyncio
import logging
from datetime import timedelta

from fastapi.testclient import TestClient

from finance_tracker.maintenance import ExpiredTokenSweeper
from finance_tracker.token_store import RefreshTokenStore

from .conftest import TEST_PEPPER, FrozenClock, make_user


def _seed(db, now):
    user = make_user(db)
    store = RefreshTokenStore(db, pepper=TEST_PEPPER)
    store.put("expired", user.id, now - timedelta(hours=1))
    store.put("live", user.id, now + timedelta(hours=1))
    return user, store


def test_run_once_deletes_expired_records(app, db):
    clock = FrozenClock()
    user, store = _seed(db, clock.now)
    sweeper = ExpiredTokenSweeper(
        app.state.session_factory, interval=3600, token_pepper=TEST_PEPPER, clock=clock
    )

    assert sweeper.run_once() == 1
    assert sweeper.run_once() == 0
    assert store.find_by_token("live") is not None


async def test_sweeper_runs_immediately_and_stops_cleanly(app, db):
    clock = FrozenClock()
    user, store = _seed(db, clock.now)
    sweeper = ExpiredTokenSweeper(app.state.session_factory, interval=3600, clock=clock)

    sweeper.start()
    try:
        assert sweeper.running
        for _ in range(100):
            if store.count_for_user(user.id) == 1:
                break
            await asyncio.sleep(0.01)
        assert store.count_for_user(user.id) == 1
    finally:
        await sweeper.stop()

    assert not sweeper.running


async def test_sweeper_survives_failing_iterations(caplog):
    calls = 0

    def broken_session_factory():
        nonlocal calls
        calls += 1
        raise RuntimeError("database is gone")

    caplog.set_level(logging.INFO, logger="finance_tracker.maintenance")
    sweeper = ExpiredTokenSweeper(broken_session_factory, interval=0.01)

    sweeper.start()
    try:
        for _ in range(100):
            if calls >= 2:
                break
            await asyncio.sleep(0.01)
        assert calls >= 2
        assert sweeper.running
    finally:
        await sweeper.stop()

    assert any(r.getMessage() == "Token sweep iteration failed" for r in caplog.records)


async def test_stop_without_start_is_a_no_op():
    sweeper = ExpiredTokenSweeper(lambda: None, interval=1)

    await sweeper.stop()

    assert not sweeper.running


def test_lifespan_starts_and_stops_the_sweeper(app):
    with TestClient(app) as client:
        assert client.get("/").status_code == 200
        sweeper = app.state.token_sweeper
        assert sweeper.interval == app.state.settings.token_sweep_interval

    assert not sweeper.running
