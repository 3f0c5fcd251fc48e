import logging
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from finance_tracker.errors import StoreUnavailable
from finance_tracker.sessions import sweep_expired_tokens
from finance_tracker.token_store import RefreshTokenStore, hash_refresh_token

from .conftest import TEST_PEPPER, FrozenClock, make_user


@pytest.fixture
def store(db):
    return RefreshTokenStore(db, pepper=TEST_PEPPER)


@pytest.fixture
def now():
    return FrozenClock().now


def test_put_stores_only_the_hash(store, db, now):
    user = make_user(db)

    store.put("raw-refresh-token", user.id, now + timedelta(days=30))

    record = store.find_by_token("raw-refresh-token")
    assert record is not None
    assert record.user_id == user.id
    assert record.token_hash == hash_refresh_token("raw-refresh-token", TEST_PEPPER)
    assert record.token_hash != "raw-refresh-token"
    assert store.find_by_token("other-token") is None


def test_pepper_changes_the_hash():
    assert hash_refresh_token("token", "a") != hash_refresh_token("token", "b")
    assert hash_refresh_token("token") == hash_refresh_token("token", "")


def test_delete_by_token_is_idempotent(store, db, now):
    user = make_user(db)
    store.put("raw-refresh-token", user.id, now + timedelta(days=1))

    assert store.delete_by_token("raw-refresh-token") == 1
    assert store.delete_by_token("raw-refresh-token") == 0
    assert store.find_by_token("raw-refresh-token") is None


def test_delete_all_for_user_leaves_other_users_alone(store, db, now):
    alice = make_user(db)
    bob = make_user(db)
    store.put("alice-1", alice.id, now + timedelta(days=1))
    store.put("alice-2", alice.id, now + timedelta(days=1))
    store.put("bob-1", bob.id, now + timedelta(days=1))

    assert store.delete_all_for_user(alice.id) == 2
    assert store.count_for_user(alice.id) == 0
    assert store.count_for_user(bob.id) == 1


def test_delete_expired_only_removes_records_before_now(store, db, now):
    user = make_user(db)
    store.put("expired-long-ago", user.id, now - timedelta(days=1))
    store.put("expired-just-now", user.id, now - timedelta(seconds=1))
    store.put("expires-exactly-now", user.id, now)
    store.put("still-valid", user.id, now + timedelta(hours=1))

    assert store.delete_expired(now) == 2
    assert store.find_by_token("expired-long-ago") is None
    assert store.find_by_token("expired-just-now") is None
    assert store.find_by_token("expires-exactly-now") is not None
    assert store.find_by_token("still-valid") is not None

    assert store.delete_expired(now) == 0
    assert store.count_for_user(user.id) == 2


def test_sweep_logs_deleted_count(store, db, now, caplog):
    user = make_user(db)
    store.put("expired", user.id, now - timedelta(minutes=5))
    caplog.set_level(logging.INFO, logger="finance_tracker.maintenance")

    assert sweep_expired_tokens(store, now) == 1

    record = next(r for r in caplog.records if r.name == "finance_tracker.maintenance")
    assert record.getMessage() == "Cleaned up 1 expired refresh tokens"
    assert record.token_sweep_deleted == 1


@pytest.fixture
def broken_store():
    # No tables exist on this engine, so every statement fails.
    engine = create_engine("sqlite://")
    with Session(engine) as session:
        yield RefreshTokenStore(session)
    engine.dispose()


def test_store_errors_surface_as_store_unavailable(broken_store, now):
    with pytest.raises(StoreUnavailable):
        broken_store.find_by_token("token")
    with pytest.raises(StoreUnavailable):
        broken_store.delete_by_token("token")
    with pytest.raises(StoreUnavailable):
        broken_store.put("token", uuid.uuid4(), now)


def test_sweep_swallows_store_failures(broken_store, now, caplog):
    caplog.set_level(logging.INFO, logger="finance_tracker.maintenance")

    assert sweep_expired_tokens(broken_store, now) == 0
    assert any(
        r.getMessage() == "Expired refresh token sweep failed" and r.levelno == logging.ERROR
        for r in caplog.records
    )
