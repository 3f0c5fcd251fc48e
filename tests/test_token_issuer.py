import uuid
from datetime import timedelta
from types import SimpleNamespace

import pytest
from jose import jwt

from finance_tracker.auth import TokenIssuer
from finance_tracker.errors import InvalidOrExpiredToken

from .conftest import TEST_SECRET, FrozenClock


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def token_issuer(clock):
    return TokenIssuer(TEST_SECRET, access_ttl=900, refresh_ttl=30 * 86400, clock=clock)


@pytest.fixture
def user():
    return SimpleNamespace(id=uuid.uuid4(), email="alice@example.com")


def _corrupt_signature(token: str) -> str:
    header, payload, signature = token.split(".")
    index = len(signature) // 2
    replacement = "A" if signature[index] != "A" else "B"
    return ".".join(
        [header, payload, signature[:index] + replacement + signature[index + 1 :]]
    )


def test_access_token_claims(token_issuer, user, clock):
    issued = token_issuer.issue_access_token(user)
    claims = jwt.get_unverified_claims(issued.token)

    assert claims["sub"] == str(user.id)
    assert claims["email"] == "alice@example.com"
    assert claims["typ"] == "access"
    assert claims["iat"] == int(clock.now.timestamp())
    assert claims["exp"] - claims["iat"] == 900
    assert claims["jti"]
    assert issued.expires_at == clock.now + timedelta(seconds=900)


def test_refresh_token_uses_refresh_lifetime(token_issuer, user):
    issued = token_issuer.issue_refresh_token(user)
    claims = jwt.get_unverified_claims(issued.token)

    assert claims["typ"] == "refresh"
    assert claims["exp"] - claims["iat"] == 30 * 86400


def test_tokens_issued_in_the_same_instant_differ(token_issuer, user):
    first = token_issuer.issue_refresh_token(user)
    second = token_issuer.issue_refresh_token(user)

    assert first.token != second.token


def test_decode_returns_identity(token_issuer, user):
    issued = token_issuer.issue_access_token(user)

    claims = token_issuer.decode(issued.token, "access")

    assert claims.user_id == user.id
    assert claims.email == user.email
    assert claims.token_type == "access"
    assert claims.expires_at == issued.expires_at


def test_decode_needs_only_secret_and_clock(token_issuer, user, clock):
    issued = token_issuer.issue_access_token(user)
    other = TokenIssuer(TEST_SECRET, access_ttl=1, refresh_ttl=1, clock=clock)

    assert other.decode(issued.token, "access").user_id == user.id


def test_expiry_equal_to_now_is_expired(token_issuer, user, clock):
    issued = token_issuer.issue_access_token(user)

    clock.advance(seconds=899)
    assert token_issuer.decode(issued.token, "access").user_id == user.id

    clock.advance(seconds=1)
    with pytest.raises(InvalidOrExpiredToken):
        token_issuer.decode(issued.token, "access")


def test_corrupted_signature_is_rejected(token_issuer, user):
    issued = token_issuer.issue_access_token(user)

    with pytest.raises(InvalidOrExpiredToken):
        token_issuer.decode(_corrupt_signature(issued.token), "access")


def test_token_signed_with_other_secret_is_rejected(user, clock):
    foreign = TokenIssuer("f" * 64, access_ttl=900, refresh_ttl=900, clock=clock)
    local = TokenIssuer(TEST_SECRET, access_ttl=900, refresh_ttl=900, clock=clock)

    with pytest.raises(InvalidOrExpiredToken):
        local.decode(foreign.issue_access_token(user).token, "access")


def test_token_types_are_not_interchangeable(token_issuer, user):
    access = token_issuer.issue_access_token(user)
    refresh = token_issuer.issue_refresh_token(user)

    with pytest.raises(InvalidOrExpiredToken):
        token_issuer.decode(access.token, "refresh")
    with pytest.raises(InvalidOrExpiredToken):
        token_issuer.decode(refresh.token, "access")


@pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
def test_malformed_tokens_are_rejected(token_issuer, token):
    with pytest.raises(InvalidOrExpiredToken):
        token_issuer.decode(token, "access")


def test_subject_must_be_a_user_id(token_issuer, clock):
    token = jwt.encode(
        {"sub": "not-a-uuid", "exp": int(clock.now.timestamp()) + 60, "typ": "access"},
        TEST_SECRET,
        algorithm="HS256",
    )

    with pytest.raises(InvalidOrExpiredToken):
        token_issuer.decode(token, "access")


def test_token_without_expiry_is_rejected(token_issuer, user):
    token = jwt.encode(
        {"sub": str(user.id), "typ": "access"}, TEST_SECRET, algorithm="HS256"
    )

    with pytest.raises(InvalidOrExpiredToken):
        token_issuer.decode(token, "access")


def test_issuer_requires_secret():
    with pytest.raises(ValueError):
        TokenIssuer("", access_ttl=1, refresh_ttl=1)
