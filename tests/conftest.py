import os
import uuid
from datetime import UTC, datetime, timedelta

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

# The module-level application in ``finance_tracker.main`` reads its settings
# from the environment on import, so provide deterministic values first.
TEST_SECRET = "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_PEPPER = "unit-test-pepper"
ALLOWED_ORIGIN = "http://allowed.example"

os.environ.setdefault("JWT_SECRET", TEST_SECRET)
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "test")
os.environ["ALLOWED_ORIGINS"] = ALLOWED_ORIGIN
os.environ.setdefault(
    "STRICT_TRANSPORT_SECURITY", "max-age=63072000; includeSubDomains; preload"
)

from finance_tracker import models  # noqa: E402
from finance_tracker.config import Settings  # noqa: E402
from finance_tracker.errors import InvalidCredential  # noqa: E402
from finance_tracker.identity import IdentityClaims  # noqa: E402
from finance_tracker.main import create_app  # noqa: E402


class FrozenClock:
    """Callable clock returning a fixed, manually advanced instant."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class StubVerifier:
    """Credential verifier accepting only assertions registered by a test."""

    def __init__(self) -> None:
        self.assertions: dict[str, IdentityClaims] = {}
        self.calls = 0

    def register(
        self,
        assertion: str,
        *,
        subject: str | None = None,
        email: str = "alice@example.com",
        name: str = "Alice",
        picture: str | None = "https://example.com/alice.png",
    ) -> IdentityClaims:
        claims = IdentityClaims(
            subject=subject or f"google-{uuid.uuid4().hex}",
            email=email,
            name=name,
            picture=picture,
        )
        self.assertions[assertion] = claims
        return claims

    def verify(self, assertion: str | None) -> IdentityClaims:
        self.calls += 1
        if not assertion or not assertion.strip():
            raise InvalidCredential("idToken required")
        try:
            return self.assertions[assertion]
        except KeyError:
            raise InvalidCredential() from None


@pytest.fixture
def verifier() -> StubVerifier:
    return StubVerifier()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        jwt_secret=TEST_SECRET,
        database_url=f"sqlite:///{tmp_path / 'finance.db'}",
        token_pepper=TEST_PEPPER,
        allowed_origins=[ALLOWED_ORIGIN],
        app_env="test",
    )


@pytest.fixture
def app(settings, verifier):
    application = create_app(settings, verifier=verifier)
    models.Base.metadata.create_all(bind=application.state.engine)
    yield application
    application.state.engine.dispose()


@pytest.fixture
def issuer(app):
    return app.state.token_issuer


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


def make_user(db, *, email: str | None = None, subject: str | None = None) -> models.User:
    """Insert a user row directly and return it."""

    email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
    user = models.User(
        google_id=subject or f"google-{uuid.uuid4().hex}",
        email=email,
        name=email.split("@")[0],
    )
    db.add(user)
    db.commit()
    return user


async def login(client: httpx.AsyncClient, verifier: StubVerifier, **claims) -> dict:
    """Sign in through the API with a freshly registered assertion."""

    assertion = f"assertion-{uuid.uuid4().hex}"
    verifier.register(assertion, **claims)
    response = await client.post("/auth/google", json={"idToken": assertion})
    assert response.status_code == 200, response.text
    return response.json()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
