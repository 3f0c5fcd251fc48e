import pytest

from finance_tracker.config import Settings, load_settings, parse_duration

from .conftest import TEST_SECRET


@pytest.fixture
def base_env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", TEST_SECRET)
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    for name in (
        "SECRET_KEY",
        "ACCESS_TOKEN_TTL",
        "REFRESH_TOKEN_TTL",
        "TOKEN_SWEEP_INTERVAL",
        "GOOGLE_CLIENT_ID",
        "TOKEN_PEPPER",
        "ALLOWED_ORIGINS",
        "APP_ENV",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.parametrize(
    ("raw", "seconds"),
    [
        ("900", 900),
        ("45s", 45),
        ("15m", 900),
        ("24h", 86400),
        ("30d", 2592000),
        (" 2H ", 7200),
    ],
)
def test_parse_duration_accepts_plain_seconds_and_units(raw, seconds):
    assert parse_duration(raw) == seconds


@pytest.mark.parametrize("raw", ["", "abc", "0", "-5", "10w", "1.5h"])
def test_parse_duration_rejects_invalid_values(raw):
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_load_settings_defaults(base_env):
    settings = load_settings()

    assert settings.jwt_secret == TEST_SECRET
    assert settings.access_token_ttl == 15 * 60
    assert settings.refresh_token_ttl == 30 * 24 * 3600
    assert settings.token_sweep_interval == 24 * 3600
    assert settings.google_client_id is None
    assert settings.token_pepper == ""
    assert settings.allowed_origins == []
    assert settings.app_env == "production"


def test_load_settings_reads_overrides(base_env, monkeypatch):
    monkeypatch.setenv("ACCESS_TOKEN_TTL", "5m")
    monkeypatch.setenv("REFRESH_TOKEN_TTL", "7d")
    monkeypatch.setenv("TOKEN_SWEEP_INTERVAL", "3600")
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "client-123.apps.googleusercontent.com")
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://a.example, http://b.example,,")
    monkeypatch.setenv("APP_ENV", "Development")

    settings = load_settings()

    assert settings.access_token_ttl == 300
    assert settings.refresh_token_ttl == 7 * 86400
    assert settings.token_sweep_interval == 3600
    assert settings.google_client_id == "client-123.apps.googleusercontent.com"
    assert settings.allowed_origins == ["http://a.example", "http://b.example"]
    assert settings.app_env == "development"


def test_load_settings_accepts_legacy_secret_key(base_env, monkeypatch):
    monkeypatch.delenv("JWT_SECRET")
    monkeypatch.setenv("SECRET_KEY", TEST_SECRET)

    assert load_settings().jwt_secret == TEST_SECRET


def test_load_settings_requires_secret(base_env, monkeypatch):
    monkeypatch.delenv("JWT_SECRET")

    with pytest.raises(RuntimeError, match="JWT_SECRET"):
        load_settings()


def test_load_settings_rejects_short_secret(base_env, monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "too-short")

    with pytest.raises(RuntimeError, match="at least 32 characters"):
        load_settings()


def test_load_settings_requires_database_url(base_env, monkeypatch):
    monkeypatch.delenv("DATABASE_URL")

    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        load_settings()


def test_load_settings_rejects_invalid_duration(base_env, monkeypatch):
    monkeypatch.setenv("ACCESS_TOKEN_TTL", "soon")

    with pytest.raises(RuntimeError, match="ACCESS_TOKEN_TTL"):
        load_settings()


def test_settings_validates_secret_length():
    with pytest.raises(RuntimeError):
        Settings(jwt_secret="x" * 31, database_url="sqlite://")
