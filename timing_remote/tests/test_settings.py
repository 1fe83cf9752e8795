import pytest
from pydantic import ValidationError

from timing_remote.config import Settings
from timing_remote.core.exceptions import ConfigurationError
from timing_remote.db import MySQLStore, PostgresStore, SQLiteStore, open_store


def test_defaults(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = Settings(_env_file=None)
    assert settings.database_url.startswith("sqlite:///")
    assert settings.database_url.endswith("timing_remote.db")
    assert settings.max_login_attempts == 4
    assert settings.db_statement_timeout_seconds == 5.0


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    monkeypatch.setenv("ENVIRONMENT", "Production")
    monkeypatch.setenv("MAX_LOGIN_ATTEMPTS", "6")
    settings = Settings(_env_file=None)
    assert settings.log_level == "WARNING"
    assert settings.environment == "production"
    assert settings.max_login_attempts == 6


@pytest.mark.parametrize(
    "field,value",
    [
        ("log_level", "LOUD"),
        ("environment", "qa"),
        ("db_statement_timeout_seconds", 0),
        ("max_login_attempts", 0),
    ],
)
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


class TestOpenStore:
    def test_sqlite(self, tmp_path):
        store = open_store(Settings(_env_file=None, database_url=f"sqlite:///{tmp_path / 'x.db'}"))
        try:
            assert isinstance(store, SQLiteStore)
            store.ping()
        finally:
            store.close()

    def test_store_gets_login_limit(self, tmp_path):
        settings = Settings(
            _env_file=None,
            database_url=f"sqlite:///{tmp_path / 'x.db'}",
            max_login_attempts=7,
        )
        store = open_store(settings)
        try:
            assert store.max_login_attempts == 7
        finally:
            store.close()

    @pytest.mark.parametrize(
        "url,store_cls,driver",
        [
            ("postgresql://u:p@localhost/race", PostgresStore, "psycopg"),
            ("postgresql+psycopg2://u:p@localhost/race", PostgresStore, "psycopg"),
            ("mysql://u:p@localhost/race", MySQLStore, "pymysql"),
        ],
    )
    def test_server_urls_use_supported_driver(self, url, store_cls, driver):
        # engines connect lazily so no server is needed
        store = open_store(Settings(_env_file=None, database_url=url))
        try:
            assert isinstance(store, store_cls)
            assert store.engine.url.get_driver_name() == driver
            assert store.engine.url.password == "p"
        finally:
            store.close()

    @pytest.mark.parametrize("url", ["", "   ", "not a url", "oracle://u:p@localhost/race"])
    def test_bad_urls(self, url):
        with pytest.raises(ConfigurationError):
            open_store(Settings(_env_file=None, database_url=url))
