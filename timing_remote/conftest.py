"""Pytest configuration and fixtures for timing_remote tests.

Every store test runs against a SQLite file under ``tmp_path``. Setting
``TEST_POSTGRES_URL`` or ``TEST_MYSQL_URL`` adds the same tests against
that server; its tables are dropped before each test.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

from timing_remote.auth.password import hash_password
from timing_remote.config import get_settings
from timing_remote.db import MigrationRunner, open_store
from timing_remote.db.types import Account, AccountType, Key, KeyScope

_DROP_ORDER = ("notification", "a_read", "api_key", "account", "settings")


def pytest_configure(config):
    """Register markers and pin the test environment before settings load."""
    config.addinivalue_line("markers", "security: Security-related tests (required gate)")
    config.addinivalue_line("markers", "slow: Slow-running tests (excluded from fast)")
    config.addinivalue_line("markers", "integration: Tests requiring an external database server")

    os.environ.setdefault("ENVIRONMENT", "test")
    os.environ.setdefault("LOG_LEVEL", "DEBUG")


class FakeClock:
    """Settable clock passed to stores and authorizers."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _backend_params():
    params = [pytest.param("sqlite", id="sqlite")]
    for name, env in (("postgresql", "TEST_POSTGRES_URL"), ("mysql", "TEST_MYSQL_URL")):
        params.append(
            pytest.param(
                os.environ.get(env, ""),
                id=name,
                marks=[
                    pytest.mark.integration,
                    pytest.mark.skipif(not os.environ.get(env), reason=f"{env} not set"),
                ],
            )
        )
    return params


def _drop_tables(store) -> None:
    cascade = " CASCADE" if store.backend == "postgresql" else ""
    with store.engine.begin() as conn:
        for table in _DROP_ORDER:
            conn.exec_driver_sql(f"DROP TABLE IF EXISTS {table}{cascade}")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(params=_backend_params())
def database_url(request, tmp_path):
    if request.param == "sqlite":
        return f"sqlite:///{(tmp_path / 'timing_remote.db').as_posix()}"
    return request.param


@pytest.fixture
def settings(database_url, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("BOOTSTRAP_ADMIN_NAME", "")
    monkeypatch.setenv("BOOTSTRAP_ADMIN_EMAIL", "")
    monkeypatch.setenv("BOOTSTRAP_ADMIN_PASSWORD", "")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def empty_store(settings, clock):
    """Store whose database has no tables yet."""
    store = open_store(settings, clock=clock)
    if store.backend != "sqlite":
        _drop_tables(store)
    yield store
    store.close()


@pytest.fixture
def store(empty_store):
    MigrationRunner(empty_store).ensure_schema()
    return empty_store


@pytest.fixture
def account(store):
    acc = Account(
        name="Race Director",
        email="director@example.com",
        password=hash_password("Sup3r$ecret"),
        type=AccountType.PAID,
    )
    store.add_account(acc)
    return acc


@pytest.fixture
def make_key(store):
    """Factory adding a key for an account."""

    def _make(account, value, scope=KeyScope.WRITE, reader_name="r1", valid_until=None, name=None):
        key = Key(
            account_id=account.id,
            name=name or f"{reader_name}-{KeyScope(scope).value}",
            value=value,
            scope=scope,
            reader_name=reader_name,
            valid_until=valid_until,
        )
        store.add_key(key)
        return key

    return _make
