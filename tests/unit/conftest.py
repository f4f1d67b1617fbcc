"""Unit-test conftest: DB isolation safety net.

Every unit test runs with the storage module's engine and session accessors
replaced by guards that raise immediately, so a test that forgets to mock
the database fails loudly instead of hanging on a connection attempt.
Tests that need a real database live in ``tests/integration/``.
"""

from __future__ import annotations

import pytest

import relay.storage as _storage_mod
from relay.api.rate_limit import limiter


def _install_db_guard(monkeypatch: pytest.MonkeyPatch) -> None:
    """Install guard functions that prevent real DB access in unit tests."""

    def _guarded_get_engine(settings=None):
        raise RuntimeError(
            "Unit test attempted a real DB connection via get_engine(). "
            "Mock the database dependency or use tests/integration/ for DB tests."
        )

    def _guarded_get_session_factory(settings=None):
        raise RuntimeError(
            "Unit test attempted a real DB connection via get_session_factory(). "
            "Mock the database dependency or use tests/integration/ for DB tests."
        )

    monkeypatch.setattr(_storage_mod, "get_engine", _guarded_get_engine)
    monkeypatch.setattr(_storage_mod, "get_session_factory", _guarded_get_session_factory)


@pytest.fixture(autouse=True)
def _isolate_db(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset storage singletons and guard against real connections."""
    monkeypatch.setattr(_storage_mod, "_engine", None)
    monkeypatch.setattr(_storage_mod, "_session_factory", None)
    _install_db_guard(monkeypatch)


@pytest.fixture(autouse=True)
def _reset_rate_limits() -> None:
    """Rate limit counters are process-wide; start each test from zero."""
    limiter.reset()
