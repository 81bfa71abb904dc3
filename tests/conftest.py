"""
Pytest configuration for handoff tests.

Shared fixtures: isolated HANDOFF_* environment and signal stores.
"""

import logging
import os

import pytest

from handoff.signal_store import FileSignalStore, InMemorySignalStore


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "requires_tmux: mark test as requiring a tmux server"
    )


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Strip HANDOFF_* variables leaking in from a real session.

    When tests run inside a launched pipeline window, HANDOFF_WORKSPACE
    and friends point at the live workspace; tests must never touch it.
    """
    for key in list(os.environ):
        if key.startswith("HANDOFF_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HANDOFF_HOME", str(tmp_path / "home"))
    yield


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers added by setup_logging() during a test."""
    yield
    logger = logging.getLogger("handoff")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    logger.propagate = True


@pytest.fixture
def memory_store():
    return InMemorySignalStore()


@pytest.fixture
def file_store(tmp_path):
    return FileSignalStore(tmp_path / "ws" / "signals")


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    """Run a test against both signal store implementations."""
    if request.param == "memory":
        return InMemorySignalStore()
    return FileSignalStore(tmp_path / "ws" / "signals")
