"""
E2E fixtures: a real tmux server on an isolated socket and a mock agent.

Every test here is skipped when tmux is not installed.
"""

import os
import random
import shlex
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Generator

import pytest


TESTS_DIR = Path(__file__).parent.parent
MOCK_AGENT = TESTS_DIR / "mock_agent.py"
SRC_DIR = TESTS_DIR.parent / "src"


def pytest_collection_modifyitems(config, items):
    if shutil.which("tmux"):
        return
    skip = pytest.mark.skip(reason="tmux not installed")
    for item in items:
        if "requires_tmux" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def tmux_socket() -> Generator[str, None, None]:
    """Private tmux server, killed after the test."""
    socket = f"handoff-test-{os.getpid()}-{random.randint(10000, 99999)}"
    try:
        yield socket
    finally:
        subprocess.run(["tmux", "-L", socket, "kill-server"], capture_output=True)


@pytest.fixture
def e2e_env(tmp_path, monkeypatch, tmux_socket) -> dict:
    """Environment inherited by the tmux server and so by every worker.

    The server is started by the first launch, after these variables
    are set, so each window sees the mock agent and the test socket.
    """
    project = tmp_path / "project"
    project.mkdir()
    agent_log = tmp_path / "agent.log"

    monkeypatch.setenv("HANDOFF_TMUX_SOCKET", tmux_socket)
    monkeypatch.setenv("HANDOFF_AGENT_COMMAND", shlex.join([sys.executable, str(MOCK_AGENT)]))
    monkeypatch.setenv("HANDOFF_TEST_LOG", str(agent_log))
    monkeypatch.setenv("HANDOFF_POLL_INTERVAL", "0.1")
    pythonpath = os.environ.get("PYTHONPATH")
    monkeypatch.setenv(
        "PYTHONPATH",
        f"{SRC_DIR}{os.pathsep}{pythonpath}" if pythonpath else str(SRC_DIR),
    )

    return {
        "project": project,
        "workspace": tmp_path / "ws",
        "agent_log": agent_log,
        "socket": tmux_socket,
    }
