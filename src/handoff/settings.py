"""
Static settings and path resolution for handoff.

Defaults live in frozen dataclasses; HANDOFF_* environment variables
override them at call time so tests (and child tmux windows) can point
at isolated workspaces.
"""

import os
import re
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


# Phase and role names double as file names under signals/ and tasks/ (use fullmatch)
PHASE_NAME_PATTERN = re.compile(r"[a-zA-Z0-9_-]{1,64}")

# Implicit root phase, signaled by the coordinator once every worker is spawned
START_PHASE = "start"

WORKSPACE_DIRNAME = ".handoff"
SIGNALS_DIRNAME = "signals"
TASKS_DIRNAME = "tasks"
SESSION_FILENAME = "session.json"
RESET_LOCK_FILENAME = ".reset.lock"
LOG_FILENAME = "handoff.log"
PROJECT_CONFIG_FILENAME = "handoff.yaml"


@dataclass(frozen=True)
class PollingSettings:
    """Polling trade-off: a shorter interval notices markers sooner but
    costs one stat() per dependency per tick."""

    poll_interval: float = 2.0
    timeout: Optional[float] = None  # None = wait indefinitely


@dataclass(frozen=True)
class TmuxSettings:
    default_session: str = "handoff"
    shell_window_name: str = "coordinator"


POLLING = PollingSettings()
TMUX = TmuxSettings()
DEFAULT_AGENT_COMMAND = ["claude"]


def get_handoff_home() -> Path:
    """User-level directory (~/.handoff unless HANDOFF_HOME is set)."""
    env = os.environ.get("HANDOFF_HOME")
    if env:
        return Path(env)
    return Path.home() / ".handoff"


def get_workspace_root(project_dir: Optional[Path] = None) -> Path:
    """Resolve the coordination workspace root.

    HANDOFF_WORKSPACE wins; otherwise <project_dir>/.handoff, with
    project_dir defaulting to the current directory.
    """
    env = os.environ.get("HANDOFF_WORKSPACE")
    if env:
        return Path(env)
    base = Path(project_dir) if project_dir else Path.cwd()
    return base / WORKSPACE_DIRNAME


def get_poll_interval() -> float:
    env = os.environ.get("HANDOFF_POLL_INTERVAL")
    if env:
        try:
            value = float(env)
            if value > 0:
                return value
        except ValueError:
            pass
    return POLLING.poll_interval


def get_agent_command() -> List[str]:
    """Agent CLI command as an argv list (HANDOFF_AGENT_COMMAND overrides)."""
    env = os.environ.get("HANDOFF_AGENT_COMMAND")
    if env:
        return shlex.split(env)
    return list(DEFAULT_AGENT_COMMAND)


def get_tmux_session_name() -> str:
    return os.environ.get("HANDOFF_TMUX_SESSION") or TMUX.default_session


def get_tmux_socket() -> Optional[str]:
    return os.environ.get("HANDOFF_TMUX_SOCKET") or None
