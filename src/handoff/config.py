"""
YAML configuration.

Looked up in order: an explicit path, <project>/handoff.yaml, then
~/.handoff/config.yaml. Every key is optional; anything missing falls
back to settings (and HANDOFF_* environment overrides).
"""

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .exceptions import ConfigError, HandoffError
from .settings import (
    PROJECT_CONFIG_FILENAME,
    POLLING,
    get_agent_command,
    get_handoff_home,
    get_poll_interval,
    get_tmux_session_name,
)
from .task_graph import WorkerTask, default_pipeline


CONFIG_TEMPLATE = """\
# handoff configuration
# Project file: ./handoff.yaml   User file: ~/.handoff/config.yaml

# Seconds between marker checks while a worker waits
# poll_interval: 2

# Give up waiting on dependencies after this many seconds (omit to wait forever)
# timeout: 3600

# Agent CLI each worker runs; the task instructions are appended as the last argument
# agent_command: claude

# tmux session the pipeline is launched into
# tmux_session: handoff

# Replace the default plan/backend/frontend/tests pipeline
# tasks:
#   - role: plan
#     depends_on: [start]
#     instructions: |
#       Write PLAN.md, then exit.
#   - role: backend
#     depends_on: [plan]
#     instructions: |
#       Implement the Backend section of PLAN.md, then exit.
"""


def get_user_config_path() -> Path:
    return get_handoff_home() / "config.yaml"


def find_config_path(project_dir: Optional[Path] = None) -> Optional[Path]:
    """First existing config file for project_dir, or None."""
    base = Path(project_dir) if project_dir else Path.cwd()
    for candidate in (base / PROJECT_CONFIG_FILENAME, get_user_config_path()):
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load a raw config mapping; {} when there is no file.

    Raises:
        ConfigError: the file is not valid YAML or not a mapping
    """
    if path is None:
        path = find_config_path()
    if path is None or not Path(path).exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


@dataclass
class HandoffConfig:
    """Effective configuration after merging file values over defaults."""

    poll_interval: float = POLLING.poll_interval
    timeout: Optional[float] = POLLING.timeout
    agent_command: List[str] = field(default_factory=get_agent_command)
    tmux_session: str = field(default_factory=get_tmux_session_name)
    tasks: List[WorkerTask] = field(default_factory=default_pipeline)
    source: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[Path] = None) -> "HandoffConfig":
        config = cls(poll_interval=get_poll_interval(), source=source)

        if "poll_interval" in data:
            config.poll_interval = _positive_float(data["poll_interval"], "poll_interval")
        if data.get("timeout") is not None:
            timeout = _float(data["timeout"], "timeout")
            if timeout < 0:
                raise ConfigError("timeout cannot be negative")
            config.timeout = timeout

        command = data.get("agent_command")
        if command:
            if isinstance(command, str):
                config.agent_command = shlex.split(command)
            elif isinstance(command, list):
                config.agent_command = [str(c) for c in command]
            else:
                raise ConfigError("agent_command must be a string or a list")

        if data.get("tmux_session"):
            config.tmux_session = str(data["tmux_session"])

        if "tasks" in data:
            raw_tasks = data["tasks"]
            if not isinstance(raw_tasks, list) or not raw_tasks:
                raise ConfigError("tasks must be a non-empty list")
            tasks = []
            for entry in raw_tasks:
                if not isinstance(entry, dict):
                    raise ConfigError("each task must be a mapping")
                try:
                    tasks.append(WorkerTask.from_dict(entry))
                except HandoffError as e:
                    raise ConfigError(f"Invalid task definition: {e}") from e
            config.tasks = tasks

        return config

    def task_for(self, role: str) -> Optional[WorkerTask]:
        for task in self.tasks:
            if task.role == role:
                return task
        return None


def load_handoff_config(
    project_dir: Optional[Path] = None,
    path: Optional[Path] = None,
) -> HandoffConfig:
    """Load the effective configuration for a project."""
    if path is None:
        path = find_config_path(project_dir)
    elif not Path(path).exists():
        raise ConfigError(f"Config file not found: {path}")
    return HandoffConfig.from_dict(load_config(path) if path else {}, source=path)


def _float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got {value!r}")


def _positive_float(value: Any, key: str) -> float:
    number = _float(value, key)
    if number <= 0:
        raise ConfigError(f"{key} must be positive")
    return number
