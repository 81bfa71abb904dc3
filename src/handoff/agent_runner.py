"""
Agent runners: the task body a worker executes once unblocked.

The agent CLI is an opaque collaborator. handoff hands it the task
instructions as its initial prompt and waits for the process to exit;
what happens inside the session is the agent's business.
"""

import os
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .exceptions import AgentRunError
from .logging_config import get_logger
from .settings import get_agent_command
from .task_graph import WorkerTask


logger = get_logger(__name__)


class SubprocessAgentRunner:
    """Runs the agent CLI in the foreground of the current terminal.

    Inside a tmux window this gives the user a normal interactive agent
    session they can take over at any time.
    """

    def __init__(
        self,
        command: Optional[List[str]] = None,
        cwd: Optional[Path] = None,
        workspace_root: Optional[Path] = None,
    ):
        self.command = list(command) if command else get_agent_command()
        self.cwd = Path(cwd) if cwd else None
        self.workspace_root = Path(workspace_root) if workspace_root else None

    def build_command(self, task: WorkerTask) -> List[str]:
        cmd = list(self.command)
        if task.instructions.strip():
            cmd.append(task.instructions)
        return cmd

    def build_env(self, task: WorkerTask) -> Dict[str, str]:
        """Environment for the agent, so it can run `handoff signal` itself."""
        env = dict(os.environ)
        env["HANDOFF_ROLE"] = task.role
        env["HANDOFF_OUTPUT_MARKER"] = task.output_marker
        if self.workspace_root is not None:
            env["HANDOFF_WORKSPACE"] = str(self.workspace_root)
        return env

    def run(self, task: WorkerTask) -> None:
        cmd = self.build_command(task)
        logger.info("Starting agent for '%s': %s", task.role, cmd[0])
        try:
            result = subprocess.run(
                cmd,
                cwd=str(self.cwd) if self.cwd else None,
                env=self.build_env(task),
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise AgentRunError(task.role, None, str(e)) from e

        if result.returncode != 0:
            raise AgentRunError(task.role, result.returncode)
        logger.info("Agent for '%s' exited cleanly", task.role)


class CallableRunner:
    """Wraps a plain function as a runner (in-process pipelines, tests)."""

    def __init__(self, fn: Callable[[WorkerTask], None]):
        self.fn = fn

    def run(self, task: WorkerTask) -> None:
        self.fn(task)
