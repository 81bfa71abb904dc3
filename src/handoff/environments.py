"""
Execution environments: where a worker actually runs.

ThreadEnvironment runs each worker on a thread in this process.
TmuxEnvironment gives each worker its own tmux window running
`python -m handoff worker <role>`, so every role is a separate OS
process the user can watch and take over.
"""

import shlex
import sys
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .exceptions import HandoffError
from .logging_config import get_logger
from .protocols import AgentRunner, SignalStoreInterface, TmuxInterface
from .settings import TMUX
from .task_graph import WorkerTask
from .worker import Worker


logger = get_logger(__name__)


class WorkerThread:
    """Handle returned by ThreadEnvironment.deliver()."""

    def __init__(self, worker: Worker, thread: threading.Thread):
        self.worker = worker
        self.thread = thread

    @property
    def state(self):
        return self.worker.state

    @property
    def error(self) -> Optional[BaseException]:
        return self.worker.error

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the thread; True if it has finished."""
        self.thread.join(timeout)
        return not self.thread.is_alive()


class ThreadEnvironment:
    """Runs each delivered task as a Worker on a daemon thread.

    Worker errors are captured on the Worker (state FAILED, .error set)
    and logged; they never propagate into sibling threads.
    """

    def __init__(
        self,
        store: SignalStoreInterface,
        runner_factory: Callable[[WorkerTask], AgentRunner],
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.runner_factory = runner_factory
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.handles: Dict[str, WorkerThread] = {}

    def deliver(self, task: WorkerTask) -> WorkerThread:
        worker = Worker(
            task,
            self.store,
            self.runner_factory(task),
            poll_interval=self.poll_interval,
            timeout=self.timeout,
        )

        def target():
            try:
                worker.run()
            except HandoffError as e:
                logger.warning("Worker '%s' stopped: %s", task.role, e)

        thread = threading.Thread(target=target, name=f"handoff-{task.role}", daemon=True)
        handle = WorkerThread(worker, thread)
        self.handles[task.role] = handle
        thread.start()
        return handle

    def join_all(self, timeout: Optional[float] = None) -> bool:
        """Join every delivered worker; True if all finished."""
        return all(h.join(timeout) for h in self.handles.values())


def worker_command(
    role: str,
    workspace_root: Path,
    config_path: Optional[Path] = None,
    agent_command: Optional[List[str]] = None,
    timeout: Optional[float] = None,
    poll_interval: Optional[float] = None,
) -> List[str]:
    """Command line a tmux window runs for one role.

    Settings resolved at launch time are passed explicitly: a tmux
    server that was already running does not see the launching
    shell's HANDOFF_* variables, and the window's cwd may hold a
    different handoff.yaml.
    """
    cmd = [
        sys.executable, "-m", "handoff", "worker", role,
        "--workspace", str(workspace_root),
    ]
    if config_path is not None:
        cmd += ["--config", str(config_path)]
    if agent_command:
        cmd += ["--agent-command", shlex.join(agent_command)]
    if timeout is not None:
        cmd += ["--timeout", str(timeout)]
    if poll_interval is not None:
        cmd += ["--poll-interval", str(poll_interval)]
    return cmd


class TmuxEnvironment:
    """One tmux window per task, each running a worker process.

    The window starts with the user's shell and the worker command is
    typed into it, so the window survives the agent exiting.
    """

    def __init__(
        self,
        tmux: TmuxInterface,
        session_name: str,
        workspace_root: Path,
        cwd: Optional[Path] = None,
        config_path: Optional[Path] = None,
        agent_command: Optional[List[str]] = None,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ):
        self.tmux = tmux
        self.session_name = session_name
        self.workspace_root = Path(workspace_root)
        self.cwd = Path(cwd) if cwd else None
        self.config_path = Path(config_path).resolve() if config_path else None
        self.agent_command = agent_command
        self.timeout = timeout
        self.poll_interval = poll_interval

    def command_for(self, task: WorkerTask) -> List[str]:
        return worker_command(
            task.role,
            self.workspace_root,
            config_path=self.config_path,
            agent_command=self.agent_command,
            timeout=self.timeout,
            poll_interval=self.poll_interval,
        )

    def ensure_session(self) -> None:
        if self.tmux.has_session(self.session_name):
            return
        created = self.tmux.new_session(
            self.session_name,
            window_name=TMUX.shell_window_name,
            cwd=str(self.cwd) if self.cwd else None,
        )
        if not created:
            raise HandoffError(f"Failed to create tmux session '{self.session_name}'")
        logger.info("Created tmux session '%s'", self.session_name)

    def deliver(self, task: WorkerTask) -> int:
        """Create the role's window and start its worker; returns the window index."""
        self.ensure_session()
        window = self.tmux.new_window(
            self.session_name,
            task.role,
            cwd=str(self.cwd) if self.cwd else None,
        )
        if window is None:
            raise HandoffError(f"Failed to create tmux window for '{task.role}'")

        cmd_str = shlex.join(self.command_for(task))
        if not self.tmux.send_keys(self.session_name, window, cmd_str, enter=True):
            raise HandoffError(f"Failed to start worker in window {window} ('{task.role}')")

        logger.info("Spawned '%s' in tmux window %d", task.role, window)
        return window
