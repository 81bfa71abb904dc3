"""
Launcher for a full pipeline in tmux.

One tmux session per pipeline: window 0 is a plain shell for the user,
and every role gets its own window running a worker process. Workers
sit waiting on their markers, so the whole graph is spawned up front
and ordering is left entirely to the signal store.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Sequence

from .config import HandoffConfig
from .coordinator import Coordinator
from .dependency_check import require_agent_cli, require_tmux
from .environments import TmuxEnvironment
from .exceptions import AlreadyInitializedError, GitError, HandoffError
from .git_utils import checkout_branch, current_branch
from .implementations import RealTmux
from .logging_config import get_logger
from .protocols import TmuxInterface
from .settings import get_workspace_root
from .signal_store import FileSignalStore
from .task_graph import WorkerTask
from .workspace import Workspace


logger = get_logger(__name__)


@dataclass
class LaunchResult:
    session_name: str
    workspace_root: Path
    windows: Dict[str, int] = field(default_factory=dict)
    branch: Optional[str] = None


class PipelineLauncher:
    """Starts a task graph as tmux windows.

    tmux and the dependency checks are injectable so tests can run the
    whole flow against MockTmux.
    """

    def __init__(
        self,
        project_dir: Path,
        config: Optional[HandoffConfig] = None,
        tmux: Optional[TmuxInterface] = None,
        workspace_root: Optional[Path] = None,
        check_dependencies: bool = True,
    ):
        self.project_dir = Path(project_dir).resolve()
        self.config = config if config else HandoffConfig()
        self.tmux = tmux if tmux else RealTmux()
        self.workspace_root = Path(workspace_root) if workspace_root else get_workspace_root(self.project_dir)
        self.check_dependencies = check_dependencies

    @property
    def session_name(self) -> str:
        return self.config.tmux_session

    def build_coordinator(self) -> Coordinator:
        workspace = Workspace(self.workspace_root)
        environment = TmuxEnvironment(
            self.tmux,
            self.session_name,
            self.workspace_root,
            cwd=self.project_dir,
            config_path=self.config.source,
            agent_command=self.config.agent_command,
            timeout=self.config.timeout,
            poll_interval=self.config.poll_interval,
        )
        return Coordinator(
            self.workspace_root,
            FileSignalStore(workspace.signals_dir),
            environment,
            session_name=self.session_name,
        )

    def launch(
        self,
        tasks: Optional[Sequence[WorkerTask]] = None,
        reset: bool = False,
        branch: Optional[str] = None,
    ) -> LaunchResult:
        """Validate the graph, prepare the workspace and spawn every worker.

        The graph is validated before anything touches git, the
        workspace or tmux, so a malformed graph has no side effects.

        Raises:
            GraphError: the graph is malformed (nothing is spawned)
            TmuxNotFoundError, AgentCLINotFoundError: missing tools
            AlreadyInitializedError: live session and reset is False
            GitError: branch checkout failed
            HandoffError: a window could not be created; the tmux session
                is killed and the workspace left without a live session
        """
        coordinator = self.build_coordinator()
        coordinator.define_graph(list(tasks) if tasks is not None else self.config.tasks)

        if self.check_dependencies:
            require_tmux()
            require_agent_cli(self.config.agent_command)

        # Fail before creating a branch for a session we would refuse
        if coordinator.workspace.has_live_session() and not reset:
            raise AlreadyInitializedError(str(self.workspace_root))

        active_branch = None
        if branch:
            checkout_branch(self.project_dir, branch)
            active_branch = branch
        else:
            try:
                active_branch = current_branch(self.project_dir)
            except GitError:
                active_branch = None

        # Workers from the previous run must be gone before signals are cleared
        if reset and self.tmux.has_session(self.session_name):
            logger.info("Stopping previous tmux session '%s'", self.session_name)
            self.tmux.kill_session(self.session_name)

        try:
            handles = coordinator.start_session(reset=reset)
        except HandoffError:
            # Windows spawned before the failure would start on the next "start"
            if self.tmux.has_session(self.session_name):
                self.tmux.kill_session(self.session_name)
            raise
        logger.info(
            "Launched %d worker(s) in tmux session '%s'", len(handles), self.session_name
        )
        return LaunchResult(
            session_name=self.session_name,
            workspace_root=self.workspace_root,
            windows={role: int(window) for role, window in handles.items()},
            branch=active_branch,
        )

    def attach(self, role: Optional[str] = None) -> None:
        """Attach to the pipeline's tmux session, optionally at a role's window."""
        window = None
        if role:
            for info in self.tmux.list_windows(self.session_name):
                if info["name"] == role:
                    window = info["index"]
                    break
        self.tmux.attach(self.session_name, window)

    def stop(self) -> bool:
        """Kill the pipeline's tmux session."""
        return self.tmux.kill_session(self.session_name)
