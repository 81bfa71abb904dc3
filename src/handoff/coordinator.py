"""
Coordinator: owns the workspace, the task graph and worker spawning.

Typical session:

    coordinator = Coordinator(root, store, environment)
    coordinator.define_graph(default_pipeline())
    coordinator.start_session(reset=True)

start_session() initialises (or resets) the workspace, writes one task
file per role, spawns every worker without waiting on any of them, and
finally signals the implicit "start" phase.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .exceptions import AlreadyInitializedError, CoordinatorError
from .logging_config import get_logger
from .protocols import ExecutionEnvironment, SignalStoreInterface
from .settings import START_PHASE
from .task_graph import WorkerTask, phases_of, validate_graph
from .workspace import Workspace, WorkspaceState


logger = get_logger(__name__)


class Coordinator:
    """Sets up the shared workspace and launches workers."""

    def __init__(
        self,
        root: Path,
        store: SignalStoreInterface,
        environment: Optional[ExecutionEnvironment] = None,
        session_name: Optional[str] = None,
    ):
        """
        Args:
            root: workspace root directory
            store: signal store shared with the workers
            environment: where spawn_worker() starts workers; only
                needed for spawning
            session_name: recorded in session.json for status output
        """
        self.workspace = Workspace(root)
        self.store = store
        self.environment = environment
        self.session_name = session_name
        self.tasks: List[WorkerTask] = []
        self.handles: Dict[str, Any] = {}

    @property
    def root(self) -> Path:
        return self.workspace.root

    # ------------------------------------------------------------------
    # Workspace lifecycle
    # ------------------------------------------------------------------

    def init_workspace(self, reset: bool = False) -> WorkspaceState:
        """Create the workspace layout and the live-session marker.

        Raises:
            AlreadyInitializedError: a live session exists and reset is False
            ResetInProgressError: reset=True while another reset runs
        """
        if self.workspace.has_live_session() and not reset:
            raise AlreadyInitializedError(str(self.root))
        if reset:
            self.reset_session()
        elif self.store.signaled():
            # Markers without a session.json: left over from a crashed session
            logger.warning("Clearing stale signals in %s", self.root)
            self.reset_session()

        self.workspace.create_layout()
        state = WorkspaceState(
            root_path=str(self.root.resolve()),
            created_at=datetime.now(),
            session_name=self.session_name,
            phases=phases_of(self.tasks) if self.tasks else [],
            graph={
                t.role: {
                    "depends_on": sorted(t.depends_on),
                    "output_marker": t.output_marker,
                }
                for t in self.tasks
            },
        )
        self.workspace.write_state(state)
        logger.info("Initialised workspace at %s", self.root)
        return state

    def reset_session(self) -> None:
        """Clear every marker and per-session artifact.

        Callers must make sure no worker is still polling; the store's
        reset is atomic for readers but a live worker could re-signal
        straight afterwards.

        Raises:
            ResetInProgressError: another reset holds the lock
        """
        with self.workspace.reset_guard():
            self.store.reset()
            self.workspace.clear_session_artifacts()
            self.handles.clear()
        logger.info("Reset session at %s", self.root)

    # ------------------------------------------------------------------
    # Graph and workers
    # ------------------------------------------------------------------

    def define_graph(self, tasks: Sequence[WorkerTask]) -> List[WorkerTask]:
        """Validate and store the task graph, in dependency order.

        On failure the previous graph (if any) is left untouched.

        Raises:
            CyclicDependencyError, UnknownPhaseError,
            DuplicateOutputMarkerError, GraphError
        """
        ordered = validate_graph(tasks)
        self.tasks = ordered
        logger.debug("Graph defined: %s", " -> ".join(t.role for t in ordered))
        return ordered

    def write_tasks(self) -> List[Path]:
        """Write tasks/<role>.md for every task in the graph."""
        return [self.workspace.write_task(t.role, t.instructions) for t in self.tasks]

    def spawn_worker(self, task: WorkerTask) -> Any:
        """Start an execution context for task. Does not wait for it."""
        if self.environment is None:
            raise CoordinatorError("Coordinator has no execution environment to spawn into")
        handle = self.environment.deliver(task)
        self.handles[task.role] = handle
        return handle

    def start_session(self, reset: bool = False) -> Dict[str, Any]:
        """Initialise the workspace and spawn the whole graph.

        If spawning fails partway the session marker and task files are
        removed again, so a retry does not need reset. Workers already
        spawned are left waiting on "start", which is never signaled;
        stopping them is the environment owner's job.

        Returns:
            Mapping of role -> environment handle

        Raises:
            CoordinatorError: no graph defined or no environment
        """
        if not self.tasks:
            raise CoordinatorError("define_graph() must be called before start_session()")

        self.init_workspace(reset=reset)
        self.write_tasks()
        try:
            for task in self.tasks:
                self.spawn_worker(task)
        except Exception:
            logger.error("Spawning failed; rolling back session at %s", self.root)
            self.workspace.clear_session_artifacts()
            self.handles.clear()
            raise
        self.store.signal(START_PHASE)
        logger.info("Session started with %d worker(s)", len(self.tasks))
        return dict(self.handles)

    # ------------------------------------------------------------------
    # Read-only summary
    # ------------------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        """Summarise the session without modifying anything.

        Phases come from the defined graph; without one, from the phases
        recorded in session.json, plus any marker present on disk.
        """
        state = self.workspace.load_state()
        signaled = self.store.signaled()

        if self.tasks:
            phases = phases_of(self.tasks)
        elif state and state.phases:
            phases = list(state.phases)
        else:
            phases = [START_PHASE]
        for extra in sorted(signaled - set(phases)):
            phases.append(extra)

        return {
            "root": str(self.root),
            "initialized": state is not None,
            "session_name": state.session_name if state else None,
            "created_at": state.created_at.isoformat() if state else None,
            "phases": {phase: phase in signaled for phase in phases},
        }
