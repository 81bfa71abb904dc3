"""
Protocol definitions for the coordination seams.

These interfaces let the coordinator and workers run against either the
real backends (filesystem markers, tmux) or in-memory/mock versions in
tests.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, runtime_checkable, TYPE_CHECKING

if TYPE_CHECKING:
    from .task_graph import WorkerTask


@runtime_checkable
class SignalStoreInterface(Protocol):
    """Shared, durable set of phase-complete flags."""

    def signal(self, phase: str) -> None:
        """Create the marker for phase. Idempotent."""
        ...

    def is_signaled(self, phase: str) -> bool:
        """Non-blocking presence check."""
        ...

    def wait_for(
        self,
        phases: Iterable[str],
        poll_interval: float = 2.0,
        timeout: Optional[float] = None,
    ) -> None:
        """Block (by polling) until every phase is signaled.

        Raises:
            DependencyTimeoutError: if timeout elapses first
        """
        ...

    def reset(self) -> None:
        """Remove every marker."""
        ...

    def signaled(self) -> Set[str]:
        """Snapshot of the phases currently signaled."""
        ...


@runtime_checkable
class ExecutionEnvironment(Protocol):
    """Creates an independent execution context for one task.

    deliver() must not block on the task's completion.
    """

    def deliver(self, task: "WorkerTask") -> Any:
        """Start a context running task; return an opaque handle."""
        ...


@runtime_checkable
class AgentRunner(Protocol):
    """What a worker does once its dependencies are satisfied."""

    def run(self, task: "WorkerTask") -> None:
        """Execute the task body. Raise on unrecoverable failure."""
        ...


@runtime_checkable
class TmuxInterface(Protocol):
    """Interface for the tmux operations handoff needs"""

    def has_session(self, session: str) -> bool:
        """Check if a tmux session exists."""
        ...

    def new_session(self, session: str, window_name: Optional[str] = None,
                    cwd: Optional[str] = None) -> bool:
        """Create a new detached tmux session."""
        ...

    def new_window(self, session: str, name: str, command: Optional[List[str]] = None,
                   cwd: Optional[str] = None) -> Optional[int]:
        """Create a new window in a session.

        Returns:
            Window number if successful, None otherwise
        """
        ...

    def send_keys(self, session: str, window: int, keys: str, enter: bool = True) -> bool:
        """Type keys into a window's first pane, optionally pressing Enter."""
        ...

    def kill_session(self, session: str) -> bool:
        """Kill an entire tmux session."""
        ...

    def list_windows(self, session: str) -> List[Dict[str, Any]]:
        """List windows in a session.

        Returns:
            List of window info dicts with 'index', 'name', 'active'
        """
        ...

    def attach(self, session: str, window: Optional[int] = None) -> None:
        """Attach to a tmux session (replaces current process)."""
        ...
