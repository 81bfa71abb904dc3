"""
Workspace layout and session state.

A workspace root holds:

    session.json      live-session marker (WorkspaceState)
    signals/<phase>   zero-byte markers, owned by FileSignalStore
    tasks/<role>.md   plain-text instructions, one per role
    .reset.lock       present only while a reset is underway

Only the coordinator writes the top level of the workspace.
"""

import json
import os
import shutil
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from .exceptions import HandoffError, ResetInProgressError
from .logging_config import get_logger
from .settings import (
    RESET_LOCK_FILENAME,
    SESSION_FILENAME,
    SIGNALS_DIRNAME,
    TASKS_DIRNAME,
)
from .signal_store import validate_phase_name
from .task_graph import WorkerTask


logger = get_logger(__name__)


@dataclass
class WorkspaceState:
    """Root of a coordination session, persisted as session.json."""

    root_path: str
    created_at: datetime = field(default_factory=datetime.now)
    session_name: Optional[str] = None
    phases: List[str] = field(default_factory=list)
    # role -> {"depends_on": [...], "output_marker": ...}; instructions live in tasks/
    graph: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "root_path": self.root_path,
            "created_at": self.created_at.isoformat(),
            "session_name": self.session_name,
            "phases": list(self.phases),
            "graph": self.graph,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorkspaceState":
        state = cls(root_path=data["root_path"])
        if data.get("created_at"):
            state.created_at = datetime.fromisoformat(data["created_at"])
        state.session_name = data.get("session_name")
        state.phases = list(data.get("phases") or [])
        state.graph = dict(data.get("graph") or {})
        return state

    def save(self, path: Path) -> None:
        """Write atomically via a temp file so readers never see half a file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(".tmp")
        with open(temp_path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        temp_path.replace(path)

    @classmethod
    def load(cls, path: Path) -> Optional["WorkspaceState"]:
        """Load state, or None if the file is missing or unreadable."""
        if not path.exists():
            return None
        try:
            with open(path) as f:
                return cls.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, ValueError, OSError):
            return None


def is_process_running(pid: int) -> bool:
    """Check whether a process with this pid is alive."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by someone else
        return True
    return True


class Workspace:
    """Paths and filesystem operations for one workspace root."""

    def __init__(self, root: Path):
        self.root = Path(root)

    @property
    def signals_dir(self) -> Path:
        return self.root / SIGNALS_DIRNAME

    @property
    def tasks_dir(self) -> Path:
        return self.root / TASKS_DIRNAME

    @property
    def session_file(self) -> Path:
        return self.root / SESSION_FILENAME

    @property
    def reset_lock(self) -> Path:
        return self.root / RESET_LOCK_FILENAME

    # ------------------------------------------------------------------
    # Session marker
    # ------------------------------------------------------------------

    def has_live_session(self) -> bool:
        return self.session_file.exists()

    def load_state(self) -> Optional[WorkspaceState]:
        return WorkspaceState.load(self.session_file)

    def create_layout(self) -> None:
        self.signals_dir.mkdir(parents=True, exist_ok=True)
        self.tasks_dir.mkdir(parents=True, exist_ok=True)

    def write_state(self, state: WorkspaceState) -> None:
        state.save(self.session_file)

    def clear_session_artifacts(self) -> None:
        """Remove task files and the session marker (signals are the store's job)."""
        if self.tasks_dir.exists():
            shutil.rmtree(self.tasks_dir)
        self.tasks_dir.mkdir(parents=True, exist_ok=True)
        try:
            self.session_file.unlink()
        except FileNotFoundError:
            pass

    # ------------------------------------------------------------------
    # Task files
    # ------------------------------------------------------------------

    def task_path(self, role: str) -> Path:
        return self.tasks_dir / f"{validate_phase_name(role)}.md"

    def write_task(self, role: str, instructions: str) -> Path:
        path = self.task_path(role)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(instructions.rstrip("\n") + "\n", encoding="utf-8")
        return path

    def read_task(self, role: str) -> Optional[str]:
        path = self.task_path(role)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def load_task(self, role: str) -> WorkerTask:
        """Rebuild a role's WorkerTask from session.json and its task file.

        This is how a worker in its own process learns what it waits on.

        Raises:
            HandoffError: no live session, or the role is not in its graph
        """
        state = self.load_state()
        if state is None:
            raise HandoffError(f"No live session in {self.root} (run 'handoff init' first)")
        entry = state.graph.get(role)
        if entry is None:
            raise HandoffError(
                f"Role '{role}' is not part of the session graph "
                f"({', '.join(sorted(state.graph)) or 'empty'})"
            )
        return WorkerTask(
            role=role,
            depends_on=frozenset(entry.get("depends_on") or []),
            instructions=self.read_task(role) or "",
            output_marker=entry.get("output_marker"),
        )

    # ------------------------------------------------------------------
    # Reset lock
    # ------------------------------------------------------------------

    def _read_lock_pid(self) -> Optional[int]:
        try:
            return int(self.reset_lock.read_text().strip())
        except (OSError, ValueError):
            return None

    def _try_create_lock(self) -> bool:
        try:
            fd = os.open(self.reset_lock, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        return True

    @contextmanager
    def reset_guard(self) -> Iterator[None]:
        """Hold the reset lock for the duration of the block.

        The lock is created with O_EXCL so only one process can hold
        it. A lock whose recorded pid is dead is removed and
        acquisition retried once.

        Raises:
            ResetInProgressError: if a live process holds the lock
        """
        self.root.mkdir(parents=True, exist_ok=True)
        if not self._try_create_lock():
            holder = self._read_lock_pid()
            # No pid yet means the holder is between create and write
            if holder is None or is_process_running(holder):
                raise ResetInProgressError(str(self.root), holder)
            logger.warning("Removing stale reset lock (pid %s)", holder)
            try:
                self.reset_lock.unlink()
            except FileNotFoundError:
                pass
            if not self._try_create_lock():
                raise ResetInProgressError(str(self.root), self._read_lock_pid())
        try:
            yield
        finally:
            try:
                self.reset_lock.unlink()
            except FileNotFoundError:
                pass
