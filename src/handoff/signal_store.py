"""
Signal stores: the shared set of "phase complete" markers.

FileSignalStore is the production store: one zero-byte file per phase
under the workspace's signals/ directory. Workers in separate processes
(tmux windows) see each other's markers through the filesystem; nothing
is cached in memory.

InMemorySignalStore keeps the same semantics in a dict guarded by a
single lock, for tests and in-process pipelines.
"""

import os
import shutil
import threading
import time
import uuid
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Set

from .exceptions import DependencyTimeoutError, InvalidPhaseNameError
from .logging_config import get_logger
from .settings import PHASE_NAME_PATTERN, POLLING


logger = get_logger(__name__)


def validate_phase_name(name: str) -> str:
    """Validate a phase (or role) name and return it.

    Raises:
        InvalidPhaseNameError: if the name is empty or not file-name safe
    """
    if not name:
        raise InvalidPhaseNameError(name or "", "name cannot be empty")
    if not isinstance(name, str) or not PHASE_NAME_PATTERN.fullmatch(name):
        raise InvalidPhaseNameError(name)
    return name


class _PollingSignalStore:
    """wait_for() shared by both stores, written only against is_signaled().

    clock and sleep are injectable so tests can drive time without
    real delays.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._clock = clock
        self._sleep = sleep

    def is_signaled(self, phase: str) -> bool:
        raise NotImplementedError

    def missing(self, phases: Iterable[str]) -> Set[str]:
        """Return the subset of phases not yet signaled."""
        return {p for p in phases if not self.is_signaled(p)}

    def wait_for(
        self,
        phases: Iterable[str],
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Poll until every phase in phases is signaled.

        There is no push notification: a marker written just after a
        check is noticed up to poll_interval seconds later. Shorter
        intervals lower that latency at the cost of more filesystem
        checks per waiting worker.

        Args:
            phases: phase names to wait for (empty returns immediately)
            poll_interval: seconds between checks (default from settings)
            timeout: give up after this many seconds; None waits forever,
                0 checks exactly once

        Raises:
            DependencyTimeoutError: with .missing set to the phases that
                were still unsignaled when the timeout elapsed
        """
        wanted = {validate_phase_name(p) for p in phases}
        interval = POLLING.poll_interval if poll_interval is None else poll_interval
        if interval <= 0:
            raise ValueError("poll_interval must be positive")
        if timeout is not None and timeout < 0:
            raise ValueError("timeout cannot be negative")

        deadline = None if timeout is None else self._clock() + timeout
        announced = False

        while True:
            pending = self.missing(wanted)
            if not pending:
                if announced:
                    logger.debug("Dependencies satisfied: %s", ", ".join(sorted(wanted)))
                return

            if not announced:
                logger.debug("Waiting for: %s", ", ".join(sorted(pending)))
                announced = True

            if deadline is None:
                self._sleep(interval)
                continue

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise DependencyTimeoutError(pending, timeout)
            self._sleep(min(interval, remaining))


class FileSignalStore(_PollingSignalStore):
    """Filesystem-backed signal store.

    Each marker is a zero-length file named exactly after its phase.
    """

    def __init__(
        self,
        signals_dir: Path,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(clock=clock, sleep=sleep)
        self.signals_dir = Path(signals_dir)

    def marker_path(self, phase: str) -> Path:
        return self.signals_dir / validate_phase_name(phase)

    def signal(self, phase: str) -> None:
        path = self.marker_path(phase)
        if path.exists():
            return
        self.signals_dir.mkdir(parents=True, exist_ok=True)
        # O_CREAT without O_TRUNC/O_EXCL: a concurrent creator is harmless
        fd = os.open(path, os.O_CREAT | os.O_WRONLY, 0o644)
        os.close(fd)
        logger.info("Signaled phase '%s'", phase)

    def is_signaled(self, phase: str) -> bool:
        return self.marker_path(phase).is_file()

    def signaled(self) -> Set[str]:
        if not self.signals_dir.is_dir():
            return set()
        return {
            p.name for p in self.signals_dir.iterdir()
            if p.is_file() and PHASE_NAME_PATTERN.fullmatch(p.name)
        }

    def reset(self) -> None:
        """Remove every marker.

        The directory is renamed aside in a single rename() and then
        recreated empty, so a concurrent reader sees either the old
        set or no markers at all, never a partial removal.
        """
        if not self.signals_dir.exists():
            self.signals_dir.mkdir(parents=True, exist_ok=True)
            return

        trash = self.signals_dir.with_name(
            f".{self.signals_dir.name}.reset-{os.getpid()}-{uuid.uuid4().hex[:8]}"
        )
        os.rename(self.signals_dir, trash)
        self.signals_dir.mkdir(parents=True, exist_ok=True)
        shutil.rmtree(trash, ignore_errors=True)
        logger.info("Cleared all signals in %s", self.signals_dir)


class InMemorySignalStore(_PollingSignalStore):
    """In-process signal store: phase -> bool, guarded by one mutex."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(clock=clock, sleep=sleep)
        self._lock = threading.Lock()
        self._markers: Dict[str, bool] = {}

    def signal(self, phase: str) -> None:
        validate_phase_name(phase)
        with self._lock:
            self._markers[phase] = True

    def is_signaled(self, phase: str) -> bool:
        validate_phase_name(phase)
        with self._lock:
            return self._markers.get(phase, False)

    def signaled(self) -> Set[str]:
        with self._lock:
            return {name for name, present in self._markers.items() if present}

    def reset(self) -> None:
        with self._lock:
            self._markers.clear()
