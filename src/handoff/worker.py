"""
Worker: run one task once its dependencies are signaled.

    WAITING --deps present--> EXECUTING --ok--> DONE
       |                          |
       +--timeout--> FAILED <-----+--error

A failed worker never writes its output marker, so anything depending
on it stays WAITING (or times out if it has a timeout of its own).
"""

from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .exceptions import DependencyTimeoutError, WorkerFailedError
from .logging_config import get_structured_logger
from .protocols import AgentRunner, SignalStoreInterface
from .settings import POLLING
from .task_graph import WorkerTask


class WorkerState(str, Enum):
    WAITING = "waiting"
    EXECUTING = "executing"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({WorkerState.DONE, WorkerState.FAILED})

TransitionCallback = Callable[["Worker", WorkerState, WorkerState], None]


class Worker:
    """Executes one WorkerTask against a signal store and a runner."""

    def __init__(
        self,
        task: WorkerTask,
        store: SignalStoreInterface,
        runner: AgentRunner,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        on_transition: Optional[TransitionCallback] = None,
    ):
        self.task = task
        self.store = store
        self.runner = runner
        self.poll_interval = POLLING.poll_interval if poll_interval is None else poll_interval
        self.timeout = timeout
        self.on_transition = on_transition
        self.state = WorkerState.WAITING
        self.error: Optional[BaseException] = None
        self.history: List[Tuple[WorkerState, datetime]] = [(WorkerState.WAITING, datetime.now())]
        self.log = get_structured_logger("worker", role=task.role)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def _transition(self, new_state: WorkerState) -> None:
        old_state = self.state
        self.state = new_state
        self.history.append((new_state, datetime.now()))
        self.log.info(f"{old_state.value} -> {new_state.value}")
        if self.on_transition is not None:
            self.on_transition(self, old_state, new_state)

    def run(self) -> None:
        """Wait, execute, signal.

        Raises:
            DependencyTimeoutError: dependencies did not arrive in time
            WorkerFailedError: the runner raised; wraps the original error
            RuntimeError: run() called on a worker that already finished
        """
        if self.state is not WorkerState.WAITING:
            raise RuntimeError(f"Worker '{self.task.role}' already ran ({self.state.value})")

        if self.task.depends_on:
            self.log.info(
                "waiting for dependencies",
                deps=",".join(sorted(self.task.depends_on)),
            )
        try:
            self.store.wait_for(
                self.task.depends_on,
                poll_interval=self.poll_interval,
                timeout=self.timeout,
            )
        except DependencyTimeoutError as e:
            self.error = e
            self.log.error("dependency timeout", missing=",".join(sorted(e.missing)))
            self._transition(WorkerState.FAILED)
            raise

        self._transition(WorkerState.EXECUTING)
        try:
            self.runner.run(self.task)
        except Exception as e:
            self.error = e
            self.log.error(f"task failed: {e}")
            self._transition(WorkerState.FAILED)
            raise WorkerFailedError(self.task.role, e) from e

        self.store.signal(self.task.output_marker)
        self._transition(WorkerState.DONE)
