"""
Exception hierarchy for handoff.

Every error raised by the library derives from HandoffError so the CLI
can report it uniformly.
"""

from typing import Iterable, Optional, Sequence


class HandoffError(Exception):
    """Base class for all handoff errors."""


# -- Workspace ---------------------------------------------------------------


class AlreadyInitializedError(HandoffError):
    """A live session exists and the caller did not ask for a reset."""

    def __init__(self, root: str):
        self.root = root
        super().__init__(
            f"Workspace at {root} already has a live session "
            "(use reset to start over)"
        )


class ResetInProgressError(HandoffError):
    """Another reset holds the reset lock."""

    def __init__(self, root: str, holder_pid: Optional[int] = None):
        self.root = root
        self.holder_pid = holder_pid
        holder = f" (pid {holder_pid})" if holder_pid else ""
        super().__init__(f"Reset already in progress for {root}{holder}")


class InvalidPhaseNameError(HandoffError, ValueError):
    """Phase or role name does not match the allowed pattern."""

    def __init__(self, name: str, reason: str = "must match [a-zA-Z0-9_-]{1,64}"):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid phase name '{name}': {reason}")


# -- Task graph --------------------------------------------------------------


class GraphError(HandoffError):
    """The task graph is malformed. Raised before any worker is spawned."""


class CyclicDependencyError(GraphError):
    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(f"Cyclic dependency: {' -> '.join(self.cycle)}")


class UnknownPhaseError(GraphError):
    def __init__(self, role: str, phase: str):
        self.role = role
        self.phase = phase
        super().__init__(
            f"Task '{role}' depends on unknown phase '{phase}'"
        )


class DuplicateOutputMarkerError(GraphError):
    def __init__(self, marker: str, roles: Iterable[str]):
        self.marker = marker
        self.roles = sorted(roles)
        super().__init__(
            f"Output marker '{marker}' is produced by more than one task: "
            f"{', '.join(self.roles)}"
        )


# -- Coordinator -------------------------------------------------------------


class CoordinatorError(HandoffError):
    """The coordinator was used out of order (no graph, no environment)."""


# -- Workers -----------------------------------------------------------------


class DependencyTimeoutError(HandoffError):
    """wait_for gave up before every dependency was signaled."""

    def __init__(self, missing: Iterable[str], timeout: float):
        self.missing = frozenset(missing)
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout:g}s waiting for: "
            f"{', '.join(sorted(self.missing))}"
        )


class AgentRunError(HandoffError):
    """The external agent process exited unsuccessfully."""

    def __init__(self, role: str, returncode: Optional[int], detail: str = ""):
        self.role = role
        self.returncode = returncode
        self.detail = detail
        msg = f"Agent for '{role}' failed"
        if returncode is not None:
            msg += f" (exit code {returncode})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class WorkerFailedError(HandoffError):
    """A worker's task body raised. No output marker was written."""

    def __init__(self, role: str, cause: BaseException):
        self.role = role
        self.cause = cause
        super().__init__(f"Worker '{role}' failed: {cause}")


# -- External tools ----------------------------------------------------------


class TmuxNotFoundError(HandoffError):
    pass


class AgentCLINotFoundError(HandoffError):
    pass


class GitError(HandoffError):
    pass


class ConfigError(HandoffError):
    pass
