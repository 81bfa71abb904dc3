"""
Task graph: WorkerTask definitions, the default pipeline, and validation.

A graph is a list of WorkerTasks. Each task produces exactly one output
marker and may depend on markers produced by other tasks in the same
graph, or on the implicit "start" phase the coordinator signals once
every worker has been spawned.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from .exceptions import (
    CyclicDependencyError,
    DuplicateOutputMarkerError,
    GraphError,
    UnknownPhaseError,
)
from .settings import START_PHASE
from .signal_store import validate_phase_name


class Role(str, Enum):
    """Roles of the default four-window pipeline."""

    PLAN = "plan"
    BACKEND = "backend"
    FRONTEND = "frontend"
    TESTS = "tests"


@dataclass(frozen=True)
class WorkerTask:
    """A unit of work assigned to one worker. Immutable once created."""

    role: str
    depends_on: FrozenSet[str] = field(default_factory=frozenset)
    instructions: str = ""
    output_marker: Optional[str] = None

    def __post_init__(self):
        role = self.role.value if isinstance(self.role, Role) else self.role
        object.__setattr__(self, "role", validate_phase_name(role))
        deps = frozenset(
            d.value if isinstance(d, Role) else d for d in self.depends_on
        )
        for dep in deps:
            validate_phase_name(dep)
        object.__setattr__(self, "depends_on", deps)
        marker = self.output_marker or self.role
        if isinstance(marker, Role):
            marker = marker.value
        object.__setattr__(self, "output_marker", validate_phase_name(marker))

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "depends_on": sorted(self.depends_on),
            "output_marker": self.output_marker,
            "instructions": self.instructions,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorkerTask":
        if "role" not in data:
            raise GraphError("Task definition is missing 'role'")
        depends_on = data.get("depends_on") or []
        if not isinstance(depends_on, list):
            raise GraphError(
                f"Task '{data['role']}': depends_on must be a list of phases"
            )
        marker = data.get("output_marker")
        return cls(
            role=str(data["role"]),
            depends_on=frozenset(str(d) for d in depends_on),
            instructions=str(data.get("instructions") or ""),
            output_marker=str(marker) if marker is not None else None,
        )


def validate_graph(tasks: Sequence[WorkerTask]) -> List[WorkerTask]:
    """Validate a task graph and return its tasks in dependency order.

    Checks run in this order: duplicate roles/output markers, dangling
    references, cycles.

    Raises:
        DuplicateOutputMarkerError: two tasks produce the same marker
        UnknownPhaseError: a task depends on a phase nothing produces
        CyclicDependencyError: the dependency relation is not a DAG
        GraphError: duplicate roles, or a task claiming the start phase
    """
    by_marker: Dict[str, WorkerTask] = {}
    producers: Dict[str, List[str]] = {}
    roles = set()

    for task in tasks:
        if task.role in roles:
            raise GraphError(f"Role '{task.role}' is defined more than once")
        roles.add(task.role)
        if task.output_marker == START_PHASE:
            raise GraphError(
                f"Task '{task.role}' cannot produce the reserved '{START_PHASE}' phase"
            )
        producers.setdefault(task.output_marker, []).append(task.role)
        by_marker[task.output_marker] = task

    for marker, owners in producers.items():
        if len(owners) > 1:
            raise DuplicateOutputMarkerError(marker, owners)

    for task in tasks:
        for dep in sorted(task.depends_on):
            if dep != START_PHASE and dep not in by_marker:
                raise UnknownPhaseError(task.role, dep)

    return _topological_order(tasks, by_marker)


def _topological_order(
    tasks: Sequence[WorkerTask],
    by_marker: Dict[str, WorkerTask],
) -> List[WorkerTask]:
    """Depth-first topological sort over output markers.

    Keeps the caller's ordering among independent tasks.
    """
    white, grey, black = 0, 1, 2
    colour = {task.output_marker: white for task in tasks}
    order: List[WorkerTask] = []

    def visit(marker: str, path: List[str]) -> None:
        colour[marker] = grey
        path.append(marker)
        for dep in sorted(by_marker[marker].depends_on):
            if dep == START_PHASE:
                continue
            if colour[dep] == grey:
                start = path.index(dep)
                raise CyclicDependencyError(path[start:] + [dep])
            if colour[dep] == white:
                visit(dep, path)
        path.pop()
        colour[marker] = black
        order.append(by_marker[marker])

    for task in tasks:
        if colour[task.output_marker] == white:
            visit(task.output_marker, [])

    return order


def phases_of(tasks: Iterable[WorkerTask]) -> List[str]:
    """All phases a graph can signal: start plus every output marker."""
    return [START_PHASE] + [t.output_marker for t in tasks]


PLAN_INSTRUCTIONS = """\
You are the planning agent. Read the project and write an implementation
plan to PLAN.md in the project root, with separate sections for the
backend, the frontend and the tests. Keep each section self-contained:
three other agents will each work from one section in parallel.
When PLAN.md is complete, exit this session."""

BACKEND_INSTRUCTIONS = """\
You are the backend agent. Read the Backend section of PLAN.md and
implement it. Do not edit frontend code or test files owned by the other
agents. When the backend work is complete, exit this session."""

FRONTEND_INSTRUCTIONS = """\
You are the frontend agent. Read the Frontend section of PLAN.md and
implement it. Do not edit backend code or test files owned by the other
agents. When the frontend work is complete, exit this session."""

TESTS_INSTRUCTIONS = """\
You are the test agent. Read the Tests section of PLAN.md and write the
tests it describes against the planned interfaces. When the tests are
written, exit this session."""


def default_pipeline() -> List[WorkerTask]:
    """plan first; backend, frontend and tests fan out from it."""
    after_plan = frozenset({Role.PLAN.value})
    return [
        WorkerTask(Role.PLAN, frozenset({START_PHASE}), PLAN_INSTRUCTIONS),
        WorkerTask(Role.BACKEND, after_plan, BACKEND_INSTRUCTIONS),
        WorkerTask(Role.FRONTEND, after_plan, FRONTEND_INSTRUCTIONS),
        WorkerTask(Role.TESTS, after_plan, TESTS_INSTRUCTIONS),
    ]
