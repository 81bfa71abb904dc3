"""
Signal commands: signal, wait, worker.

These are the commands that run inside the worker windows; agents call
`handoff signal` themselves when they want to publish early.
"""

import os
import shlex
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich import print as rprint

from ..agent_runner import SubprocessAgentRunner
from ..config import load_handoff_config
from ..exceptions import DependencyTimeoutError, WorkerFailedError
from ..logging_config import setup_worker_logging
from ..settings import get_poll_interval
from ..signal_store import FileSignalStore
from ..worker import Worker
from ..workspace import Workspace
from ._shared import (
    app,
    ConfigOption,
    EXIT_TIMEOUT,
    WorkspaceOption,
    fail,
    handle_errors,
    resolve_workspace,
)


TimeoutOption = Annotated[
    Optional[float],
    typer.Option("--timeout", "-t", min=0.0, help="Give up after this many seconds (default: wait forever)"),
]

PollIntervalOption = Annotated[
    Optional[float],
    typer.Option("--poll-interval", min=0.01, help="Seconds between marker checks"),
]


@app.command()
def signal(
    phase: Annotated[
        Optional[str],
        typer.Argument(help="Phase to mark complete (default: $HANDOFF_OUTPUT_MARKER)"),
    ] = None,
    workspace: WorkspaceOption = None,
):
    """Mark a phase complete. Safe to repeat."""
    phase = phase or os.environ.get("HANDOFF_OUTPUT_MARKER")
    if not phase:
        fail("No phase given and HANDOFF_OUTPUT_MARKER is not set")

    root = resolve_workspace(workspace)
    with handle_errors():
        FileSignalStore(Workspace(root).signals_dir).signal(phase)
    rprint(f"[green]✓[/green] Signaled [bold]{phase}[/bold]")


@app.command()
def wait(
    phases: Annotated[List[str], typer.Argument(help="Phases to wait for")],
    timeout: TimeoutOption = None,
    poll_interval: PollIntervalOption = None,
    workspace: WorkspaceOption = None,
):
    """Block until every phase is signaled.

    Exits with code 2 if the timeout elapses first.
    """
    root = resolve_workspace(workspace)
    store = FileSignalStore(Workspace(root).signals_dir)
    with handle_errors():
        try:
            store.wait_for(
                phases,
                poll_interval=poll_interval or get_poll_interval(),
                timeout=timeout,
            )
        except DependencyTimeoutError as e:
            fail(str(e), code=EXIT_TIMEOUT)
    rprint(f"[green]✓[/green] Ready: {', '.join(phases)}")


@app.command()
def worker(
    role: Annotated[str, typer.Argument(help="Role to run (must be in the session graph)")],
    timeout: TimeoutOption = None,
    poll_interval: PollIntervalOption = None,
    workspace: WorkspaceOption = None,
    config_file: ConfigOption = None,
    agent_command: Annotated[
        Optional[str],
        typer.Option("--agent-command", help="Agent CLI to run (overrides config)"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """Run one worker in this terminal: wait, run the agent, signal.

    This is what each tmux window of a launched pipeline executes.
    """
    root = resolve_workspace(workspace)
    ws = Workspace(root)

    with handle_errors():
        cfg = load_handoff_config(path=config_file)
        task = ws.load_task(role)

    setup_worker_logging(root, verbose=verbose)
    command = shlex.split(agent_command) if agent_command else cfg.agent_command
    runner = SubprocessAgentRunner(command, cwd=Path.cwd(), workspace_root=root)
    w = Worker(
        task,
        FileSignalStore(ws.signals_dir),
        runner,
        poll_interval=poll_interval or cfg.poll_interval,
        timeout=timeout if timeout is not None else cfg.timeout,
    )

    if task.depends_on:
        rprint(f"[dim]{role}: waiting for {', '.join(sorted(task.depends_on))}...[/dim]")
    try:
        w.run()
    except DependencyTimeoutError as e:
        fail(f"{role}: {e}", code=EXIT_TIMEOUT)
    except WorkerFailedError as e:
        fail(str(e))
    rprint(f"[green]✓[/green] {role} done, signaled [bold]{task.output_marker}[/bold]")
