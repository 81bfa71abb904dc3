"""
Session commands: init, reset, status, graph, launch, attach, stop.
"""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich import print as rprint
from rich.table import Table

from ..config import load_handoff_config
from ..coordinator import Coordinator
from ..signal_store import FileSignalStore
from ..task_graph import validate_graph
from ..workspace import Workspace
from ._shared import (
    app,
    console,
    ConfigOption,
    WorkspaceOption,
    handle_errors,
    resolve_workspace,
)


def _coordinator(root: Path, session_name: Optional[str] = None) -> Coordinator:
    return Coordinator(
        root,
        FileSignalStore(Workspace(root).signals_dir),
        session_name=session_name,
    )


@app.command()
def init(
    reset: Annotated[
        bool, typer.Option("--reset", help="Reset an existing live session first")
    ] = False,
    workspace: WorkspaceOption = None,
    config_file: ConfigOption = None,
):
    """Create the workspace and write the task files.

    Fails if a session is already live, unless --reset is given.
    """
    root = resolve_workspace(workspace)
    with handle_errors():
        cfg = load_handoff_config(path=config_file)
        coordinator = _coordinator(root, cfg.tmux_session)
        coordinator.define_graph(cfg.tasks)
        coordinator.init_workspace(reset=reset)
        coordinator.write_tasks()

    rprint(f"[green]✓[/green] Initialised workspace [bold]{root}[/bold]")
    rprint(f"  Roles: {', '.join(t.role for t in coordinator.tasks)}")


@app.command()
def reset(workspace: WorkspaceOption = None):
    """Clear every signal and task file.

    Stop running workers first; a live worker could re-signal its phase.
    """
    root = resolve_workspace(workspace)
    with handle_errors():
        _coordinator(root).reset_session()
    rprint(f"[green]✓[/green] Reset workspace [bold]{root}[/bold]")


@app.command()
def status(
    workspace: WorkspaceOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print JSON")] = False,
):
    """Show which phases have been signaled (read-only)."""
    root = resolve_workspace(workspace)
    summary = _coordinator(root).status()

    if as_json:
        print(json.dumps(summary, indent=2))
        return

    if not summary["initialized"]:
        rprint(f"[dim]No live session in {root}[/dim]")
        rprint("[dim]Run 'handoff init' or 'handoff launch' to start one[/dim]")

    table = Table(title=f"handoff: {root}", title_justify="left")
    table.add_column("Phase", style="bold")
    table.add_column("Status")
    for phase, done in summary["phases"].items():
        table.add_row(phase, "[green]● signaled[/green]" if done else "[dim]○ pending[/dim]")
    console.print(table)

    if summary["initialized"]:
        rprint(f"[dim]Session {summary['session_name'] or '-'} started {summary['created_at']}[/dim]")


@app.command()
def graph(config_file: ConfigOption = None):
    """Validate the configured task graph and print it in run order."""
    with handle_errors():
        cfg = load_handoff_config(path=config_file)
        ordered = validate_graph(cfg.tasks)

    table = Table(title="Task graph", title_justify="left")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Role", style="bold")
    table.add_column("Depends on")
    table.add_column("Signals")
    for index, task in enumerate(ordered, start=1):
        table.add_row(
            str(index),
            task.role,
            ", ".join(sorted(task.depends_on)) or "-",
            task.output_marker,
        )
    console.print(table)
    if cfg.source:
        rprint(f"[dim]From {cfg.source}[/dim]")


@app.command()
def launch(
    directory: Annotated[
        Optional[Path], typer.Option("--directory", "-d", help="Project directory")
    ] = None,
    reset: Annotated[
        bool, typer.Option("--reset", help="Stop the previous run and start fresh")
    ] = False,
    branch: Annotated[
        Optional[str], typer.Option("--branch", "-b", help="Create/checkout this git branch first")
    ] = None,
    attach: Annotated[
        bool, typer.Option("--attach", "-a", help="Attach to the tmux session afterwards")
    ] = False,
    workspace: WorkspaceOption = None,
    config_file: ConfigOption = None,
):
    """Launch the whole pipeline: one tmux window per role."""
    from ..launcher import PipelineLauncher

    project_dir = directory or Path.cwd()
    with handle_errors():
        cfg = load_handoff_config(project_dir=project_dir, path=config_file)
        launcher = PipelineLauncher(project_dir, config=cfg, workspace_root=workspace)
        result = launcher.launch(reset=reset, branch=branch)

    rprint(f"[green]✓[/green] Pipeline launched in tmux session '[bold]{result.session_name}[/bold]'")
    for role, window in result.windows.items():
        rprint(f"  {window}: {role}")
    if result.branch:
        rprint(f"  Branch: {result.branch}")
    rprint(f"[dim]Watch progress with: handoff status -w {result.workspace_root}[/dim]")

    if attach:
        launcher.attach()


@app.command("attach")
def attach_cmd(
    role: Annotated[Optional[str], typer.Argument(help="Role window to focus")] = None,
    config_file: ConfigOption = None,
):
    """Attach to the pipeline's tmux session."""
    from ..launcher import PipelineLauncher

    with handle_errors():
        cfg = load_handoff_config(path=config_file)
    launcher = PipelineLauncher(Path.cwd(), config=cfg)
    if not launcher.tmux.has_session(launcher.session_name):
        rprint(f"[red]Error: tmux session '{launcher.session_name}' does not exist[/red]")
        rprint("Launch a pipeline first with 'handoff launch'")
        raise typer.Exit(code=1)
    launcher.attach(role)


@app.command()
def stop(config_file: ConfigOption = None):
    """Kill the pipeline's tmux session (signals are left in place)."""
    from ..launcher import PipelineLauncher

    with handle_errors():
        cfg = load_handoff_config(path=config_file)
    launcher = PipelineLauncher(Path.cwd(), config=cfg)
    if launcher.stop():
        rprint(f"[green]✓[/green] Stopped tmux session '{launcher.session_name}'")
    else:
        rprint(f"[dim]No tmux session '{launcher.session_name}' to stop[/dim]")
