"""
Config commands: init, show, path.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich import print as rprint

from ._shared import config_app, handle_errors


@config_app.callback(invoke_without_command=True)
def config_default(ctx: typer.Context):
    """Show current configuration (default when no subcommand given)."""
    if ctx.invoked_subcommand is None:
        _config_show()


@config_app.command("init")
def config_init(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite existing config file")
    ] = False,
    user: Annotated[
        bool, typer.Option("--user", help="Write ~/.handoff/config.yaml instead of ./handoff.yaml")
    ] = False,
):
    """Create a config file with documented defaults.

    All options are commented out. Use --force to overwrite an
    existing file.
    """
    from ..config import CONFIG_TEMPLATE, get_user_config_path
    from ..settings import PROJECT_CONFIG_FILENAME

    path = get_user_config_path() if user else Path.cwd() / PROJECT_CONFIG_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.exists() and not force:
        rprint(f"[yellow]Config file already exists:[/yellow] {path}")
        rprint("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    path.write_text(CONFIG_TEMPLATE)
    rprint(f"[green]✓[/green] Created config file: [bold]{path}[/bold]")
    rprint("[dim]Edit to customize your settings[/dim]")


@config_app.command("show")
def config_show():
    """Show the effective configuration."""
    _config_show()


def _config_show():
    """Internal function to display the effective config."""
    from ..config import load_handoff_config

    with handle_errors():
        config = load_handoff_config()

    if config.source:
        rprint(f"[bold]Configuration[/bold] ({config.source}):\n")
    else:
        rprint("[dim]No config file found; showing defaults[/dim]\n")

    rprint(f"  poll_interval: {config.poll_interval:g}s")
    rprint(f"  timeout: {f'{config.timeout:g}s' if config.timeout is not None else 'none'}")
    rprint(f"  agent_command: {' '.join(config.agent_command)}")
    rprint(f"  tmux_session: {config.tmux_session}")
    rprint(f"  tasks: {len(config.tasks)}")
    for task in config.tasks:
        deps = ", ".join(sorted(task.depends_on)) or "-"
        rprint(f"    - {task.role} (after: {deps})")


@config_app.command("path")
def config_path():
    """Show the config file in use."""
    from ..config import find_config_path, get_user_config_path

    path = find_config_path()
    print(path if path else get_user_config_path())
