"""
Shared CLI state: Typer apps, console, options, and utilities.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Iterator, Optional

import typer
from rich import print as rprint
from rich.console import Console

from ..exceptions import HandoffError
from ..logging_config import setup_cli_logging
from ..settings import get_workspace_root

# Main app
app = typer.Typer(
    name="handoff",
    help="Sequence agent workers through filesystem signals",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Config subcommand group
config_app = typer.Typer(
    name="config",
    help="Manage configuration",
    no_args_is_help=False,
    invoke_without_command=True,
)
app.add_typer(config_app, name="config")

# Console for rich output
console = Console()

# Exit code for a wait that timed out (distinct from ordinary failure)
EXIT_TIMEOUT = 2

WorkspaceOption = Annotated[
    Optional[Path],
    typer.Option(
        "--workspace",
        "-w",
        help="Workspace root (default: ./.handoff or $HANDOFF_WORKSPACE)",
    ),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Config file (default: ./handoff.yaml)"),
]


def resolve_workspace(workspace: Optional[Path]) -> Path:
    return Path(workspace) if workspace else get_workspace_root()


def fail(message: str, code: int = 1) -> None:
    rprint(f"[red]Error: {message}[/red]")
    raise typer.Exit(code=code)


@contextmanager
def handle_errors(code: int = 1) -> Iterator[None]:
    """Turn HandoffError into a red message and a non-zero exit."""
    try:
        yield
    except HandoffError as e:
        fail(str(e), code=code)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug logging")
    ] = False,
):
    """Sequence agent workers through filesystem signals."""
    setup_cli_logging(verbose=verbose)
