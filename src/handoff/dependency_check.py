"""
Checks for the external tools a tmux launch needs (tmux, the agent CLI).
"""

import shutil
import subprocess
from typing import List, Optional, Tuple

from .exceptions import AgentCLINotFoundError, TmuxNotFoundError


def find_executable(name: str) -> Optional[str]:
    """Full path to an executable, or None if it is not on PATH."""
    return shutil.which(name)


def check_tmux() -> Tuple[bool, Optional[str], Optional[str]]:
    """Check if tmux is available and get its version.

    Returns:
        Tuple of (is_available, path, version)
    """
    path = find_executable("tmux")
    if not path:
        return False, None, None

    try:
        result = subprocess.run(
            ["tmux", "-V"],
            capture_output=True,
            text=True,
            timeout=5
        )
        version = result.stdout.strip() if result.returncode == 0 else None
        return True, path, version
    except (subprocess.SubprocessError, OSError):
        return True, path, None


def check_agent_cli(command: List[str]) -> Tuple[bool, Optional[str]]:
    """Check that the agent command's executable is on PATH.

    Returns:
        Tuple of (is_available, path)
    """
    if not command:
        return False, None
    path = find_executable(command[0])
    return path is not None, path


def require_tmux() -> str:
    """Ensure tmux is available, raise if not.

    Raises:
        TmuxNotFoundError: If tmux is not found
    """
    available, path, _ = check_tmux()
    if not available:
        raise TmuxNotFoundError(
            "tmux is required but not found. "
            "Install it with: brew install tmux (macOS) or apt install tmux (Linux)"
        )
    return path


def require_agent_cli(command: List[str]) -> str:
    """Ensure the agent CLI is available, raise if not.

    Raises:
        AgentCLINotFoundError: If the executable is not found
    """
    available, path = check_agent_cli(command)
    if not available:
        name = command[0] if command else "<empty>"
        raise AgentCLINotFoundError(
            f"Agent CLI '{name}' is required but not found on PATH. "
            "Set agent_command in handoff.yaml or HANDOFF_AGENT_COMMAND."
        )
    return path
