"""
Git helpers for giving a pipeline run its own branch.
"""

import subprocess
from pathlib import Path
from typing import List, Optional

from .exceptions import GitError
from .logging_config import get_logger


logger = get_logger(__name__)


def _git(repo_dir: Path, args: List[str]) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            ["git", *args],
            cwd=str(repo_dir),
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (subprocess.SubprocessError, OSError) as e:
        raise GitError(f"git {' '.join(args)} failed: {e}") from e


def is_git_repo(repo_dir: Path) -> bool:
    result = _git(repo_dir, ["rev-parse", "--is-inside-work-tree"])
    return result.returncode == 0 and result.stdout.strip() == "true"


def current_branch(repo_dir: Path) -> Optional[str]:
    result = _git(repo_dir, ["rev-parse", "--abbrev-ref", "HEAD"])
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def checkout_branch(repo_dir: Path, branch: str) -> bool:
    """Switch to branch, creating it from HEAD if needed.

    Returns:
        True if the branch was created, False if it already existed

    Raises:
        GitError: not a repository, or git refused the checkout
    """
    if not is_git_repo(repo_dir):
        raise GitError(f"{repo_dir} is not a git repository")

    exists = _git(repo_dir, ["rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"])
    created = exists.returncode != 0
    args = ["checkout", "-b", branch] if created else ["checkout", branch]
    result = _git(repo_dir, args)
    if result.returncode != 0:
        raise GitError(f"Could not check out '{branch}': {result.stderr.strip()}")

    logger.info("%s branch '%s'", "Created" if created else "Switched to", branch)
    return created
