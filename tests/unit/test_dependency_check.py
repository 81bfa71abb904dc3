"""
Tests for external tool checks.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from handoff.dependency_check import (
    check_agent_cli,
    check_tmux,
    find_executable,
    require_agent_cli,
    require_tmux,
)
from handoff.exceptions import AgentCLINotFoundError, TmuxNotFoundError


class TestFindExecutable:

    def test_found(self):
        with patch("handoff.dependency_check.shutil.which", return_value="/usr/bin/tmux"):
            assert find_executable("tmux") == "/usr/bin/tmux"

    def test_not_found(self):
        with patch("handoff.dependency_check.shutil.which", return_value=None):
            assert find_executable("tmux") is None


class TestCheckTmux:

    def test_available_with_version(self):
        with patch("handoff.dependency_check.find_executable", return_value="/usr/bin/tmux"), \
             patch("handoff.dependency_check.subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="tmux 3.4\n")
            assert check_tmux() == (True, "/usr/bin/tmux", "tmux 3.4")

    def test_not_installed(self):
        with patch("handoff.dependency_check.find_executable", return_value=None):
            assert check_tmux() == (False, None, None)

    def test_version_fails(self):
        with patch("handoff.dependency_check.find_executable", return_value="/usr/bin/tmux"), \
             patch("handoff.dependency_check.subprocess.run",
                   side_effect=subprocess.TimeoutExpired("tmux", 5)):
            assert check_tmux() == (True, "/usr/bin/tmux", None)


class TestCheckAgentCli:

    def test_found(self):
        with patch("handoff.dependency_check.find_executable", return_value="/bin/claude") as mock_find:
            assert check_agent_cli(["claude", "--flag"]) == (True, "/bin/claude")
            mock_find.assert_called_once_with("claude")

    def test_not_found(self):
        with patch("handoff.dependency_check.find_executable", return_value=None):
            assert check_agent_cli(["claude"]) == (False, None)

    def test_empty_command(self):
        assert check_agent_cli([]) == (False, None)


class TestRequire:

    def test_require_tmux_ok(self):
        with patch("handoff.dependency_check.check_tmux", return_value=(True, "/usr/bin/tmux", "3.4")):
            assert require_tmux() == "/usr/bin/tmux"

    def test_require_tmux_missing(self):
        with patch("handoff.dependency_check.check_tmux", return_value=(False, None, None)):
            with pytest.raises(TmuxNotFoundError, match="tmux is required"):
                require_tmux()

    def test_require_agent_cli_ok(self):
        with patch("handoff.dependency_check.find_executable", return_value="/bin/agent"):
            assert require_agent_cli(["agent"]) == "/bin/agent"

    def test_require_agent_cli_missing(self):
        with patch("handoff.dependency_check.find_executable", return_value=None):
            with pytest.raises(AgentCLINotFoundError, match="'agent'"):
                require_agent_cli(["agent"])
