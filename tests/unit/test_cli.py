"""
Unit tests for the CLI using Typer's CliRunner.

tmux and the agent CLI are never touched: launch/attach/stop run
against MockTmux and the worker's agent runner is patched.
"""

import json
import re
import shlex
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from handoff.cli import app
from handoff.exceptions import AgentRunError
from handoff.mocks import MockTmux
from handoff.signal_store import FileSignalStore
from handoff.workspace import Workspace


runner = CliRunner()


def output_of(result) -> str:
    """Output with ANSI codes removed and rich's line wrapping undone."""
    text = re.sub(r"\x1b\[[0-9;]*m", "", result.output)
    # Table and panel borders
    text = re.sub(r"[\u2500-\u257f]", " ", text)
    return " ".join(text.split())


@pytest.fixture
def ws(tmp_path, monkeypatch):
    """Run every command from an empty project dir; return the workspace root."""
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.chdir(project)
    return tmp_path / "ws"


def invoke(*args):
    return runner.invoke(app, [str(a) for a in args])


class TestHelp:

    def test_main_help(self):
        result = invoke("--help")
        assert result.exit_code == 0
        out = output_of(result)
        for command in ("init", "reset", "status", "signal", "wait", "worker", "launch"):
            assert command in out

    def test_no_args_shows_help(self):
        result = invoke()
        assert "Usage" in result.output


class TestInitAndReset:

    def test_init(self, ws):
        result = invoke("init", "-w", ws)

        assert result.exit_code == 0
        assert "Roles: plan, backend, frontend, tests" in output_of(result)
        workspace = Workspace(ws)
        assert workspace.has_live_session()
        assert workspace.read_task("plan")

    def test_init_twice_fails(self, ws):
        invoke("init", "-w", ws)

        result = invoke("init", "-w", ws)

        assert result.exit_code == 1
        assert "already has a live session" in output_of(result)

    def test_init_reset(self, ws):
        invoke("init", "-w", ws)
        invoke("signal", "plan", "-w", ws)

        result = invoke("init", "--reset", "-w", ws)

        assert result.exit_code == 0
        assert not FileSignalStore(Workspace(ws).signals_dir).is_signaled("plan")

    def test_init_with_bad_graph(self, ws, tmp_path):
        config = tmp_path / "cycle.yaml"
        config.write_text(
            "tasks:\n"
            "  - {role: a, depends_on: [b]}\n"
            "  - {role: b, depends_on: [a]}\n"
        )

        result = invoke("init", "-w", ws, "-c", config)

        assert result.exit_code == 1
        assert "Cyclic dependency" in output_of(result)
        assert not Workspace(ws).has_live_session()

    def test_reset(self, ws):
        invoke("init", "-w", ws)
        invoke("signal", "plan", "-w", ws)

        result = invoke("reset", "-w", ws)

        assert result.exit_code == 0
        assert FileSignalStore(Workspace(ws).signals_dir).signaled() == set()
        assert not Workspace(ws).has_live_session()

    def test_reset_in_progress(self, ws):
        invoke("init", "-w", ws)
        with Workspace(ws).reset_guard():
            result = invoke("reset", "-w", ws)

        assert result.exit_code == 1
        assert "Reset already in progress" in output_of(result)


class TestStatus:

    def test_uninitialised(self, ws):
        result = invoke("status", "-w", ws)
        assert result.exit_code == 0
        assert "No live session" in output_of(result)

    def test_table(self, ws):
        invoke("init", "-w", ws)
        invoke("signal", "plan", "-w", ws)

        result = invoke("status", "-w", ws)

        out = output_of(result)
        assert result.exit_code == 0
        assert "plan ● signaled" in out
        assert "backend ○ pending" in out

    def test_json(self, ws):
        invoke("init", "-w", ws)
        invoke("signal", "plan", "-w", ws)

        result = invoke("status", "--json", "-w", ws)

        data = json.loads(result.output)
        assert data["initialized"] is True
        assert data["phases"]["plan"] is True
        assert data["phases"]["tests"] is False


class TestSignalAndWait:

    def test_signal(self, ws):
        result = invoke("signal", "backend", "-w", ws)

        assert result.exit_code == 0
        assert (ws / "signals" / "backend").is_file()

    def test_signal_is_idempotent(self, ws):
        invoke("signal", "backend", "-w", ws)
        result = invoke("signal", "backend", "-w", ws)
        assert result.exit_code == 0

    def test_signal_defaults_to_env_marker(self, ws, monkeypatch):
        monkeypatch.setenv("HANDOFF_OUTPUT_MARKER", "api")
        result = invoke("signal", "-w", ws)
        assert result.exit_code == 0
        assert (ws / "signals" / "api").is_file()

    def test_signal_workspace_from_env(self, ws, monkeypatch):
        monkeypatch.setenv("HANDOFF_WORKSPACE", str(ws))
        result = invoke("signal", "plan")
        assert result.exit_code == 0
        assert (ws / "signals" / "plan").is_file()

    def test_signal_needs_a_phase(self, ws):
        result = invoke("signal", "-w", ws)
        assert result.exit_code == 1
        assert "HANDOFF_OUTPUT_MARKER" in output_of(result)

    def test_signal_rejects_bad_name(self, ws):
        result = invoke("signal", "../evil", "-w", ws)
        assert result.exit_code == 1
        assert "Invalid phase name" in output_of(result)

    def test_wait_ready(self, ws):
        invoke("signal", "plan", "-w", ws)
        invoke("signal", "backend", "-w", ws)

        result = invoke("wait", "plan", "backend", "--timeout", "0", "-w", ws)

        assert result.exit_code == 0
        assert "Ready: plan, backend" in output_of(result)

    def test_wait_timeout_exit_code(self, ws):
        invoke("signal", "plan", "-w", ws)

        result = invoke("wait", "plan", "backend", "--timeout", "0", "-w", ws)

        assert result.exit_code == 2
        assert "waiting for: backend" in output_of(result)

    def test_wait_rejects_negative_timeout(self, ws):
        result = invoke("wait", "plan", "--timeout", "-1", "-w", ws)
        assert result.exit_code == 2
        assert "Invalid value" in output_of(result)


class TestWorkerCommand:

    def test_runs_and_signals(self, ws):
        invoke("init", "-w", ws)
        invoke("signal", "plan", "-w", ws)

        with patch("handoff.cli.signals.SubprocessAgentRunner.run") as mock_run:
            result = invoke("worker", "backend", "--timeout", "0", "-w", ws)

        assert result.exit_code == 0, result.output
        assert "backend done" in output_of(result)
        task = mock_run.call_args.args[0]
        assert task.role == "backend"
        assert task.depends_on == frozenset({"plan"})
        assert "Backend" in task.instructions
        assert FileSignalStore(Workspace(ws).signals_dir).is_signaled("backend")

    def test_logs_to_workspace(self, ws):
        invoke("init", "-w", ws)
        invoke("signal", "start", "-w", ws)

        with patch("handoff.cli.signals.SubprocessAgentRunner.run"):
            invoke("worker", "plan", "--timeout", "0", "-w", ws)

        assert "waiting -> executing" in (ws / "handoff.log").read_text()

    def test_dependency_timeout(self, ws):
        invoke("init", "-w", ws)

        with patch("handoff.cli.signals.SubprocessAgentRunner.run") as mock_run:
            result = invoke("worker", "backend", "--timeout", "0", "-w", ws)

        assert result.exit_code == 2
        assert "waiting for: plan" in output_of(result)
        mock_run.assert_not_called()
        assert not FileSignalStore(Workspace(ws).signals_dir).is_signaled("backend")

    def test_agent_failure(self, ws):
        invoke("init", "-w", ws)
        invoke("signal", "start", "-w", ws)

        with patch(
            "handoff.cli.signals.SubprocessAgentRunner.run",
            side_effect=AgentRunError("plan", 1),
        ):
            result = invoke("worker", "plan", "--timeout", "0", "-w", ws)

        assert result.exit_code == 1
        assert "Worker 'plan' failed" in output_of(result)
        assert not FileSignalStore(Workspace(ws).signals_dir).is_signaled("plan")

    def test_agent_command_option(self, ws):
        invoke("init", "-w", ws)
        invoke("signal", "start", "-w", ws)

        with patch("handoff.cli.signals.SubprocessAgentRunner") as runner_cls:
            result = invoke(
                "worker", "plan", "--agent-command", "my-agent --fast", "--timeout", "0", "-w", ws
            )

        assert result.exit_code == 0, result.output
        assert runner_cls.call_args.args[0] == ["my-agent", "--fast"]

    def test_unknown_role(self, ws):
        invoke("init", "-w", ws)
        result = invoke("worker", "docs", "-w", ws)
        assert result.exit_code == 1
        assert "not part of the session graph" in output_of(result)

    def test_without_session(self, ws):
        result = invoke("worker", "plan", "-w", ws)
        assert result.exit_code == 1
        assert "No live session" in output_of(result)


class TestGraphCommand:

    def test_default_graph(self, ws):
        result = invoke("graph")
        out = output_of(result)
        assert result.exit_code == 0
        assert "plan" in out and "frontend" in out

    def test_unknown_phase(self, ws, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("tasks:\n  - {role: build, depends_on: [design]}\n")

        result = invoke("graph", "-c", config)

        assert result.exit_code == 1
        assert "unknown phase 'design'" in output_of(result)

    def test_scalar_depends_on(self, ws, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("tasks:\n  - {role: build, depends_on: plan}\n")

        result = invoke("graph", "-c", config)

        assert result.exit_code == 1
        assert "depends_on must be a list" in output_of(result)


class TestLaunchCommands:

    @pytest.fixture
    def mock_tmux(self):
        tmux = MockTmux()
        with patch("handoff.launcher.RealTmux", return_value=tmux), \
             patch("handoff.launcher.require_tmux"), \
             patch("handoff.launcher.require_agent_cli"), \
             patch("handoff.launcher.current_branch", return_value=None):
            yield tmux

    def test_launch(self, ws, mock_tmux):
        result = invoke("launch", "-w", ws)

        assert result.exit_code == 0, result.output
        out = output_of(result)
        assert "Pipeline launched" in out
        assert "1: plan" in out
        assert mock_tmux.has_session("handoff")
        assert FileSignalStore(Workspace(ws).signals_dir).is_signaled("start")

    def test_launch_twice_needs_reset(self, ws, mock_tmux):
        invoke("launch", "-w", ws)

        assert invoke("launch", "-w", ws).exit_code == 1
        assert invoke("launch", "--reset", "-w", ws).exit_code == 0

    def test_launch_and_attach(self, ws, mock_tmux):
        result = invoke("launch", "--attach", "-w", ws)
        assert result.exit_code == 0
        assert mock_tmux.attached == ("handoff", None)

    def test_attach_role(self, ws, mock_tmux):
        invoke("launch", "-w", ws)
        result = invoke("attach", "tests")
        assert result.exit_code == 0
        assert mock_tmux.attached == ("handoff", 4)

    def test_attach_without_session(self, ws, mock_tmux):
        result = invoke("attach")
        assert result.exit_code == 1
        assert "does not exist" in output_of(result)

    def test_stop(self, ws, mock_tmux):
        invoke("launch", "-w", ws)

        result = invoke("stop")

        assert result.exit_code == 0
        assert "Stopped" in output_of(result)
        assert not mock_tmux.has_session("handoff")

    def test_worker_windows_use_launch_config(self, ws, mock_tmux, tmp_path):
        custom = tmp_path / "custom.yaml"
        custom.write_text("agent_command: my-agent\ntimeout: 0\n")
        invoke("launch", "-c", custom, "-w", ws)
        typed = {window: keys for _, window, keys, _ in mock_tmux.sent_keys}

        # Run the backend window's command from a directory with no handoff.yaml
        args = shlex.split(typed[2])
        assert args[1:4] == ["-m", "handoff", "worker"]
        with patch("handoff.cli.signals.SubprocessAgentRunner") as runner_cls:
            result = runner.invoke(app, args[3:])

        assert result.exit_code == 2
        assert "waiting for: plan" in output_of(result)
        runner_cls.assert_called_once()
        assert runner_cls.call_args.args[0] == ["my-agent"]


class TestConfigCommands:

    def test_init_writes_template(self, ws, tmp_path):
        result = invoke("config", "init")

        assert result.exit_code == 0
        assert (tmp_path / "project" / "handoff.yaml").read_text().startswith("# handoff configuration")

    def test_init_refuses_overwrite(self, ws):
        invoke("config", "init")
        result = invoke("config", "init")
        assert result.exit_code == 1
        assert invoke("config", "init", "--force").exit_code == 0

    def test_init_user(self, ws, tmp_path):
        result = invoke("config", "init", "--user")
        assert result.exit_code == 0
        assert (tmp_path / "home" / "config.yaml").exists()

    def test_show_defaults(self, ws):
        result = invoke("config")
        out = output_of(result)
        assert result.exit_code == 0
        assert "No config file found" in out
        assert "poll_interval: 2s" in out

    def test_show_file(self, ws, tmp_path):
        (tmp_path / "project" / "handoff.yaml").write_text("timeout: 90\n")
        result = invoke("config", "show")
        assert "timeout: 90s" in output_of(result)

    def test_show_invalid(self, ws, tmp_path):
        (tmp_path / "project" / "handoff.yaml").write_text("[broken\n")
        result = invoke("config", "show")
        assert result.exit_code == 1
        assert "Invalid YAML" in output_of(result)

    def test_path(self, ws, tmp_path):
        result = invoke("config", "path")
        assert result.output.strip() == str(tmp_path / "home" / "config.yaml")
