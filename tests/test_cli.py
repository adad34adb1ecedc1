"""Scenario tests for the reqpick command."""

import csv
from unittest.mock import MagicMock, patch

import pytest

from reqpick.cli import main
from reqpick.terminal import Key
from tests.conftest import (
    ScriptedTerminal,
    make_request_result,
    type_keys,
    write_definition,
    write_environment,
    write_yaml,
)


@pytest.fixture
def project(tmp_path, global_reqpick_dir, monkeypatch):
    """A project directory with a config, definitions and environments."""
    monkeypatch.chdir(tmp_path)
    defs = tmp_path / "definitions"
    envs = tmp_path / "environments"
    write_definition(defs / "health.yaml", url="http://{host}/health")
    write_definition(
        defs / "users" / "get.yaml",
        url="http://{host}/users/{id}",
        headers=[{"name": "Authorization", "value": "Bearer {token}"}],
    )
    write_environment(envs / "dev.yaml", "dev", {"host": "dev.local", "token": "devtoken"})
    write_environment(envs / "prod.yaml", "prod", {"host": "prod.example.com", "token": "prodtoken"})
    write_yaml(
        tmp_path / ".reqpick.yaml",
        {
            "definitions_dir": "definitions",
            "environments_dir": "environments",
            "history_file": "history.csv",
            "timeout": 7,
        },
    )
    return tmp_path


def _sent(mock_exec):
    """The definition handed to execute_request."""
    mock_exec.assert_called_once()
    return mock_exec.call_args.args[0]


# ── File mode ────────────────────────────────────────────────────────────


class TestFileMode:
    @patch("reqpick.executor.execute_request")
    def test_output_format(self, mock_exec, runner, project):
        mock_exec.return_value = make_request_result(status_code=200, body={"status": "ok"})
        result = runner.invoke(main, ["-f", "definitions/health.yaml", "-b", "host=localhost"])
        assert result.exit_code == 0, result.output
        assert "STATUS: 200" in result.output
        assert "TIME: 42ms" in result.output
        assert '"status": "ok"' in result.output
        assert _sent(mock_exec).request.url == "http://localhost/health"
        assert mock_exec.call_args.kwargs["timeout"] == 7

    @patch("reqpick.executor.execute_request")
    def test_environment_file(self, mock_exec, runner, project):
        mock_exec.return_value = make_request_result(body="ok")
        result = runner.invoke(
            main,
            ["-f", "definitions/users/get.yaml", "-e", "environments/dev.yaml", "-b", "id=7"],
        )
        assert result.exit_code == 0, result.output
        definition = _sent(mock_exec)
        assert definition.request.url == "http://dev.local/users/7"
        assert definition.headers[0].value == "Bearer devtoken"

    @patch("reqpick.executor.execute_request")
    def test_bindings_beat_environment(self, mock_exec, runner, project):
        mock_exec.return_value = make_request_result(body="ok")
        result = runner.invoke(
            main,
            [
                "-f", "definitions/health.yaml",
                "-e", "environments/prod.yaml",
                "-b", "host=override.local",
            ],
        )
        assert result.exit_code == 0, result.output
        assert _sent(mock_exec).request.url == "http://override.local/health"

    @patch("reqpick.executor.execute_request")
    def test_only_body(self, mock_exec, runner, project):
        mock_exec.return_value = make_request_result(body={"a": 1})
        result = runner.invoke(main, ["-f", "definitions/health.yaml", "-b", "host=x", "-o"])
        assert "STATUS" not in result.output
        assert '"a": 1' in result.output

    @patch("reqpick.executor.execute_request")
    def test_verbose_headers(self, mock_exec, runner, project):
        mock_exec.return_value = make_request_result(body="ok", headers={"X-Id": "1"})
        result = runner.invoke(main, ["-f", "definitions/health.yaml", "-b", "host=x", "-v"])
        assert "X-Id: 1" in result.output

    @patch("reqpick.executor.execute_request")
    def test_request_error_exits_1(self, mock_exec, runner, project):
        mock_exec.return_value = make_request_result(error="Connection error: refused")
        result = runner.invoke(main, ["-f", "definitions/health.yaml", "-b", "host=x"])
        assert result.exit_code == 1
        assert "ERROR: Connection error" in result.output

    @patch("reqpick.executor.execute_request")
    def test_unbound_without_terminal(self, mock_exec, runner, project):
        result = runner.invoke(main, ["-f", "definitions/users/get.yaml", "-b", "host=x"])
        assert result.exit_code == 1
        assert "Unbound variables: id, token" in result.output
        mock_exec.assert_not_called()

    @patch("reqpick.executor.execute_request")
    def test_no_terminal_opened_when_fully_bound(self, mock_exec, runner, project):
        mock_exec.return_value = make_request_result(body="ok")
        with patch("reqpick.cli._is_interactive", return_value=True), patch(
            "reqpick.terminal.Terminal"
        ) as mock_terminal:
            result = runner.invoke(main, ["-f", "definitions/health.yaml", "-b", "host=x"])
        assert result.exit_code == 0, result.output
        mock_terminal.assert_not_called()


# ── Errors ───────────────────────────────────────────────────────────────


class TestErrors:
    def test_missing_definition(self, runner, project):
        result = runner.invoke(main, ["-f", "definitions/nope.yaml"])
        assert result.exit_code == 1
        assert "Failed to parse request definition file at" in result.output

    def test_invalid_definition(self, runner, project):
        (project / "definitions" / "bad.yaml").write_text("request: {method: GET}")
        result = runner.invoke(main, ["-f", "definitions/bad.yaml"])
        assert result.exit_code == 1
        assert "request.url" in result.output

    def test_duplicate_environment_variables(self, runner, project):
        write_yaml(
            project / "environments" / "dup.yaml",
            {"name": "dup", "variables": [{"name": "a", "value": "1"}, {"name": "a", "value": "2"}]},
        )
        result = runner.invoke(main, ["-f", "definitions/health.yaml", "-e", "environments/dup.yaml"])
        assert result.exit_code == 1
        assert "duplicate bindings for: a" in result.output

    def test_no_definition_without_terminal(self, runner, project):
        result = runner.invoke(main, [])
        assert result.exit_code == 2
        assert "No request definition given" in result.output

    def test_bad_binding(self, runner, project):
        result = runner.invoke(main, ["-f", "definitions/health.yaml", "-b", "novalue"])
        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output

    def test_missing_explicit_config(self, runner, project):
        result = runner.invoke(main, ["-c", "missing.yaml", "-f", "definitions/health.yaml"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


# ── Interactive mode ─────────────────────────────────────────────────────


@pytest.fixture
def terminal_factory():
    """Patch the real terminal with a scripted one and make stdio look like a tty."""
    terminals = []

    def install(keys):
        terminal = ScriptedTerminal(keys)
        terminals.append(terminal)
        return terminal

    with patch("reqpick.cli._is_interactive", return_value=True):
        with patch("reqpick.terminal.Terminal") as mock_terminal:
            mock_terminal.side_effect = lambda: terminals[-1]
            yield install


def _history_rows(project):
    with open(project / "history.csv", newline="") as f:
        return list(csv.reader(f))


class TestInteractiveMode:
    @patch("reqpick.executor.execute_request")
    def test_pick_environment_and_definition(self, mock_exec, runner, project, terminal_factory):
        mock_exec.return_value = make_request_result(body="ok")
        terminal = terminal_factory([Key.TAB] + type_keys("health") + [Key.ENTER])
        result = runner.invoke(main, [])
        assert result.exit_code == 0, result.output
        assert _sent(mock_exec).request.url == "http://dev.local/health"
        assert terminal.entered and terminal.exited

    @patch("reqpick.executor.execute_request")
    def test_prompt_for_unbound_and_record_history(self, mock_exec, runner, project, terminal_factory):
        mock_exec.return_value = make_request_result(body="ok")
        keys = [Key.TAB] + type_keys("users/get") + [Key.ENTER] + type_keys("42") + [Key.ENTER]
        terminal_factory(keys)
        result = runner.invoke(main, [])
        assert result.exit_code == 0, result.output
        assert _sent(mock_exec).request.url == "http://dev.local/users/42"
        assert _history_rows(project) == [["id", "42", "dev"]]

    @patch("reqpick.executor.execute_request")
    def test_environment_preselected_from_flag(self, mock_exec, runner, project, terminal_factory):
        mock_exec.return_value = make_request_result(body="ok")
        terminal_factory(type_keys("health") + [Key.ENTER])
        result = runner.invoke(main, ["-e", "environments/prod.yaml"])
        assert result.exit_code == 0, result.output
        assert _sent(mock_exec).request.url == "http://prod.example.com/health"

    @patch("reqpick.executor.execute_request")
    def test_pick_history_value(self, mock_exec, runner, project, terminal_factory):
        (project / "history.csv").write_text("id,old,dev\nid,newer,dev\n")
        mock_exec.return_value = make_request_result(body="ok")
        keys = [Key.TAB] + type_keys("users/get") + [Key.ENTER, Key.TAB, Key.UP, Key.ENTER]
        terminal_factory(keys)
        result = runner.invoke(main, [])
        assert result.exit_code == 0, result.output
        assert _sent(mock_exec).request.url == "http://dev.local/users/old"

    @patch("reqpick.executor.execute_request")
    def test_cancel_in_picker(self, mock_exec, runner, project, terminal_factory):
        terminal = terminal_factory([Key.CANCEL])
        result = runner.invoke(main, [])
        assert result.exit_code == 0
        mock_exec.assert_not_called()
        assert terminal.exited

    @patch("reqpick.executor.execute_request")
    def test_cancel_in_prompt_sends_nothing(self, mock_exec, runner, project, terminal_factory):
        keys = [Key.TAB] + type_keys("users/get") + [Key.ENTER] + type_keys("4") + [Key.CANCEL]
        terminal = terminal_factory(keys)
        result = runner.invoke(main, [])
        assert result.exit_code == 0
        assert "Cancelled. Request not sent." in result.output
        mock_exec.assert_not_called()
        assert terminal.exited

    @patch("reqpick.executor.execute_request")
    def test_file_mode_prompts_in_terminal(self, mock_exec, runner, project, terminal_factory):
        mock_exec.return_value = make_request_result(body="ok")
        terminal_factory(type_keys("example.org") + [Key.ENTER])
        result = runner.invoke(main, ["-f", "definitions/health.yaml"])
        assert result.exit_code == 0, result.output
        assert _sent(mock_exec).request.url == "http://example.org/health"

    @patch("reqpick.executor.execute_request")
    def test_no_interactive_flag(self, mock_exec, runner, project, terminal_factory):
        result = runner.invoke(main, ["--no-interactive", "-f", "definitions/health.yaml"])
        assert result.exit_code == 1
        assert "Unbound variables: host" in result.output
        mock_exec.assert_not_called()


def test_help_lists_keys(runner):
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "INTERACTIVE KEYS" in result.output
    assert "Ctrl-C" in result.output


def test_terminal_session_is_lazy():
    from reqpick.cli import _TerminalSession

    with patch("reqpick.terminal.Terminal") as mock_terminal:
        mock_terminal.return_value = MagicMock()
        with _TerminalSession(enabled=False) as session:
            assert session.get() is None
        mock_terminal.assert_not_called()
        with _TerminalSession(enabled=True) as session:
            first = session.get()
            assert session.get() is first
        mock_terminal.assert_called_once_with()
        first.__exit__.assert_called_once()
