import json
import pytest
from unittest.mock import MagicMock, patch
from click.testing import CliRunner

from cursor_ai.cli import cli

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def home(tmp_path, monkeypatch):
    path = tmp_path / "home"
    monkeypatch.setenv("CURSOR_AI_HOME", str(path))
    return path

@pytest.fixture
def runner(home):
    return CliRunner()

@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    (root / "main.py").write_text("old = 1\nprint(old)\n")
    (root / "notes.md").write_text("old notes")
    return root

def _scripted_gateway(*responses):
    gateway = MagicMock()
    gateway.generate.side_effect = list(responses)
    return gateway

def _config(home):
    return json.loads((home / "config.json").read_text())

# ---------------------------------------------------------------------------
# Settings commands
# ---------------------------------------------------------------------------

def test_first_run_writes_settings_and_log(runner, home):
    result = runner.invoke(cli, ["config", "get", "ai.maxSteps"])
    assert result.exit_code == 0, result.output
    assert "20" in result.output
    assert (home / "config.json").exists()
    assert (home / "logs" / "cursor-ai.log").exists()

def test_config_set_parses_json_values(runner, home):
    assert runner.invoke(cli, ["config", "set", "ai.maxSteps", "5"]).exit_code == 0
    assert runner.invoke(cli, ["config", "set", "ai.model", "openai/gpt-4o"]).exit_code == 0
    assert _config(home)["ai"] == {"model": "openai/gpt-4o", "maxSteps": 5, "temperature": 0.7}

def test_config_reset(runner, home):
    runner.invoke(cli, ["config", "set", "ai.maxSteps", "5"])
    result = runner.invoke(cli, ["config", "reset", "--yes"])
    assert result.exit_code == 0
    assert _config(home)["ai"]["maxSteps"] == 20

def test_corrupt_settings_exit_with_error(runner, home):
    home.mkdir(parents=True)
    (home / "config.json").write_text("{broken")
    result = runner.invoke(cli, ["info"])
    assert result.exit_code == 1
    assert "not valid JSON" in result.output

def test_templates_table(runner):
    result = runner.invoke(cli, ["templates"])
    assert result.exit_code == 0
    assert "express" in result.output

# ---------------------------------------------------------------------------
# Direct tool commands
# ---------------------------------------------------------------------------

def test_find(runner, project):
    result = runner.invoke(cli, ["find", "*.py", str(project)])
    assert result.exit_code == 0
    assert "Found 1 files matching '*.py'" in result.output

def test_search_with_file_type(runner, project):
    result = runner.invoke(cli, ["search", "old", str(project), "--file-type", ".md"])
    assert result.exit_code == 0
    assert "Found 1 matches for 'old'" in result.output

def test_replace_dry_run_flag(runner, project):
    result = runner.invoke(cli, ["replace", "old", "new", str(project), "--dry-run"])
    assert result.exit_code == 0
    assert "DRY RUN" in result.output
    assert (project / "main.py").read_text() == "old = 1\nprint(old)\n"

def test_replace_applies_with_csv_file_types(runner, project):
    result = runner.invoke(cli, ["replace", "old", "new", str(project), "--file-types", ".py, .txt"])
    assert result.exit_code == 0
    assert "Replacements: 2" in result.output
    assert (project / "main.py").read_text() == "new = 1\nprint(new)\n"
    assert (project / "notes.md").read_text() == "old notes"

def test_replace_without_replacement_only_counts(runner, project, monkeypatch):
    monkeypatch.chdir(project)
    result = runner.invoke(cli, ["replace", "old"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "DRY RUN" in result.output

def test_create_project(runner, tmp_path):
    result = runner.invoke(cli, ["create", "demo", "python", "basic", str(tmp_path)])
    assert result.exit_code == 0
    assert (tmp_path / "demo" / "main.py").exists()

def test_tool_error_exits_nonzero(runner, tmp_path):
    result = runner.invoke(cli, ["create", "demo", "rust", "basic", str(tmp_path)])
    assert result.exit_code == 1
    assert "Template rust/basic not found" in result.output

def test_browse(runner, project):
    result = runner.invoke(cli, ["browse", str(project), "--sort-by", "size", "--order", "desc"])
    assert result.exit_code == 0
    assert "Total: 0 directories, 2 files" in result.output

# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------

@patch("cursor_ai.cli.OpenRouterGateway")
def test_ask_runs_one_conversation(mock_gateway_cls, runner):
    mock_gateway_cls.return_value = _scripted_gateway(
        '{"type": "plan", "plan": "look around"}',
        '{"type": "action", "function": "getSystemInfo", "input": null}',
        '{"type": "output", "output": "All done"}',
    )
    result = runner.invoke(cli, ["--model", "test/model", "ask", "what", "system?"])

    assert result.exit_code == 0, result.output
    assert "All done" in result.output
    assert mock_gateway_cls.call_args.kwargs["model"] == "test/model"
    assert "getSystemInfo" in mock_gateway_cls.call_args.kwargs["system_prompt"]

@patch("cursor_ai.cli.OpenRouterGateway")
def test_ask_respects_max_steps(mock_gateway_cls, runner):
    gateway = MagicMock()
    gateway.generate.return_value = '{"type": "plan", "plan": "again"}'
    mock_gateway_cls.return_value = gateway

    result = runner.invoke(cli, ["--max-steps", "3", "ask", "loop"])

    assert result.exit_code == 1
    assert gateway.generate.call_count == 3
    assert "Maximum steps reached" in result.output

@pytest.mark.parametrize("stored", [-1, 0, "abc", [3]])
@patch("cursor_ai.cli.OpenRouterGateway")
def test_invalid_stored_max_steps_falls_back_to_default(mock_gateway_cls, stored, runner, home):
    runner.invoke(cli, ["config", "get"])
    config = _config(home)
    config["ai"]["maxSteps"] = stored
    (home / "config.json").write_text(json.dumps(config))

    gateway = MagicMock()
    gateway.generate.return_value = '{"type": "plan", "plan": "again"}'
    mock_gateway_cls.return_value = gateway

    result = runner.invoke(cli, ["ask", "loop"])

    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert result.exit_code == 1
    assert "Invalid ai.maxSteps" in result.output
    assert gateway.generate.call_count == 20
    assert "Maximum steps reached (20)" in result.output

@patch("cursor_ai.cli.OpenRouterGateway")
def test_stored_max_steps_string_is_used(mock_gateway_cls, runner, home):
    runner.invoke(cli, ["config", "set", "ai.maxSteps", "\"4\""])

    gateway = MagicMock()
    gateway.generate.return_value = '{"type": "plan", "plan": "again"}'
    mock_gateway_cls.return_value = gateway

    result = runner.invoke(cli, ["ask", "loop"])

    assert "Invalid ai.maxSteps" not in result.output
    assert gateway.generate.call_count == 4

@patch("cursor_ai.cli.OpenRouterGateway")
def test_ask_parse_failure_exits_nonzero(mock_gateway_cls, runner):
    mock_gateway_cls.return_value = _scripted_gateway("sure, let me help")
    result = runner.invoke(cli, ["ask", "hi"])
    assert result.exit_code == 1

# ---------------------------------------------------------------------------
# Interactive session
# ---------------------------------------------------------------------------

@patch("cursor_ai.cli.OpenRouterGateway")
def test_interactive_session(mock_gateway_cls, runner, home):
    gateway = _scripted_gateway('{"type": "output", "output": "Hello back"}')
    mock_gateway_cls.return_value = gateway

    session = "help\nconfig set ai.maxSteps 9\nsay hello\nexit\n"
    result = runner.invoke(cli, [], input=session)

    assert result.exit_code == 0, result.output
    assert "HELP" in result.output
    assert "Hello back" in result.output
    assert "Goodbye." in result.output
    assert _config(home)["ai"]["maxSteps"] == 9
    gateway.generate.assert_called_once()

def test_interactive_session_ends_on_eof(runner):
    result = runner.invoke(cli, [], input="")
    assert result.exit_code == 0
    assert "Goodbye." in result.output

def test_interactive_command_error_does_not_end_session(runner):
    result = runner.invoke(cli, [], input="find\ninfo\nexit\n")
    assert result.exit_code == 0
    assert "Missing argument" in result.output
    assert "System Information:" in result.output
