import json
import os
import zipfile
import pytest
from unittest.mock import MagicMock, patch

from cursor_ai.models import (
    AnalyzeErrorInput,
    BackupInput,
    BrowseInput,
    CommandInput,
    CreateProjectInput,
    FindInput,
    ListFilesInput,
    ReadFileInput,
    ReplaceInput,
    SearchInput,
    WriteFileInput,
)
from cursor_ai.settings import SettingsService
from cursor_ai.tools import (
    REQUIRED_TOOLS,
    _tool_analyze_error,
    _tool_backup_workspace,
    _tool_browse_directory,
    _tool_create_project,
    _tool_execute_command,
    _tool_find_files,
    _tool_global_search_replace,
    _tool_list_files,
    _tool_read_file,
    _tool_search_in_files,
    _tool_write_file,
    build_registry,
    format_bytes,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    service = SettingsService(tmp_path / "home" / "config.json")
    service.load()
    return service

@pytest.fixture
def workspace(tmp_path, monkeypatch):
    root = tmp_path / "workspace"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.test.js").write_text("test('x')")
    (root / "src" / "app.js").write_text("const foo = 1;\nfoo + foo;\n")
    (root / "README.md").write_text("# foo")
    (root / "node_modules" / "dep").mkdir(parents=True)
    (root / "node_modules" / "dep" / "index.js").write_text("foo")
    monkeypatch.chdir(root)
    return root

# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("size, expected", [
    (0, "0 B"),
    (512, "512 B"),
    (1024, "1 KB"),
    (1536, "1.5 KB"),
    (5 * 1024 * 1024, "5 MB"),
])
def test_format_bytes(size, expected):
    assert format_bytes(size) == expected

# ---------------------------------------------------------------------------
# File-tree tools
# ---------------------------------------------------------------------------

def test_browse_directory_report(workspace):
    out = _tool_browse_directory(BrowseInput(path=".", recursive=True))
    assert out.startswith("Directory Browser Results:")
    assert "Recursive: Yes (max depth: 3)" in out
    assert "📁 src/" in out
    assert "  📄 app.js" in out
    assert "node_modules" not in out

def test_browse_directory_truncates(tmp_path):
    for i in range(55):
        (tmp_path / f"f{i:02}.txt").write_text("x")
    out = _tool_browse_directory(BrowseInput(path=str(tmp_path)))
    assert "Total: 0 directories, 55 files" in out
    assert "... and 5 more files" in out

def test_find_files_wildcard(workspace):
    out = _tool_find_files(FindInput(pattern="*.test.js"))
    assert out.startswith("Found 1 files matching '*.test.js':")
    assert os.path.join("src", "app.test.js") in out

def test_find_files_none(workspace):
    assert _tool_find_files(FindInput(pattern="*.rs")) == "No files found matching pattern '*.rs'"

def test_find_files_respects_max_depth(tmp_path):
    (tmp_path / "one" / "two").mkdir(parents=True)
    (tmp_path / "top.js").write_text("x")
    (tmp_path / "one" / "mid.js").write_text("x")
    (tmp_path / "one" / "two" / "deep.js").write_text("x")

    out = _tool_find_files(FindInput(pattern="*.js", directory=str(tmp_path), max_depth=1))

    assert out.startswith("Found 2 files")
    assert "mid.js" in out
    assert "deep.js" not in out

    shallow = _tool_find_files(FindInput(pattern="*.js", directory=str(tmp_path), max_depth=0))
    assert shallow.startswith("Found 1 files")

def test_find_files_include_hidden(tmp_path):
    (tmp_path / ".config").mkdir()
    (tmp_path / ".config" / "settings.js").write_text("x")
    (tmp_path / ".eslintrc.js").write_text("x")

    hidden_off = _tool_find_files(FindInput(pattern="*.js", directory=str(tmp_path)))
    assert hidden_off == "No files found matching pattern '*.js'"

    out = _tool_find_files(FindInput.model_validate({"pattern": "*.js", "directory": str(tmp_path), "includeHidden": True}))
    assert out.startswith("Found 2 files")
    assert ".eslintrc.js" in out
    assert "settings.js" in out

def test_search_in_files(workspace):
    out = _tool_search_in_files(SearchInput(pattern="foo", file_extension=".js"))
    assert out.startswith("Found 2 matches for 'foo':")
    assert f"{os.path.join('src', 'app.js')}:1\n  const foo = 1;" in out

def test_search_in_files_none(workspace):
    assert _tool_search_in_files(SearchInput(pattern="zzz")) == "No matches found for 'zzz'"

def test_global_search_replace_dry_run_by_default(workspace):
    out = _tool_global_search_replace(ReplaceInput(search_text="foo", replace_text="bar"))
    assert out.startswith("Global Search (DRY RUN) Results:")
    assert "Matches Found: 4" in out
    assert "Replacements: 0 (would be made)" in out
    assert "3 matches (would be replaced)" in out
    assert (workspace / "src" / "app.js").read_text() == "const foo = 1;\nfoo + foo;\n"

def test_global_search_replace_applies(workspace):
    out = _tool_global_search_replace(ReplaceInput(search_text="foo", replace_text="bar", dry_run=False))
    assert "Replacements: 4" in out
    assert "1 match (replaced)" in out
    assert (workspace / "src" / "app.js").read_text() == "const bar = 1;\nbar + bar;\n"
    assert (workspace / "node_modules" / "dep" / "index.js").read_text() == "foo"

@patch("cursor_ai.search._write_text", side_effect=PermissionError(13, "Permission denied"))
def test_global_search_replace_reports_unwritten_files(mock_write, workspace):
    out = _tool_global_search_replace(ReplaceInput(search_text="foo", replace_text="bar", dry_run=False))
    assert "Replacements: 0" in out
    assert "3 matches (not written)" in out
    assert (workspace / "src" / "app.js").read_text() == "const foo = 1;\nfoo + foo;\n"

# ---------------------------------------------------------------------------
# Single-file tools
# ---------------------------------------------------------------------------

def test_write_then_read(tmp_path):
    target = tmp_path / "nested" / "dir" / "note.txt"
    _tool_write_file(WriteFileInput(path=str(target), content="hello"))
    out = _tool_read_file(ReadFileInput(path=str(target)))
    assert "Size: 5 bytes" in out
    assert "hello" in out

def test_read_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="File not found"):
        _tool_read_file(ReadFileInput(path=str(tmp_path / "ghost.txt")))

def test_list_files(workspace):
    out = _tool_list_files(ListFilesInput())
    assert "📁 src/" in out
    assert "📄 README.md (5 B)" in out

def test_list_files_missing(tmp_path):
    with pytest.raises(FileNotFoundError, match="Directory not found"):
        _tool_list_files(ListFilesInput(path=str(tmp_path / "nope")))

# ---------------------------------------------------------------------------
# System tools
# ---------------------------------------------------------------------------

@patch("cursor_ai.tools.subprocess.run")
def test_execute_command_success(mock_run):
    mock_run.return_value = MagicMock(returncode=0, stdout="hi\n", stderr="")
    assert _tool_execute_command(CommandInput(command="echo hi")) == "hi\n"
    assert mock_run.call_args.kwargs["shell"] is True

@patch("cursor_ai.tools.subprocess.run")
def test_execute_command_failure_raises(mock_run):
    mock_run.return_value = MagicMock(returncode=2, stdout="", stderr="no such file")
    with pytest.raises(RuntimeError, match="Command failed: ls nope"):
        _tool_execute_command(CommandInput(command="ls nope"))

@patch("cursor_ai.tools.subprocess.run")
def test_execute_command_stderr_only(mock_run):
    mock_run.return_value = MagicMock(returncode=0, stdout="", stderr="deprecated")
    assert "executed with warnings" in _tool_execute_command(CommandInput(command="x"))

def test_analyze_error_classifies_python_traceback():
    text = 'Traceback (most recent call last):\n  File "app.py", line 3, in <module>\nModuleNotFoundError: No module named x'
    out = _tool_analyze_error(AnalyzeErrorInput(error_text=text))
    assert "Type: Module Not Found" in out
    assert "app.py (line 3)" in out

def test_analyze_error_unknown():
    out = _tool_analyze_error(AnalyzeErrorInput(error_text="something odd"))
    assert "Type: Unknown" in out
    assert "Files Involved" not in out

# ---------------------------------------------------------------------------
# Project and workspace tools
# ---------------------------------------------------------------------------

def test_create_project_from_template(settings, tmp_path):
    out = _tool_create_project(settings, CreateProjectInput(name="demo", directory=str(tmp_path)))
    project = tmp_path / "demo"
    assert "created successfully" in out
    assert json.loads((project / "package.json").read_text())["name"] == "demo"
    assert (project / "README.md").read_text().startswith("# demo")

def test_create_project_unknown_template(settings, tmp_path):
    with pytest.raises(ValueError, match="Template rust/basic not found"):
        _tool_create_project(settings, CreateProjectInput(name="x", type="rust", directory=str(tmp_path)))

def test_backup_rejects_path_inside_workspace(workspace):
    with pytest.raises(ValueError, match="cannot be inside the current workspace"):
        _tool_backup_workspace(BackupInput(backup_path=str(workspace / "backups")))

def test_backup_copies_workspace(workspace, tmp_path):
    out = _tool_backup_workspace(BackupInput(backup_path=str(tmp_path / "backups")))
    assert "(3 files)" in out

    [backup_dir] = (tmp_path / "backups").iterdir()
    assert backup_dir.name.startswith("backup-")
    assert (backup_dir / "src" / "app.js").exists()
    assert not (backup_dir / "node_modules").exists()

def test_backup_default_is_sibling_of_workspace(workspace):
    _tool_backup_workspace(BackupInput())
    assert any((workspace.parent / "workspace-backups").iterdir())

def test_backup_compression(workspace, tmp_path):
    out = _tool_backup_workspace(
        BackupInput(backup_path=str(tmp_path / "backups"), include_node_modules=True, compression=True)
    )
    assert "(4 files, compressed)" in out
    [archive] = (tmp_path / "backups").iterdir()
    assert archive.suffix == ".zip"
    with zipfile.ZipFile(archive) as zf:
        names = zf.namelist()
    assert any(name.endswith("index.js") for name in names)

# ---------------------------------------------------------------------------
# Registry factory
# ---------------------------------------------------------------------------

def test_build_registry_is_complete(settings):
    registry = build_registry(settings)
    assert sorted(registry.names()) == sorted(REQUIRED_TOOLS)

def test_config_tools_through_registry(settings):
    registry = build_registry(settings)
    registry.invoke("setConfig", {"path": "global.maxDepth", "value": 9})
    assert "9" in registry.invoke("getConfig", "global.maxDepth")
    assert json.loads(settings.path.read_text())["global"]["maxDepth"] == 9
    assert registry.invoke("getConfig", {"path": "nope"}) == "Configuration path 'nope' not found"

    registry.invoke("resetConfig")
    assert settings.get("global.maxDepth") == 5

def test_template_tools_through_registry(settings):
    registry = build_registry(settings)
    registry.invoke("addTemplate", {"type": "go", "name": "cli", "template": {"description": "Go CLI", "files": {}}})
    assert "cli: Go CLI" in registry.invoke("listTemplates")
    assert "removed" in registry.invoke("removeTemplate", {"type": "go", "name": "cli"})
    assert "not found" in registry.invoke("removeTemplate", {"type": "go", "name": "cli"})
