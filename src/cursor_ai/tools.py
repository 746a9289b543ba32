# tools.py
# Tool implementations and the registry factory.
# The driver reaches these only through ToolRegistry; nothing calls the
# _tool_* functions directly except tests.
#
# Relative paths resolve against the process working directory. Tools raise
# ordinary exceptions on failure; the registry turns them into observations.

import json
import os
import platform
import re
import shutil
import subprocess
import sys
from datetime import datetime
from functools import partial
from pathlib import Path

from cursor_ai import search, walker
from cursor_ai.matcher import matches
from cursor_ai.models import (
    AnalyzeErrorInput,
    BackupInput,
    BrowseInput,
    CommandInput,
    ConfigGetInput,
    ConfigSetInput,
    CreateProjectInput,
    EmptyInput,
    FindInput,
    ListFilesInput,
    ReadFileInput,
    ReplaceInput,
    SearchInput,
    TemplateAddInput,
    TemplateRemoveInput,
    WalkConfig,
    WriteFileInput,
)
from cursor_ai.registry import ToolDescriptor, ToolRegistry
from cursor_ai.settings import SettingsService, process_template

BROWSE_LIMIT = 50
FIND_LIMIT = 100
SEARCH_LIMIT = 20
RULE = "=" * 50

REQUIRED_TOOLS = (
    "browseDirectory",
    "findFiles",
    "searchInFiles",
    "globalSearchReplace",
    "readFile",
    "writeFile",
    "listFiles",
    "executeCommand",
    "analyzeError",
    "getSystemInfo",
    "createProject",
    "backupWorkspace",
    "getConfig",
    "setConfig",
    "listTemplates",
    "addTemplate",
    "removeTemplate",
    "resetConfig",
)


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    index = 0
    value = float(size)
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def _display_path(directory: str, rel: str) -> str:
    return os.path.normpath(os.path.join(directory, rel))


def _more(count: int, limit: int, noun: str) -> list[str]:
    return [f"... and {count - limit} more {noun}"] if count > limit else []


# ---------------------------------------------------------------------------
# File-tree tools
# ---------------------------------------------------------------------------


def _tool_browse_directory(args: BrowseInput) -> str:
    result = walker.walk(
        WalkConfig(
            root=Path(args.path),
            recursive=args.recursive,
            max_depth=args.max_depth,
            include_hidden=args.include_hidden,
            file_types=args.file_types,
            exclude_dirs=args.exclude_dirs,
            sort_by=args.sort_by,
            order=args.order,
        )
    )

    lines = [
        "Directory Browser Results:",
        f"Path: {args.path}",
        f"Recursive: {f'Yes (max depth: {args.max_depth})' if args.recursive else 'No'}",
        f"Total: {result.total_dirs} directories, {result.total_files} files",
        f"Total Size: {format_bytes(result.total_size)}",
        "",
        "Directories:",
    ]
    lines += [f"{'  ' * d.depth}📁 {d.name}/" for d in result.directories[:BROWSE_LIMIT]]
    lines += _more(len(result.directories), BROWSE_LIMIT, "directories")
    lines += ["", "Files:"]
    lines += [
        f"{'  ' * f.depth}📄 {f.name} ({format_bytes(f.size)})" for f in result.files[:BROWSE_LIMIT]
    ]
    lines += _more(len(result.files), BROWSE_LIMIT, "files")
    return "\n".join(lines)


def _tool_find_files(args: FindInput) -> str:
    found = []
    for entry, depth in walker.iter_files(
        args.directory,
        max_depth=args.max_depth,
        include_hidden=args.include_hidden,
        exclude_dirs=args.exclude_dirs,
    ):
        if not matches(entry.name, args.pattern, args.file_types):
            continue
        record = walker.file_entry(entry, args.directory, depth)
        if record is not None:
            found.append(record)

    if not found:
        return f"No files found matching pattern '{args.pattern}'"

    lines = [f"Found {len(found)} files matching '{args.pattern}':", ""]
    for f in found[:FIND_LIMIT]:
        stamp = f.modified.strftime("%Y-%m-%d") if f.modified else "-"
        lines.append(f"📄 {_display_path(args.directory, f.path)} ({format_bytes(f.size)}) - {stamp}")
    lines += _more(len(found), FIND_LIMIT, "files")
    return "\n".join(lines)


def _tool_search_in_files(args: SearchInput) -> str:
    hits = search.search_lines(args.pattern, args.directory, args.file_extension)
    if not hits:
        return f"No matches found for '{args.pattern}'"

    lines = [f"Found {len(hits)} matches for '{args.pattern}':", ""]
    for hit in hits[:SEARCH_LIMIT]:
        lines.append(f"{_display_path(args.directory, hit.file)}:{hit.line}\n  {hit.content}")
    lines += _more(len(hits), SEARCH_LIMIT, "matches")
    return "\n".join(lines)


def _tool_global_search_replace(args: ReplaceInput) -> str:
    result = search.apply(
        args.directory,
        args.search_text,
        args.replace_text,
        file_types=args.file_types,
        exclude_dirs=args.exclude_dirs,
        dry_run=args.dry_run,
    )

    lines = [
        f"Global Search{' (DRY RUN)' if args.dry_run else ' & Replace'} Results:",
        f'Search: "{args.search_text}"',
    ]
    if args.replace_text is not None:
        lines.append(f'Replace: "{args.replace_text}"')
    lines += [
        f"Files Processed: {result.files_processed}",
        f"Matches Found: {result.matches_found}",
        f"Replacements: {result.replacements}" + (" (would be made)" if args.dry_run else ""),
        "",
        "Files with matches:",
    ]
    for change in result.changes:
        plural = "es" if change.match_count > 1 else ""
        if change.was_replaced:
            state = "(replaced)"
        else:
            state = "(would be replaced)" if args.dry_run or args.replace_text is None else "(not written)"
        lines.append(
            f"📄 {_display_path(args.directory, change.file)} - {change.match_count} match{plural} {state}"
        )
    return "\n".join(lines)


def _tool_backup_workspace(args: BackupInput) -> str:
    workspace = Path.cwd().resolve()
    stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
    base = Path(args.backup_path) if args.backup_path else workspace.parent / f"{workspace.name}-backups"
    backup_dir = (base / f"backup-{stamp}").resolve()

    if backup_dir == workspace or workspace in backup_dir.parents:
        raise ValueError("Backup directory cannot be inside the current workspace")

    exclude = [".git"] if args.include_node_modules else ["node_modules", ".git"]
    backup_dir.mkdir(parents=True, exist_ok=True)
    copied = 0
    for entry, _depth, is_dir in walker.scan(
        workspace,
        include_hidden=True,
        exclude_dirs=exclude,
        skip_dir=lambda name: name.startswith("backup-"),
    ):
        target = backup_dir / Path(entry.path).relative_to(workspace)
        if is_dir:
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(entry.path, target)
        copied += 1

    if args.compression:
        archive = shutil.make_archive(str(backup_dir), "zip", root_dir=backup_dir)
        shutil.rmtree(backup_dir)
        return f"Workspace backed up to {archive} ({copied} files, compressed)"
    return f"Workspace backed up to {backup_dir} ({copied} files)"


# ---------------------------------------------------------------------------
# Single-file tools
# ---------------------------------------------------------------------------


def _tool_read_file(args: ReadFileInput) -> str:
    path = Path(args.path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {args.path}")
    content = path.read_text(encoding="utf-8", errors="replace")
    size = path.stat().st_size
    return f"File: {args.path}\nSize: {size} bytes\nContent:\n{RULE}\n{content}\n{RULE}"


def _tool_write_file(args: WriteFileInput) -> str:
    path = Path(args.path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(args.content, encoding="utf-8")
    return f"File written successfully: {args.path}\nSize: {path.stat().st_size} bytes"


def _tool_list_files(args: ListFilesInput) -> str:
    if not os.path.isdir(args.path):
        raise FileNotFoundError(f"Directory not found: {args.path}")

    dirs: list[str] = []
    files: list[str] = []
    with os.scandir(args.path) as it:
        for entry in it:
            if entry.is_dir():
                dirs.append(f"📁 {entry.name}/")
            else:
                files.append(f"📄 {entry.name} ({format_bytes(entry.stat().st_size)})")

    return "\n".join(
        [f"Directory: {args.path}", f"Total: {len(dirs)} directories, {len(files)} files", "", *dirs, *files]
    )


# ---------------------------------------------------------------------------
# System tools
# ---------------------------------------------------------------------------


def _tool_execute_command(args: CommandInput) -> str:
    completed = subprocess.run(
        args.command,
        shell=True,
        capture_output=True,
        text=True,
        cwd=os.getcwd(),
        timeout=args.timeout,
    )
    if completed.returncode != 0:
        raise RuntimeError(
            f"Command failed: {args.command}\n"
            f"Exit code: {completed.returncode}\n"
            f"Stderr: {completed.stderr.strip()}"
        )
    if completed.stderr and not completed.stdout:
        return f"Command executed with warnings:\n{completed.stderr}"
    return completed.stdout or f"Command '{args.command}' executed successfully"


_ERROR_PATTERNS = {
    ("FileNotFoundError", "ENOENT"): (
        "File Not Found",
        ["File or directory doesn't exist", "Incorrect file path", "Missing permissions"],
        ["Check if the file path is correct", "Verify the file exists", "Check file permissions"],
    ),
    ("PermissionError", "EACCES"): (
        "Permission Denied",
        ["Insufficient permissions", "File is locked", "Protected system file"],
        ["Run with appropriate permissions", "Close programs using the file", "Check file ownership"],
    ),
    ("ModuleNotFoundError", "ImportError", "MODULE_NOT_FOUND"): (
        "Module Not Found",
        ["Package not installed", "Incorrect import path", "Missing dependency"],
        ["Install the missing package", "Check declared dependencies", "Verify the import statement"],
    ),
    ("SyntaxError", "IndentationError"): (
        "Syntax Error",
        ["Invalid syntax", "Missing brackets/parentheses", "Inconsistent indentation"],
        ["Check for typos", "Verify bracket matching", "Check indentation and separators"],
    ),
    ("TypeError",): (
        "Type Error",
        ["Calling a non-function", "Accessing an attribute of None/undefined", "Wrong data type"],
        ["Check variable initialization", "Add None/null checks", "Verify data types"],
    ),
    ("NameError", "ReferenceError"): (
        "Reference Error",
        ["Variable not declared", "Variable out of scope", "Typo in variable name"],
        ["Declare the variable before use", "Check variable scope", "Verify spelling"],
    ),
}


def _stack_references(text: str) -> list[str]:
    refs = [f"{m.group(1)} (line {m.group(2)})" for m in re.finditer(r'File "(.+?)", line (\d+)', text)]
    refs += [f"{m.group(1)} (line {m.group(2)})" for m in re.finditer(r"\((.+?):(\d+):(\d+)\)", text)]
    return refs


def _tool_analyze_error(args: AnalyzeErrorInput) -> str:
    error_type, causes, suggestions = "Unknown", [], []
    for markers, info in _ERROR_PATTERNS.items():
        if any(marker in args.error_text for marker in markers):
            error_type, causes, suggestions = info
            break

    lines = ["Error Analysis:", f"Type: {error_type}", "", "Possible Causes:"]
    lines += [f"  • {c}" for c in causes]
    lines += ["", "Suggestions:"]
    lines += [f"  • {s}" for s in suggestions]
    refs = _stack_references(args.error_text)
    if refs:
        lines += ["", "Files Involved:", *(f"  • {r}" for r in refs)]
    return "\n".join(lines)


def _tool_version(command: list[str]) -> str:
    try:
        completed = subprocess.run(command, capture_output=True, text=True, timeout=10)
    except (OSError, subprocess.SubprocessError):
        return "Not installed"
    return completed.stdout.strip() or "Not installed"


def _tool_get_system_info(args: EmptyInput) -> str:
    return "\n".join(
        [
            "System Information:",
            f"OS: {platform.system()} {platform.release()}",
            f"Architecture: {platform.machine()}",
            f"Python: {sys.version.split()[0]}",
            f"Git: {_tool_version(['git', '--version'])}",
            f"Current Directory: {os.getcwd()}",
            f"CPUs: {os.cpu_count()}",
        ]
    )


# ---------------------------------------------------------------------------
# Settings-backed tools
# ---------------------------------------------------------------------------


def _tool_create_project(settings: SettingsService, args: CreateProjectInput) -> str:
    template = settings.get_template(args.type, args.template)
    if not template:
        raise ValueError(f"Template {args.type}/{args.template} not found")

    project_path = Path(args.directory) / args.name
    project_path.mkdir(parents=True, exist_ok=True)
    files = process_template(template.get("files", {}), {"name": args.name})
    for file_name, content in files.items():
        target = project_path / file_name
        target.parent.mkdir(parents=True, exist_ok=True)
        if file_name.endswith(".json") and isinstance(content, (dict, list)):
            target.write_text(json.dumps(content, indent=2), encoding="utf-8")
        else:
            target.write_text(str(content), encoding="utf-8")
    return f"Project '{args.name}' created successfully at {project_path}"


def _tool_get_config(settings: SettingsService, args: ConfigGetInput) -> str:
    value = settings.get(args.path)
    if value is None:
        return f"Configuration path '{args.path}' not found"
    return f"Configuration {args.path or '(root)'}: {json.dumps(value, indent=2)}"


def _tool_set_config(settings: SettingsService, args: ConfigSetInput) -> str:
    settings.set(args.path, args.value)
    settings.save()
    return f"Configuration {args.path} set to: {json.dumps(args.value, indent=2)}"


def _tool_list_templates(settings: SettingsService, args: EmptyInput) -> str:
    lines = ["Available Templates:"]
    for type_, group in settings.templates().items():
        lines.append(f"\n{type_.upper()}:")
        for name, template in group.items():
            lines.append(f"  • {name}: {template.get('description') or 'No description'}")
    return "\n".join(lines)


def _tool_add_template(settings: SettingsService, args: TemplateAddInput) -> str:
    settings.add_template(args.type, args.name, args.template)
    return f"Template {args.type}/{args.name} added successfully"


def _tool_remove_template(settings: SettingsService, args: TemplateRemoveInput) -> str:
    if not settings.remove_template(args.type, args.name):
        return f"Template {args.type}/{args.name} not found"
    return f"Template {args.type}/{args.name} removed successfully"


def _tool_reset_config(settings: SettingsService, args: EmptyInput) -> str:
    settings.reset()
    return "Configuration reset to defaults"


# ---------------------------------------------------------------------------
# Registry factory
# ---------------------------------------------------------------------------


def build_registry(settings: SettingsService) -> ToolRegistry:
    """All built-in tools, bound to one settings instance and verified complete."""
    registry = ToolRegistry()
    entries = [
        ("browseDirectory", _tool_browse_directory, BrowseInput,
         "Browse a directory with filtering. Input: {path, recursive, maxDepth, includeHidden, "
         "fileTypes, excludeDirs, sortBy: name|size|modified, order: asc|desc}"),
        ("findFiles", _tool_find_files, FindInput,
         "Find files by name pattern ('*' wildcard or substring). Input: {pattern, directory, "
         "fileTypes, excludeDirs, maxDepth, includeHidden}"),
        ("searchInFiles", _tool_search_in_files, SearchInput,
         "Search for text in files, line by line. Input: {pattern, directory, fileExtension}"),
        ("globalSearchReplace", _tool_global_search_replace, ReplaceInput,
         "Search and replace literal text across files. Input: {searchText, replaceText, directory, "
         "fileTypes, excludeDirs, dryRun (default true)}"),
        ("readFile", _tool_read_file, ReadFileInput, "Read a file. Input: file path string"),
        ("writeFile", _tool_write_file, WriteFileInput,
         "Write or overwrite a file, creating directories. Input: {path, content}"),
        ("listFiles", _tool_list_files, ListFilesInput, "List one directory. Input: directory path string"),
        ("executeCommand", _tool_execute_command, CommandInput, "Execute a shell command. Input: command string"),
        ("analyzeError", _tool_analyze_error, AnalyzeErrorInput,
         "Analyze an error message or stack trace. Input: error text string"),
        ("getSystemInfo", _tool_get_system_info, EmptyInput, "Get system information. Input: none"),
        ("createProject", partial(_tool_create_project, settings), CreateProjectInput,
         "Create a project from a template. Input: {name, type, template, directory}"),
        ("backupWorkspace", _tool_backup_workspace, BackupInput,
         "Back up the working directory. Input: {backupPath, includeNodeModules, compression}"),
        ("getConfig", partial(_tool_get_config, settings), ConfigGetInput,
         "Get a configuration value. Input: {path} (dotted)"),
        ("setConfig", partial(_tool_set_config, settings), ConfigSetInput,
         "Set a configuration value. Input: {path, value}"),
        ("listTemplates", partial(_tool_list_templates, settings), EmptyInput,
         "List project templates. Input: none"),
        ("addTemplate", partial(_tool_add_template, settings), TemplateAddInput,
         "Add a project template. Input: {type, name, template: {description, files}}"),
        ("removeTemplate", partial(_tool_remove_template, settings), TemplateRemoveInput,
         "Remove a project template. Input: {type, name}"),
        ("resetConfig", partial(_tool_reset_config, settings), EmptyInput,
         "Reset configuration to defaults. Input: none"),
    ]
    for name, operation, input_model, description in entries:
        registry.register(
            ToolDescriptor(name=name, operation=operation, description=description, input_model=input_model)
        )
    registry.verify(REQUIRED_TOOLS)
    return registry
