# cli.py
# Entry point. Wiring and argument parsing only.
#
#   cursor-ai                      interactive session
#   cursor-ai ask "<request>"      one agent conversation
#   cursor-ai browse|find|...      direct tool commands, no model involved
#
# Swap the model with --model or `cursor-ai config set ai.model <id>`.
# https://openrouter.ai/models

import json
import shlex
from dataclasses import dataclass, field
from typing import Any

import click
from loguru import logger
from openai import OpenAIError

from cursor_ai import display
from cursor_ai.driver import DEFAULT_MAX_STEPS, ConversationDriver, build_system_prompt
from cursor_ai.errors import (
    InvalidInputError,
    SettingsError,
    ToolExecutionError,
    ToolNotFoundError,
)
from cursor_ai.gateway import OpenRouterGateway
from cursor_ai.logging_setup import configure_logging
from cursor_ai.registry import ToolRegistry
from cursor_ai.settings import SettingsService
from cursor_ai.tools import build_registry

EXIT_COMMANDS = {"exit", "quit"}


@dataclass
class Session:
    """Everything a command needs, built once per process."""

    settings: SettingsService
    registry: ToolRegistry
    model: str
    max_steps: int
    temperature: float | None = None
    _driver: ConversationDriver | None = field(default=None, init=False, repr=False)

    def driver(self) -> ConversationDriver:
        if self._driver is None:
            gateway = OpenRouterGateway(
                model=self.model,
                system_prompt=build_system_prompt(self.registry),
                temperature=self.temperature,
            )
            self._driver = ConversationDriver(gateway, self.registry, max_steps=self.max_steps)
        return self._driver


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _split_csv(ctx: click.Context, param: click.Parameter, value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _payload(**values: Any) -> dict[str, Any]:
    """Drop options the user didn't give so the tool's own defaults apply."""
    return {key: value for key, value in values.items() if value is not None}


def _invoke(ctx: click.Context, name: str, payload: Any = None) -> None:
    session: Session = ctx.obj
    try:
        display.tool_result(session.registry.invoke(name, payload))
    except (ToolNotFoundError, InvalidInputError, ToolExecutionError) as exc:
        display.error(str(exc))
        ctx.exit(1)


def _step_budget(value: Any) -> int:
    """A stored ai.maxSteps that is not a whole number >= 1 falls back to the default."""
    if value is None:
        return DEFAULT_MAX_STEPS
    try:
        steps = None if isinstance(value, (bool, float)) else int(value)
    except (TypeError, ValueError):
        steps = None
    if steps is None or steps < 1:
        display.error(f"Invalid ai.maxSteps {value!r}, using {DEFAULT_MAX_STEPS}")
        logger.warning("Invalid ai.maxSteps {!r}, falling back to {}", value, DEFAULT_MAX_STEPS)
        return DEFAULT_MAX_STEPS
    return steps


def _converse(ctx: click.Context, prompt: str) -> bool:
    session: Session = ctx.obj
    try:
        driver = session.driver()
    except OpenAIError as exc:
        display.error(f"Model client unavailable: {exc}")
        return False
    return driver.run(prompt).succeeded


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


@click.group(invoke_without_command=True)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging, mirrored to stderr.")
@click.option("--log-file", type=click.Path(), default=None, help="Log file or directory.")
@click.option("--max-steps", type=click.IntRange(min=1), default=None, help="Step budget per request.")
@click.option("--model", default=None, help="OpenRouter model id.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_file: str | None, max_steps: int | None, model: str | None) -> None:
    """cursor-ai: an AI agent for your workspace."""
    # The interactive session re-enters this group with ctx.obj already set.
    if ctx.obj is None:
        configure_logging("DEBUG" if verbose else None, console=verbose, log_file=log_file)

        settings = SettingsService()
        try:
            settings.load()
        except SettingsError as exc:
            display.error(str(exc))
            ctx.exit(1)

        ctx.obj = Session(
            settings=settings,
            registry=build_registry(settings),
            model=model or settings.get("ai.model"),
            max_steps=max_steps or _step_budget(settings.get("ai.maxSteps")),
            temperature=settings.get("ai.temperature"),
        )
        logger.info("Session ready: model='{}' max_steps={}", ctx.obj.model, ctx.obj.max_steps)

    if ctx.invoked_subcommand is None:
        _interactive(ctx)


def _interactive(ctx: click.Context) -> None:
    session: Session = ctx.obj
    display.banner(session.model, session.max_steps)
    commands = sorted(name for name in cli.commands if name != "ask")

    while True:
        try:
            line = display.read_request().strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not line:
            continue
        if line.lower() in EXIT_COMMANDS:
            break
        if line.lower() == "help":
            display.interactive_help(commands)
            continue

        try:
            words = shlex.split(line)
        except ValueError:
            words = []

        if words and words[0] in cli.commands:
            try:
                cli.main(args=words, prog_name="cursor-ai", standalone_mode=False, obj=session)
            except click.ClickException as exc:
                display.error(exc.format_message())
            except click.Abort:
                pass
            continue

        _converse(ctx, line)

    display.goodbye()


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("prompt", nargs=-1, required=True)
@click.pass_context
def ask(ctx: click.Context, prompt: tuple[str, ...]) -> None:
    """Send one request to the agent."""
    if not _converse(ctx, " ".join(prompt)):
        ctx.exit(1)


# ---------------------------------------------------------------------------
# Direct tool commands
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("path", default=".")
@click.option("--recursive", "-r", is_flag=True)
@click.option("--max-depth", type=click.IntRange(min=0), default=None)
@click.option("--include-hidden", is_flag=True)
@click.option("--file-types", callback=_split_csv, help="Comma-separated extensions, e.g. .js,.ts")
@click.option("--exclude-dirs", callback=_split_csv, help="Comma-separated directory names.")
@click.option("--sort-by", type=click.Choice(["name", "size", "modified"]), default="name")
@click.option("--order", type=click.Choice(["asc", "desc"]), default="asc")
@click.pass_context
def browse(ctx, path, recursive, max_depth, include_hidden, file_types, exclude_dirs, sort_by, order):
    """Browse a directory with filtering."""
    _invoke(ctx, "browseDirectory", _payload(
        path=path,
        recursive=recursive,
        max_depth=max_depth,
        include_hidden=include_hidden,
        file_types=file_types,
        exclude_dirs=exclude_dirs,
        sort_by=sort_by,
        order=order,
    ))


@cli.command()
@click.argument("pattern")
@click.argument("directory", default=".")
@click.option("--file-types", callback=_split_csv)
@click.option("--exclude-dirs", callback=_split_csv)
@click.option("--max-depth", type=click.IntRange(min=0), default=None)
@click.option("--include-hidden", is_flag=True)
@click.pass_context
def find(ctx, pattern, directory, file_types, exclude_dirs, max_depth, include_hidden):
    """Find files by name. PATTERN may use '*' wildcards."""
    _invoke(ctx, "findFiles", _payload(
        pattern=pattern,
        directory=directory,
        file_types=file_types,
        exclude_dirs=exclude_dirs,
        max_depth=max_depth,
        include_hidden=include_hidden,
    ))


@cli.command()
@click.argument("pattern")
@click.argument("directory", default=".")
@click.option("--file-type", "file_extension", default=None, help="Only files ending with this extension.")
@click.pass_context
def search(ctx, pattern, directory, file_extension):
    """Search for text in files, line by line."""
    _invoke(ctx, "searchInFiles", _payload(pattern=pattern, directory=directory, file_extension=file_extension))


@cli.command()
@click.argument("search_text")
@click.argument("replace_text", required=False)
@click.argument("directory", default=".")
@click.option("--file-types", callback=_split_csv)
@click.option("--exclude-dirs", callback=_split_csv)
@click.option("--dry-run", is_flag=True, help="Report matches without writing.")
@click.pass_context
def replace(ctx, search_text, replace_text, directory, file_types, exclude_dirs, dry_run):
    """Replace literal text across files. Without REPLACE_TEXT only counts matches."""
    _invoke(ctx, "globalSearchReplace", _payload(
        search_text=search_text,
        replace_text=replace_text,
        directory=directory,
        file_types=file_types,
        exclude_dirs=exclude_dirs,
        dry_run=dry_run or replace_text is None,
    ))


@cli.command()
@click.argument("name")
@click.argument("type_", metavar="TYPE", default="node")
@click.argument("template", default="basic")
@click.argument("directory", default=".")
@click.pass_context
def create(ctx, name, type_, template, directory):
    """Create a project from a template."""
    _invoke(ctx, "createProject", {"name": name, "type": type_, "template": template, "directory": directory})


@cli.command()
@click.argument("backup_path", required=False)
@click.option("--include-node-modules", is_flag=True)
@click.option("--compression", is_flag=True, help="Write a zip archive instead of a directory.")
@click.pass_context
def backup(ctx, backup_path, include_node_modules, compression):
    """Back up the working directory outside of it."""
    _invoke(ctx, "backupWorkspace", _payload(
        backup_path=backup_path,
        include_node_modules=include_node_modules,
        compression=compression,
    ))


@cli.command()
@click.pass_context
def info(ctx):
    """Show system information."""
    _invoke(ctx, "getSystemInfo")


@cli.command()
@click.pass_context
def templates(ctx):
    """List project templates."""
    display.templates_table(ctx.obj.settings.templates())


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@cli.group()
def config():
    """Read and change settings."""


@config.command("get")
@click.argument("path", default="")
@click.pass_context
def config_get(ctx, path):
    """Print the value at a dotted PATH (everything when omitted)."""
    _invoke(ctx, "getConfig", {"path": path})


@config.command("set")
@click.argument("path")
@click.argument("value")
@click.pass_context
def config_set(ctx, path, value):
    """Set a dotted PATH. VALUE is parsed as JSON when possible."""
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    _invoke(ctx, "setConfig", {"path": path, "value": parsed})


@config.command("reset")
@click.confirmation_option(prompt="Reset all settings to defaults?")
@click.pass_context
def config_reset(ctx):
    """Restore default settings."""
    _invoke(ctx, "resetConfig")


def main() -> None:
    cli(prog_name="cursor-ai")


if __name__ == "__main__":
    main()
