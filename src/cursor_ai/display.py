# display.py
# All terminal output for the cursor-ai agent and CLI.
#
# This module owns presentation entirely. driver.py and cli.py never format
# strings for the user; they call named functions here.
#
# Colour language:
#   cyan    : requests and routing
#   blue    : plan steps
#   magenta : actions and observations
#   green   : completion
#   yellow  : budget warnings
#   red     : failures and halts

import json
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from cursor_ai.models import ActionStep, ObservationStep, OutputStep, PlanStep

console = Console()

OBSERVATION_PREVIEW = 200


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        value = value[:max_len] + "…"
    return escape(value)


def _prefix(index: int | None) -> str:
    return f"[dim]\\[Step {index}][/dim] " if index is not None else "  "


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def banner(model: str, max_steps: int) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]cursor-ai[/bold cyan]\n"
            "[dim]Plan / Action / Observation / Output agent for your workspace[/dim]\n\n"
            f"[dim]Model     :[/dim] [white]{model}[/white]\n"
            f"[dim]Max steps :[/dim] [white]{max_steps}[/white]\n\n"
            "[dim]Type a request, 'help' for commands, or 'exit' to quit.[/dim]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def interactive_help(commands: list[str]) -> None:
    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 1))
    table.add_column("Input", style="bold cyan")
    table.add_column("Effect", style="white")
    table.add_row("<request>", "Send a natural-language request to the agent")
    table.add_row(" | ".join(commands), "Run a direct command, same options as the CLI")
    table.add_row("help", "Show this help")
    table.add_row("exit", "Leave the session")
    console.print(Panel(table, title=_label("HELP", "cyan"), border_style="cyan", padding=(0, 1)))


def read_request() -> str:
    console.print()
    return console.input("[bold cyan]cursor-ai>[/bold cyan] ")


def goodbye() -> None:
    console.print("[dim]Goodbye.[/dim]")


def prompt_received(prompt: str) -> None:
    console.print()
    console.print(Rule("[cyan]NEW REQUEST[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{escape(prompt)}[/white]",
            title=_label("USER", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def step(item: PlanStep | ActionStep | ObservationStep | OutputStep, index: int | None = None) -> None:
    """Render one step. Model steps carry the step number, observations don't."""
    prefix = _prefix(index)

    if isinstance(item, PlanStep):
        console.print(f"{prefix}[bold blue]Plan[/bold blue]     [white]{escape(item.plan)}[/white]")
    elif isinstance(item, ActionStep):
        console.print(
            f"{prefix}[bold magenta]Action[/bold magenta]   [bold white]{escape(item.function)}[/bold white]"
            f"  [dim]{_mono(json.dumps(item.input, default=str), 160)}[/dim]"
        )
    elif isinstance(item, ObservationStep):
        console.print(
            f"{prefix}[magenta]Observe[/magenta]  "
            f"[white]{_mono(item.observation, OBSERVATION_PREVIEW)}[/white]"
        )
    elif isinstance(item, OutputStep):
        body = f"[white]{escape(item.output)}[/white]"
        if item.summary:
            body += f"\n\n[dim]{escape(item.summary)}[/dim]"
        console.print()
        console.print(
            Panel(
                body,
                title=Text.assemble(Text.from_markup(prefix), _label("OUTPUT", "green")),
                border_style="green",
                padding=(1, 2),
            )
        )


def action_failed(function: str) -> None:
    console.print(f"  [bold red]✗ {escape(function)} failed[/bold red]  [dim]error returned to the model[/dim]")


# ---------------------------------------------------------------------------
# Terminal states
# ---------------------------------------------------------------------------


def task_complete() -> None:
    console.print("[bold green]✓ Task completed successfully[/bold green]")
    console.print()


def parse_failure(raw: str) -> None:
    console.print()
    console.print(
        Panel(
            "[bold red]The model response is not a valid step. Conversation ended.[/bold red]\n\n"
            f"[dim]{_mono(raw, 400)}[/dim]",
            title=_label("PARSE ERROR ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def budget_exhausted(max_steps: int) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold yellow]Maximum steps reached ({max_steps}). Task may be incomplete.[/bold yellow]",
            title=_label("BUDGET", "yellow"),
            border_style="yellow",
            padding=(0, 2),
        )
    )


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Direct commands
# ---------------------------------------------------------------------------


def tool_result(text: str) -> None:
    console.print(text, markup=False, highlight=False, soft_wrap=True)


def error(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}", highlight=False, soft_wrap=True)


def templates_table(templates: dict[str, dict[str, Any]]) -> None:
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="cyan",
        show_header=True,
        header_style="bold cyan",
        padding=(0, 1),
    )
    table.add_column("Type", style="bold white")
    table.add_column("Name", style="white")
    table.add_column("Files", justify="right")
    table.add_column("Description", style="dim white")

    for type_, group in sorted(templates.items()):
        for name, template in sorted(group.items()):
            table.add_row(
                escape(type_),
                escape(name),
                str(len(template.get("files", {}))),
                escape(template.get("description") or ""),
            )

    console.print(Panel(table, title=_label("TEMPLATES", "cyan"), border_style="cyan", padding=(0, 1)))
