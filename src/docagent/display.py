# display.py
# All terminal output for the documentation agent.
#
# This module owns presentation entirely. The orchestrator never formats
# strings; it calls named functions here.
#
# Colour language:
#   cyan    : task scaffolding and progress
#   blue    : model responses
#   magenta : tool activity
#   yellow  : warnings and recoverable conditions
#   green   : success
#   red     : failures and cancellation

from rich import box
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.console import Console
from rich.rule import Rule
from rich.text import Text

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    value = value.replace("\n", " ")
    if len(value) > max_len:
        value = value[:max_len] + "…"
    return escape(value)


# ---------------------------------------------------------------------------
# Animated status
# ---------------------------------------------------------------------------


class AnimatedStatus:
    """
    Spinner shown while the model works.

    Backed by rich's Status, which redraws on its own thread. Lines printed
    through the same console while it runs appear above the spinner.
    """

    SPINNER = "bouncingBar"

    def __init__(self, message: str, target: Console | None = None) -> None:
        self._console = target or console
        self._status = self._console.status(f"🤖 {escape(message)}", spinner=self.SPINNER, spinner_style="cyan")
        self._active = False

    def start(self) -> None:
        if not self._active:
            self._status.start()
            self._active = True

    def stop(self) -> None:
        if self._active:
            self._status.stop()
            self._active = False

    def finish(self, message: str) -> None:
        self.stop()
        self._console.print(f"🤖 {escape(message)} [green]✅[/green]")

    def error(self, message: str) -> None:
        self.stop()
        self._console.print(f"🤖 {escape(message)} [red]❌[/red]")

    def __enter__(self) -> "AnimatedStatus":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


# ---------------------------------------------------------------------------
# Task entry
# ---------------------------------------------------------------------------


def banner(model: str, package: str, unattended: bool, tool_count: int) -> None:
    mode = "unattended" if unattended else "interactive"
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Documentation Agent[/bold cyan]\n"
            "[dim]Generates or revises the package README with a tool-using model[/dim]\n\n"
            f"[dim]Package :[/dim] [white]{escape(package)}[/white]\n"
            f"[dim]Model   :[/dim] [white]{escape(model)}[/white]\n"
            f"[dim]Mode    :[/dim] [white]{mode}[/white]\n"
            f"[dim]Tools   :[/dim] [white]{tool_count}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def backup_taken(original: str | None) -> None:
    if original is None:
        console.print("📋 [cyan]No existing README.md found - will create a new one[/cyan]")
    else:
        console.print(f"📋 [cyan]Backed up original README.md ({len(original)} characters)[/cyan]")


def startup_failed(reason: str) -> None:
    console.print(_label("ERROR", "red"), f" [red]{escape(reason)}[/red]")


# ---------------------------------------------------------------------------
# Model turns
# ---------------------------------------------------------------------------


def tool_call(name: str, arguments: str) -> None:
    console.print(f"  [magenta]Action[/magenta]   [bold white]{escape(name)}[/bold white]  [dim]{_mono(arguments, 100)}[/dim]")


def tool_result(text: str, is_error: bool) -> None:
    style = "red" if is_error else "white"
    console.print(f"  [magenta]Observe[/magenta]  [{style}]{_mono(text, 140)}[/{style}]")


def agent_response(text: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[white]{escape(text)}[/white]" if text.strip() else "[dim](no text, the turn ended on a tool call)[/dim]",
            title=_label("AGENT RESPONSE", "blue"),
            border_style="blue",
            padding=(0, 2),
        )
    )


def token_limit_hit() -> None:
    console.print()
    console.print("⚠️  [yellow]The model hit its response length limit. Switching to section-based generation…[/yellow]")


def error_detected(unattended: bool) -> None:
    console.print()
    console.print("❌ [bold red]Error detected in the model response.[/bold red]")
    if unattended:
        console.print("[red]In unattended mode, exiting due to the error.[/red]")


def retrying(attempt: int, total: int) -> None:
    console.print(f"⚠️  [yellow]README.md was not updated. Retrying with explicit instructions ({attempt}/{total})…[/yellow]")


# ---------------------------------------------------------------------------
# Document state
# ---------------------------------------------------------------------------


def document_updated(content: str) -> None:
    console.print(f"📄 [green]README.md was updated ({len(content)} characters written)[/green]")


def document_not_updated() -> None:
    console.print()
    console.print("⚠️  [yellow]README.md was not updated[/yellow]")


def preview(rendered: str) -> None:
    lines = rendered.count("\n") + 1
    console.print(f"📊 Processed README stats: {len(rendered)} characters, {lines} lines")
    console.print(Rule("[cyan]📄 Processed README.md[/cyan]", style="cyan"))
    console.print(Markdown(rendered))
    console.print(Rule(style="cyan"))


def render_failed() -> None:
    console.print()
    console.print(
        Panel(
            "[bold yellow]The generated README.md could not be rendered.[/bold yellow]\n"
            "[dim]It is recommended that you do not accept this version (request changes or cancel).[/dim]",
            border_style="yellow",
            box=box.ROUNDED,
            padding=(0, 2),
        )
    )


def preservation_warnings(warnings: list[str]) -> None:
    if not warnings:
        return
    console.print("⚠️  [yellow]Warning: some human-edited sections may not have been preserved:[/yellow]")
    for warning in warnings:
        console.print(f"   [yellow]- {escape(warning)}[/yellow]")
    console.print("   [dim]Please review the documentation to ensure important content wasn't lost.[/dim]")


def note(message: str) -> None:
    console.print(f"⚠️  [yellow]{escape(message)}[/yellow]")


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


def accepted() -> None:
    console.print()
    console.print(Panel("[bold green]Documentation update completed![/bold green]", title=_label("ACCEPTED", "green"), border_style="green", padding=(0, 2)))
    console.print()


def cancelled(message: str = "Documentation update cancelled.") -> None:
    console.print()
    console.print(f"❌ [red]{escape(message)}[/red] [dim]The original README.md state was restored.[/dim]")


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]\n[dim]The original README.md state was restored.[/dim]",
            title=_label("FAILED", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
