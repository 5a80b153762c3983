# interaction.py
# User decisions for the interactive flow.
#
# The orchestrator only sees the Prompter protocol; tests script it with a
# fake. ConsolePrompter is the terminal implementation.

from typing import Protocol, Sequence

from rich.console import Console
from rich.prompt import Prompt

from docagent import display


class UserCancelled(Exception):
    """Raised when the user aborts a prompt (Ctrl-C or end of input)."""


class Prompter(Protocol):
    def select(self, message: str, choices: Sequence[str], default: str) -> str:
        """Return one of `choices`. Raises UserCancelled."""
        ...

    def ask_text(self, message: str) -> str:
        """Return free text, possibly empty. Raises UserCancelled."""
        ...


class ConsolePrompter:
    """Numbered menus and text input through rich.prompt."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or display.console

    def select(self, message: str, choices: Sequence[str], default: str) -> str:
        self._console.print()
        for number, choice in enumerate(choices, start=1):
            self._console.print(f"  [cyan]{number})[/cyan] {choice}")

        numbers = [str(n) for n in range(1, len(choices) + 1)]
        try:
            answer = Prompt.ask(
                f"[bold]{message}[/bold]",
                console=self._console,
                choices=numbers,
                default=str(list(choices).index(default) + 1),
            )
        except (KeyboardInterrupt, EOFError) as exc:
            raise UserCancelled(message) from exc
        return choices[int(answer) - 1]

    def ask_text(self, message: str) -> str:
        try:
            return Prompt.ask(f"[bold]{message}[/bold]", console=self._console, default="", show_default=False).strip()
        except (KeyboardInterrupt, EOFError) as exc:
            raise UserCancelled(message) from exc
