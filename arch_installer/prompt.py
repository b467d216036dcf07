from __future__ import annotations

from typing import Optional, Protocol, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.rule import Rule


class Prompter(Protocol):
    """Synchronous operator interaction consumed by the sequencer and step bodies."""

    def ask_text(self, prompt: str) -> str:
        ...

    def ask_yes_no(self, prompt: str) -> bool:
        ...

    def ask_choice(self, prompt: str, options: Sequence[str]) -> int:
        """Return the 0-based index of the chosen option."""
        ...

    def report_progress(self, current: int, total: int, title: str) -> None:
        ...

    def report_done(self) -> None:
        ...

    def report_error(self, message: str) -> None:
        ...

    def banner(self, text: str, *, style: str = "cyan") -> None:
        ...


def progress_percent(current: int, total: int) -> int:
    return current * 100 // total


class ConsolePrompter:
    """Rich-based terminal prompter."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def ask_text(self, prompt: str) -> str:
        return Prompt.ask(prompt, console=self.console).strip()

    def ask_yes_no(self, prompt: str) -> bool:
        # Confirm re-asks until it gets y or n.
        return Confirm.ask(prompt, console=self.console)

    def ask_choice(self, prompt: str, options: Sequence[str]) -> int:
        self.console.print()
        self.console.print(prompt)
        self.console.print()
        for i, option in enumerate(options, start=1):
            self.console.print(f"{i}. {option}")
        self.console.print()
        while True:
            num = IntPrompt.ask("Enter number", console=self.console)
            if 1 <= num <= len(options):
                return num - 1
            self.console.print("[red]Error: enter one of the listed numbers.[/red]")

    def report_progress(self, current: int, total: int, title: str) -> None:
        self.console.print()
        self.console.print(Rule(f"[bold cyan]{title}[/bold cyan]", style="cyan"))
        self.console.print(
            f"[cyan]> [{current}/{total} | {progress_percent(current, total)}%] <[/cyan]",
            justify="center",
        )
        self.console.print()

    def report_done(self) -> None:
        self.console.print(Rule("[green]Done[/green]", style="green"))

    def report_error(self, message: str) -> None:
        self.console.print(Rule("[red]Error[/red]", style="red"))
        self.console.print(f"[red]{message}[/red]")

    def banner(self, text: str, *, style: str = "cyan") -> None:
        self.console.print(
            Panel(f"[bold]{text}[/bold]", box=box.DOUBLE, border_style=style, padding=(1, 2))
        )
