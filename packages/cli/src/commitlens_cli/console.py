"""Terminal output shared by every command.

Holds at most one loader at a time: ``show_loader`` retitles the running
spinner instead of starting a second one, so repeated watch cycles never leak
spinner threads.
"""

from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.status import Status


class ConsoleManager:
    title = "commitlens"

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._loader: Status | None = None

    @property
    def loading(self) -> bool:
        return self._loader is not None

    def print_title(self) -> None:
        self.console.print(Rule(f"[bold cyan]{self.title}[/bold cyan]"))

    def show_loader(self, text: str) -> None:
        if self._loader is not None:
            self._loader.update(text)
            return
        self._loader = self.console.status(text)
        self._loader.start()

    def stop_loader(self) -> None:
        if self._loader is not None:
            self._loader.stop()
            self._loader = None

    def print_files(self, files: Sequence[str], label: str = "Detected") -> None:
        noun = "file" if len(files) == 1 else "files"
        self.console.print(f"[bold green]✔[/bold green] [bold]{label} {len(files)} changed {noun}:[/bold]")
        for file in files:
            self.console.print(f"     {escape(file)}", highlight=False)
        self.console.print()

    def print_success(self, message: str) -> None:
        self.console.print(f"\n[bold green]✔[/bold green] [bold]{escape(message)}[/bold]")

    def print_error(self, message: str) -> None:
        self.console.print(f"\n[bold red]✖[/bold red] [red]{escape(message)}[/red]", highlight=False)

    def print_warning(self, message: str) -> None:
        self.console.print(f"\n[bold yellow]⚠[/bold yellow] [yellow]{escape(message)}[/yellow]", highlight=False)

    def print_hook_installed(self, hook: str) -> None:
        self.print_success(f"Git {hook} hook has been set up")

    def clear(self) -> None:
        self.console.clear()
