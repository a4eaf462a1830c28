"""Interactive candidate list rendered with rich.

Rows are printed as each provider finishes and numbered in arrival order.
The prompt reads stdin through the event loop, so results keep streaming in
while the user is deciding and a pending prompt can be cancelled.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Awaitable, Callable

from rich.markup import escape

from commitlens_core.models import Candidate
from commitlens_core.selection import EntryState, SelectionEntry, SelectionOptions
from commitlens_cli.console import ConsoleManager


async def read_stdin_line() -> str:
    """Read one line from stdin without blocking the event loop."""
    loop = asyncio.get_running_loop()
    fd = sys.stdin.fileno()
    future: asyncio.Future = loop.create_future()

    def _on_readable() -> None:
        if not future.done():
            future.set_result(sys.stdin.readline())

    try:
        loop.add_reader(fd, _on_readable)
    except NotImplementedError:
        # Proactor loops (Windows) cannot watch stdin.
        return await asyncio.to_thread(sys.stdin.readline)
    try:
        return await future
    finally:
        loop.remove_reader(fd)


class RichSelectionView:
    def __init__(
        self,
        manager: ConsoleManager,
        options: SelectionOptions,
        read_line: Callable[[], Awaitable[str]] = read_stdin_line,
    ):
        self.manager = manager
        self.console = manager.console
        self.options = options
        self.rows: list[Candidate] = []
        self.closed = False
        self._read_line = read_line
        self._prompting = False

    def start_loader(self, text: str) -> None:
        self.manager.show_loader(text)

    def stop_loader(self) -> None:
        self.manager.stop_loader()
        self.manager.print_success(self.options.stop_message)

    def refresh(self, entry: SelectionEntry) -> None:
        if self.closed:
            return
        provider = escape(entry.provider)
        if entry.state is EntryState.ERRORED:
            self.console.print(f"[bold red]✖[/bold red] [cyan]{provider}[/cyan] [red]{escape(entry.error or '')}[/red]")
        elif not entry.candidates:
            self.console.print(f"[bold yellow]⚠[/bold yellow] [cyan]{provider}[/cyan] [dim]returned nothing[/dim]")
        for candidate in entry.candidates:
            self.rows.append(candidate)
            self.console.print(f"[bold]{len(self.rows)}.[/bold] [cyan]{provider}[/cyan] {escape(candidate.title)}")
            self._print_description(candidate.description)
        if self._prompting:
            self._print_prompt()

    def _print_description(self, description: str) -> None:
        if not description:
            return
        lines = description.splitlines()
        shown = lines[: self.options.desc_page_size]
        for line in shown:
            self.console.print(f"     [dim]{escape(line)}[/dim]")
        if len(lines) > len(shown):
            self.console.print(f"     [dim]… {len(lines) - len(shown)} more line(s)[/dim]")

    def _print_prompt(self) -> None:
        self.console.print(f"\n{self.options.message}[dim](number, Enter to cancel)[/dim] ", end="")

    async def prompt(self) -> Candidate | None:
        self._prompting = True
        try:
            while True:
                self._print_prompt()
                answer = (await self._read_line()).strip()
                if not answer or answer.lower() in ("q", "quit"):
                    return None
                if answer.isdigit() and 1 <= int(answer) <= len(self.rows):
                    return self.rows[int(answer) - 1]
                self.console.print(f"[red]Enter a number between 1 and {len(self.rows)}.[/red]")
        finally:
            self._prompting = False

    def show_empty(self, message: str) -> None:
        self.manager.print_warning(message)

    def close(self) -> None:
        self.closed = True
        self._prompting = False
