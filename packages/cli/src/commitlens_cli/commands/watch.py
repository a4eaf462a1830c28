"""watch command: review every commit as it is made."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
from rich.console import Console

from commitlens_core.monitor import CommitMonitor
from commitlens_core.selection import REVIEW_OPTIONS
from commitlens_cli.console import ConsoleManager
from commitlens_cli.prompt import RichSelectionView

console = Console()

RESTART_DELAY = 3.0


@click.command("watch")
@click.option("--locale", "-l", default=None, help="Locale for the review text (default: en).")
@click.option("--exclude", "-x", multiple=True, help="Files to exclude from reviews. Repeatable.")
@click.option("--prompt", "-p", default=None, help="Extra instructions for the AI.")
@click.pass_context
def watch_cmd(ctx, locale: str | None, exclude: tuple[str, ...], prompt: str | None):
    """Install a post-commit hook and review each new commit.

    Runs until interrupted. Errors are reported and the monitor restarts
    itself; the configuration is re-read on every restart.
    """
    from commitlens_core.config import load_config

    config_path = ctx.obj["config_path"]
    manager = ConsoleManager(console)
    manager.print_title()

    def _load_config() -> dict:
        config = load_config(config_path, cli_overrides={"locale": locale, "prompt": prompt})
        config["exclude"] = [*config.get("exclude", []), *exclude]
        return config

    monitor = CommitMonitor(
        repo_path=Path.cwd(),
        load_config=_load_config,
        console=manager,
        view_factory=lambda: RichSelectionView(manager, REVIEW_OPTIONS),
        backoff=RESTART_DELAY,
    )

    try:
        asyncio.run(monitor.run())
    except KeyboardInterrupt:
        manager.stop_loader()
        manager.print_warning("Stopped watching for commits")
