"""review command: AI code review of the staged changes."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markdown import Markdown

from commitlens_core.models import Mode
from commitlens_cli.console import ConsoleManager
from commitlens_cli.runner import build_staged_context, resolve_descriptors, select_candidate

console = Console()


@click.command("review")
@click.option("--locale", "-l", default=None, help="Locale for the review text (default: en).")
@click.option("--exclude", "-x", multiple=True, help="Files to exclude from the review. Repeatable.")
@click.option("--all", "-a", "stage_all", is_flag=True, help="Stage changes in tracked files before reviewing.")
@click.option("--prompt", "-p", default=None, help="Extra instructions for the AI.")
@click.pass_context
def review_cmd(ctx, locale: str | None, exclude: tuple[str, ...], stage_all: bool, prompt: str | None):
    """Review staged changes with every backend that has code review enabled.

    Pick a review from the list to print it in full.
    """
    from commitlens_core.config import load_config

    config = load_config(ctx.obj["config_path"], cli_overrides={"locale": locale, "prompt": prompt})
    config["exclude"] = [*config.get("exclude", []), *exclude]

    context = build_staged_context(config, stage_all=stage_all)
    descriptors = resolve_descriptors(config, Mode.REVIEW)

    manager = ConsoleManager(console)
    manager.print_files(context.files, label="Reviewing")

    choice = select_candidate(manager, context, descriptors, Mode.REVIEW)
    if choice is not None:
        console.print()
        console.print(Markdown(choice.value))
