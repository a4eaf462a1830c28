"""commit command: generate commit messages and commit the chosen one."""

from __future__ import annotations

import click
from rich.console import Console

from commitlens_core.errors import GitError
from commitlens_core.git import commit
from commitlens_core.models import Mode
from commitlens_cli.console import ConsoleManager
from commitlens_cli.runner import build_staged_context, resolve_descriptors, select_candidate

console = Console()


@click.command("commit")
@click.option("--locale", "-l", default=None, help="Locale for the generated messages (default: en).")
@click.option(
    "--generate",
    "-g",
    type=click.IntRange(min=1),
    default=None,
    help="Number of messages to generate per backend (default: 1).",
)
@click.option("--exclude", "-x", multiple=True, help="Files to exclude from AI analysis. Repeatable.")
@click.option("--all", "-a", "stage_all", is_flag=True, help="Stage changes in tracked files before generating.")
@click.option(
    "--type",
    "-t",
    "commit_type",
    type=click.Choice(["conventional", "gitmoji"]),
    default=None,
    help="Commit message format.",
)
@click.option("--yes", "-y", is_flag=True, help="Commit without confirming the selected message.")
@click.option("--prompt", "-p", default=None, help="Extra instructions for the AI.")
@click.option("--dry-run", is_flag=True, help="Print the selected message instead of committing.")
@click.pass_context
def commit_cmd(
    ctx,
    locale: str | None,
    generate: int | None,
    exclude: tuple[str, ...],
    stage_all: bool,
    commit_type: str | None,
    yes: bool,
    prompt: str | None,
    dry_run: bool,
):
    """Generate commit messages from staged changes with every configured AI.

    Backends run concurrently; their suggestions appear as they arrive and
    the one you pick is committed.

    \b
    Credentials are read from the environment:
      OPENAI_API_KEY       enables the openai backend
      ANTHROPIC_API_KEY    enables the anthropic backend
    """
    from commitlens_core.config import load_config

    config = load_config(
        ctx.obj["config_path"],
        cli_overrides={"locale": locale, "generate": generate, "type": commit_type, "prompt": prompt},
    )
    config["exclude"] = [*config.get("exclude", []), *exclude]

    context = build_staged_context(config, stage_all=stage_all)
    descriptors = resolve_descriptors(config, Mode.COMMIT)

    manager = ConsoleManager(console)
    manager.print_files(context.files, label="Detected")

    choice = select_candidate(manager, context, descriptors, Mode.COMMIT)
    if choice is None:
        manager.print_warning("Commit cancelled")
        return

    if dry_run:
        console.print(choice.value, highlight=False)
        return

    if not yes and not click.confirm(f"\nCommit with this message?\n\n{choice.value}\n", default=True):
        manager.print_warning("Commit cancelled")
        return

    try:
        commit(choice.value)
    except GitError as e:
        raise click.ClickException(str(e))
    manager.print_success("Successfully committed!")
