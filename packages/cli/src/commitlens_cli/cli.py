"""CLI entry point for commitlens.

Commands:
  commit: generate commit messages from staged changes and commit one
  review: AI code review of staged changes
  watch: review every new commit as it lands
  init: interactive setup of .commitlens.yml
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.logging import RichHandler

from commitlens_cli.commands.commit import commit_cmd
from commitlens_cli.commands.init import init_cmd
from commitlens_cli.commands.review import review_cmd
from commitlens_cli.commands.watch import watch_cmd


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False, rich_tracebacks=verbose)],
        force=True,
    )
    # SDK clients log every HTTP request at debug level
    for noisy in ("httpx", "httpcore", "openai", "anthropic", "watchdog"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("commitlens"),
    prog_name="commitlens",
)
@click.option(
    "--config",
    "config_path",
    default=".commitlens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="COMMITLENS_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Commit messages and code reviews from several AI backends at once."""
    ctx.ensure_object(dict)
    _configure_logging(verbose)
    # Commands load the config themselves: each needs its own CLI overrides,
    # and `watch` re-reads it on every restart.
    ctx.obj["config_path"] = config_path


main.add_command(commit_cmd)
main.add_command(review_cmd)
main.add_command(watch_cmd)
main.add_command(init_cmd)
