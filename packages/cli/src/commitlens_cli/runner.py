"""Glue between click commands and the async selection engine.

Commands own the run: they build the request here, hand it to
run_selection, and act on whatever comes back.
"""

from __future__ import annotations

import asyncio

import click

from commitlens_core.config import build_descriptors, eligible_descriptors
from commitlens_core.errors import AllProvidersFailedError, GitError
from commitlens_core.git import assert_git_repo, get_staged_diff, stage_tracked_changes
from commitlens_core.models import AdapterDescriptor, Candidate, Mode, RequestContext
from commitlens_core.orchestrator import RequestOrchestrator
from commitlens_core.selection import COMMIT_OPTIONS, REVIEW_OPTIONS, run_selection
from commitlens_cli.console import ConsoleManager
from commitlens_cli.prompt import RichSelectionView

_NO_PROVIDER_HINT = {
    Mode.COMMIT: (
        "No AI backend is configured. Set OPENAI_API_KEY or ANTHROPIC_API_KEY, "
        "or add providers to .commitlens.yml (run `commitlens init`)."
    ),
    Mode.REVIEW: "No AI backend has code review enabled. Set `code_review: true` in .commitlens.yml.",
}


def resolve_descriptors(config: dict, mode: Mode) -> list[AdapterDescriptor]:
    try:
        descriptors = eligible_descriptors(build_descriptors(config), mode)
    except (ValueError, FileNotFoundError) as e:
        raise click.UsageError(str(e))
    if not descriptors:
        raise click.UsageError(_NO_PROVIDER_HINT[mode])
    return descriptors


def build_staged_context(config: dict, stage_all: bool = False) -> RequestContext:
    try:
        assert_git_repo()
        if stage_all:
            stage_tracked_changes()
        diff_info = get_staged_diff(config.get("exclude", []))
    except GitError as e:
        raise click.ClickException(str(e))

    if diff_info is None:
        raise click.UsageError(
            "No staged changes found. Stage your changes manually, "
            "or automatically stage all changes with the `--all` flag."
        )

    return RequestContext(
        diff=diff_info.diff,
        files=diff_info.files,
        patches=diff_info.patches,
        locale=config.get("locale", "en"),
        generate=config.get("generate", 1),
        exclude=tuple(config.get("exclude", [])),
        prompt=config.get("prompt"),
        commit_type=config.get("type") or "",
    )


def select_candidate(
    manager: ConsoleManager,
    context: RequestContext,
    descriptors: list[AdapterDescriptor],
    mode: Mode,
) -> Candidate | None:
    """Run one interactive session; every backend failing is a hard error here."""
    options = REVIEW_OPTIONS if mode is Mode.REVIEW else COMMIT_OPTIONS
    view = RichSelectionView(manager, options)
    try:
        return asyncio.run(run_selection(RequestOrchestrator(), context, descriptors, mode, view, options))
    except AllProvidersFailedError as e:
        raise click.ClickException(str(e))
