"""Thin wrappers around the git command line."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from commitlens_core.errors import GitError
from commitlens_core.models import FilePatch
from commitlens_core.utils.code import is_code_file, is_excluded

logger = logging.getLogger(__name__)

_TIMEOUT = 30


@dataclass(frozen=True)
class DiffInfo:
    files: tuple[str, ...]
    diff: str

    @property
    def patches(self) -> tuple[FilePatch, ...]:
        return split_patches(self.diff)


def _git(*args: str, cwd: str | Path | None = None) -> str:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=_TIMEOUT,
        )
    except FileNotFoundError:
        raise GitError("git is not installed or not on PATH.")
    except subprocess.TimeoutExpired:
        raise GitError(f"git {args[0]} timed out after {_TIMEOUT}s.")
    if result.returncode != 0:
        raise GitError(result.stderr.strip() or f"git {args[0]} failed with exit code {result.returncode}.")
    return result.stdout


def assert_git_repo(cwd: str | Path | None = None) -> Path:
    """Return the repository root or raise GitError."""
    try:
        top_level = _git("rev-parse", "--show-toplevel", cwd=cwd).strip()
    except GitError:
        raise GitError("The current directory must be a Git repository!")
    return Path(top_level)


def git_path(name: str, cwd: str | Path | None = None) -> Path:
    """Resolve a path inside the git dir, honouring worktrees and core.hooksPath."""
    path = Path(_git("rev-parse", "--git-path", name, cwd=cwd).strip())
    if not path.is_absolute() and cwd is not None:
        path = Path(cwd) / path
    return path


def _filter_files(files: list[str], exclude) -> list[str]:
    return [f for f in files if f and is_code_file(f) and not is_excluded(f, exclude)]


def stage_tracked_changes(cwd: str | Path | None = None) -> None:
    _git("add", "--update", cwd=cwd)


def get_staged_diff(exclude=(), cwd: str | Path | None = None) -> DiffInfo | None:
    """Return the staged diff without excluded and non-code files, or None if nothing is staged."""
    files = _filter_files(_git("diff", "--cached", "--name-only", cwd=cwd).splitlines(), exclude)
    if not files:
        return None
    diff = _git("diff", "--cached", "--diff-algorithm=minimal", "--", *files, cwd=cwd)
    return DiffInfo(files=tuple(files), diff=diff)


def get_commit_diff(commit_hash: str, exclude=(), cwd: str | Path | None = None) -> DiffInfo | None:
    """Return the diff introduced by one commit, or None if it touched nothing reviewable."""
    names = _git("diff-tree", "--root", "--no-commit-id", "--name-only", "-r", commit_hash, cwd=cwd)
    files = _filter_files(names.splitlines(), exclude)
    if not files:
        return None
    diff = _git("show", "--format=", "--diff-algorithm=minimal", commit_hash, "--", *files, cwd=cwd)
    return DiffInfo(files=tuple(files), diff=diff)


def commit(message: str, cwd: str | Path | None = None) -> None:
    _git("commit", "-m", message, cwd=cwd)


def split_patches(diff: str) -> tuple[FilePatch, ...]:
    """Split a multi-file unified diff into one patch per file."""
    patches: list[FilePatch] = []
    current: list[str] = []
    path = None

    for line in diff.splitlines(keepends=True):
        if line.startswith("diff --git "):
            if path is not None:
                patches.append(FilePatch(path=path, patch="".join(current)))
            current = []
            # "diff --git a/src/x.py b/src/x.py" → "src/x.py"
            path = line.rstrip("\n").split(" b/", 1)[-1]
        if path is not None:
            current.append(line)

    if path is not None:
        patches.append(FilePatch(path=path, patch="".join(current)))
    return tuple(patches)
