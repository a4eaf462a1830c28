"""Exception hierarchy.

Provider errors never leave the orchestrator: they are converted into
Failure outcomes. The remaining errors are raised to whichever caller owns
the run (CLI command or commit monitor).
"""

from __future__ import annotations


class CommitlensError(Exception):
    """Base class for all commitlens errors."""


class ProviderError(CommitlensError):
    """A single backend call failed after its retries."""

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider


class NoEligibleProvidersError(CommitlensError):
    def __init__(self, message: str = "No AI backend is configured or available."):
        super().__init__(message)


class AllProvidersFailedError(CommitlensError):
    """Every backend in a run returned a Failure."""

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        details = "; ".join(f"{name}: {message}" for name, message in errors.items())
        super().__init__(f"All AI backends failed ({details})")


class GitError(CommitlensError):
    pass


class WatchError(CommitlensError):
    """The commit-log watcher stopped or could not be started."""
