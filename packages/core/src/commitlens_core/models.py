"""Data models shared by the orchestrator, the selection engine and the monitor.

All request-side models are frozen: one RequestContext is shared read-only by
every concurrent provider call, and descriptors never change during a run.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class Mode(str, Enum):
    COMMIT = "commit"
    REVIEW = "review"


@dataclass(frozen=True)
class AdapterDescriptor:
    """One configured backend, resolved once at config-load time."""

    name: str  # unique per run, e.g. "openai" or "ollama/llama3"
    provider: str  # adapter kind: "openai" | "anthropic" | "ollama"
    model: str
    enabled: bool = True
    available: bool = False
    temperature: float = 0.7
    timeout: float = 10.0
    max_tokens: int = 1024
    system_prompt: str | None = None
    code_review: bool = False
    review_per_file: bool = False
    api_key: str | None = field(default=None, repr=False)
    host: str | None = None


@dataclass(frozen=True)
class FilePatch:
    path: str
    patch: str


@dataclass(frozen=True)
class RequestContext:
    diff: str
    files: tuple[str, ...] = ()
    patches: tuple[FilePatch, ...] = ()
    locale: str = "en"
    generate: int = 1
    exclude: tuple[str, ...] = ()
    prompt: str | None = None
    commit_type: str = ""


@dataclass(frozen=True)
class Candidate:
    """A generated message or review, with short/long text for list display."""

    title: str
    value: str
    description: str = ""


@dataclass(frozen=True)
class Success:
    provider: str
    candidates: tuple[Candidate, ...] = ()

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    provider: str
    message: str

    @property
    def ok(self) -> bool:
        return False


Outcome = Union[Success, Failure]

_RECORD_RE = re.compile(r"^([0-9a-f]{40}|[0-9a-f]{64}):\s?(.*)$")


@dataclass(frozen=True)
class LogRecord:
    """One `hash: message` line appended by the post-commit hook."""

    commit_hash: str
    message: str = ""

    @classmethod
    def parse(cls, line: str) -> LogRecord | None:
        """Return the record for a hook line, or None for continuation lines.

        The hook writes the full commit message, so a multi-line body spills
        onto following lines. Only a full SHA-1 or SHA-256 hash starts a
        record; a body line like ``deadbeef: squashed fix`` does not.
        """
        match = _RECORD_RE.match(line.strip())
        if not match:
            return None
        return cls(commit_hash=match.group(1), message=match.group(2).strip())
