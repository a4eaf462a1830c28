"""Commit monitor: review every new commit as it lands.

A post-commit hook appends one ``<hash>: <message>`` line per commit to a log
file inside the git dir. The monitor watches that file and, on each change,
drains it: every record is reviewed in turn through one full
orchestration + selection cycle, then the log is truncated once.

Lifecycle (one pass of the loop in ``run``):

    INITIALIZING → WATCHING ⇄ PROCESSING
          ↑                        |
          └────── RESTARTING ←─────┘  (any error, after ``backoff`` seconds)

Restarts redo everything from scratch: config, hook, log and watcher.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Protocol, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from commitlens_core.config import build_descriptors, eligible_descriptors
from commitlens_core.errors import AllProvidersFailedError, WatchError
from commitlens_core.git import assert_git_repo, get_commit_diff, git_path
from commitlens_core.models import AdapterDescriptor, LogRecord, Mode, RequestContext
from commitlens_core.orchestrator import RequestOrchestrator
from commitlens_core.selection import REVIEW_OPTIONS, SelectionView, run_selection

logger = logging.getLogger(__name__)

HOOK_NAME = "post-commit"
LOG_NAME = "commit-log.txt"
WATCHING_TEXT = "Watching for new Git commits..."

_HOOK_TEMPLATE = """#!/bin/sh
# Installed by `commitlens watch`; rewritten every time the monitor starts.
commit_hash=$(git rev-parse HEAD)
commit_message=$(git log -1 --pretty=%B)
echo "$commit_hash: $commit_message" >> {log_path}
"""


class MonitorState(Enum):
    INITIALIZING = "initializing"
    WATCHING = "watching"
    PROCESSING = "processing"
    RESTARTING = "restarting"


class MonitorConsole(Protocol):
    def print_error(self, message: str) -> None: ...

    def print_warning(self, message: str) -> None: ...

    def print_hook_installed(self, hook: str) -> None: ...

    def print_files(self, files: Sequence[str]) -> None: ...

    def show_loader(self, text: str) -> None: ...

    def stop_loader(self) -> None: ...

    def clear(self) -> None: ...


def hook_script(log_path: Path) -> str:
    return _HOOK_TEMPLATE.format(log_path=shlex.quote(str(log_path)))


def install_hook(hook_path: Path, log_path: Path) -> None:
    """Write the post-commit hook, replacing whatever was there."""
    hook_path.parent.mkdir(parents=True, exist_ok=True)
    hook_path.write_text(hook_script(log_path))
    os.chmod(hook_path, 0o755)


def reset_log(log_path: Path) -> None:
    """Start every watch cycle from an empty log, creating it if needed."""
    log_path.write_text("")


def truncate_log(log_path: Path, consumed: int) -> None:
    """Drop the first ``consumed`` bytes, keeping lines appended since they were read."""
    with open(log_path, "r+b") as f:
        f.seek(consumed)
        rest = f.read()
        f.seek(0)
        f.write(rest)
        f.truncate()


def parse_log(content: str) -> list[LogRecord]:
    records = []
    for line in content.splitlines():
        if not line.strip():
            continue
        record = LogRecord.parse(line)
        if record is None:
            logger.debug("Skipping non-record line in commit log: %r", line[:80])
            continue
        records.append(record)
    return records


class CommitLogHandler(FileSystemEventHandler):
    """Forwards changes of the commit log from the watchdog thread into the event loop."""

    def __init__(self, log_path: Path, loop: asyncio.AbstractEventLoop, changed: asyncio.Event):
        self.log_path = Path(os.path.abspath(log_path))
        self.loop = loop
        self.changed = changed

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in ("modified", "created", "moved"):
            return
        paths = {str(event.src_path), str(getattr(event, "dest_path", "") or "")}
        if str(self.log_path) not in {os.path.abspath(p) for p in paths if p}:
            return
        self.loop.call_soon_threadsafe(self.changed.set)


ProcessFn = Callable[[LogRecord], Awaitable[None]]


class CommitMonitor:
    def __init__(
        self,
        repo_path: Path,
        load_config: Callable[[], dict],
        console: MonitorConsole,
        view_factory: Callable[[], SelectionView],
        orchestrator: RequestOrchestrator | None = None,
        process: ProcessFn | None = None,
        backoff: float = 3.0,
        poll_interval: float = 1.0,
        hook_path: Path | None = None,
        log_path: Path | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        self.repo_path = Path(repo_path)
        self.load_config = load_config
        self.console = console
        self.view_factory = view_factory
        self.orchestrator = orchestrator or RequestOrchestrator()
        self.process = process or self.review_commit
        self.backoff = backoff
        self.poll_interval = poll_interval
        self.hook_path = hook_path
        self.log_path = log_path
        self.state = MonitorState.INITIALIZING
        self.config: dict = {}
        self.descriptors: list[AdapterDescriptor] = []
        self._sleep = sleep
        self._observer_factory = observer_factory
        self._running = False
        self._drain_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Supervision loop                                                     #
    # ------------------------------------------------------------------ #

    async def run(self) -> None:
        """Watch until stopped; every failure restarts the cycle after ``backoff``."""
        self._running = True
        while self._running:
            self.state = MonitorState.INITIALIZING
            try:
                self._initialize()
                await self._watch()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.state = MonitorState.RESTARTING
                self.console.stop_loader()
                self.console.print_error(f"An error occurred: {e}")
                logger.error("Commit monitor failed: %s", e, exc_info=logger.isEnabledFor(logging.DEBUG))
                await self._sleep(self.backoff)
                self.console.print_warning("Restarting the commit monitoring process...")

    def stop(self) -> None:
        self._running = False

    def _initialize(self) -> None:
        self.repo_path = assert_git_repo(self.repo_path)
        self.config = self.load_config()
        self.descriptors = build_descriptors(self.config)
        if self.hook_path is None:
            self.hook_path = git_path(f"hooks/{HOOK_NAME}", cwd=self.repo_path)
        if self.log_path is None:
            self.log_path = git_path(LOG_NAME, cwd=self.repo_path)

        install_hook(self.hook_path, self.log_path)
        self.console.print_hook_installed(HOOK_NAME)
        reset_log(self.log_path)

    async def _watch(self) -> None:
        loop = asyncio.get_running_loop()
        changed = asyncio.Event()
        handler = CommitLogHandler(self.log_path, loop, changed)
        observer = self._observer_factory()
        observer.schedule(handler, str(self.log_path.parent), recursive=False)
        try:
            observer.start()
            self.state = MonitorState.WATCHING
            self.console.show_loader(WATCHING_TEXT)
            while self._running:
                try:
                    await asyncio.wait_for(changed.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    if not observer.is_alive():
                        raise WatchError("The commit log watcher stopped unexpectedly.")
                    continue
                changed.clear()
                await self.drain()
        finally:
            observer.stop()
            if observer.is_alive():
                await asyncio.to_thread(observer.join, 5)

    # ------------------------------------------------------------------ #
    # Draining                                                             #
    # ------------------------------------------------------------------ #

    async def drain(self) -> int:
        """Process every record currently in the log, then truncate it once.

        Only the bytes read here are removed; hook lines appended during the
        reviews stay for the next drain. Bytes that are not valid UTF-8 are
        replaced rather than failing the batch.

        Returns the number of records processed. A failing record is reported
        and the batch continues; read and truncate errors propagate.
        """
        async with self._drain_lock:
            data = self.log_path.read_bytes()
            content = data.decode("utf-8", errors="replace")
            if not content.strip():
                # Includes the change event caused by our own truncation.
                return 0

            self.state = MonitorState.PROCESSING
            records = parse_log(content)
            try:
                for record in records:
                    self.console.clear()
                    try:
                        await self.process(record)
                    except asyncio.CancelledError:
                        raise
                    except Exception as e:
                        self.console.print_error(f"Error processing commit {record.commit_hash}: {e}")
                        logger.warning("Review of %s failed: %s", record.commit_hash, e)
                    finally:
                        self._resume_watching()
            finally:
                truncate_log(self.log_path, len(data))
                self.state = MonitorState.WATCHING
            return len(records)

    def _resume_watching(self) -> None:
        self.console.clear()
        self.console.show_loader(WATCHING_TEXT)

    # ------------------------------------------------------------------ #
    # One review cycle                                                     #
    # ------------------------------------------------------------------ #

    async def review_commit(self, record: LogRecord) -> None:
        exclude = self.config.get("exclude", [])
        diff_info = await asyncio.to_thread(get_commit_diff, record.commit_hash, exclude, self.repo_path)
        if diff_info is None:
            self.console.print_warning("No changes found in this commit")
            return

        descriptors = eligible_descriptors(self.descriptors, Mode.REVIEW)
        if not descriptors:
            self.console.print_error(
                "No AI backend has code review enabled. Set `code_review: true` in .commitlens.yml"
            )
            return

        self.console.stop_loader()
        self.console.print_files(diff_info.files)

        context = RequestContext(
            diff=diff_info.diff,
            files=diff_info.files,
            patches=diff_info.patches,
            locale=self.config.get("locale", "en"),
            exclude=tuple(exclude),
            prompt=self.config.get("prompt"),
        )
        try:
            await run_selection(
                self.orchestrator, context, descriptors, Mode.REVIEW, self.view_factory(), REVIEW_OPTIONS
            )
        except AllProvidersFailedError as e:
            self.console.print_error(str(e))
