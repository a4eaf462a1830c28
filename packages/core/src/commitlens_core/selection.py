"""Reactive selection over a stream of provider outcomes.

The engine owns one RunSession: it feeds each Outcome into the matching
SelectionEntry, pushes exactly one refresh to the view per outcome, and
resolves to the candidate the user picks, None when the user cancels or
nothing usable came back, or AllProvidersFailedError when every provider
errored.

The view is the terminal collaborator (loader, list rendering, keyboard).
commitlens_cli.prompt implements it with rich; tests use a recording fake.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol, Sequence

from commitlens_core.errors import AllProvidersFailedError
from commitlens_core.models import AdapterDescriptor, Candidate, Failure, Mode, Outcome, RequestContext

if TYPE_CHECKING:
    from commitlens_core.orchestrator import OutcomeStream, RequestOrchestrator

logger = logging.getLogger(__name__)


class EntryState(Enum):
    PENDING = "pending"
    POPULATED = "populated"
    ERRORED = "errored"


class EngineState(Enum):
    LOADING = "loading"
    READY = "ready"
    CLOSED = "closed"


@dataclass
class SelectionEntry:
    """List rows for one provider. Leaves PENDING once and never goes back."""

    provider: str
    state: EntryState = EntryState.PENDING
    candidates: tuple[Candidate, ...] = ()
    error: str | None = None

    @property
    def terminal(self) -> bool:
        return self.state is not EntryState.PENDING

    def resolve(self, outcome: Outcome) -> bool:
        """Apply ``outcome``; returns False if the entry was already terminal."""
        if self.terminal:
            return False
        if isinstance(outcome, Failure):
            self.state = EntryState.ERRORED
            self.error = outcome.message
        else:
            self.state = EntryState.POPULATED
            self.candidates = outcome.candidates
        return True


@dataclass(frozen=True)
class SelectionOptions:
    message: str
    empty_message: str
    loading_message: str
    stop_message: str
    desc_page_size: int = 10


COMMIT_OPTIONS = SelectionOptions(
    message="Pick a commit message to use: ",
    empty_message="No commit messages were generated",
    loading_message="AI is analyzing your changes",
    stop_message="Changes analyzed",
    desc_page_size=10,
)

REVIEW_OPTIONS = SelectionOptions(
    message="Please check code reviews: ",
    empty_message="No code reviews were generated",
    loading_message="AI is reviewing your changes",
    stop_message="Code review completed",
    desc_page_size=20,
)


class SelectionView(Protocol):
    def start_loader(self, text: str) -> None: ...

    def stop_loader(self) -> None: ...

    def refresh(self, entry: SelectionEntry) -> None: ...

    async def prompt(self) -> Candidate | None: ...

    def show_empty(self, message: str) -> None: ...

    def close(self) -> None: ...


@dataclass
class RunSession:
    """Everything one orchestration run owns. Created per trigger."""

    descriptors: tuple[AdapterDescriptor, ...]
    stream: OutcomeStream
    entries: dict[str, SelectionEntry] = field(default_factory=dict)
    finished: bool = False

    @classmethod
    def start(
        cls,
        orchestrator: RequestOrchestrator,
        context: RequestContext,
        descriptors: Sequence[AdapterDescriptor],
        mode: Mode,
    ) -> RunSession:
        stream = orchestrator.stream(context, descriptors, mode)
        entries = {d.name: SelectionEntry(d.name) for d in descriptors}
        return cls(descriptors=tuple(descriptors), stream=stream, entries=entries)


class SelectionEngine:
    def __init__(self, session: RunSession, view: SelectionView, options: SelectionOptions):
        self.session = session
        self.view = view
        self.options = options
        self.state = EngineState.LOADING
        self._loader_running = False
        self._updates_open = True
        self._result: asyncio.Future | None = None
        self._consumer: asyncio.Task | None = None
        self._chooser: asyncio.Task | None = None

    # ------------------------------------------------------------------ #
    # Run                                                                  #
    # ------------------------------------------------------------------ #

    async def run(self) -> Candidate | None:
        loop = asyncio.get_running_loop()
        self._result = loop.create_future()
        self.view.start_loader(self.options.loading_message)
        self._loader_running = True
        self._consumer = asyncio.create_task(self._consume())
        self._consumer.add_done_callback(self._on_consumer_done)
        try:
            return await self._result
        finally:
            self.close()

    def cancel(self) -> None:
        """Resolve the run with no selection. No-op once the run is settled."""
        if self._result is not None and not self._result.done():
            self._result.set_result(None)

    async def _consume(self) -> None:
        async for outcome in self.session.stream:
            entry = self.session.entries.get(outcome.provider)
            if entry is None or not entry.resolve(outcome):
                logger.debug("Ignoring unexpected outcome from %s", outcome.provider)
                continue
            self._refresh(entry)

            if self.state is EngineState.LOADING:
                self.state = EngineState.READY
                self._stop_loader()
            if entry.candidates and self._chooser is None:
                self._start_prompt()

        if self.state is EngineState.CLOSED:
            return
        self.session.finished = True
        entries = list(self.session.entries.values())
        if any(entry.candidates for entry in entries):
            return

        self.view.show_empty(self.options.empty_message)
        if all(entry.state is EntryState.ERRORED for entry in entries):
            raise AllProvidersFailedError({entry.provider: entry.error or "" for entry in entries})
        self.cancel()

    def _start_prompt(self) -> None:
        self._chooser = asyncio.create_task(self.view.prompt())
        self._chooser.add_done_callback(self._on_chooser_done)

    def _on_consumer_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None and self._result is not None and not self._result.done():
            self._result.set_exception(error)

    def _on_chooser_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if self._result is None or self._result.done():
            return
        if error is not None:
            self._result.set_exception(error)
        else:
            self._result.set_result(task.result())

    def _refresh(self, entry: SelectionEntry) -> None:
        if self._updates_open:
            self.view.refresh(entry)

    def _stop_loader(self) -> None:
        if self._loader_running:
            self._loader_running = False
            self.view.stop_loader()

    # ------------------------------------------------------------------ #
    # Cleanup                                                              #
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        """Tear the run down exactly once, whatever path got here first."""
        if self.state is EngineState.CLOSED:
            return
        self.state = EngineState.CLOSED

        self._stop_loader()
        self._updates_open = False
        if self._chooser is not None and not self._chooser.done():
            self._chooser.cancel()
        self.view.close()
        self.session.stream.unsubscribe()
        if self._consumer is not None and not self._consumer.done():
            self._consumer.cancel()
        self.cancel()


async def run_selection(
    orchestrator: RequestOrchestrator,
    context: RequestContext,
    descriptors: Sequence[AdapterDescriptor],
    mode: Mode,
    view: SelectionView,
    options: SelectionOptions | None = None,
) -> Candidate | None:
    """Run one full orchestration + selection cycle and return the pick."""
    if options is None:
        options = REVIEW_OPTIONS if mode is Mode.REVIEW else COMMIT_OPTIONS
    session = RunSession.start(orchestrator, context, descriptors, mode)
    engine = SelectionEngine(session, view, options)
    return await engine.run()
