"""Concurrent fan-out of one request to every eligible provider.

Each provider runs in its own task and puts exactly one Outcome on a shared
queue; consumers read the queue, so outcomes arrive in completion order no
matter which provider was started first. Provider exceptions are converted
into Failure outcomes inside the worker and never reach the consumer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from commitlens_core.errors import NoEligibleProvidersError
from commitlens_core.models import AdapterDescriptor, Candidate, Failure, Mode, Outcome, RequestContext, Success

logger = logging.getLogger(__name__)

InvokeFn = Callable[[AdapterDescriptor, RequestContext, Mode], Awaitable[Sequence[Candidate]]]

_CLOSED = object()


def get_provider(descriptor: AdapterDescriptor):
    # Imported lazily so a missing SDK only fails the provider that needs it.
    if descriptor.provider == "openai":
        from commitlens_core.providers.openai import OpenAIProvider

        return OpenAIProvider(descriptor)
    if descriptor.provider == "anthropic":
        from commitlens_core.providers.anthropic import AnthropicProvider

        return AnthropicProvider(descriptor)
    if descriptor.provider == "ollama":
        from commitlens_core.providers.ollama import OllamaProvider

        return OllamaProvider(descriptor)
    raise ValueError(f"Unknown provider: {descriptor.provider!r}.")


async def invoke_provider(descriptor: AdapterDescriptor, context: RequestContext, mode: Mode) -> Sequence[Candidate]:
    provider = get_provider(descriptor)
    return await provider.invoke(context, mode)


def _error_message(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


class OutcomeStream:
    """Async iterator over the outcomes of one run.

    Worker tasks start immediately, so the stream must be created inside a
    running event loop. ``unsubscribe()`` is the cancellation handle.
    """

    def __init__(self, descriptors: Sequence[AdapterDescriptor], context: RequestContext, mode: Mode, invoke: InvokeFn):
        self.expected = len(descriptors)
        self.delivered = 0
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._tasks = [
            asyncio.create_task(self._worker(d, context, mode, invoke), name=f"commitlens:{d.name}")
            for d in descriptors
        ]

    @property
    def closed(self) -> bool:
        return self._closed

    async def _worker(
        self,
        descriptor: AdapterDescriptor,
        context: RequestContext,
        mode: Mode,
        invoke: InvokeFn,
    ) -> None:
        try:
            candidates = await invoke(descriptor, context, mode)
            outcome: Outcome = Success(descriptor.name, tuple(candidates))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("%s failed: %s", descriptor.name, e)
            outcome = Failure(descriptor.name, _error_message(e))

        if self._closed:
            logger.debug("Discarding %s outcome after unsubscribe", descriptor.name)
            return
        self._queue.put_nowait(outcome)

    def __aiter__(self) -> OutcomeStream:
        return self

    async def __anext__(self) -> Outcome:
        if self._closed or self.delivered >= self.expected:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self._closed:
            raise StopAsyncIteration
        self.delivered += 1
        return item

    def unsubscribe(self) -> None:
        """Stop delivery and cancel in-flight calls. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        for task in self._tasks:
            task.cancel()
        # Wake a consumer blocked on get()
        self._queue.put_nowait(_CLOSED)


class RequestOrchestrator:
    def __init__(self, invoke: InvokeFn | None = None):
        self._invoke = invoke or invoke_provider

    def stream(
        self,
        context: RequestContext,
        descriptors: Sequence[AdapterDescriptor],
        mode: Mode,
    ) -> OutcomeStream:
        if not descriptors:
            raise NoEligibleProvidersError()
        names = [d.name for d in descriptors]
        if len(set(names)) != len(names):
            raise ValueError(f"Provider names must be unique within a run: {names}")
        logger.debug("Requesting %s from %s", mode.value, ", ".join(names))
        return OutcomeStream(descriptors, context, mode, self._invoke)

    async def collect(
        self,
        context: RequestContext,
        descriptors: Sequence[AdapterDescriptor],
        mode: Mode,
    ) -> list[Outcome]:
        """Run every provider and return all outcomes in completion order."""
        return [outcome async for outcome in self.stream(context, descriptors, mode)]
