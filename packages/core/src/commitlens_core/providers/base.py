"""Base provider implementing the Template Method pattern.

All providers share the same request algorithm:
    invoke() → _build_system_prompt() + _build_*_prompt()
             → _call_with_retry() → _call_api()   ← only this differs per provider
             → _parse_*()

Subclasses implement two things only:
  - __init__: build and store the async SDK client
  - _call_api: make one raw API call and return the text response

A provider raises ProviderError once its retries are exhausted; the
orchestrator turns that into a Failure outcome for this provider alone.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from commitlens_core.errors import ProviderError
from commitlens_core.models import Candidate, Mode

if TYPE_CHECKING:
    from commitlens_core.models import AdapterDescriptor, FilePatch, RequestContext

logger = logging.getLogger(__name__)

_MAX_RETRIES = 2

_TYPE_FORMATS = {
    "": "<commit message>",
    "conventional": "<type>(<optional scope>): <commit message>",
    "gitmoji": ":<emoji>: <commit message>",
}

_TYPE_RULES = {
    "": "",
    "conventional": (
        "Choose a type from: docs, style, refactor, perf, test, build, ci, chore, "
        "revert, feat, fix. Use feat only for new features and fix only for bug fixes."
    ),
    "gitmoji": "Start the subject with the gitmoji code that best describes the change.",
}


class BaseProvider(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    RETRY_BASE_DELAY: float = 1.0

    def __init__(self, descriptor: AdapterDescriptor):
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def invoke(self, context: RequestContext, mode: Mode) -> list[Candidate]:
        """Produce candidates for one run. Raises ProviderError on failure."""
        if mode is Mode.REVIEW:
            return await self._review(context)
        return await self._generate_messages(context)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        This is the only method subclasses must implement. It should raise
        on failure; _call_with_retry handles timeouts, retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    async def _generate_messages(self, context: RequestContext) -> list[Candidate]:
        system = self._build_system_prompt(context, Mode.COMMIT)
        user = self._build_commit_prompt(context)
        raw = await self._call_with_retry(system, user)
        candidates = self._parse_messages(raw)
        if not candidates:
            raise ProviderError(self.name, "Empty response from model")
        return candidates[: context.generate]

    async def _review(self, context: RequestContext) -> list[Candidate]:
        system = self._build_system_prompt(context, Mode.REVIEW)
        if self.descriptor.review_per_file and context.patches:
            # Files are reviewed one after another, never concurrently.
            candidates = []
            for file_patch in context.patches:
                raw = await self._call_with_retry(system, self._build_review_prompt(file_patch.patch, file_patch))
                candidates.append(self._parse_review(raw, file_patch.path))
            return candidates
        raw = await self._call_with_retry(system, self._build_review_prompt(context.diff))
        return [self._parse_review(raw, None)]

    async def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff.

        Each attempt is bounded by the descriptor's own timeout. Cancellation
        is never retried.
        """
        timeout = self.descriptor.timeout
        for attempt in range(self.MAX_RETRIES):
            try:
                return await asyncio.wait_for(self._call_api(system_prompt, user_prompt), timeout=timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if isinstance(e, asyncio.TimeoutError):
                    e = ProviderError(self.name, f"Request timed out after {timeout:g}s")
                if attempt == self.MAX_RETRIES - 1:
                    logger.error("%s failed after %d attempts: %s", self.name, self.MAX_RETRIES, e)
                    if isinstance(e, ProviderError):
                        raise e
                    raise ProviderError(self.name, str(e) or e.__class__.__name__) from e
                delay = self.RETRY_BASE_DELAY * 2**attempt
                logger.warning(
                    "%s error (attempt %d/%d): %s. Retrying in %gs...",
                    self.name,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
        raise ProviderError(self.name, "No attempts were made")

    def _build_system_prompt(self, context: RequestContext, mode: Mode) -> str:
        """Build the system prompt.

        A configured custom prompt replaces the built-in commit prompt only;
        reviews always use the built-in review prompt.
        """
        if self.descriptor.system_prompt and mode is Mode.COMMIT:
            return self.descriptor.system_prompt

        if mode is Mode.REVIEW:
            return f"""You are a strict and precise senior code reviewer.
Review the changes below and point out bugs, risky changes and unclear code.

Rules:
- Focus on added lines (starting with '+') for direct issues.
- Also consider implications of removed lines (starting with '-').
- Do not comment on code that already follows best practices.
- Be concise and actionable. Write the review in the locale '{context.locale}'.
- Use GitHub-flavored markdown."""

        commit_type = context.commit_type if context.commit_type in _TYPE_FORMATS else ""
        rules = _TYPE_RULES[commit_type]
        type_rule = f"- {rules}" if rules else ""
        return f"""You are an expert at writing git commit messages.
Generate concise commit messages in the present tense for the staged changes.

Rules:
- Language of the messages: '{context.locale}'.
- Subject format: {_TYPE_FORMATS[commit_type]}
- Keep the subject under 72 characters; put details in the body.
{type_rule}""".rstrip()

    def _build_commit_prompt(self, context: RequestContext) -> str:
        extra = f"\n## Additional Instructions\n{context.prompt}\n" if context.prompt else ""
        return f"""Write {context.generate} alternative commit message(s) for the following diff.
{extra}
## Diff
{context.diff}

### Output Format:
Respond with **only** a valid JSON list:

[
  {{"subject": "<one-line subject>", "body": "<optional body, may be empty>"}},
  ...
]

Do not return any text outside the JSON block."""

    def _build_review_prompt(self, diff: str, file_patch: FilePatch | None = None) -> str:
        header = f"You are reviewing `{file_patch.path}`." if file_patch else "You are reviewing a commit."
        return f"""{header}

## Diff
{diff}

Respond with the review only. If there are no issues, say so in one sentence."""

    def _parse_messages(self, raw: str) -> list[Candidate]:
        """Parse the model's raw text response into commit message candidates.

        Falls back to treating the whole response as a single message when the
        model ignores the JSON format.
        """
        cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())
        if not cleaned:
            return []
        try:
            items = json.loads(cleaned)
        except json.JSONDecodeError:
            logger.warning("%s: response is not JSON, using it verbatim: %s", self.name, raw[:200])
            return [_message_candidate(*_split_message(cleaned))]

        if isinstance(items, dict):
            items = [items]
        candidates = []
        for item in items if isinstance(items, list) else []:
            if isinstance(item, str):
                subject, body = _split_message(item)
            elif isinstance(item, dict):
                subject = str(item.get("subject", "")).strip()
                body = str(item.get("body", "") or "").strip()
            else:
                continue
            if subject:
                candidates.append(_message_candidate(subject, body))
        return candidates

    def _parse_review(self, raw: str, path: str | None) -> Candidate:
        text = raw.strip()
        if not text:
            raise ProviderError(self.name, "Empty review from model")
        first_line = text.splitlines()[0].lstrip("# ").strip()
        title = f"{path}: {first_line}" if path else first_line
        return Candidate(title=title, value=text, description=text)


def _split_message(text: str) -> tuple[str, str]:
    subject, _, body = text.strip().partition("\n")
    return subject.strip(), body.strip()


def _message_candidate(subject: str, body: str) -> Candidate:
    value = f"{subject}\n\n{body}" if body else subject
    return Candidate(title=subject, value=value, description=body)
