"""Shared deterministic stubs for providers and completion services."""

import asyncio
import json
from typing import Callable, List, Optional, Union

import pytest

from core.config import DEFAULT_CONFIG, PipelineSettings
from core.errors import CompletionFailure
from evals.reporter import ProgressReporter
from llm.base import LLMProvider, LLMRequest, LLMResponse

Reply = Union[str, Exception]


class StubProvider(LLMProvider):
    """Provider that replays canned replies, errors or delays."""

    def __init__(self, name: str = "stub", replies: Optional[List[str]] = None,
                 error: Optional[str] = None, delay: float = 0.0, raises: Optional[Exception] = None):
        super().__init__({"model": f"{name}-model", "api_key_env": "STUB_API_KEY"})
        self.provider_name = name
        self.replies = list(replies or [])
        self.error = error
        self.delay = delay
        self.raises = raises
        self.requests: List[LLMRequest] = []
        self.closed = False

    @property
    def enabled(self) -> bool:
        return True

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return self._error_response(self.error)
        content = self.replies.pop(0) if self.replies else ""
        return LLMResponse(content=content, provider=self.provider_name, model=self.model)

    async def aclose(self) -> None:
        self.closed = True


class StubCompletion:
    """Completion service stand-in.

    Replies come from ``handler(prompt)`` when given, else from the queued
    ``replies`` in order. An Exception reply is raised instead of returned.
    """

    def __init__(self, *replies: Reply, handler: Optional[Callable[[str], Reply]] = None):
        self.replies = list(replies)
        self.handler = handler
        self.prompts: List[str] = []
        self.closed = False

    @property
    def description(self) -> str:
        return "stub"

    async def complete(self, prompt: str, max_tokens: Optional[int] = None, system_prompt: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        if self.handler is not None:
            reply = self.handler(prompt)
        elif self.replies:
            reply = self.replies.pop(0)
        else:
            reply = CompletionFailure("stub has no replies left")
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def aclose(self) -> None:
        self.closed = True


def dimension_judge_handler(answer: str = "1") -> Callable[[str], str]:
    """Judge stub answering every yes/no question with ``answer``."""
    return lambda prompt: answer


def rubric_verdict(*passed: bool, criteria: Optional[List[str]] = None) -> str:
    criteria = criteria or [f"criterion {i}" for i in range(1, len(passed) + 1)]
    results = [{"criterion": c, "passed": p} for c, p in zip(criteria, passed)]
    return json.dumps({"score": 1 if all(passed) else 0, "rubricResults": results})


async def drain(reporter: ProgressReporter) -> List[dict]:
    return [message async for message in reporter]


@pytest.fixture
def reporter():
    return ProgressReporter()


@pytest.fixture
def settings():
    return PipelineSettings.from_config(DEFAULT_CONFIG)


@pytest.fixture
def generated_cases():
    def build(count: int, **extra) -> str:
        return json.dumps([{"input": f"case {i}", **extra} for i in range(1, count + 1)])
    return build
