"""Sequential test case execution: render, complete, judge."""

import logging
from typing import Awaitable, Callable, List, Optional, Protocol

from core.errors import CompletionFailure
from llm.completion import CompletionService
from .models import EvaluationRun, EventStatus, ExecutionResult, TestCase, Verdict
from .reporter import ProgressReporter
from .template import count_placeholders, render_prompt

logger = logging.getLogger(__name__)

ResultHook = Callable[[TestCase, ExecutionResult], Awaitable[None]]


class Judge(Protocol):
    pass_threshold: float

    async def judge(self, test_case: TestCase, output: str, goal: Optional[str] = None) -> Verdict:
        ...

    def failed_verdict(self, test_case: TestCase, reason: str) -> Verdict:
        ...


class EvaluationRunner:
    """Runner for executing test cases against one prompt variant.

    Test cases run one at a time in generator order. A provider failure for
    one case is recorded as an empty, zero-scored result; the run carries on.
    """

    def __init__(self, completion: CompletionService, judge: Judge, max_tokens: Optional[int] = None):
        """
        Args:
            completion: Completion service that executes the rendered prompt
            judge: DimensionJudge or RubricJudge scoring each output
            max_tokens: Output token limit per execution (service default when None)
        """
        self.completion = completion
        self.judge = judge
        self.max_tokens = max_tokens

    @property
    def pass_threshold(self) -> float:
        return self.judge.pass_threshold

    async def run(
        self,
        prompt: str,
        test_cases: List[TestCase],
        reporter: ProgressReporter,
        goal: Optional[str] = None,
        label: str = "original",
        on_result: Optional[ResultHook] = None,
    ) -> EvaluationRun:
        total = len(test_cases)
        prefix = "" if label == "original" else f"[{label}] "
        logger.info(f"Running {total} test cases against the {label} prompt")
        if count_placeholders(prompt) == 0:
            logger.warning(f"The {label} prompt has no {{{{input}}}} placeholder; every case sees the same text")

        results: List[ExecutionResult] = []
        for index, test_case in enumerate(test_cases, 1):
            reporter.emit(
                f"{prefix}Test {index}/{total}",
                EventStatus.RUNNING,
                f"Input: {test_case.input[:50]}...",
            )

            result = await self.execute(prompt, test_case, goal)
            results.append(result)

            if on_result is not None:
                await on_result(test_case, result)

            reporter.emit(
                f"{prefix}Test {index} completed",
                EventStatus.COMPLETED,
                self._score_details(result),
            )

        run = EvaluationRun(label=label, prompt=prompt, results=results, pass_threshold=self.pass_threshold)
        logger.info(f"{label.capitalize()} run completed: {run.summary.passed}/{total} passed")
        return run

    async def execute(self, prompt: str, test_case: TestCase, goal: Optional[str] = None) -> ExecutionResult:
        """Execute and judge a single test case."""
        rendered = render_prompt(prompt, test_case.input)
        try:
            output = await self.completion.complete(rendered, max_tokens=self.max_tokens)
        except CompletionFailure as exc:
            logger.warning(f"Execution failed for input {test_case.input[:50]!r}: {exc}")
            verdict = self.judge.failed_verdict(test_case, f"Execution failed: {exc}")
            return ExecutionResult.from_verdict(test_case, "", verdict, error=str(exc))

        verdict = await self.judge.judge(test_case, output, goal)
        return ExecutionResult.from_verdict(test_case, output, verdict)

    @staticmethod
    def _score_details(result: ExecutionResult) -> str:
        if result.error:
            return "Execution failed, scored 0"
        if result.score is not None:
            return f"Score: {result.score}"
        return f"Score: {result.overall * 100:.0f}%"
