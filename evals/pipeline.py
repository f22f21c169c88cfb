"""End-to-end pipelines: generate → run → judge → optimize → re-run.

``OptimizationPipeline`` is the rubric-driven flow with a single optimizer
proposal and an A/B re-run over the same test cases. ``EvaluationPipeline``
is the quick dimension-scored check that returns up to three candidate
rewrites without re-running them.
"""

import logging
import time
from typing import Callable, List, Optional

from .generator import TestCaseGenerator
from .judge import DimensionJudge, RubricJudge
from .models import (
    EvaluationReport,
    EventStatus,
    ExecutionResult,
    OptimizationMetrics,
    OptimizationOutcome,
    OptimizationReport,
    TestCase,
)
from .optimizer import PromptOptimizer
from .reporter import ProgressReporter
from .runner import EvaluationRunner
from .tracing import LangSmithSink

logger = logging.getLogger(__name__)


def version_prompt_name(prompt_name: str, clock: Callable[[], float] = time.time) -> str:
    """Return ``<name>-v<epoch ms>``."""
    return f"{prompt_name}-v{int(clock() * 1000)}"


class OptimizationPipeline:
    """Rubric-judged optimization of one prompt."""

    def __init__(
        self,
        generator: TestCaseGenerator,
        runner: EvaluationRunner,
        optimizer: PromptOptimizer,
        tracing: Optional[LangSmithSink] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.generator = generator
        self.runner = runner
        self.optimizer = optimizer
        self.tracing = tracing
        self.clock = clock

    async def run(
        self,
        prompt: str,
        goal: str,
        prompt_name: str,
        rubric: List[str],
        reporter: ProgressReporter,
    ) -> OptimizationReport:
        reporter.emit("Saving/Versioning prompt", EventStatus.RUNNING, f'Saving as "{prompt_name}"')
        versioned_name = version_prompt_name(prompt_name, self.clock)
        version = versioned_name[len(prompt_name) + 1:]
        reporter.emit("Prompt saved", EventStatus.COMPLETED, f"Version: {version}")

        reporter.emit(
            "Generating test dataset",
            EventStatus.RUNNING,
            f"Creating {self.generator.count} test cases",
        )
        test_cases = await self.generator.generate_for_rubric(prompt, goal, rubric)
        reporter.emit("Dataset generated", EventStatus.COMPLETED, f"Created {len(test_cases)} test cases")

        reporter.emit("Running tests", EventStatus.RUNNING, "Executing prompt against the dataset")
        original = await self.runner.run(
            prompt, test_cases, reporter, goal=goal, label="original", on_result=self._trace(prompt_name)
        )
        failures = original.failing_results
        reporter.emit(
            "Tests completed",
            EventStatus.COMPLETED,
            f"{len(failures)}/{len(original.results)} tests failed",
        )

        optimized_prompt = prompt
        outcome = OptimizationOutcome()
        optimized_results: Optional[List[ExecutionResult]] = None
        optimized_failures: Optional[int] = None
        optimized_pass_rate: Optional[float] = None

        if failures:
            reporter.emit("Analyzing failures", EventStatus.RUNNING, "Recording failure dataset")
            if self.tracing is not None:
                await self.tracing.record_failures(f"{prompt_name}-Failures-{version}", failures)

            reporter.emit("Generating optimized prompt", EventStatus.RUNNING, "Analyzing failure patterns")
            proposal = await self.optimizer.propose(prompt, failures, goal, rubric)
            optimized_prompt = proposal.prompt
            outcome = OptimizationOutcome(reasoning=proposal.reasoning, changes=list(proposal.changes))
            reporter.emit(
                "Optimization complete",
                EventStatus.COMPLETED,
                f"Generated improved prompt with {len(outcome.changes)} changes",
            )

            reporter.emit("Testing optimized prompt", EventStatus.RUNNING, "Running A/B comparison")
            optimized = await self.runner.run(optimized_prompt, test_cases, reporter, goal=goal, label="optimized")
            optimized_results = optimized.results
            optimized_failures = len(optimized.failing_results)
            optimized_pass_rate = optimized.summary.pass_rate
            reporter.emit(
                "A/B test complete",
                EventStatus.COMPLETED,
                f"Original: {len(failures)} failures, Optimized: {optimized_failures} failures",
            )
        else:
            reporter.emit(
                "All tests passed",
                EventStatus.COMPLETED,
                "No optimization needed - prompt is already performing well!",
            )

        reporter.emit(
            "Evaluation complete",
            EventStatus.COMPLETED,
            f"Original pass rate: {original.summary.pass_rate:.1f}%",
        )

        return OptimizationReport(
            original_prompt=prompt,
            optimized_prompt=optimized_prompt,
            prompt_name=versioned_name,
            goal=goal,
            rubric=list(rubric),
            dataset=test_cases,
            original_results=original.results,
            optimized_results=optimized_results,
            metrics=OptimizationMetrics(
                original_pass_rate=original.summary.pass_rate,
                total_tests=len(original.results),
                failures=len(failures),
                optimized_pass_rate=optimized_pass_rate,
                optimized_failures=optimized_failures,
            ),
            optimization=outcome,
            logs=list(reporter.events),
        )

    def _trace(self, prompt_name: str):
        if self.tracing is None:
            return None
        tracing = self.tracing

        async def log(test_case: TestCase, result: ExecutionResult) -> None:
            await tracing.log_execution(prompt_name, test_case, result)

        return log


class EvaluationPipeline:
    """Dimension-judged evaluation with candidate rewrites for failures."""

    def __init__(
        self,
        generator: TestCaseGenerator,
        runner: EvaluationRunner,
        optimizer: PromptOptimizer,
        max_candidates: int = 3,
    ):
        self.generator = generator
        self.runner = runner
        self.optimizer = optimizer
        self.max_candidates = max_candidates

    async def run(self, prompt: str, reporter: ProgressReporter) -> EvaluationReport:
        reporter.emit("Analyzing prompt", EventStatus.RUNNING)
        reporter.emit("Generating synthetic dataset", EventStatus.RUNNING)
        test_cases = await self.generator.generate_synthetic(prompt)
        reporter.emit(
            "Dataset generation complete",
            EventStatus.COMPLETED,
            f"Generated {len(test_cases)} test cases",
        )

        reporter.emit("Running evaluations", EventStatus.RUNNING, "Testing prompt against dataset")
        run = await self.runner.run(prompt, test_cases, reporter, label="original")
        reporter.emit("All tests completed", EventStatus.COMPLETED, f"{len(run.results)} tests executed")

        failures = run.failing_results
        improved = []
        if failures:
            reporter.emit(
                "Analyzing failures",
                EventStatus.RUNNING,
                f"{len(failures)} test(s) failed - generating improvements",
            )
            improved = await self.optimizer.propose_candidates(
                prompt, failures, limit=self.max_candidates, threshold=self.runner.pass_threshold
            )
            reporter.emit(
                "Improvement suggestions ready",
                EventStatus.COMPLETED,
                f"Generated {len(improved)} improved prompt versions",
            )
        else:
            reporter.emit(
                "All tests passed",
                EventStatus.COMPLETED,
                "No improvements needed - prompt performed well!",
            )

        summary = run.summary
        reporter.emit("Evaluation complete", EventStatus.COMPLETED, f"Success rate: {summary.pass_rate:.1f}%")

        return EvaluationReport(
            prompt=prompt,
            summary=summary,
            results=run.results,
            improved_prompts=improved,
            synthetic_dataset=test_cases,
            logs=list(reporter.events),
        )


def build_optimization_pipeline(
    generator_completion,
    executor_completion,
    judge_completion,
    optimizer_completion,
    settings,
    tracing: Optional[LangSmithSink] = None,
) -> OptimizationPipeline:
    """Wire an ``OptimizationPipeline`` from per-role completion services."""
    judge = RubricJudge(judge_completion, pass_threshold=settings.rubric_pass_threshold)
    return OptimizationPipeline(
        TestCaseGenerator(generator_completion, count=settings.optimize_test_cases),
        EvaluationRunner(executor_completion, judge),
        PromptOptimizer(optimizer_completion),
        tracing=tracing,
    )


def build_evaluation_pipeline(
    generator_completion,
    executor_completion,
    judge_completion,
    optimizer_completion,
    settings,
) -> EvaluationPipeline:
    """Wire an ``EvaluationPipeline`` from per-role completion services."""
    judge = DimensionJudge(
        judge_completion,
        relaxed_categories=settings.relaxed_categories,
        pass_threshold=settings.dimension_pass_threshold,
    )
    return EvaluationPipeline(
        TestCaseGenerator(generator_completion, count=settings.evaluate_test_cases),
        EvaluationRunner(executor_completion, judge),
        PromptOptimizer(optimizer_completion),
        max_candidates=settings.max_candidates,
    )
