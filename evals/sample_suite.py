"""Built-in sample datasets for quick prompt spot checks."""

import logging
import uuid
from typing import Dict, List, Optional

from pydantic import BaseModel

from core.errors import CompletionFailure
from llm.completion import CompletionService
from .quality import CriteriaEvaluation, CriteriaJudge, QualityJudge
from .template import render_prompt
from .tracing import LangSmithSink

logger = logging.getLogger(__name__)

DEFAULT_DATASET = "general"

SAMPLE_DATASETS: Dict[str, List[Dict[str, str]]] = {
    "general": [
        {"input": "Explain quantum computing", "expected_quality": "comprehensive"},
        {"input": "What is photosynthesis?", "expected_quality": "clear"},
        {"input": "How does blockchain work?", "expected_quality": "detailed"},
        {"input": "Describe machine learning", "expected_quality": "accessible"},
    ],
    "creative": [
        {"input": "Write a story about a robot", "expected_quality": "creative"},
        {"input": "Compose a haiku about nature", "expected_quality": "poetic"},
        {"input": "Create a product slogan", "expected_quality": "catchy"},
    ],
    "analytical": [
        {"input": "Analyze climate change data", "expected_quality": "analytical"},
        {"input": "Compare two programming languages", "expected_quality": "balanced"},
        {"input": "Evaluate market trends", "expected_quality": "data-driven"},
    ],
}


class SampleResult(BaseModel):
    input: str
    output: str
    passed: bool
    score: float
    feedback: str


class SampleSummary(BaseModel):
    total_tests: int
    passed_tests: int
    success_rate: float
    average_score: float


class SampleReport(BaseModel):
    prompt: str
    dataset: str
    experiment_name: str
    langsmith_enabled: bool
    summary: SampleSummary
    results: List[SampleResult]


class JudgeReport(BaseModel):
    prompt: str
    ai_response: str
    evaluation: CriteriaEvaluation


def resolve_dataset(name: Optional[str]) -> str:
    """Return ``name`` if it is a known dataset, else the general one."""
    if name and name in SAMPLE_DATASETS:
        return name
    if name:
        logger.info(f"Unknown sample dataset {name!r}; using {DEFAULT_DATASET}")
    return DEFAULT_DATASET


class SampleSuiteRunner:
    """Runs a prompt over a built-in dataset and grades each answer 0..1."""

    def __init__(
        self,
        executor: CompletionService,
        judge: QualityJudge,
        tracing: Optional[LangSmithSink] = None,
        max_tokens: int = 1024,
    ):
        self.executor = executor
        self.judge = judge
        self.tracing = tracing
        self.max_tokens = max_tokens

    async def run(self, prompt: str, dataset: Optional[str] = None) -> SampleReport:
        name = resolve_dataset(dataset)
        cases = SAMPLE_DATASETS[name]
        experiment_name = f"prompt-test-{name}-{uuid.uuid4().hex[:8]}"

        results: List[SampleResult] = []
        for index, case in enumerate(cases, 1):
            try:
                output = await self.executor.complete(render_prompt(prompt, case["input"]), max_tokens=self.max_tokens)
            except CompletionFailure as e:
                logger.error(f"Sample test {index} failed: {e}")
                results.append(
                    SampleResult(
                        input=case["input"],
                        output="Error running test",
                        passed=False,
                        score=0.0,
                        feedback="Test execution failed",
                    )
                )
                continue

            verdict = await self.judge.judge(output, case["expected_quality"])
            results.append(
                SampleResult(
                    input=case["input"],
                    output=output,
                    passed=verdict.passed,
                    score=verdict.score,
                    feedback=verdict.feedback,
                )
            )

        total = len(results)
        passed = sum(1 for r in results if r.passed)
        average = sum(r.score for r in results) / total if total else 0.0
        summary = SampleSummary(
            total_tests=total,
            passed_tests=passed,
            success_rate=round(passed / total * 100, 1) if total else 0.0,
            average_score=round(average, 3),
        )

        tracing_enabled = self.tracing is not None and self.tracing.enabled
        if tracing_enabled:
            await self.tracing.log_sample_run(
                prompt, name, [r.model_dump() for r in results], summary.average_score
            )

        logger.info(f"Sample suite {experiment_name}: {passed}/{total} passed")
        return SampleReport(
            prompt=prompt,
            dataset=name,
            experiment_name=experiment_name,
            langsmith_enabled=tracing_enabled,
            summary=summary,
            results=results,
        )


async def judge_single_response(
    prompt: str,
    executor: CompletionService,
    judge: CriteriaJudge,
    max_tokens: int = 2048,
) -> JudgeReport:
    """Run ``prompt`` once and have the criteria judge rate the answer."""
    response = await executor.complete(prompt, max_tokens=max_tokens)
    evaluation = await judge.judge(response)
    return JudgeReport(prompt=prompt, ai_response=response, evaluation=evaluation)
