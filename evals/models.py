"""Data model shared by the generator, judges, runner, optimizer and reporter.

Everything that crosses the HTTP boundary is a pydantic model serialized with
camelCase aliases (``model_dump(by_alias=True)``), matching what the browser
page reads.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)
from pydantic.alias_generators import to_camel

DEFAULT_CATEGORY = "factual"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class EventStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class TestCase(WireModel):
    """A synthetic (input, expectation) pair produced by the generator."""
    __test__ = False

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        coerce_numbers_to_str=True,
    )

    input: str
    expected: Optional[str] = None
    rubric: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("expected", mode="before")
    @classmethod
    def _join_expectations(cls, value: Any) -> Any:
        if isinstance(value, list):
            return "; ".join(str(item) for item in value)
        return value

    @property
    def category(self) -> str:
        value = self.metadata.get("promptType") or self.metadata.get("category") or DEFAULT_CATEGORY
        return str(value).strip().lower()

    @property
    def expected_tone(self) -> Optional[str]:
        tone = self.metadata.get("expectedTone")
        if isinstance(tone, str) and tone.strip():
            return tone.strip()
        return None

    @property
    def expects_json(self) -> bool:
        value = self.metadata.get("expectsJSON", False)
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return value is True


class RubricResult(WireModel):
    criterion: str
    passed: bool
    reason: Optional[str] = None


class Verdict(WireModel):
    """What a judge concludes about one output."""
    scores: Dict[str, float]
    score: Optional[int] = None
    failure_reason: Optional[str] = None
    rubric_results: List[RubricResult] = Field(default_factory=list)

    @property
    def overall(self) -> float:
        return self.scores.get("overall", 0.0)


class ExecutionResult(WireModel):
    """One test case executed against one prompt variant."""
    input: str
    output: str
    expected: Optional[str] = None
    rubric: List[str] = Field(default_factory=list)
    scores: Dict[str, float]
    score: Optional[int] = None
    failure_reason: Optional[str] = None
    rubric_results: List[RubricResult] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    @property
    def overall(self) -> float:
        return self.scores.get("overall", 0.0)

    def passed(self, threshold: float) -> bool:
        return self.overall >= threshold

    @classmethod
    def from_verdict(cls, test_case: TestCase, output: str, verdict: Verdict, error: Optional[str] = None) -> "ExecutionResult":
        return cls(
            input=test_case.input,
            output=output,
            expected=test_case.expected,
            rubric=list(test_case.rubric),
            scores=dict(verdict.scores),
            score=verdict.score,
            failure_reason=verdict.failure_reason,
            rubric_results=list(verdict.rubric_results),
            metadata=dict(test_case.metadata),
            error=error,
        )


class Summary(WireModel):
    """Aggregate counts derived from a result list; never stored on its own."""
    total: int
    passed: int
    failed: int
    pass_rate: float
    average_score: float
    pass_threshold: float

    @classmethod
    def from_results(cls, results: List[ExecutionResult], threshold: float) -> "Summary":
        total = len(results)
        passed = sum(1 for r in results if r.passed(threshold))
        average = sum(r.overall for r in results) / total if total else 0.0
        return cls(
            total=total,
            passed=passed,
            failed=total - passed,
            pass_rate=round(passed / total * 100, 1) if total else 0.0,
            average_score=round(average, 3),
            pass_threshold=threshold,
        )


class EvaluationRun(WireModel):
    """All results of one prompt variant over one test-case set."""
    label: str
    prompt: str
    results: List[ExecutionResult]
    pass_threshold: float

    @computed_field
    @property
    def summary(self) -> Summary:
        return Summary.from_results(self.results, self.pass_threshold)

    @property
    def failing_results(self) -> List[ExecutionResult]:
        return [r for r in self.results if not r.passed(self.pass_threshold)]


class OptimizationProposal(WireModel):
    prompt: str = Field(min_length=1)
    reasoning: str = ""
    changes: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("changes", "fixes"),
    )


class ProgressEvent(WireModel):
    timestamp: datetime
    phase: str
    status: EventStatus
    details: Optional[str] = None


class PipelineRequest(BaseModel):
    """Inbound request body; required fields are checked by the service."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt: Optional[str] = None
    goal: Optional[str] = None
    prompt_name: Optional[str] = None
    rubric: Optional[List[str]] = None
    dataset: Optional[str] = None


class OptimizationMetrics(WireModel):
    original_pass_rate: float
    total_tests: int
    failures: int
    optimized_pass_rate: Optional[float] = None
    optimized_failures: Optional[int] = None


class OptimizationOutcome(WireModel):
    reasoning: str = ""
    changes: List[str] = Field(default_factory=list)


class OptimizationReport(WireModel):
    """Final result of the generate → test → optimize → re-test pipeline."""
    original_prompt: str
    optimized_prompt: str
    prompt_name: str
    goal: str
    rubric: List[str]
    dataset: List[TestCase]
    original_results: List[ExecutionResult]
    optimized_results: Optional[List[ExecutionResult]] = None
    metrics: OptimizationMetrics
    optimization: OptimizationOutcome
    logs: List[ProgressEvent]


class EvaluationReport(WireModel):
    """Final result of the quick evaluation pipeline."""
    prompt: str
    summary: Summary
    results: List[ExecutionResult]
    improved_prompts: List[OptimizationProposal]
    synthetic_dataset: List[TestCase]
    logs: List[ProgressEvent]
