"""LLM-as-judge scoring of generated outputs.

Two judges share one interface (``judge`` / ``failed_verdict`` /
``pass_threshold``) so the runner can drive either:

* ``DimensionJudge`` asks a series of yes/no questions (factuality, battle,
  tone) and checks JSON validity locally; ``overall`` is their mean.
* ``RubricJudge`` asks for one JSON verdict over an explicit criterion list;
  the binary score is 1 only when every criterion passes.
"""

import json
import logging
import re
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.errors import CompletionFailure, DimensionJudgeFailure, JudgeParseFailure
from llm.completion import CompletionService
from .extraction import extract_json
from .generator import format_rubric
from .models import RubricResult, TestCase, Verdict

logger = logging.getLogger(__name__)

DIMENSIONS = ("factuality", "battle", "jsonValidity", "tone")
DIMENSION_PASS_THRESHOLD = 0.8
RUBRIC_PASS_THRESHOLD = 1.0

_BINARY_DIGIT = re.compile(r"[01]")


def parse_binary_answer(text: str) -> int:
    """Read a yes/no judgment from the last ``0`` or ``1`` in the answer."""
    digits = _BINARY_DIGIT.findall(text or "")
    if not digits:
        raise DimensionJudgeFailure(f"No 0/1 answer in judge response: {text[:100]!r}")
    return int(digits[-1])


def is_valid_json(text: str) -> bool:
    try:
        json.loads(text)
    except (TypeError, ValueError):
        return False
    return True


class DimensionJudge:
    """Scores an output on factuality, battle, JSON validity and tone."""

    FACTUAL_QUESTION = (
        "Is this output factually consistent with the expected answer?\n\n"
        "OUTPUT:\n{output}\n\n"
        "EXPECTED:\n{expected}\n\n"
        'Return "1" if factually consistent/correct, "0" if not.'
    )

    RECOMMENDATION_QUESTION = (
        "Simple yes/no: Does this output provide relevant recommendations/information that "
        "addresses the request?\n\n"
        "OUTPUT:\n{output}\n\n"
        "REQUEST TYPE:\n{expected}\n\n"
        "If the output:\n"
        "- Is on-topic and relevant\n"
        "- Provides specific examples/recommendations\n"
        "- Contains details and explanations\n\n"
        'Then answer "1"\n\n'
        'Only answer "0" if output is:\n'
        "- Completely off-topic\n"
        '- Just says "I don\'t know" or refuses\n'
        "- Provides no actual information\n\n"
        'Answer ONLY with "1" or "0":'
    )

    CREATIVE_QUESTION = (
        "Evaluate if this creative output meets the quality criteria.\n\n"
        "OUTPUT:\n{output}\n\n"
        "QUALITY CRITERIA:\n{expected}\n\n"
        'Return "1" if output is coherent, relevant, and meets the quality bar, '
        '"0" if it\'s off-topic or poor quality.'
    )

    HELPFULNESS_QUESTION = (
        "Simple yes/no: Is this response helpful and adequate?\n\n"
        "USER REQUEST:\n{input}\n\n"
        "RESPONSE:\n{output}\n\n"
        "If the response:\n"
        "- Directly addresses the request\n"
        "- Provides specific, useful information\n"
        "- Has reasonable detail\n\n"
        'Then answer "1"\n\n'
        'Only answer "0" if response:\n'
        "- Is off-topic or irrelevant\n"
        '- Is extremely vague ("there are many options")\n'
        "- Refuses to help or provides no real information\n\n"
        'Answer ONLY with "1" or "0":'
    )

    BATTLE_QUESTION = (
        "Compare these two responses for quality and helpfulness.\n\n"
        "INPUT: {input}\n\n"
        "RESPONSE A (Actual): {output}\n\n"
        "RESPONSE B (Reference): {expected}\n\n"
        "Evaluate: Is Response A at least as good as Response B in terms of accuracy, "
        "completeness, and helpfulness?\n"
        "Different but equally valid approaches should pass.\n\n"
        'Return "1" if A is as good or better, "0" only if B is clearly superior.'
    )

    TONE_QUESTION = (
        "Does this text have a {tone} tone?\n\n"
        "TEXT:\n{output}\n\n"
        'Answer with ONLY "1" for yes or "0" for no.'
    )

    def __init__(
        self,
        completion: CompletionService,
        relaxed_categories: Iterable[str] = ("recommendation",),
        pass_threshold: float = DIMENSION_PASS_THRESHOLD,
        max_tokens: int = 50,
    ):
        self.completion = completion
        self.relaxed_categories = {c.strip().lower() for c in relaxed_categories}
        self.pass_threshold = pass_threshold
        self.max_tokens = max_tokens

    def _is_relaxed(self, test_case: TestCase) -> bool:
        return test_case.category in self.relaxed_categories

    def factuality_question(self, test_case: TestCase, output: str) -> str:
        expected = test_case.expected or ""
        if self._is_relaxed(test_case):
            return self.RECOMMENDATION_QUESTION.format(output=output, expected=expected)
        if test_case.category == "creative":
            return self.CREATIVE_QUESTION.format(output=output, expected=expected)
        return self.FACTUAL_QUESTION.format(output=output, expected=expected)

    def battle_question(self, test_case: TestCase, output: str) -> str:
        if self._is_relaxed(test_case):
            return self.HELPFULNESS_QUESTION.format(input=test_case.input, output=output)
        return self.BATTLE_QUESTION.format(
            input=test_case.input, output=output, expected=test_case.expected or ""
        )

    async def _ask(self, dimension: str, question: str) -> float:
        """Ask one yes/no question; any failure scores the dimension 0."""
        try:
            answer = await self.completion.complete(question, max_tokens=self.max_tokens)
            return float(parse_binary_answer(answer))
        except (CompletionFailure, DimensionJudgeFailure) as exc:
            logger.warning(f"{dimension} judgment failed, scoring 0: {exc}")
            return 0.0

    async def judge(self, test_case: TestCase, output: str, goal: Optional[str] = None) -> Verdict:
        scores = {
            "factuality": await self._ask("factuality", self.factuality_question(test_case, output)),
            "battle": await self._ask("battle", self.battle_question(test_case, output)),
        }

        if test_case.expects_json:
            scores["jsonValidity"] = 1.0 if is_valid_json(output) else 0.0
        else:
            scores["jsonValidity"] = 1.0

        tone = test_case.expected_tone
        if tone:
            scores["tone"] = await self._ask("tone", self.TONE_QUESTION.format(tone=tone, output=output))
        else:
            scores["tone"] = 1.0

        scores["overall"] = sum(scores[d] for d in DIMENSIONS) / len(DIMENSIONS)
        return Verdict(scores=scores)

    def failed_verdict(self, test_case: TestCase, reason: str) -> Verdict:
        scores = {dimension: 0.0 for dimension in DIMENSIONS}
        scores["overall"] = 0.0
        return Verdict(scores=scores, failure_reason=reason)


class _RubricVerdict(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    score: Optional[float] = None
    failure_reason: Optional[str] = Field(default=None, alias="failureReason")
    rubric_results: List[RubricResult] = Field(default_factory=list, alias="rubricResults")


class RubricJudge:
    """Scores an output pass/fail against an ordered criterion list."""

    JUDGE_TEMPLATE = (
        "You are evaluating LLM output against a rubric.\n\n"
        "GOAL: {goal}\n\n"
        "INPUT: {input}\n\n"
        "OUTPUT TO EVALUATE:\n{output}\n\n"
        "RUBRIC (each criterion must pass):\n{rubric}\n\n"
        "For each rubric criterion, evaluate if the output passes or fails.\n"
        "Overall score is 1 if ALL criteria pass, 0 if ANY criterion fails.\n\n"
        "Return ONLY valid JSON:\n"
        "{{\n"
        '  "score": <0 or 1>,\n'
        '  "failureReason": "<brief explanation if score is 0, otherwise omit>",\n'
        '  "rubricResults": [\n'
        '    {{"criterion": "<criterion text>", "passed": <true/false>, "reason": "<explanation if failed>"}}\n'
        "  ]\n"
        "}}"
    )

    def __init__(
        self,
        completion: CompletionService,
        pass_threshold: float = RUBRIC_PASS_THRESHOLD,
        max_tokens: int = 500,
    ):
        self.completion = completion
        self.pass_threshold = pass_threshold
        self.max_tokens = max_tokens

    async def judge(self, test_case: TestCase, output: str, goal: Optional[str] = None) -> Verdict:
        question = self.JUDGE_TEMPLATE.format(
            goal=goal or "(not specified)",
            input=test_case.input,
            output=output,
            rubric=format_rubric(test_case.rubric),
        )

        try:
            text = await self.completion.complete(question, max_tokens=self.max_tokens)
            parsed = extract_json(text, _RubricVerdict, kind="object", failure=JudgeParseFailure)
        except CompletionFailure as exc:
            logger.warning(f"Rubric judge unavailable, scoring 0: {exc}")
            return self.failed_verdict(test_case, f"Judge unavailable: {exc}")
        except JudgeParseFailure as exc:
            logger.warning(f"Rubric judge response unparseable, scoring 0: {exc}")
            return self.failed_verdict(test_case, "Failed to parse judge response")

        return self._verdict(test_case.rubric, parsed)

    def _verdict(self, rubric: List[str], parsed: _RubricVerdict) -> Verdict:
        if rubric:
            matches = self._pair_criteria(rubric, parsed.rubric_results)
            results = []
            for criterion, match in zip(rubric, matches):
                if match is None:
                    results.append(RubricResult(criterion=criterion, passed=False, reason="Not evaluated by judge"))
                else:
                    results.append(RubricResult(criterion=criterion, passed=match.passed, reason=match.reason))
            score = 1 if all(r.passed for r in results) else 0
        else:
            results = list(parsed.rubric_results)
            score = 1 if (parsed.score or 0) >= 1 else 0

        failure_reason = None
        if score == 0:
            failure_reason = parsed.failure_reason or "; ".join(
                f"{r.criterion}: {r.reason or 'failed'}" for r in results if not r.passed
            ) or "Judge reported failure"

        return Verdict(
            scores={"overall": float(score)},
            score=score,
            failure_reason=failure_reason,
            rubric_results=results,
        )

    @staticmethod
    def _pair_criteria(rubric: List[str], judged: List[RubricResult]) -> List[Optional[RubricResult]]:
        """Pair each criterion with at most one judged result.

        Exact text matches are taken first. Remaining criteria take the
        remaining results in order; a result is never used twice.
        """
        used = set()
        matches: List[Optional[RubricResult]] = [None] * len(rubric)
        for position, criterion in enumerate(rubric):
            for index, result in enumerate(judged):
                if index not in used and result.criterion.strip() == criterion.strip():
                    matches[position] = result
                    used.add(index)
                    break

        leftovers = iter(index for index in range(len(judged)) if index not in used)
        for position, match in enumerate(matches):
            if match is None:
                index = next(leftovers, None)
                if index is not None:
                    matches[position] = judged[index]
        return matches

    def failed_verdict(self, test_case: TestCase, reason: str) -> Verdict:
        return Verdict(
            scores={"overall": 0.0},
            score=0,
            failure_reason=reason,
            rubric_results=[RubricResult(criterion=c, passed=False) for c in test_case.rubric],
        )
