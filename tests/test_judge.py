"""Tests for the dimension and rubric judges."""

import json

import pytest

from conftest import StubCompletion, dimension_judge_handler, rubric_verdict
from core.errors import CompletionFailure, DimensionJudgeFailure
from evals.judge import DIMENSIONS, DimensionJudge, RubricJudge, parse_binary_answer
from evals.models import TestCase


class TestParseBinaryAnswer:

    @pytest.mark.parametrize("text,expected", [
        ("1", 1),
        ("0", 0),
        ("Answer: 1", 1),
        ("I considered 0 but the answer is 1", 1),
        ("1\n\nFinal: 0", 0),
    ])
    def test_last_digit_wins(self, text, expected):
        assert parse_binary_answer(text) == expected

    def test_no_digit_raises(self):
        with pytest.raises(DimensionJudgeFailure):
            parse_binary_answer("yes, definitely")


class TestDimensionJudge:

    @pytest.mark.asyncio
    async def test_all_pass_without_tone_or_json(self):
        completion = StubCompletion(handler=dimension_judge_handler("1"))
        judge = DimensionJudge(completion)
        case = TestCase(input="What is 2+2?", expected="4")

        verdict = await judge.judge(case, "4")

        assert verdict.scores == {"factuality": 1.0, "battle": 1.0, "jsonValidity": 1.0, "tone": 1.0, "overall": 1.0}
        # tone unset and JSON not required: only two questions asked
        assert len(completion.prompts) == 2

    @pytest.mark.asyncio
    async def test_overall_is_mean_of_dimensions(self):
        def handler(prompt):
            return "0" if "factually consistent" in prompt else "1"

        judge = DimensionJudge(StubCompletion(handler=handler))
        case = TestCase(input="q", expected="a", metadata={"expectsJSON": True, "expectedTone": "formal"})

        verdict = await judge.judge(case, "not json")

        assert verdict.scores["factuality"] == 0.0
        assert verdict.scores["jsonValidity"] == 0.0
        assert verdict.scores["battle"] == 1.0
        assert verdict.scores["tone"] == 1.0
        expected = sum(verdict.scores[d] for d in DIMENSIONS) / len(DIMENSIONS)
        assert verdict.overall == expected == 0.5

    @pytest.mark.asyncio
    async def test_json_validity_checked_locally(self):
        completion = StubCompletion(handler=dimension_judge_handler("1"))
        judge = DimensionJudge(completion)
        case = TestCase(input="q", expected="{}", metadata={"expectsJSON": "true"})

        verdict = await judge.judge(case, '{"ok": true}')

        assert verdict.scores["jsonValidity"] == 1.0
        assert len(completion.prompts) == 2

    @pytest.mark.asyncio
    async def test_failed_dimension_scores_zero_without_aborting(self):
        def handler(prompt):
            if "at least as good" in prompt:
                return CompletionFailure("judge down")
            if "tone" in prompt:
                return "no idea"
            return "1"

        judge = DimensionJudge(StubCompletion(handler=handler))
        case = TestCase(input="q", expected="a", metadata={"expectedTone": "friendly"})

        verdict = await judge.judge(case, "answer")

        assert verdict.scores["battle"] == 0.0
        assert verdict.scores["tone"] == 0.0
        assert verdict.scores["factuality"] == 1.0
        assert verdict.overall == 0.5

    @pytest.mark.asyncio
    async def test_recommendation_uses_relaxed_questions(self):
        completion = StubCompletion(handler=dimension_judge_handler("1"))
        judge = DimensionJudge(completion)
        case = TestCase(input="Recommend cafes", expected="3-5 options", metadata={"promptType": "Recommendation"})

        await judge.judge(case, "Try these cafes")

        factuality_prompt, battle_prompt = completion.prompts
        assert "relevant recommendations" in factuality_prompt
        assert "helpful and adequate" in battle_prompt

    @pytest.mark.asyncio
    async def test_relaxed_categories_are_configurable(self):
        completion = StubCompletion(handler=dimension_judge_handler("1"))
        judge = DimensionJudge(completion, relaxed_categories=())
        case = TestCase(input="Recommend cafes", expected="3-5 options", metadata={"category": "recommendation"})

        await judge.judge(case, "Try these cafes")

        assert "factually consistent" in completion.prompts[0]
        assert "at least as good" in completion.prompts[1]

    @pytest.mark.asyncio
    async def test_creative_uses_quality_criteria(self):
        completion = StubCompletion(handler=dimension_judge_handler("1"))
        judge = DimensionJudge(completion)
        case = TestCase(input="A haiku", expected="5-7-5 syllables", metadata={"category": "creative"})

        await judge.judge(case, "poem")

        assert "QUALITY CRITERIA" in completion.prompts[0]

    @pytest.mark.asyncio
    async def test_judging_is_idempotent_with_deterministic_completion(self):
        def handler(prompt):
            return "0" if "tone" in prompt else "1"

        judge = DimensionJudge(StubCompletion(handler=handler))
        case = TestCase(input="q", expected="a", metadata={"expectedTone": "formal"})

        first = await judge.judge(case, "output")
        second = await judge.judge(case, "output")

        assert first.scores == second.scores

    def test_failed_verdict_zeroes_everything(self):
        judge = DimensionJudge(StubCompletion())
        verdict = judge.failed_verdict(TestCase(input="q"), "Execution failed")
        assert all(value == 0.0 for value in verdict.scores.values())
        assert set(verdict.scores) == set(DIMENSIONS) | {"overall"}
        assert verdict.failure_reason == "Execution failed"


class TestRubricJudge:

    @pytest.mark.asyncio
    async def test_all_criteria_pass(self):
        reply = rubric_verdict(True, criteria=["must state 4"])
        judge = RubricJudge(StubCompletion(reply))
        case = TestCase(input="2+2?", rubric=["must state 4"])

        verdict = await judge.judge(case, "4", goal="Answer arithmetic")

        assert verdict.score == 1
        assert verdict.overall == 1.0
        assert verdict.failure_reason is None
        assert [r.to_wire() for r in verdict.rubric_results] == [
            {"criterion": "must state 4", "passed": True, "reason": None}
        ]

    @pytest.mark.asyncio
    async def test_any_failed_criterion_fails_the_case(self):
        reply = json.dumps({
            "score": 1,
            "rubricResults": [
                {"criterion": "concise", "passed": True},
                {"criterion": "polite", "passed": False, "reason": "rude"},
            ],
        })
        judge = RubricJudge(StubCompletion(reply))
        case = TestCase(input="q", rubric=["concise", "polite"])

        verdict = await judge.judge(case, "out")

        assert verdict.score == 0
        assert "polite: rude" in verdict.failure_reason

    @pytest.mark.asyncio
    async def test_missing_criterion_counts_as_failed(self):
        reply = rubric_verdict(True, criteria=["concise"])
        judge = RubricJudge(StubCompletion(reply))
        case = TestCase(input="q", rubric=["concise", "polite"])

        verdict = await judge.judge(case, "out")

        assert verdict.score == 0
        assert verdict.rubric_results[1].passed is False
        assert verdict.rubric_results[1].reason == "Not evaluated by judge"

    @pytest.mark.asyncio
    async def test_paraphrased_criteria_match_by_position(self):
        reply = rubric_verdict(True, True, criteria=["Is concise", "Is polite"])
        judge = RubricJudge(StubCompletion(reply))
        case = TestCase(input="q", rubric=["concise", "polite"])

        verdict = await judge.judge(case, "out")

        assert verdict.score == 1
        assert [r.criterion for r in verdict.rubric_results] == ["concise", "polite"]

    @pytest.mark.asyncio
    async def test_text_matched_result_is_not_reused_positionally(self):
        reply = rubric_verdict(False, True, criteria=["mentions the price clearly", "must be polite"])
        judge = RubricJudge(StubCompletion(reply))
        case = TestCase(input="q", rubric=["must be polite", "must mention price"])

        verdict = await judge.judge(case, "hello")

        assert verdict.score == 0
        assert [(r.criterion, r.passed) for r in verdict.rubric_results] == [
            ("must be polite", True),
            ("must mention price", False),
        ]

    @pytest.mark.asyncio
    async def test_criterion_without_unused_result_is_not_evaluated(self):
        reply = rubric_verdict(True, criteria=["must be polite"])
        judge = RubricJudge(StubCompletion(reply))
        case = TestCase(input="q", rubric=["must be polite", "must mention price"])

        verdict = await judge.judge(case, "hello")

        assert verdict.score == 0
        assert verdict.rubric_results[0].passed is True
        assert verdict.rubric_results[1].passed is False
        assert verdict.rubric_results[1].reason == "Not evaluated by judge"

    @pytest.mark.asyncio
    async def test_unparseable_verdict_scores_zero(self):
        judge = RubricJudge(StubCompletion("I think it passes."))
        case = TestCase(input="q", rubric=["concise"])

        verdict = await judge.judge(case, "out")

        assert verdict.score == 0
        assert verdict.failure_reason == "Failed to parse judge response"
        assert verdict.rubric_results[0].passed is False

    @pytest.mark.asyncio
    async def test_judge_unavailable_scores_zero(self):
        judge = RubricJudge(StubCompletion(CompletionFailure("both down")))
        verdict = await judge.judge(TestCase(input="q", rubric=["concise"]), "out")

        assert verdict.score == 0
        assert verdict.failure_reason.startswith("Judge unavailable")

    @pytest.mark.asyncio
    async def test_empty_rubric_uses_judge_score(self):
        judge = RubricJudge(StubCompletion('{"score": 1, "rubricResults": []}'))
        verdict = await judge.judge(TestCase(input="q"), "out")
        assert verdict.score == 1
