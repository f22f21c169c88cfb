"""Tests for synthetic test-case generation."""

import json

import pytest

from conftest import StubCompletion
from core.errors import GenerationParseFailure
from evals.generator import TestCaseGenerator, format_rubric


class TestGenerateForRubric:

    @pytest.mark.asyncio
    async def test_cases_carry_request_rubric(self, generated_cases):
        completion = StubCompletion(generated_cases(2))
        generator = TestCaseGenerator(completion, count=2)

        cases = await generator.generate_for_rubric("Answer: {{input}}", "Be correct", ["must state 4"])

        assert [c.input for c in cases] == ["case 1", "case 2"]
        assert all(c.rubric == ["must state 4"] for c in cases)
        assert "1. must state 4" in completion.prompts[0]
        assert "{{input}}" in completion.prompts[0]

    @pytest.mark.asyncio
    async def test_extra_cases_are_dropped(self, generated_cases):
        generator = TestCaseGenerator(StubCompletion(generated_cases(4)), count=2)
        cases = await generator.generate_for_rubric("p", "g", [])
        assert len(cases) == 2

    @pytest.mark.asyncio
    async def test_too_few_cases_fail(self, generated_cases):
        generator = TestCaseGenerator(StubCompletion(generated_cases(1)), count=2)
        with pytest.raises(GenerationParseFailure):
            await generator.generate_for_rubric("p", "g", [])

    @pytest.mark.asyncio
    async def test_response_without_array_fails(self):
        generator = TestCaseGenerator(StubCompletion("Sorry, I cannot help with that."), count=2)
        with pytest.raises(GenerationParseFailure):
            await generator.generate_for_rubric("p", "g", ["r"])

    @pytest.mark.asyncio
    async def test_element_without_input_fails(self):
        reply = json.dumps([{"input": "ok"}, {"expected": "no input"}])
        generator = TestCaseGenerator(StubCompletion(reply), count=2)
        with pytest.raises(GenerationParseFailure):
            await generator.generate_for_rubric("p", "g", [])


class TestGenerateSynthetic:

    @pytest.mark.asyncio
    async def test_metadata_and_expectations(self):
        reply = "```json\n" + json.dumps([
            {
                "input": "Best pizza in Rome",
                "expected": ["3-5 places", "with addresses"],
                "metadata": {"promptType": "recommendation", "expectedTone": "friendly", "expectsJSON": False},
            },
            {"input": 42, "expected": "42", "metadata": {"category": "factual"}},
        ]) + "\n```"
        generator = TestCaseGenerator(StubCompletion(reply), count=2)

        first, second = await generator.generate_synthetic("Recommend: {{input}}")

        assert first.expected == "3-5 places; with addresses"
        assert first.category == "recommendation"
        assert first.expected_tone == "friendly"
        assert first.expects_json is False
        assert first.rubric == []
        assert second.input == "42"
        assert second.category == "factual"


def test_format_rubric():
    assert format_rubric(["a", "b"]) == "1. a\n2. b"
    assert format_rubric([]) == "(no explicit criteria)"
