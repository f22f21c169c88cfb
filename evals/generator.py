"""Synthetic test-case generation."""

import json
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from core.errors import GenerationParseFailure
from llm.completion import CompletionService
from .extraction import extract_json
from .models import TestCase
from .template import PLACEHOLDER

logger = logging.getLogger(__name__)


class _GeneratedCase(BaseModel):
    """Loose shape of one generated element; only ``input`` is required."""
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    input: str = Field(min_length=1)
    expected: Optional[Union[str, List[str]]] = None
    rubric: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None


class TestCaseGenerator:
    """Asks a model for a fixed number of (input, expectation) pairs."""
    __test__ = False

    RUBRIC_TEMPLATE = (
        "Generate {count} diverse test cases for this prompt evaluation.\n\n"
        "PROMPT TO TEST:\n{prompt}\n\n"
        "GOAL:\n{goal}\n\n"
        "EVALUATION RUBRIC:\n{rubric}\n\n"
        "Generate {count} test input scenarios that would thoroughly test whether the prompt "
        "achieves the goal and meets the rubric criteria.\n\n"
        "Return ONLY a JSON array:\n"
        "[\n"
        "  {{\n"
        '    "input": "Test input that replaces {placeholder} in the prompt",\n'
        '    "rubric": {rubric_json}\n'
        "  }}\n"
        "]"
    )

    SYNTHETIC_TEMPLATE = (
        "You are a test case generator for prompt evaluation. Analyze this prompt and generate "
        "{count} diverse test cases to evaluate its effectiveness.\n\n"
        "PROMPT TO ANALYZE:\n{prompt}\n\n"
        "INSTRUCTIONS:\n"
        "1. Identify the prompt type:\n"
        '   - FACTUAL: Questions with verifiable answers (e.g., "What is photosynthesis?")\n'
        '   - RECOMMENDATION: Requests for suggestions, lists, or options (e.g., "Recommend restaurants")\n'
        "   - CREATIVE: Story writing, poetry, creative content\n"
        "   - TRANSFORMATION: Data processing, format conversion\n\n"
        "2. For RECOMMENDATION prompts the expected output should describe CRITERIA, not specific items "
        '(e.g. "Should provide 3-5 options with locations and brief descriptions").\n'
        "3. For FACTUAL prompts the expected output should hold the verifiable facts.\n"
        "4. For CREATIVE prompts the expected output should describe quality attributes.\n\n"
        "Return a JSON array with EXACTLY this schema:\n"
        "[\n"
        "  {{\n"
        '    "input": "The variable part that replaces {placeholder} in the prompt",\n'
        '    "expected": "Criteria, correct answer or quality bar, depending on the prompt type",\n'
        '    "metadata": {{\n'
        '      "expectedTone": "professional|casual|formal|friendly|etc (extract from prompt)",\n'
        '      "expectsJSON": true|false,\n'
        '      "minLength": <number>,\n'
        '      "mustContain": ["keyword1", "keyword2"],\n'
        '      "category": "factual|recommendation|creative|transformation",\n'
        '      "promptType": "factual|recommendation|creative|transformation"\n'
        "    }}\n"
        "  }}\n"
        "]\n\n"
        "IMPORTANT:\n"
        "- Set category and promptType correctly based on prompt analysis\n"
        "- Make test cases diverse and challenging\n"
        "- Set expectsJSON to true only if the prompt explicitly asks for JSON\n\n"
        "Return ONLY the JSON array with {count} test cases, no explanation."
    )

    def __init__(self, completion: CompletionService, count: int = 2, max_tokens: int = 2000):
        self.completion = completion
        self.count = count
        self.max_tokens = max_tokens

    async def generate_for_rubric(self, prompt: str, goal: str, rubric: List[str]) -> List[TestCase]:
        """Generate inputs that exercise ``prompt`` against a goal and rubric.

        Every returned case carries the request rubric unless the model
        supplied a non-empty one of its own.
        """
        instruction = self.RUBRIC_TEMPLATE.format(
            count=self.count,
            prompt=prompt,
            goal=goal,
            rubric=format_rubric(rubric),
            rubric_json=json.dumps(rubric),
            placeholder=PLACEHOLDER,
        )
        generated = await self._request(instruction)
        return [
            TestCase(input=item.input, expected=item.expected, rubric=item.rubric or list(rubric), metadata=item.metadata or {})
            for item in generated
        ]

    async def generate_synthetic(self, prompt: str) -> List[TestCase]:
        """Generate categorized cases with expectations and scoring metadata."""
        instruction = self.SYNTHETIC_TEMPLATE.format(count=self.count, prompt=prompt, placeholder=PLACEHOLDER)
        generated = await self._request(instruction)
        return [
            TestCase(input=item.input, expected=item.expected, rubric=item.rubric or [], metadata=item.metadata or {})
            for item in generated
        ]

    async def _request(self, instruction: str) -> List[_GeneratedCase]:
        text = await self.completion.complete(instruction, max_tokens=self.max_tokens)
        cases = extract_json(text, List[_GeneratedCase], kind="array", failure=GenerationParseFailure)

        if len(cases) < self.count:
            raise GenerationParseFailure(f"Expected {self.count} test cases, model returned {len(cases)}")
        if len(cases) > self.count:
            logger.info(f"Model returned {len(cases)} test cases; keeping the first {self.count}")
        return cases[:self.count]


def format_rubric(rubric: List[str]) -> str:
    if not rubric:
        return "(no explicit criteria)"
    return "\n".join(f"{i}. {criterion}" for i, criterion in enumerate(rubric, 1))
