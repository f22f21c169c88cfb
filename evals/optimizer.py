"""Failure-driven prompt revision."""

import json
import logging
from typing import Any, Dict, List

from core.errors import OptimizationParseFailure
from llm.completion import CompletionService
from .extraction import extract_json
from .generator import format_rubric
from .models import ExecutionResult, OptimizationProposal

logger = logging.getLogger(__name__)

OUTPUT_EXCERPT = 200


class PromptOptimizer:
    """Asks a model to rewrite a prompt so that its failing cases pass."""

    PROPOSAL_TEMPLATE = (
        "You are a prompt engineer. Analyze these failures and create an optimized prompt.\n\n"
        "ORIGINAL PROMPT:\n{prompt}\n\n"
        "GOAL:\n{goal}\n\n"
        "RUBRIC:\n{rubric}\n\n"
        "FAILURE ANALYSIS ({count} cases):\n{analysis}\n\n"
        "TASK:\n"
        "1. Identify patterns in the failures\n"
        "2. Generate an improved version of the prompt that addresses these failure patterns\n"
        "3. List specific changes made and why\n\n"
        "Return ONLY valid JSON:\n"
        "{{\n"
        '  "prompt": "<the complete optimized prompt>",\n'
        '  "reasoning": "<detailed explanation of failure patterns and how the new prompt fixes them>",\n'
        '  "changes": [\n'
        '    "Change 1: Added X because Y",\n'
        '    "Change 2: Removed Z because W"\n'
        "  ]\n"
        "}}"
    )

    CANDIDATES_TEMPLATE = (
        "You are a prompt engineering expert. Analyze this prompt and its failures, then suggest "
        "{limit} SMALL TARGETED IMPROVEMENTS.\n\n"
        "ORIGINAL PROMPT:\n{prompt}\n\n"
        "FAILED TEST CASES (score < {threshold:g}):\n{analysis}\n\n"
        "INSTRUCTIONS:\n"
        "Create {limit} variations of the prompt with small, targeted fixes to address specific issues. "
        "Keep the core structure but improve problematic areas.\n\n"
        "Return a JSON array:\n"
        "[\n"
        "  {{\n"
        '    "prompt": "Improved version 1",\n'
        '    "reasoning": "Why this fixes the issues",\n'
        '    "changes": ["Specific fix 1", "Specific fix 2"]\n'
        "  }}\n"
        "]\n\n"
        "Return ONLY the JSON array."
    )

    def __init__(self, completion: CompletionService, max_tokens: int = 2000):
        self.completion = completion
        self.max_tokens = max_tokens

    async def propose(
        self,
        prompt: str,
        failures: List[ExecutionResult],
        goal: str,
        rubric: List[str],
    ) -> OptimizationProposal:
        """Return a single revised prompt with reasoning and an ordered change list."""
        instruction = self.PROPOSAL_TEMPLATE.format(
            prompt=prompt,
            goal=goal,
            rubric=format_rubric(rubric),
            count=len(failures),
            analysis=json.dumps(rubric_failure_analysis(failures), indent=2),
        )
        text = await self.completion.complete(instruction, max_tokens=self.max_tokens)
        proposal = extract_json(text, OptimizationProposal, kind="object", failure=OptimizationParseFailure)
        logger.info(f"Optimizer proposed a revision with {len(proposal.changes)} changes")
        return proposal

    async def propose_candidates(
        self,
        prompt: str,
        failures: List[ExecutionResult],
        limit: int = 3,
        threshold: float = 0.8,
    ) -> List[OptimizationProposal]:
        """Return up to ``limit`` alternative revisions of ``prompt``."""
        instruction = self.CANDIDATES_TEMPLATE.format(
            prompt=prompt,
            limit=limit,
            threshold=threshold,
            analysis=dimension_failure_analysis(failures),
        )
        text = await self.completion.complete(instruction, max_tokens=self.max_tokens)
        candidates = extract_json(text, List[OptimizationProposal], kind="array", failure=OptimizationParseFailure)
        if not candidates:
            raise OptimizationParseFailure("Model returned no prompt candidates")
        return candidates[:limit]


def rubric_failure_analysis(failures: List[ExecutionResult]) -> List[Dict[str, Any]]:
    return [
        {
            "input": f.input,
            "output": f.output[:OUTPUT_EXCERPT],
            "failureReason": f.failure_reason,
            "failedCriteria": [r.to_wire() for r in f.rubric_results if not r.passed],
        }
        for f in failures
    ]


def dimension_failure_analysis(failures: List[ExecutionResult]) -> str:
    blocks = []
    for idx, test in enumerate(failures, 1):
        scores = ", ".join(f"{name}={value:g}" for name, value in test.scores.items() if name != "overall")
        blocks.append(
            f"Test {idx}:\n"
            f"Input: {test.input}\n"
            f"Expected: {test.expected or ''}\n"
            f"Got: {test.output}\n"
            f"Scores: {scores}"
        )
    return "\n\n".join(blocks)
