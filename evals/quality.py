"""Single-response quality judges used by the spot-check endpoints."""

import logging
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.errors import CompletionFailure, JudgeParseFailure
from llm.completion import CompletionService
from .extraction import extract_json

logger = logging.getLogger(__name__)


class QualityVerdict(BaseModel):
    model_config = ConfigDict(extra="ignore")

    score: float = Field(default=0.0, ge=0.0, le=1.0)
    passed: bool = False
    feedback: str = ""


class CriteriaEvaluation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    clarity: float = Field(ge=1, le=5)
    accuracy: float = Field(ge=1, le=5)
    helpfulness: float = Field(ge=1, le=5)
    completeness: float = Field(ge=1, le=5)
    reasoning: Dict[str, str] = Field(default_factory=dict)
    overall_score: Optional[float] = None

    @model_validator(mode="after")
    def _default_overall(self) -> "CriteriaEvaluation":
        if self.overall_score is None:
            self.overall_score = round(
                (self.clarity + self.accuracy + self.helpfulness + self.completeness) / 4, 2
            )
        return self


class QualityJudge:
    """Rates a response between 0 and 1 for a named quality such as "clear"."""

    TEMPLATE = (
        "Evaluate the following response for {quality} quality.\n"
        "Score from 0.0 to 1.0 where:\n"
        "- 1.0 = Excellent, fully {quality}\n"
        "- 0.7-0.9 = Good, mostly {quality}\n"
        "- 0.4-0.6 = Average, somewhat {quality}\n"
        "- 0.0-0.3 = Poor, not {quality}\n\n"
        'Response to evaluate:\n"""\n{output}\n"""\n\n'
        "Return ONLY a JSON object in this format:\n"
        '{{"score": <number 0-1>, "passed": <boolean>, "feedback": "<brief explanation>"}}'
    )

    def __init__(self, completion: CompletionService, max_tokens: int = 512):
        self.completion = completion
        self.max_tokens = max_tokens

    async def judge(self, output: str, quality: str) -> QualityVerdict:
        question = self.TEMPLATE.format(quality=quality, output=output)
        try:
            text = await self.completion.complete(question, max_tokens=self.max_tokens)
        except CompletionFailure as e:
            logger.warning(f"Quality judge unavailable: {e}")
            return QualityVerdict(feedback="Evaluation error occurred")

        try:
            return extract_json(text, QualityVerdict, kind="object", failure=JudgeParseFailure)
        except JudgeParseFailure as e:
            logger.warning(f"Quality verdict unparseable: {e}")
            return QualityVerdict(feedback="Could not parse evaluation")


class CriteriaJudge:
    """Rates a response 1-5 on clarity, accuracy, helpfulness and completeness.

    The judge never sees the prompt that produced the response, only the
    response itself.
    """

    TEMPLATE = (
        "You are an objective AI evaluator. Your task is to assess the quality of an AI "
        "assistant's response based strictly on the provided criteria.\n\n"
        "EVALUATION CRITERIA:\n"
        "1. Clarity (1-5): Is the response easy to understand? Is the language clear and well-structured?\n"
        "2. Accuracy (1-5): Is the information factually correct and reliable?\n"
        "3. Helpfulness (1-5): Does the response effectively address what was asked?\n"
        "4. Completeness (1-5): Does the response cover all relevant aspects of the question?\n\n"
        'RESPONSE TO EVALUATE:\n"""\n{output}\n"""\n\n'
        "INSTRUCTIONS:\n"
        "- Rate each criterion on a scale of 1-5 (1=poor, 5=excellent)\n"
        "- Be objective and consistent in your scoring\n"
        "- Provide brief reasoning for each score\n"
        "- Do not be influenced by response length alone\n"
        "- Focus on quality, not style preferences\n\n"
        "Respond ONLY with valid JSON in this exact format:\n"
        "{{\n"
        '  "clarity": <number 1-5>,\n'
        '  "accuracy": <number 1-5>,\n'
        '  "helpfulness": <number 1-5>,\n'
        '  "completeness": <number 1-5>,\n'
        '  "reasoning": {{\n'
        '    "clarity": "<one sentence explanation>",\n'
        '    "accuracy": "<one sentence explanation>",\n'
        '    "helpfulness": "<one sentence explanation>",\n'
        '    "completeness": "<one sentence explanation>"\n'
        "  }},\n"
        '  "overall_score": <average of all scores>\n'
        "}}"
    )

    def __init__(self, completion: CompletionService, max_tokens: int = 1024):
        self.completion = completion
        self.max_tokens = max_tokens

    async def judge(self, output: str) -> CriteriaEvaluation:
        """Raises:
            CompletionFailure: if no judge provider answered
            JudgeParseFailure: if the answer holds no valid evaluation
        """
        text = await self.completion.complete(self.TEMPLATE.format(output=output), max_tokens=self.max_tokens)
        return extract_json(text, CriteriaEvaluation, kind="object", failure=JudgeParseFailure)
