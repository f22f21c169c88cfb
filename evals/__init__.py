"""Prompt evaluation and optimization pipeline."""

from .extraction import extract_json, find_json_fragment
from .generator import TestCaseGenerator
from .judge import DimensionJudge, RubricJudge
from .models import (
    EvaluationReport,
    EvaluationRun,
    EventStatus,
    ExecutionResult,
    OptimizationProposal,
    OptimizationReport,
    PipelineRequest,
    ProgressEvent,
    Summary,
    TestCase,
    Verdict,
)
from .optimizer import PromptOptimizer
from .pipeline import EvaluationPipeline, OptimizationPipeline
from .reporter import ProgressReporter, drive
from .runner import EvaluationRunner
from .service import OptimizerService
from .template import PLACEHOLDER, render_prompt
from .tracing import LangSmithSink

__all__ = [
    "extract_json",
    "find_json_fragment",
    "TestCaseGenerator",
    "DimensionJudge",
    "RubricJudge",
    "EvaluationReport",
    "EvaluationRun",
    "EventStatus",
    "ExecutionResult",
    "OptimizationProposal",
    "OptimizationReport",
    "PipelineRequest",
    "ProgressEvent",
    "Summary",
    "TestCase",
    "Verdict",
    "PromptOptimizer",
    "EvaluationPipeline",
    "OptimizationPipeline",
    "ProgressReporter",
    "drive",
    "EvaluationRunner",
    "OptimizerService",
    "PLACEHOLDER",
    "render_prompt",
    "LangSmithSink",
]
