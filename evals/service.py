"""Prompt optimizer engine exposed as an async service for API and CLI consumers."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from core.config import PipelineSettings
from core.errors import ConfigError
from llm.completion import CompletionService
from llm.factory import LLMFactory
from .models import EvaluationReport, OptimizationReport, PipelineRequest
from .pipeline import build_evaluation_pipeline, build_optimization_pipeline
from .quality import CriteriaJudge, QualityJudge
from .reporter import ProgressReporter
from .sample_suite import JudgeReport, SampleReport, SampleSuiteRunner, judge_single_response
from .tracing import LangSmithSink

logger = logging.getLogger(__name__)


class OptimizerService:
    """Builds role-bound completion services from configuration and runs pipelines.

    Completion services are created on first use and cached per role, so a
    missing credential surfaces as a ``ConfigError`` on the request that needs
    it, before any provider call is made.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        config_path: Optional[str] = None,
        completions: Optional[Dict[str, CompletionService]] = None,
        tracing: Optional[LangSmithSink] = None,
    ):
        self.config = config if config is not None else LLMFactory.load_config(config_path)
        self.settings = PipelineSettings.from_config(self.config)
        self.tracing = tracing if tracing is not None else LangSmithSink.from_config(self.config)
        self._completions: Dict[str, CompletionService] = dict(completions or {})

    def completion_for_role(self, role: str) -> CompletionService:
        if role not in self._completions:
            try:
                self._completions[role] = LLMFactory.create_completion_service(
                    role, self.config, timeout=self.settings.completion_timeout
                )
            except ValueError as e:
                raise ConfigError(str(e)) from e
        return self._completions[role]

    def _completions_for(self, *roles: str) -> List[CompletionService]:
        return [self.completion_for_role(role) for role in roles]

    @staticmethod
    def _require(request: PipelineRequest, *fields: str, message: str) -> None:
        for field in fields:
            value = getattr(request, field)
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(message)

    async def optimize(self, request: PipelineRequest, reporter: ProgressReporter) -> OptimizationReport:
        """Full pipeline: version, generate, run, optimize failures, A/B re-run."""
        self._require(request, "prompt", "goal", "prompt_name", message="Missing prompt, goal, or promptName")
        generator, executor, judge, optimizer = self._completions_for("generator", "executor", "judge", "optimizer")

        pipeline = build_optimization_pipeline(
            generator, executor, judge, optimizer, self.settings, tracing=self.tracing
        )
        return await pipeline.run(
            request.prompt,
            request.goal,
            request.prompt_name,
            list(request.rubric or []),
            reporter,
        )

    async def evaluate(self, request: PipelineRequest, reporter: ProgressReporter) -> EvaluationReport:
        """Quick pipeline: synthetic cases, dimension scoring, candidate rewrites."""
        self._require(request, "prompt", message="Prompt string is required")
        generator, executor, judge, optimizer = self._completions_for("generator", "executor", "judge", "optimizer")

        pipeline = build_evaluation_pipeline(generator, executor, judge, optimizer, self.settings)
        return await pipeline.run(request.prompt, reporter)

    async def sample_test(self, request: PipelineRequest) -> SampleReport:
        self._require(request, "prompt", message="Prompt string is required")
        executor, judge = self._completions_for("executor", "judge")
        runner = SampleSuiteRunner(executor, QualityJudge(judge), tracing=self.tracing)
        return await runner.run(request.prompt, request.dataset)

    async def judge_prompt(self, request: PipelineRequest) -> JudgeReport:
        self._require(request, "prompt", message="Prompt string is required")
        executor, judge = self._completions_for("executor", "judge")
        return await judge_single_response(request.prompt, executor, CriteriaJudge(judge))

    def list_providers(self) -> List[Dict[str, Any]]:
        availability = LLMFactory.list_available_providers(config=self.config)
        providers = self.config.get("providers", {})

        return [
            {
                "name": name,
                "available": availability.get(name, False),
                "default_model": providers.get(name, {}).get("model"),
            }
            for name in sorted(providers.keys())
        ]

    def list_roles(self) -> Dict[str, Dict[str, Any]]:
        roles = self.config.get("roles", {})
        return {
            role: {
                "provider": roles.get(role, {}).get("provider"),
                "fallback": roles.get(role, {}).get("fallback"),
            }
            for role in LLMFactory.ROLES
        }

    async def list_prompts(self, limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        return await self.tracing.list_prompts(limit=limit, offset=offset)

    async def aclose(self) -> None:
        for role, completion in self._completions.items():
            logger.debug(f"Closing completion service for role '{role}'")
            await completion.aclose()
        self._completions.clear()
