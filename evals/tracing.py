"""LangSmith tracing sink for executions, failure datasets and prompt listing."""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

from langsmith import Client

from core.errors import ConfigError
from .models import ExecutionResult, TestCase

logger = logging.getLogger(__name__)

DEFAULT_API_KEY_ENV = "LANGSMITH_API_KEY"
DEFAULT_PROJECT = "prompt-optimization"
LIST_TIMEOUT = 10.0


class LangSmithSink:
    """Write-only recorder backed by ``langsmith.Client``.

    The sink is inert when the API key variable is unset. Writes happen in a
    worker thread; a failed write is logged and otherwise ignored so tracing
    never changes a pipeline's outcome.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, client: Optional[Client] = None):
        config = config or {}
        self.api_key_env = config.get("api_key_env", DEFAULT_API_KEY_ENV)
        self.project_name = config.get("project_name", DEFAULT_PROJECT)
        self._client = client

    @property
    def enabled(self) -> bool:
        if self._client is not None:
            return True
        return bool(os.getenv(self.api_key_env, "").strip())

    @property
    def client(self) -> Client:
        if self._client is None:
            if not self.enabled:
                raise ConfigError(
                    f"LangSmith API key not configured. Please add {self.api_key_env} to your environment variables"
                )
            self._client = Client(api_key=os.getenv(self.api_key_env))
        return self._client

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "LangSmithSink":
        return cls(config.get("tracing", {}))

    async def _write(self, action: str, func, *args, **kwargs) -> Any:
        if not self.enabled:
            return None
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except Exception as e:
            logger.warning(f"LangSmith {action} failed: {e}")
            return None

    async def log_execution(self, prompt_name: str, test_case: TestCase, result: ExecutionResult) -> None:
        """Record one prompt execution and its verdict as a chain run."""
        await self._write(
            "run logging",
            self._create_run,
            "prompt-execution",
            {"promptName": prompt_name, "input": test_case.input},
            {
                "output": result.output,
                "scores": dict(result.scores),
                "score": result.score,
                "failureReason": result.failure_reason,
                "rubricResults": [r.to_wire() for r in result.rubric_results],
            },
        )

    def _create_run(self, name: str, inputs: Dict[str, Any], outputs: Dict[str, Any]) -> None:
        self.client.create_run(name, inputs, "chain", project_name=self.project_name, outputs=outputs)

    async def record_failures(self, dataset_name: str, failures: List[ExecutionResult]) -> None:
        """Create a dataset holding one example per failing execution."""
        if not failures:
            return
        await self._write("failure dataset creation", self._create_failure_dataset, dataset_name, failures)

    def _create_failure_dataset(self, dataset_name: str, failures: List[ExecutionResult]) -> None:
        dataset = self.client.create_dataset(dataset_name, description="Failure cases for prompt optimization")
        for failure in failures:
            self.client.create_example(
                inputs={"input": failure.input},
                outputs={"output": failure.output},
                metadata={
                    "score": failure.score,
                    "failureReason": failure.failure_reason,
                    "rubricResults": [r.to_wire() for r in failure.rubric_results],
                },
                dataset_id=dataset.id,
            )
        logger.info(f"Recorded {len(failures)} failures in LangSmith dataset {dataset_name}")

    async def log_sample_run(self, prompt: str, dataset: str, results: List[Dict[str, Any]], average_score: float) -> None:
        """Record a sample-suite spot check as a single run."""
        await self._write(
            "sample run logging",
            self._create_run,
            "prompt-test",
            {"prompt": prompt, "dataset": dataset},
            {"results": results, "averageScore": average_score},
        )

    async def list_prompts(self, limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        """List prompts from the LangSmith hub, bounded by a 10 s timeout.

        Raises:
            ConfigError: if the API key is not configured
            asyncio.TimeoutError: if LangSmith does not answer in time
        """
        client = self.client
        response = await asyncio.wait_for(
            asyncio.to_thread(client.list_prompts, limit=limit, offset=offset),
            timeout=LIST_TIMEOUT,
        )
        return [_prompt_summary(repo) for repo in getattr(response, "repos", [])[:limit]]


def _prompt_summary(repo: Any) -> Dict[str, Any]:
    updated_at = getattr(repo, "updated_at", None)
    return {
        "id": str(getattr(repo, "id", "")),
        "name": getattr(repo, "repo_handle", None),
        "fullName": getattr(repo, "full_name", None),
        "description": getattr(repo, "description", None),
        "numCommits": getattr(repo, "num_commits", 0),
        "updatedAt": updated_at.isoformat() if updated_at is not None else None,
        "tags": list(getattr(repo, "tags", None) or []),
    }
