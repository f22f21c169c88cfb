"""Central API layer for web-first operation."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from core.errors import ConfigError, PromptOptimizerError
from evals.models import PipelineRequest
from evals.service import OptimizerService
from .streaming import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["api-v1"])

_service: Optional[OptimizerService] = None


def get_service() -> OptimizerService:
    global _service
    if _service is None:
        try:
            _service = OptimizerService()
        except ConfigError as exc:
            _raise_config_error(exc)
    return _service


async def close_service() -> None:
    global _service
    if _service is not None:
        await _service.aclose()
        _service = None


def _raise_config_error(exc: ConfigError) -> None:
    raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/optimize")
async def optimize(
    payload: PipelineRequest,
    service: OptimizerService = Depends(get_service),
) -> StreamingResponse:
    """Stream the full optimization pipeline as Server-Sent Events.

    SSE event format:
        data: {"type": "log", "log": {"timestamp": ..., "phase": ..., "status": ...}}
        data: {"type": "complete", "evaluation": {...}}
        data: {"type": "error", "error": "...", "details": "...", "logs": [...]}
    """
    return sse_response(functools.partial(service.optimize, payload), "Failed to optimize prompt")


@router.post("/evaluate")
async def evaluate(
    payload: PipelineRequest,
    service: OptimizerService = Depends(get_service),
) -> StreamingResponse:
    """Stream the quick evaluation pipeline as Server-Sent Events."""
    return sse_response(functools.partial(service.evaluate, payload), "Failed to evaluate prompt")


@router.post("/prompt-test")
async def prompt_test(
    payload: PipelineRequest,
    service: OptimizerService = Depends(get_service),
) -> Dict[str, Any]:
    try:
        report = await service.sample_test(payload)
    except ConfigError as exc:
        _raise_config_error(exc)
    except PromptOptimizerError as exc:
        logger.error(f"Sample test failed: {exc}")
        raise HTTPException(status_code=500, detail=f"Failed to evaluate prompt: {exc}") from exc
    return {"success": True, "evaluation": report.model_dump(mode="json")}


@router.post("/llm-judge")
async def llm_judge(
    payload: PipelineRequest,
    service: OptimizerService = Depends(get_service),
) -> Dict[str, Any]:
    try:
        report = await service.judge_prompt(payload)
    except ConfigError as exc:
        _raise_config_error(exc)
    except PromptOptimizerError as exc:
        logger.error(f"LLM judge failed: {exc}")
        raise HTTPException(status_code=500, detail=f"Failed to evaluate with LLM judge: {exc}") from exc
    return {"success": True, **report.model_dump(mode="json")}


@router.get("/prompts")
async def list_prompts(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: OptimizerService = Depends(get_service),
) -> Dict[str, Any]:
    try:
        prompts = await service.list_prompts(limit=limit, offset=offset)
    except ConfigError as exc:
        _raise_config_error(exc)
    except asyncio.TimeoutError as exc:
        raise HTTPException(status_code=504, detail="Request timeout") from exc
    except Exception as exc:
        logger.error(f"Failed to fetch prompts: {exc}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch prompts: {exc}") from exc
    return {"success": True, "prompts": prompts, "total": len(prompts)}


@router.get("/providers")
async def list_providers(service: OptimizerService = Depends(get_service)) -> Dict[str, Any]:
    return {"providers": service.list_providers(), "roles": service.list_roles()}


@router.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}
