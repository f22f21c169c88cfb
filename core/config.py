"""Project and configuration discovery helpers."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "optimizer.yaml"
PROJECT_MARKERS = (DEFAULT_CONFIG_NAME, "pyproject.toml", ".git")

DEFAULT_CONFIG: Dict[str, Any] = {
    "llm": {
        "temperature": 0.0,
        "max_tokens": 1000,
        "timeout": 30,
    },
    "providers": {
        "gemini": {"api_key_env": "GEMINI_API_KEY", "model": "gemini-2.5-flash-lite"},
        "groq": {"api_key_env": "GROQ_API_KEY", "model": "llama-3.3-70b-versatile"},
        "claude": {"api_key_env": "ANTHROPIC_API_KEY", "model": "claude-sonnet-4-20250514"},
    },
    "roles": {
        "generator": {"provider": "gemini", "fallback": "groq", "max_tokens": 2000, "temperature": 0.7},
        "executor": {"provider": "gemini", "fallback": "groq", "max_tokens": 2000, "temperature": 0.7},
        "judge": {"provider": "claude", "fallback": "groq", "max_tokens": 500},
        "optimizer": {"provider": "claude", "fallback": "groq", "max_tokens": 2000},
    },
    "pipeline": {
        "completion_timeout": 10.0,
        "optimize_test_cases": 2,
        "evaluate_test_cases": 5,
        "dimension_pass_threshold": 0.8,
        "rubric_pass_threshold": 1.0,
        "max_candidates": 3,
    },
    "judge": {
        "relaxed_categories": ["recommendation"],
    },
    "tracing": {
        "api_key_env": "LANGSMITH_API_KEY",
        "project_name": "prompt-optimization",
    },
}


class PipelineSettings(BaseModel):
    """Validated tunables for the evaluation and optimization pipelines."""
    completion_timeout: float = Field(default=10.0, gt=0)
    optimize_test_cases: int = Field(default=2, ge=1, le=10)
    evaluate_test_cases: int = Field(default=5, ge=1, le=10)
    dimension_pass_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    rubric_pass_threshold: float = Field(default=1.0, ge=0.0, le=1.0)
    max_candidates: int = Field(default=3, ge=1)
    relaxed_categories: List[str] = Field(default_factory=lambda: ["recommendation"])

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "PipelineSettings":
        values = dict(config.get("pipeline", {}))
        judge = config.get("judge", {})
        if "relaxed_categories" in judge:
            values["relaxed_categories"] = judge["relaxed_categories"]
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid pipeline settings: {exc}") from exc


def find_project_root(start_dir: Optional[Path] = None) -> Path:
    """Find project root by scanning upward for known project markers."""
    current = (start_dir or Path.cwd()).resolve()

    for candidate in (current, *current.parents):
        if any((candidate / marker).exists() for marker in PROJECT_MARKERS):
            return candidate

    return current


def resolve_config_path(config_path: Optional[str] = None, start_dir: Optional[Path] = None) -> Optional[Path]:
    """Resolve a config path from explicit input or project root discovery.

    An explicit path that does not exist is an error. Without one, the
    project root is searched and ``None`` is returned when it holds no config.
    """
    if config_path:
        provided = Path(config_path).expanduser()
        if not provided.is_absolute():
            provided = (start_dir or Path.cwd()) / provided
        provided = provided.resolve()
        if not provided.exists():
            raise ConfigError(f"Config file not found: {provided}")
        return provided

    project_root = find_project_root(start_dir)
    config_file = project_root / DEFAULT_CONFIG_NAME
    if not config_file.exists():
        return None
    return config_file


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None, start_dir: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from YAML, layered over the built-in defaults."""
    # Load environment variables from .env file
    load_dotenv()

    path = resolve_config_path(config_path, start_dir)
    if path is None:
        logger.debug(f"No {DEFAULT_CONFIG_NAME} found; using built-in defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing configuration file: {e}")
        raise ConfigError(f"Could not parse {path}: {e}") from e

    if not isinstance(loaded, dict):
        raise ConfigError(f"Configuration root must be a mapping: {path}")

    logger.info(f"Configuration loaded from {path}")
    return _merge(DEFAULT_CONFIG, loaded)
