"""Core shared utilities for the prompt optimizer."""

from core.config import (
    DEFAULT_CONFIG_NAME,
    PipelineSettings,
    find_project_root,
    load_config,
    resolve_config_path,
)
from core.errors import (
    CompletionFailure,
    ConfigError,
    DimensionJudgeFailure,
    GenerationParseFailure,
    JudgeParseFailure,
    OptimizationParseFailure,
    ParseFailure,
    PromptOptimizerError,
)

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "PipelineSettings",
    "find_project_root",
    "load_config",
    "resolve_config_path",
    "PromptOptimizerError",
    "ConfigError",
    "CompletionFailure",
    "ParseFailure",
    "GenerationParseFailure",
    "OptimizationParseFailure",
    "JudgeParseFailure",
    "DimensionJudgeFailure",
]
