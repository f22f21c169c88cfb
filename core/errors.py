"""Domain errors used by the prompt optimizer services."""


class PromptOptimizerError(Exception):
    """Base exception for user-facing prompt optimizer errors."""


class ConfigError(PromptOptimizerError):
    """Raised when configuration, credentials or required request fields are missing."""

    exit_code = 2


class CompletionFailure(PromptOptimizerError):
    """Raised when the primary and the fallback provider both fail."""

    exit_code = 1

    def __init__(self, message: str, primary_error: str = "", fallback_error: str = ""):
        super().__init__(message)
        self.primary_error = primary_error
        self.fallback_error = fallback_error


class ParseFailure(PromptOptimizerError):
    """Raised when a model response holds no well-formed, schema-matching JSON."""

    exit_code = 1


class GenerationParseFailure(ParseFailure):
    """Raised when generated test cases cannot be extracted."""


class OptimizationParseFailure(ParseFailure):
    """Raised when an optimization proposal cannot be extracted."""


class JudgeParseFailure(ParseFailure):
    """Raised when a judge verdict cannot be extracted."""


class DimensionJudgeFailure(PromptOptimizerError):
    """Raised when a single scoring dimension cannot be judged."""
