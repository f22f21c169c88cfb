"""Factory for creating LLM provider instances and role-bound completion services."""

from typing import Dict, Any, Optional
from core.config import load_config
from .base import LLMProvider, ProviderNotConfiguredError
from .completion import CompletionService, DEFAULT_TIMEOUT
from .claude import ClaudeProvider
from .gemini import GeminiProvider
from .groq import GroqProvider
import logging

logger = logging.getLogger(__name__)


class LLMFactory:
    """Factory for creating LLM provider instances.

    Every method takes the configuration dict explicitly:
        config = LLMFactory.load_config()
        provider = LLMFactory.create_provider("groq", config=config)
        judge = LLMFactory.create_completion_service("judge", config=config)
    """

    PROVIDERS = {
        "gemini": GeminiProvider,
        "groq": GroqProvider,
        "claude": ClaudeProvider,
    }

    ROLES = ("generator", "executor", "judge", "optimizer")

    @classmethod
    def load_config(cls, config_path: Optional[str] = None) -> Dict[str, Any]:
        """Load configuration from YAML file (or built-in defaults)."""
        return load_config(config_path)

    @classmethod
    def _build(cls, provider_name: str, config: Dict[str, Any], model_name: Optional[str] = None) -> LLMProvider:
        if provider_name not in cls.PROVIDERS:
            available = ", ".join(cls.PROVIDERS.keys())
            raise ValueError(f"Unknown provider: {provider_name}. Available: {available}")

        provider_config = config.get("providers", {}).get(provider_name, {})
        if not provider_config:
            raise ValueError(f"No configuration found for provider: {provider_name}")

        provider_config = provider_config.copy()
        if model_name:
            provider_config["model"] = model_name

        global_config = config.get("llm", {})
        merged_config = {**global_config, **provider_config}

        provider_class = cls.PROVIDERS[provider_name]
        return provider_class(merged_config)

    @classmethod
    def create_provider(
        cls,
        provider_name: str,
        config: Dict[str, Any],
        model_name: Optional[str] = None,
    ) -> LLMProvider:
        """Create an enabled LLM provider instance.

        Raises ProviderNotConfiguredError when the provider's API key is unset.
        """
        provider = cls._build(provider_name, config, model_name)
        provider.ensure_enabled()
        return provider

    @classmethod
    def _role_config(cls, role: str, config: Dict[str, Any]) -> Dict[str, Any]:
        role_config = config.get("roles", {}).get(role, {})
        if not role_config:
            raise ValueError(f"No role configuration found for '{role}'")
        if not role_config.get("provider"):
            raise ValueError(f"No provider specified for role '{role}'")
        return role_config

    @classmethod
    def create_provider_for_role(cls, role: str, config: Dict[str, Any]) -> LLMProvider:
        """Create the primary LLM provider for a role (generator, executor, judge, optimizer)."""
        role_config = cls._role_config(role, config)
        return cls.create_provider(role_config["provider"], config, role_config.get("model"))

    @classmethod
    def create_fallback_for_role(cls, role: str, config: Dict[str, Any]) -> Optional[LLMProvider]:
        """Create the fallback provider for a role, or None when it is unset or unconfigured."""
        role_config = cls._role_config(role, config)
        fallback_name = role_config.get("fallback")
        if not fallback_name:
            return None

        provider = cls._build(fallback_name, config, role_config.get("fallback_model"))
        if not provider.enabled:
            logger.warning(
                f"Fallback provider '{fallback_name}' for role '{role}' is not configured "
                f"({provider.api_key_env} unset); running without fallback"
            )
            return None
        return provider

    @classmethod
    def create_completion_service(
        cls,
        role: str,
        config: Dict[str, Any],
        timeout: float = DEFAULT_TIMEOUT,
    ) -> CompletionService:
        """Create a completion service for a role with its primary and fallback providers."""
        role_config = cls._role_config(role, config)
        primary = cls.create_provider_for_role(role, config)
        fallback = cls.create_fallback_for_role(role, config)
        global_config = config.get("llm", {})

        service = CompletionService(
            primary=primary,
            fallback=fallback,
            timeout=timeout,
            max_tokens=role_config.get("max_tokens", global_config.get("max_tokens", 1000)),
            temperature=role_config.get("temperature", global_config.get("temperature", 0.0)),
        )
        logger.debug(f"Completion service for role '{role}': {service.description}")
        return service

    @classmethod
    def list_available_providers(cls, config: Dict[str, Any]) -> Dict[str, bool]:
        """List configured providers and whether each has credentials."""
        providers = {}
        for provider_name in config.get("providers", {}):
            try:
                providers[provider_name] = cls._build(provider_name, config).enabled
            except ValueError as e:
                logger.debug(f"Provider {provider_name} not available: {e}")
                providers[provider_name] = False
        return providers


__all__ = ["LLMFactory", "ProviderNotConfiguredError"]
