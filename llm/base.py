"""Abstract base classes for LLM providers."""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from pydantic import BaseModel
import os
import httpx
import logging

from core.errors import ConfigError

logger = logging.getLogger(__name__)


class ProviderNotConfiguredError(ConfigError):
    """Raised when a provider is used without its API key."""


class LLMRequest(BaseModel):
    """Standardized request format for all LLM providers."""
    prompt: str
    system_prompt: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 1000
    metadata: Dict[str, Any] = {}


class LLMResponse(BaseModel):
    """Standardized response format for all LLM providers."""
    content: str
    provider: str
    model: str
    usage: Dict[str, int] = {}
    metadata: Dict[str, Any] = {}
    error: Optional[str] = None


class LLMProvider(ABC):
    """Abstract base class for all LLM providers.

    A provider is enabled only when its API key environment variable holds a
    non-blank value. Disabled providers never build an HTTP client, so no
    request goes out with an empty credential header.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.provider_name = self.__class__.__name__.replace("Provider", "").lower()
        self.model = config.get("model", "unknown")
        self.timeout = config.get("timeout", 30)
        self.api_key = self._get_api_key()
        self._client: Optional[httpx.AsyncClient] = None

    def _get_api_key(self) -> Optional[str]:
        """Get API key from environment variable."""
        api_key_env = self.config.get("api_key_env")
        if api_key_env:
            return os.getenv(api_key_env)
        return None

    @property
    def api_key_env(self) -> str:
        return self.config.get("api_key_env", f"{self.provider_name.upper()}_API_KEY")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def ensure_enabled(self) -> None:
        """Raise if the provider has no usable API key."""
        if not self.enabled:
            raise ProviderNotConfiguredError(
                f"Provider '{self.provider_name}' is not configured. "
                f"Please set {self.api_key_env} in your environment or .env file."
            )

    def _build_client(self) -> Optional[httpx.AsyncClient]:
        """Create the HTTP client for this provider, if it uses one."""
        return None

    @property
    def client(self) -> Any:
        """Lazily built HTTP client; raises when the provider is disabled."""
        self.ensure_enabled()
        if self._client is None:
            self._client = self._build_client()
        return self._client

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate response from the LLM provider."""
        pass

    def _error_response(self, error_msg: str) -> LLMResponse:
        return LLMResponse(
            content="",
            provider=self.provider_name,
            model=self.model,
            error=error_msg
        )

    async def aclose(self) -> None:
        if isinstance(self._client, httpx.AsyncClient):
            await self._client.aclose()
        self._client = None
