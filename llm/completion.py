"""Text completion with a single fallback provider."""

import asyncio
import logging
from typing import Optional

from core.errors import CompletionFailure
from .base import LLMProvider, LLMRequest

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class CompletionService:
    """Turns a rendered prompt into generated text.

    The primary provider is tried first under a wall-clock timeout. Any
    provider-level failure (exception, error response or timeout) falls back
    exactly once to the secondary provider with the same request. There are
    no further retries.
    """

    def __init__(
        self,
        primary: LLMProvider,
        fallback: Optional[LLMProvider] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_tokens: int = 1000,
        temperature: float = 0.0,
    ):
        self.primary = primary
        self.fallback = fallback
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature

    @property
    def description(self) -> str:
        name = f"{self.primary.provider_name}/{self.primary.model}"
        if self.fallback is not None:
            name += f" -> {self.fallback.provider_name}/{self.fallback.model}"
        return name

    async def complete(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        request = LLMRequest(
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=self.temperature,
            max_tokens=max_tokens or self.max_tokens,
        )

        try:
            return await self._attempt(self.primary, request, timeout=self.timeout)
        except Exception as e:
            primary_error = self._describe(self.primary, e)

        if self.fallback is None:
            logger.error(f"Completion failed with no fallback configured: {primary_error}")
            raise CompletionFailure(
                f"Completion failed: {primary_error}",
                primary_error=primary_error,
            )

        logger.warning(
            f"{self.primary.provider_name} failed, falling back to "
            f"{self.fallback.provider_name}: {primary_error}"
        )
        try:
            return await self._attempt(self.fallback, request)
        except Exception as e:
            fallback_error = self._describe(self.fallback, e)

        logger.error(f"Completion failed on both providers: {primary_error}; {fallback_error}")
        raise CompletionFailure(
            f"Completion failed on both providers. Primary: {primary_error}. Fallback: {fallback_error}",
            primary_error=primary_error,
            fallback_error=fallback_error,
        )

    @staticmethod
    async def _attempt(provider: LLMProvider, request: LLMRequest, timeout: Optional[float] = None) -> str:
        if timeout is not None:
            response = await asyncio.wait_for(provider.generate(request), timeout=timeout)
        else:
            response = await provider.generate(request)
        if response.error is not None:
            raise RuntimeError(response.error)
        return response.content

    def _describe(self, provider: LLMProvider, error: Exception) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return f"{provider.provider_name} timed out after {self.timeout:g}s"
        return f"{provider.provider_name}: {error}"

    async def aclose(self) -> None:
        await self.primary.aclose()
        if self.fallback is not None:
            await self.fallback.aclose()
