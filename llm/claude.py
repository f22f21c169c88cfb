"""Anthropic Claude LLM provider implementation."""

import httpx
from typing import Dict, Any, Optional
from .base import LLMProvider, LLMRequest, LLMResponse
import logging

logger = logging.getLogger(__name__)


class ClaudeProvider(LLMProvider):
    """Anthropic Claude LLM provider."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.base_url = config.get("base_url", "https://api.anthropic.com")
        self.api_version = config.get("api_version", "2023-06-01")

    def _build_client(self) -> Optional[httpx.AsyncClient]:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "x-api-key": self.api_key,
                "Content-Type": "application/json",
                "anthropic-version": self.api_version
            },
            timeout=self.timeout
        )

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate response using Claude API."""
        client = self.client

        try:
            payload = {
                "model": self.model,
                "messages": [{"role": "user", "content": request.prompt}],
                "max_tokens": request.max_tokens,
                "temperature": request.temperature,
            }

            # Claude takes the system prompt as a top-level field
            if request.system_prompt:
                payload["system"] = request.system_prompt

            response = await client.post("/v1/messages", json=payload)
            response.raise_for_status()

            data = response.json()

            # Only text blocks carry generated content
            text_blocks = [
                block.get("text", "")
                for block in data.get("content") or []
                if block.get("type") == "text"
            ]
            if not text_blocks:
                return self._error_response("No text content in Claude response")

            stop_reason = data.get("stop_reason")
            if stop_reason == "max_tokens":
                logger.warning(f"Claude output truncated at {request.max_tokens} tokens")

            usage = data.get("usage", {})
            input_tokens = usage.get("input_tokens", 0)
            output_tokens = usage.get("output_tokens", 0)

            return LLMResponse(
                content="".join(text_blocks),
                provider=self.provider_name,
                model=self.model,
                usage={
                    "prompt_tokens": input_tokens,
                    "completion_tokens": output_tokens,
                    "total_tokens": input_tokens + output_tokens
                },
                metadata={
                    "stop_reason": stop_reason,
                    "request_id": response.headers.get("request-id")
                }
            )

        except httpx.HTTPStatusError as e:
            error_msg = f"HTTP {e.response.status_code}: {e.response.text}"
            logger.error(f"Claude API error: {error_msg}")
            return self._error_response(error_msg)
        except Exception as e:
            error_msg = f"Claude provider error: {str(e)}"
            logger.error(error_msg)
            return self._error_response(error_msg)
