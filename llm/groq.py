"""Groq LLM provider implementation (fallback for every role by default)."""

import httpx
from typing import Dict, Any, List, Optional
from .base import LLMProvider, LLMRequest, LLMResponse
import logging

logger = logging.getLogger(__name__)


class GroqProvider(LLMProvider):
    """Groq chat completions over its OpenAI-compatible endpoint."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.base_url = config.get("base_url", "https://api.groq.com/openai/v1")

    def _build_client(self) -> Optional[httpx.AsyncClient]:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )

    @staticmethod
    def _messages(request: LLMRequest) -> List[Dict[str, str]]:
        messages = [{"role": "user", "content": request.prompt}]
        if request.system_prompt:
            messages.insert(0, {"role": "system", "content": request.system_prompt})
        return messages

    def _payload(self, request: LLMRequest) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": self._messages(request),
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "stream": False,
        }

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate response using Groq API."""
        client = self.client

        try:
            response = await client.post("/chat/completions", json=self._payload(request))
            response.raise_for_status()
            data = response.json()

            choices = data.get("choices") or []
            if not choices:
                return self._error_response("No choices in Groq response")

            choice = choices[0]
            usage = data.get("usage", {})
            return LLMResponse(
                content=(choice.get("message") or {}).get("content") or "",
                provider=self.provider_name,
                model=self.model,
                usage={key: usage.get(key, 0) for key in ("prompt_tokens", "completion_tokens", "total_tokens")},
                metadata={
                    "finish_reason": choice.get("finish_reason"),
                    "request_id": response.headers.get("x-request-id"),
                },
            )

        except httpx.HTTPStatusError as e:
            error_msg = f"HTTP {e.response.status_code}: {e.response.text}"
            logger.error(f"Groq API error: {error_msg}")
            return self._error_response(error_msg)
        except Exception as e:
            error_msg = f"Groq provider error: {str(e)}"
            logger.error(error_msg)
            return self._error_response(error_msg)
