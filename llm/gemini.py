"""Google Gemini LLM provider implementation."""

import google.genai as genai
from typing import Dict, Any
from .base import LLMProvider, LLMRequest, LLMResponse
import logging

logger = logging.getLogger(__name__)


class GeminiProvider(LLMProvider):
    """Google Gemini LLM provider."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.model = config.get("model", "gemini-2.5-flash-lite")

    def _build_client(self):
        """Initialize Gemini client with proper API key."""
        return genai.Client(api_key=self.api_key)

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate response using Gemini API."""
        client = self.client

        try:
            config = genai.types.GenerateContentConfig(
                temperature=request.temperature,
                max_output_tokens=request.max_tokens,
            )

            if request.system_prompt:
                config.system_instruction = request.system_prompt

            response = await client.aio.models.generate_content(
                model=self.model,
                contents=[{"role": "user", "parts": [{"text": request.prompt}]}],
                config=config
            )

            # Safety blocks come back without candidates or without text parts
            if not response.candidates:
                return self._error_response("No text content in Gemini response")

            candidate = response.candidates[0]
            content = ""
            if candidate.content and candidate.content.parts:
                content = "".join(part.text or "" for part in candidate.content.parts)
            if not content:
                return self._error_response("No text content in Gemini response")
            metadata: Dict[str, Any] = {"finish_reason": str(getattr(candidate, "finish_reason", None))}

            usage = {}
            if getattr(response, "usage_metadata", None):
                usage = {
                    "prompt_tokens": getattr(response.usage_metadata, "prompt_token_count", 0) or 0,
                    "completion_tokens": getattr(response.usage_metadata, "candidates_token_count", 0) or 0,
                    "total_tokens": getattr(response.usage_metadata, "total_token_count", 0) or 0
                }

            return LLMResponse(
                content=content,
                provider=self.provider_name,
                model=self.model,
                usage=usage,
                metadata=metadata
            )

        except Exception as e:
            error_msg = f"Gemini provider error: {str(e)}"
            logger.error(error_msg)
            return self._error_response(error_msg)

    async def aclose(self) -> None:
        # genai.Client owns its transport; dropping the reference is enough
        self._client = None
