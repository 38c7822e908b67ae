import json
import logging
from typing import Any

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class OpenAIStructuredClient:
    """JSON-mode client for OpenAI-compatible APIs (OpenAI, Ollama)."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434/v1",
        model: str = "qwen2.5:7b",
        api_key: str = "ollama",
        max_tokens: int = 800,
    ):
        """Initialize client.

        Args:
            base_url: API URL.
            model: Model name.
            api_key: API key (any non-empty value for Ollama).
            max_tokens: Max response tokens.
        """
        self._client = AsyncOpenAI(base_url=base_url, api_key=api_key)
        self._model = model
        self._max_tokens = max_tokens

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
    ) -> dict[str, Any]:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=self._max_tokens,
            response_format={"type": "json_object"},
        )

        raw = response.choices[0].message.content
        if not raw:
            raise ValueError("LLM returned an empty response")

        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

        logger.debug(f"Structured response: {raw[:200]}")
        return data
