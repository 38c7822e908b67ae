"""LLM protocol for dependency injection."""
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StructuredLLMProtocol(Protocol):
    """Protocol for structured (JSON) generation."""

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
    ) -> dict[str, Any]:
        """Generate a JSON object.

        Args:
            system_prompt: Instructions and output schema.
            user_prompt: Task input.
            temperature: Sampling temperature.

        Returns:
            Decoded JSON object.
        """
        ...
