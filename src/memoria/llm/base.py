"""
LLM provider interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from memoria.core.typing import MessageDict


@dataclass
class LLMResponse:
    """Response from LLM provider."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class LLMConfig:
    """Configuration for LLM call."""

    model: str | None = None
    max_tokens: int = 1000
    temperature: float = 0.7


class LLMProvider(ABC):
    """Abstract chat completion provider."""

    @abstractmethod
    async def complete(
        self,
        messages: list[MessageDict],
        config: LLMConfig | None = None,
    ) -> LLMResponse:
        """
        Generate completion from messages.

        Args:
            messages: OpenAI-format conversation, system prompt first
            config: LLM configuration (provider default when None)

        Returns:
            LLMResponse with content
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if provider is available."""
        ...
