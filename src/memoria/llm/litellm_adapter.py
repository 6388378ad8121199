"""LiteLLM adapter - chat completion boundary for any provider LiteLLM supports."""

import litellm
from litellm import acompletion

from memoria.core.config import Settings
from memoria.core.logging import get_logger
from memoria.core.typing import MessageDict
from memoria.llm.base import LLMConfig, LLMProvider, LLMResponse

logger = get_logger("llm.litellm_adapter")

# Disable LiteLLM's verbose logging
litellm.suppress_debug_info = True


class LiteLLMProvider(LLMProvider):
    """Completion provider backed by ``litellm.acompletion``."""

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        api_base: str | None = None,
    ):
        self.model = model
        self.api_key = api_key or None
        self.api_base = api_base or None

    @classmethod
    def from_settings(cls, settings: Settings) -> "LiteLLMProvider":
        return cls(
            model=settings.default_model,
            api_key=settings.llm_api_key,
            api_base=settings.llm_api_base,
        )

    async def complete(
        self,
        messages: list[MessageDict],
        config: LLMConfig | None = None,
    ) -> LLMResponse:
        config = config or LLMConfig()
        params = {
            "model": config.model or self.model,
            "messages": messages,
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
        }

        # Add API key if needed
        if self.api_key:
            params["api_key"] = self.api_key

        # Add base URL for local models
        if self.api_base:
            params["api_base"] = self.api_base

        logger.debug(f"LiteLLM request: model={params['model']}, messages={len(messages)}")

        try:
            response = await acompletion(**params)
        except Exception as e:
            logger.error(f"LiteLLM error for {params['model']}: {e}")
            raise

        message = response.choices[0].message
        usage = getattr(response, "usage", None)
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        logger.debug(
            f"LiteLLM response: model={response.model}, tokens={input_tokens}+{output_tokens}"
        )
        return LLMResponse(
            content=message.content or "",
            model=response.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    async def health_check(self) -> bool:
        try:
            await self.complete(
                [{"role": "user", "content": "ping"}],
                LLMConfig(max_tokens=1, temperature=0.0),
            )
            return True
        except Exception as e:
            logger.warning(f"Health check failed for {self.model}: {e}")
            return False
