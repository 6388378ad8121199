"""
LLM module - chat completion boundary.

Providers:
- litellm_adapter: Any LiteLLM-supported model (Groq, OpenAI, Anthropic, local)

The memory subsystem only supplies the system prompt; completion internals
stay behind LLMProvider.
"""
