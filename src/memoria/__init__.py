"""
Memoria - layered persistent memory for conversational agents.

Package structure:
- core: Config, logging, errors, shared types
- memory: Persistent store, short-term buffer, long-term stores, classifier
- prompt: Trigger policy, prompt cache builder and reader
- agents: Conversation agent consuming the synthesized prompt
- interfaces: Rebuild trigger endpoint
- llm: Chat completion boundary
"""

__version__ = "0.1.0"
