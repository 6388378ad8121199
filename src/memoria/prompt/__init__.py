"""
Prompt module - synthesized system prompt per session.

Components:
- triggers: Rebuild state machine (idle, pending, rebuilding)
- builder: Aggregates every memory kind into the cached prompt
- reader: Serves the cached prompt, degrading to stale or base text
- templates: Fixed preamble, section headers and closing block
"""
