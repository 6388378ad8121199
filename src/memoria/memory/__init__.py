"""
Memory module - tiered conversational memory.

Layers:
- short-term: Last turns of a session (bounded FIFO)
- importance: Priority-ranked durable facts per user
- semantic: Key/value facts per user
- episodic: Summaries of past conversations per session

Storage: SQLite
"""
