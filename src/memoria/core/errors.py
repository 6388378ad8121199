"""Error taxonomy for the memory subsystem.

A stale prompt cache is not an error; it is reported as
``CacheStatus.STALE`` by the trigger policy.
"""


class MemoriaError(Exception):
    """Base class for memory subsystem errors."""


class StoreUnavailable(MemoriaError):
    """The persistent store could not be reached or failed an operation."""


class RebuildTimeout(MemoriaError):
    """A prompt rebuild exceeded its time bound and released its claim."""

    def __init__(self, session_id: str, timeout: float):
        super().__init__(f"Prompt rebuild for session {session_id} exceeded {timeout:.1f}s")
        self.session_id = session_id
        self.timeout = timeout


class ValidationError(MemoriaError, ValueError):
    """Malformed input: empty turn text, non-numeric priority, unknown session."""
