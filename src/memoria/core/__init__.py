"""
Core module - configuration, errors, shared types.

Components:
- config: Settings management via pydantic-settings
- errors: Error taxonomy (StoreUnavailable, RebuildTimeout, ValidationError)
- types: Messages and rebuild results shared across modules
- logging: Structured logging setup
"""

from memoria.core.config import Settings
from memoria.core.errors import MemoriaError, RebuildTimeout, StoreUnavailable, ValidationError

__all__ = ["Settings", "MemoriaError", "StoreUnavailable", "RebuildTimeout", "ValidationError"]
