"""
Rebuild trigger endpoint.

Accepts a JSON-style request naming a session, rebuilds its cached system
prompt and answers with the context counts. Every failure, including a
malformed request, becomes an error payload instead of an exception.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PayloadError

from memoria.core.logging import get_logger
from memoria.core.typing import JSONDict
from memoria.memory.manager import MemoryManager

logger = get_logger("interfaces.rebuild")


class RebuildRequest(BaseModel):
    """Inbound rebuild request"""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    user_id: str | None = Field(default=None, alias="userId")


class ContextCountsPayload(BaseModel):
    importance: int = 0
    semantic: int = 0
    stm: int = 0
    episodic: int = 0


class RebuildResponse(BaseModel):
    """Successful rebuild"""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    session_id: str = Field(alias="sessionId")
    context_counts: ContextCountsPayload = Field(alias="contextCounts")
    prompt_length: int = Field(alias="promptLength", ge=0)
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
    timestamp: str


class RebuildEndpoint:
    """Transport-agnostic handler for manual prompt rebuilds."""

    def __init__(self, manager: MemoryManager, clock: Callable[[], datetime] = datetime.now):
        self.manager = manager
        self._clock = clock

    async def handle(self, payload: Any) -> JSONDict:
        try:
            request = RebuildRequest.model_validate(payload)
        except PayloadError as e:
            logger.warning(f"Rejected rebuild request: {e.error_count()} validation error(s)")
            return self._error(self._describe(e))

        logger.info(f"Rebuild requested for session {request.session_id}")
        try:
            result = await self.manager.request_rebuild(request.session_id, request.user_id)
        except Exception as e:
            logger.error(f"Rebuild request for session {request.session_id} failed: {e}")
            return self._error(str(e) or type(e).__name__)

        response = RebuildResponse(
            session_id=result.session_id,
            context_counts=ContextCountsPayload(**result.counts.to_dict()),
            prompt_length=result.prompt_length,
            timestamp=self._timestamp(),
        )
        return response.model_dump(by_alias=True)

    def _error(self, message: str) -> JSONDict:
        return ErrorResponse(error=message, timestamp=self._timestamp()).model_dump()

    def _timestamp(self) -> str:
        return self._clock().isoformat()

    @staticmethod
    def _describe(error: PayloadError) -> str:
        fields = {str(item["loc"][0]) for item in error.errors() if item.get("loc")}
        if "sessionId" in fields:
            return "sessionId is required"
        return "Invalid rebuild request"
