from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, field_validator


class ChatRequest(BaseModel):
    message: str


class ChatResponse(BaseModel):
    response: str


class ErrorResponse(BaseModel):
    error: str


class RemoteReplyDTO(BaseModel):
    """Body returned by the backend's ``/chat/notion`` endpoint.

    Falsy values count as absent; anything else is read as text.
    """

    message: Optional[str] = None
    url: Optional[str] = None

    @field_validator("message", "url", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Optional[str]:
        if not value:
            return None
        return value if isinstance(value, str) else str(value)


class HistoryItemDTO(BaseModel):
    userMessage: Optional[str] = None
    botResponse: Optional[str] = None


class HistoryResponseDTO(BaseModel):
    history: Optional[List[HistoryItemDTO]] = None


# Explicit exports
__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
    "RemoteReplyDTO",
    "HistoryItemDTO",
    "HistoryResponseDTO",
]
