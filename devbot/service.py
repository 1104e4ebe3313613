from __future__ import annotations

from typing import Optional

from .config import Settings, get_settings
from .resolvers import LocalRuleResolver


class ChatService:
    """Singleton-style chat service that builds the rule resolver once and reuses it."""

    _instance: Optional["ChatService"] = None

    def __init__(self, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        self._resolver = LocalRuleResolver(delay_seconds=settings.reply_delay_seconds)

    @classmethod
    def instance(cls) -> "ChatService":
        if cls._instance is None:
            cls._instance = ChatService()
        return cls._instance

    async def ask(self, message: str) -> str:
        reply = await self._resolver.resolve(message)
        return reply.content
