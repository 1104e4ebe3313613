from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Sequence

import httpx
from pydantic import BaseModel, ValidationError

from .models import HistoryResponseDTO, RemoteReplyDTO
from .rules import RULES, Rule, match_reply


logger = logging.getLogger(__name__)

EMPTY_REPLY = "レスポンスが空でした"


class ResolutionFailed(Exception):
    """Raised when a message could not be turned into a reply."""


class RequestFailed(ResolutionFailed):
    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"{url} answered with HTTP {status_code}")
        self.status_code = status_code
        self.url = url


class ResolutionError(ResolutionFailed):
    pass


@dataclass(frozen=True)
class Reply:
    content: str
    reference_url: Optional[str] = None


@dataclass(frozen=True)
class HistoryEntry:
    user_message: Optional[str] = None
    bot_response: Optional[str] = None


class ReplyResolver(Protocol):
    async def resolve(self, text: str) -> Reply:
        ...


class HistorySource(Protocol):
    async def fetch_history(self) -> List[HistoryEntry]:
        ...


class LocalRuleResolver:
    """Answers from the keyword rules after a fixed delay emulating a round trip."""

    def __init__(self, delay_seconds: float = 0.5, rules: Sequence[Rule] = RULES) -> None:
        self._delay = delay_seconds
        self._rules = rules

    async def resolve(self, text: str) -> Reply:
        await asyncio.sleep(self._delay)
        return Reply(content=match_reply(text, self._rules))


class RemoteServiceResolver:
    """Resolves replies through the backend's ``/chat/notion`` endpoint."""

    REPLY_PATH = "/chat/notion"
    HISTORY_PATH = "/chat/all"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required for the remote resolver")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    @property
    def base_url(self) -> str:
        return self._base_url

    async def resolve(self, text: str) -> Reply:
        data = await self._request_json("POST", self.REPLY_PATH, json={"message": text})
        # Any JSON value is accepted; one without fields just carries no message
        body = RemoteReplyDTO.model_validate(data if isinstance(data, dict) else {})
        logger.debug("Backend reply received (%s chars)", len(body.message or ""))
        return Reply(content=body.message or EMPTY_REPLY, reference_url=body.url or None)

    async def fetch_history(self) -> List[HistoryEntry]:
        data = await self._request_json("GET", self.HISTORY_PATH)
        body = self._parse(HistoryResponseDTO, data)
        return [
            HistoryEntry(user_message=item.userMessage, bot_response=item.botResponse)
            for item in body.history or []
        ]

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self._base_url + path
        try:
            resp = await self._send(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ResolutionError(f"{method} {url} failed: {e}") from e

        if not resp.is_success:
            raise RequestFailed(resp.status_code, url)

        try:
            return resp.json()
        except ValueError as e:
            raise ResolutionError(f"{url} returned a body that is not JSON") from e

    @staticmethod
    def _parse(model: type[BaseModel], data: Any) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ResolutionError(f"Unexpected response shape: {e}") from e
