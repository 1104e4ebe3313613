from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

from .resolvers import HistoryEntry, Reply
from .rules import GREETING_REPLY


logger = logging.getLogger(__name__)

APOLOGY = "すみません、エラーが発生しました。後でもう一度お試しください。"
NO_HISTORY_NOTICE = "保存されたチャット履歴はありません。"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Status(str, Enum):
    IDLE = "idle"
    AWAITING_REPLY = "awaitingReply"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    reference_url: Optional[str] = None


@dataclass(frozen=True)
class ResolveReply:
    text: str


@dataclass(frozen=True)
class FetchHistory:
    pass


Command = Union[ResolveReply, FetchHistory]


@dataclass(frozen=True)
class KeyEvent:
    key: str
    shift: bool = False
    ctrl: bool = False
    composing: bool = False


@dataclass(frozen=True)
class KeyOutcome:
    prevent_default: bool = False
    command: Optional[ResolveReply] = None


class ConversationSession:
    """Transcript, draft and status of one conversation.

    The session performs no I/O. Operations that need the outside world
    return a command; the shell executes it and reports back through
    ``receive_reply`` / ``receive_failure`` / ``receive_history`` and always
    finishes with ``settle``.
    """

    def __init__(self, greeting: str = GREETING_REPLY) -> None:
        self._greeting = greeting
        self._transcript: List[Message] = [Message(Role.ASSISTANT, greeting)]
        self._pending: Optional[Command] = None
        self.draft = ""
        self.status = Status.IDLE

    @property
    def transcript(self) -> Tuple[Message, ...]:
        return tuple(self._transcript)

    @property
    def pending(self) -> Optional[Command]:
        return self._pending

    def update_draft(self, text: str) -> None:
        self.draft = text

    def can_submit(self) -> bool:
        return self.status is Status.IDLE and self.draft.strip() != ""

    def submit(self, text: Optional[str] = None) -> Optional[ResolveReply]:
        if text is None:
            text = self.draft
        if text.strip() == "":
            return None
        if self.status is not Status.IDLE:
            logger.debug("Submission rejected: a request is already in flight")
            return None

        self._transcript.append(Message(Role.USER, text))
        self.draft = ""
        return self._begin(ResolveReply(text))

    def receive_reply(self, reply: Reply) -> None:
        self._expect(ResolveReply)
        self._transcript.append(
            Message(Role.ASSISTANT, reply.content, reference_url=reply.reference_url)
        )

    def receive_failure(self) -> None:
        self._expect(ResolveReply)
        self._transcript.append(Message(Role.ASSISTANT, APOLOGY))

    def request_history(self) -> Optional[FetchHistory]:
        if self.status is not Status.IDLE:
            logger.debug("History request rejected: a request is already in flight")
            return None
        return self._begin(FetchHistory())

    def receive_history(self, entries: Iterable[HistoryEntry]) -> None:
        """Replace the transcript with the greeting followed by saved entries."""
        self._expect(FetchHistory)
        restored: List[Message] = [Message(Role.ASSISTANT, self._greeting)]
        for entry in entries:
            if entry.user_message:
                restored.append(Message(Role.USER, entry.user_message))
            if entry.bot_response:
                restored.append(Message(Role.ASSISTANT, entry.bot_response))
        if len(restored) == 1:
            restored.append(Message(Role.ASSISTANT, NO_HISTORY_NOTICE))
        self._transcript = restored

    def settle(self) -> None:
        self._pending = None
        self.status = Status.IDLE

    def key_down(self, event: KeyEvent) -> KeyOutcome:
        # IME composition owns Enter until the text is committed
        if event.composing:
            return KeyOutcome()
        if event.key != "Enter" or event.shift or event.ctrl:
            return KeyOutcome()
        return KeyOutcome(prevent_default=True, command=self.submit())

    def _begin(self, command: Command) -> Command:
        self._pending = command
        self.status = Status.AWAITING_REPLY
        return command

    def _expect(self, kind: type) -> None:
        if not isinstance(self._pending, kind):
            raise RuntimeError(f"No pending {kind.__name__} request to complete")
