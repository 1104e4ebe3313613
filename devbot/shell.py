from __future__ import annotations

import logging
from typing import Callable, Optional

from .resolvers import HistorySource, ReplyResolver
from .session import ConversationSession, KeyEvent, ResolveReply


logger = logging.getLogger(__name__)

RenderHook = Callable[[ConversationSession], None]


class ChatShell:
    """Executes the commands a ConversationSession hands out.

    ``on_change`` is called after every state change so a front end can
    redraw the transcript and the typing indicator while a reply is pending.
    """

    def __init__(
        self,
        session: ConversationSession,
        resolver: ReplyResolver,
        history_source: Optional[HistorySource] = None,
        on_change: Optional[RenderHook] = None,
    ) -> None:
        self.session = session
        self._resolver = resolver
        self._history_source = history_source
        self._on_change = on_change

    def type(self, text: str) -> None:
        self.session.update_draft(text)
        self._notify()

    async def send(self, text: Optional[str] = None) -> None:
        command = self.session.submit(text)
        if command is not None:
            await self._run(command)

    async def press_key(self, event: KeyEvent) -> bool:
        """Handle a key press in the input box; returns whether to suppress the default."""
        outcome = self.session.key_down(event)
        if outcome.command is not None:
            await self._run(outcome.command)
        return outcome.prevent_default

    async def request_history(self) -> None:
        if self._history_source is None:
            logger.info("No history source configured; history request ignored")
            return
        if self.session.request_history() is None:
            return
        self._notify()
        try:
            entries = await self._history_source.fetch_history()
        except Exception as e:
            logger.warning("Fetching saved history failed: %s", e, exc_info=True)
        else:
            self.session.receive_history(entries)
        finally:
            self.session.settle()
            self._notify()

    async def _run(self, command: ResolveReply) -> None:
        self._notify()
        try:
            reply = await self._resolver.resolve(command.text)
        except Exception as e:
            # Details go to the log only; the transcript gets the fixed apology
            logger.warning("Reply resolution failed: %s", e, exc_info=True)
            self.session.receive_failure()
        else:
            self.session.receive_reply(reply)
        finally:
            self.session.settle()
            self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.session)
