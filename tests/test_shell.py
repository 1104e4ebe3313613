import asyncio

import httpx
import pytest

from devbot.resolvers import (
    EMPTY_REPLY,
    HistoryEntry,
    LocalRuleResolver,
    RemoteServiceResolver,
    Reply,
    RequestFailed,
    ResolutionError,
)
from devbot.session import APOLOGY, ConversationSession, KeyEvent, Role, Status
from devbot.shell import ChatShell


class RecordingResolver:
    """Returns a fixed reply and records the session status seen mid-call."""

    def __init__(self, session, reply=Reply(content="ok")):
        self._session = session
        self._reply = reply
        self.calls = []

    async def resolve(self, text):
        self.calls.append((text, self._session.status))
        await asyncio.sleep(0)
        return self._reply


class FailingResolver:
    def __init__(self, error):
        self._error = error

    async def resolve(self, text):
        raise self._error


class StaticHistory:
    def __init__(self, entries=None, error=None):
        self._entries = entries or []
        self._error = error

    async def fetch_history(self):
        if self._error is not None:
            raise self._error
        return self._entries


@pytest.mark.parametrize("text", ["hello", "名前", " x ", "multi\nline"])
def test_send_appends_user_then_one_assistant(text):
    session = ConversationSession()
    shell = ChatShell(session, LocalRuleResolver(delay_seconds=0))

    asyncio.run(shell.send(text))

    assert len(session.transcript) == 3
    user, assistant = session.transcript[1:]
    assert (user.role, user.content) == (Role.USER, text)
    assert assistant.role is Role.ASSISTANT
    assert session.status is Status.IDLE


def test_status_is_awaiting_only_during_resolution():
    session = ConversationSession()
    resolver = RecordingResolver(session, Reply(content="hi", reference_url="http://x"))
    statuses = []
    shell = ChatShell(session, resolver, on_change=lambda s: statuses.append(s.status))

    shell.type("hello")
    asyncio.run(shell.send())

    assert resolver.calls == [("hello", Status.AWAITING_REPLY)]
    assert statuses == [Status.IDLE, Status.AWAITING_REPLY, Status.IDLE]
    assert session.transcript[-1].reference_url == "http://x"


def test_blank_send_does_not_call_resolver():
    session = ConversationSession()
    resolver = RecordingResolver(session)
    shell = ChatShell(session, resolver)

    shell.type("   ")
    asyncio.run(shell.send())

    assert resolver.calls == []
    assert len(session.transcript) == 1
    assert session.draft == "   "


@pytest.mark.parametrize(
    "error",
    [RequestFailed(500, "http://backend.test/chat/notion"), ResolutionError("bad json"), ValueError("boom")],
)
def test_repeated_failures_each_add_one_apology(error):
    session = ConversationSession()
    shell = ChatShell(session, FailingResolver(error))

    for i in range(3):
        asyncio.run(shell.send(f"message {i}"))
        assert len(session.transcript) == 1 + 2 * (i + 1)
        assert session.transcript[-1].content == APOLOGY
        assert session.transcript[-1].reference_url is None
        assert session.status is Status.IDLE


def test_no_overlapping_resolutions():
    session = ConversationSession()

    class SlowResolver:
        def __init__(self):
            self.active = 0
            self.max_active = 0

        async def resolve(self, text):
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            await asyncio.sleep(0.01)
            self.active -= 1
            return Reply(content=text.upper())

    resolver = SlowResolver()
    shell = ChatShell(session, resolver)

    async def go():
        await asyncio.gather(shell.send("a"), shell.send("b"))

    asyncio.run(go())

    assert resolver.max_active == 1
    assert [m.content for m in session.transcript[1:]] == ["a", "A"]


def test_enter_key_sends_draft():
    session = ConversationSession()
    shell = ChatShell(session, LocalRuleResolver(delay_seconds=0))
    shell.type("ありがとう")

    prevented = asyncio.run(shell.press_key(KeyEvent("Enter")))

    assert prevented
    assert session.transcript[-1].content == "どういたしまして！他に質問があればいつでもどうぞ。"


def test_shift_enter_does_not_send():
    session = ConversationSession()
    resolver = RecordingResolver(session)
    shell = ChatShell(session, resolver)
    shell.type("line")

    prevented = asyncio.run(shell.press_key(KeyEvent("Enter", shift=True)))

    assert not prevented
    assert resolver.calls == []
    assert session.draft == "line"


def test_history_without_source_is_a_noop():
    session = ConversationSession()
    shell = ChatShell(session, LocalRuleResolver(delay_seconds=0))
    asyncio.run(shell.send("hello"))
    before = session.transcript

    asyncio.run(shell.request_history())

    assert session.transcript == before
    assert session.status is Status.IDLE


def test_history_loads_saved_entries():
    session = ConversationSession()
    history = StaticHistory([HistoryEntry(user_message="q", bot_response="a")])
    shell = ChatShell(session, LocalRuleResolver(delay_seconds=0), history_source=history)

    asyncio.run(shell.request_history())

    assert [m.content for m in session.transcript] == [
        "こんにちは！どのようにお手伝いできますか？",
        "q",
        "a",
    ]
    assert session.status is Status.IDLE


def test_history_failure_leaves_transcript_untouched():
    session = ConversationSession()
    history = StaticHistory(error=RequestFailed(503, "http://backend.test/chat/all"))
    shell = ChatShell(session, LocalRuleResolver(delay_seconds=0), history_source=history)
    asyncio.run(shell.send("hello"))
    before = session.transcript

    asyncio.run(shell.request_history())

    assert session.transcript == before
    assert session.status is Status.IDLE


def send_through_backend(handler, text="hello"):
    session = ConversationSession()

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            shell = ChatShell(session, RemoteServiceResolver("http://backend.test", client=client))
            await shell.send(text)

    asyncio.run(go())
    return session


def test_backend_server_error_becomes_apology():
    session = send_through_backend(lambda request: httpx.Response(500, json={"error": "boom"}))

    assert len(session.transcript) == 3
    assert session.transcript[1].content == "hello"
    assert session.transcript[-1].role is Role.ASSISTANT
    assert session.transcript[-1].content == APOLOGY
    assert session.transcript[-1].reference_url is None
    assert session.status is Status.IDLE


def test_backend_reply_carries_reference_url():
    session = send_through_backend(
        lambda request: httpx.Response(200, json={"message": "hi", "url": "http://x"})
    )

    assert session.transcript[-1].content == "hi"
    assert session.transcript[-1].reference_url == "http://x"


@pytest.mark.parametrize(
    "body,expected",
    [(["x"], EMPTY_REPLY), ("str", EMPTY_REPLY), ({"message": ""}, EMPTY_REPLY), ({"message": 5}, "5")],
)
def test_backend_bodies_without_text_message_are_not_failures(body, expected):
    session = send_through_backend(lambda request: httpx.Response(200, json=body))

    assert session.transcript[-1].content == expected
    assert session.transcript[-1].reference_url is None
