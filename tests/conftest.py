import pytest

from devbot.config import Settings
from devbot.service import ChatService


@pytest.fixture
def fast_chat_service():
    """Install a ChatService without the artificial reply delay."""
    previous = ChatService._instance
    ChatService._instance = ChatService(Settings(reply_delay_seconds=0.0))
    yield ChatService._instance
    ChatService._instance = previous
