"""
Shared pytest fixtures and fakes
"""

import os
import sys
import tempfile
import shutil
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Make the project importable without installing it
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from support_chat.core.config import AppConfig
from support_chat.core.errors import ChatApiError
from support_chat.core.session import ChatSession, ChatSessionContext
from support_chat.core.storage import MemoryStore, PersistenceAdapter
from support_chat.models.chat import Chat, EstimatedWaiting, Message


TEST_PASSWORD = "test_password_123"
TEST_ERROR_MESSAGE = "Submission failed"


@pytest.fixture(scope="session", autouse=True)
def _isolate_app_config():
    """Isolate on-disk config from developer machine.

    Tests should not read/write user home config.json.
    """

    tmp_cfg_dir = Path(tempfile.mkdtemp())
    os.environ["SUPPORT_CHAT_CONFIG_DIR"] = str(tmp_cfg_dir)
    try:
        yield
    finally:
        try:
            shutil.rmtree(tmp_cfg_dir, ignore_errors=True)
        finally:
            os.environ.pop("SUPPORT_CHAT_CONFIG_DIR", None)


class FixedClock:
    """Deterministic clock, one second per call"""

    def __init__(self):
        self.ticks = 0

    def __call__(self) -> str:
        self.ticks += 1
        minutes, seconds = divmod(self.ticks, 60)
        return f"2024-01-01T10:{minutes:02d}:{seconds:02d}.000Z"


class FakeChatApi:
    """In-memory chat API recording every call

    ``fail`` names calls that raise ChatApiError. ``on_call`` runs while a
    call is "in flight" so tests can change the session underneath it.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.fail = set()
        self.on_call: Optional[Callable[[str], None]] = None
        self.chat = Chat(id="chat-1", status="OPEN", customer_support_id="csa-7")
        self.current_chat: Optional[Chat] = Chat(
            id="chat-1", status="OPEN", customer_support_id="csa-7"
        )
        self.messages: List[Message] = []
        self.new_messages: List[Message] = []
        self.greeting = {"eng": "Hello!\\nHow can we help?", "est": "Tere!\\nKuidas saame aidata?", "isActive": True}
        self.estimate = EstimatedWaiting(is_active=True, time=180)
        self.forwarding: List[Chat] = []
        self.next_message_id = 100

    async def _call(self, name, *args):
        self.calls.append((name, args))
        if self.on_call is not None:
            self.on_call(name)
        if name in self.fail:
            raise ChatApiError(f"{name} failed", status_code=500)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def init(self, message, end_user_technical_data):
        await self._call("init", message, end_user_technical_data)
        return self.chat

    async def get_chat(self):
        await self._call("get_chat")
        return self.current_chat

    async def get_messages(self, chat_id):
        await self._call("get_messages", chat_id)
        return list(self.messages)

    async def get_new_messages(self, chat_id, time_range_begin):
        await self._call("get_new_messages", chat_id, time_range_begin)
        return list(self.new_messages)

    async def send_message(self, message):
        await self._call("send_message", message)
        self.next_message_id += 1
        return {"id": str(self.next_message_id)}

    async def send_message_with_rating(self, message):
        await self._call("send_message_with_rating", message)
        return {"id": "rated-1"}

    async def send_message_with_new_event(self, message):
        await self._call("send_message_with_new_event", message)

    async def end_chat(self, message):
        await self._call("end_chat", message)

    async def get_greeting(self):
        await self._call("get_greeting")
        return self.greeting

    async def send_npm_rating(self, chat_id, rating):
        await self._call("send_npm_rating", chat_id, rating)

    async def send_feedback_message(self, chat_id, text):
        await self._call("send_feedback_message", chat_id, text)

    async def get_estimated_waiting_time(self):
        await self._call("get_estimated_waiting_time")
        return self.estimate

    async def remove_chat_forwarding_value(self):
        await self._call("remove_chat_forwarding_value")

    async def generate_forwarding_request(self):
        await self._call("generate_forwarding_request")
        return self.forwarding


class FakeTerminationQueue:
    def __init__(self):
        self.enqueued: List[str] = []
        self.dequeued: List[str] = []
        self.fail = False

    async def enqueue(self, chat_id):
        self.enqueued.append(chat_id)
        if self.fail:
            raise ChatApiError("notification service unavailable")

    async def dequeue(self, chat_id):
        self.dequeued.append(chat_id)
        if self.fail:
            raise ChatApiError("notification service unavailable")


@pytest.fixture
def temp_dir():
    """Temporary directory removed after the test"""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def storage_dir(temp_dir: Path) -> Path:
    """Create a temporary storage directory for encrypted storage tests"""
    storage = temp_dir / "data"
    storage.mkdir(parents=True, exist_ok=True)
    return storage


@pytest.fixture
def test_password() -> str:
    return TEST_PASSWORD


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def durable_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def session_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def persistence(durable_store, session_store) -> PersistenceAdapter:
    return PersistenceAdapter(durable=durable_store, session=session_store)


@pytest.fixture
def fake_api() -> FakeChatApi:
    return FakeChatApi()


@pytest.fixture
def termination_queue() -> FakeTerminationQueue:
    return FakeTerminationQueue()


@pytest.fixture
def context(persistence, clock) -> ChatSessionContext:
    return ChatSessionContext(
        persistence=persistence,
        config=AppConfig(error_message=TEST_ERROR_MESSAGE),
        clock=clock,
    )


@pytest.fixture
def session(context, fake_api, termination_queue) -> ChatSession:
    return ChatSession(context, fake_api, termination_queue)
