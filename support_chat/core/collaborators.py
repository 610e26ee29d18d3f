"""
Contracts of the clients the session core talks to.

Implementations live with the host application. Failing calls raise
``ChatApiError``.
"""

from typing import Any, Dict, List, Optional, Protocol

from support_chat.models.chat import Chat, EstimatedWaiting, Message


class ChatApi(Protocol):
    async def init(
        self, message: Message, end_user_technical_data: Dict[str, str]
    ) -> Chat: ...

    async def get_chat(self) -> Optional[Chat]: ...

    async def get_messages(self, chat_id: str) -> List[Message]: ...

    async def get_new_messages(
        self, chat_id: str, time_range_begin: str
    ) -> List[Message]: ...

    async def send_message(self, message: Message) -> Dict[str, Any]: ...

    async def send_message_with_rating(self, message: Message) -> Dict[str, Any]: ...

    async def send_message_with_new_event(self, message: Message) -> None: ...

    async def end_chat(self, message: Message) -> None: ...

    async def get_greeting(self) -> Dict[str, Any]: ...

    async def send_npm_rating(self, chat_id: str, rating: int) -> None: ...

    async def send_feedback_message(self, chat_id: str, text: str) -> None: ...

    async def get_estimated_waiting_time(self) -> EstimatedWaiting: ...

    async def remove_chat_forwarding_value(self) -> None: ...

    async def generate_forwarding_request(self) -> List[Chat]: ...


class TerminationQueue(Protocol):
    async def enqueue(self, chat_id: str) -> None: ...

    async def dequeue(self, chat_id: str) -> None: ...
