"""
Chat session orchestrator

``ChatSession`` is the single owner of a tab's ``ChatState``. UI intents and
inbound data (poll responses, push events) all go through it; it composes the
reconciler, the lifecycle transitions, the termination manager and the
waiting-time tracker.

Every handler mutates state only between awaits. A handler that awaits a
collaborator call captures the chat id first and drops its result if the
active chat changed in the meantime (chat ended, handed to termination,
redirected).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from support_chat.core import lifecycle, termination, waiting
from support_chat.core.chat_mode import derive_chat_mode
from support_chat.core.clock import Clock, utc_now_iso
from support_chat.core.collaborators import ChatApi, TerminationQueue
from support_chat.core.config import AppConfig
from support_chat.core.reconciler import ReconcileResult, reconcile
from support_chat.core.storage import PersistenceAdapter
from support_chat.models.chat import (
    AuthorRole,
    Chat,
    ChatEvent,
    ChatStatus,
    EstimatedWaiting,
    Message,
    messages_from_payload,
)
from support_chat.models.state import ChatState

logger = logging.getLogger(__name__)

EPOCH = "1970-01-01T00:00:00.000Z"


@dataclass
class ChatSessionContext:
    """Everything a session needs that the host owns"""

    persistence: PersistenceAdapter
    config: AppConfig = field(default_factory=AppConfig)
    clock: Clock = utc_now_iso
    state: ChatState = field(default_factory=ChatState)


def _as_chat(value: Any) -> Optional[Chat]:
    if value is None or isinstance(value, Chat):
        return value
    return Chat.from_payload(value)


class ChatSession:
    """Session core for one chat widget instance"""

    def __init__(
        self,
        context: ChatSessionContext,
        api: ChatApi,
        termination_queue: TerminationQueue,
    ):
        self.context = context
        self.api = api
        self.termination_queue = termination_queue

    @property
    def state(self) -> ChatState:
        return self.context.state

    @property
    def persistence(self) -> PersistenceAdapter:
        return self.context.persistence

    def _now(self) -> str:
        return self.context.clock()

    def _is_stale(self, chat_id: Optional[str]) -> bool:
        if self.state.chat_id != chat_id:
            logger.debug(
                "Discarding result for chat %s, active chat is %s",
                chat_id,
                self.state.chat_id,
            )
            return True
        return False

    # ------------------------------------------------------------------
    # Bootstrap and termination
    # ------------------------------------------------------------------

    async def bootstrap(
        self, page_reloaded: bool, about_to_be_terminated: Optional[bool] = None
    ) -> Optional[str]:
        """Run once per page load before anything else touches the state.

        Returns:
            The chat id taken back from the termination queue, if any
        """
        resumed = await self.remove_chat_from_termination_queue(
            page_reloaded, about_to_be_terminated
        )
        self.state.new_messages_amount = self.persistence.get_new_messages_amount()
        return resumed

    async def add_chat_to_termination_queue(self) -> Optional[str]:
        chat_id = termination.enter_termination(
            self.state, self.persistence, self._now()
        )
        if chat_id:
            try:
                await self.termination_queue.enqueue(chat_id)
            except Exception as e:
                logger.warning("Failed to enqueue chat %s for termination: %s", chat_id, e)
        if self._is_stale(None):
            return chat_id
        lifecycle.mark_queued_for_termination(self.state, self.persistence)
        return chat_id

    async def remove_chat_from_termination_queue(
        self, page_reloaded: bool, about_to_be_terminated: Optional[bool] = None
    ) -> Optional[str]:
        chat_id = termination.resume_after_reload(
            self.state, self.persistence, page_reloaded, about_to_be_terminated
        )
        if chat_id:
            try:
                await self.termination_queue.dequeue(chat_id)
            except Exception as e:
                logger.warning("Failed to dequeue chat %s from termination: %s", chat_id, e)
        return chat_id

    # ------------------------------------------------------------------
    # Chat lifecycle
    # ------------------------------------------------------------------

    async def init_chat(
        self,
        message: Message,
        end_user_url: Optional[str] = None,
        end_user_os: Optional[str] = None,
    ) -> Chat:
        """Start a chat with the end user's first message.

        Raises:
            Whatever the API raised; loading flag and last-read timestamp are
            restored first.
        """
        previous_loading = self.state.loading
        previous_timestamp = self.state.last_read_message_timestamp
        lifecycle.mark_init_pending(self.state, self._now())

        technical_data = {
            "endUserUrl": end_user_url if end_user_url is not None else self.context.config.end_user_url,
            "endUserOs": end_user_os if end_user_os is not None else self.context.config.end_user_os,
        }
        try:
            chat = _as_chat(await self.api.init(message, technical_data))
        except Exception:
            self.state.loading = previous_loading
            self.state.last_read_message_timestamp = previous_timestamp
            raise

        lifecycle.mark_init_succeeded(self.state, chat, self.persistence)
        logger.info("Chat %s opened", chat.id)
        return chat

    async def get_chat(self) -> Optional[Chat]:
        chat_id = self.state.chat_id
        chat = _as_chat(await self.api.get_chat())
        if chat is None or self._is_stale(chat_id):
            return None
        lifecycle.apply_chat(self.state, chat)
        return chat

    async def get_chat_messages(self) -> Optional[List[Message]]:
        """Replace the message list with the server's full history."""
        chat_id = self.state.chat_id
        if not chat_id:
            return None
        messages = messages_from_payload(await self.api.get_messages(chat_id))
        if self._is_stale(chat_id):
            return None
        self.state.last_read_message_timestamp = self._now()
        self.state.messages = messages
        self.state.chat_mode = derive_chat_mode(self.state.messages)
        return messages

    async def get_new_messages(self, since: Optional[str] = None) -> ReconcileResult:
        """Poll for messages authored after ``since`` and merge them."""
        chat_id = self.state.chat_id
        if not chat_id:
            return ReconcileResult(list(self.state.messages), 0)
        since = since or self.state.last_read_message_timestamp or EPOCH
        received = await self.api.get_new_messages(chat_id, since)
        if self._is_stale(chat_id):
            return ReconcileResult(list(self.state.messages), 0)
        return self._ingest(messages_from_payload(received))

    def receive_push(self, payload: Any) -> ReconcileResult:
        """Entry point for the push channel.

        Accepts a message, a payload dict, or a list of either. Messages for
        another chat, or arriving while no chat is active, are dropped.
        """
        messages = [
            m
            for m in messages_from_payload(payload)
            if self.state.chat_id and m.chat_id in (None, self.state.chat_id)
        ]
        return self._ingest(messages)

    def _ingest(self, messages: List[Message]) -> ReconcileResult:
        result = self.add_messages_to_display(messages)
        self.state.event_messages_to_handle.extend(lifecycle.event_messages(result.fresh))
        self.handle_state_changing_event_messages()
        return result

    def add_messages_to_display(self, messages: Any) -> ReconcileResult:
        result = reconcile(self.state.messages, messages_from_payload(messages))
        if not result.changed:
            logger.debug("Reconciliation produced no new messages")
            return result
        self.state.messages = result.messages
        self.state.last_read_message_timestamp = self._now()
        self.state.new_messages_amount += result.appended_count
        self.persistence.set_new_messages_amount(self.state.new_messages_amount)
        self.state.chat_mode = derive_chat_mode(self.state.messages)
        return result

    def handle_state_changing_event_messages(
        self, messages: Optional[List[Message]] = None
    ) -> None:
        """Apply event messages; drains the pending list when none are given."""
        if messages is None:
            messages = self.state.event_messages_to_handle
            self.state.event_messages_to_handle = []
        lifecycle.apply_events(self.state, messages_from_payload(messages), self.persistence)

    async def end_chat(self) -> None:
        """End the chat on the user's request.

        The state is reset before the server is told; a chat that already
        ended is not reported again.
        """
        chat_status = self.state.chat_status
        chat_id = self.state.chat_id
        self.state.reset()

        if chat_status != ChatStatus.ENDED.value:
            message = Message(
                chat_id=chat_id,
                event=ChatEvent.CLIENT_LEFT.value,
                author_timestamp=self._now(),
                author_role=AuthorRole.END_USER.value,
            )
            try:
                await self.api.end_chat(message)
            except Exception as e:
                logger.warning("End chat notification for %s failed: %s", chat_id, e)
            if self._is_stale(None):
                return

        lifecycle.mark_ended(self.state, self.persistence)
        logger.info("Chat %s ended by client", chat_id)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_new_message(self, message: Message) -> Dict[str, Any]:
        return await self.api.send_message(message)

    async def send_message_with_rating(self, message: Message) -> Dict[str, Any]:
        return await self.api.send_message_with_rating(message)

    async def send_message_with_new_event(self, message: Message) -> None:
        await self.api.send_message_with_new_event(message)

    async def flush_message_queue(self) -> int:
        """Send messages queued before the chat existed.

        Stops at the first failure and leaves the rest queued.

        Returns:
            Number of messages sent
        """
        chat_id = self.state.chat_id
        if not chat_id:
            return 0
        sent = 0
        while self.state.message_queue:
            message = self.state.message_queue[0]
            if message.chat_id is None:
                message.chat_id = chat_id
            try:
                await self.api.send_message(message)
            except Exception as e:
                logger.warning("Sending queued message failed: %s", e)
                break
            if self._is_stale(chat_id):
                break
            self.state.message_queue.pop(0)
            sent += 1
        return sent

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def send_chat_npm_rating(self, rating: int) -> bool:
        chat_id = self.state.chat_id
        if chat_id is None:
            return False
        try:
            await self.api.send_npm_rating(chat_id, rating)
        except Exception as e:
            logger.warning("Sending rating for chat %s failed: %s", chat_id, e)
            lifecycle.record_feedback_failure(self.state, self.context.config.error_message)
            return False
        if self._is_stale(chat_id):
            return False
        lifecycle.mark_rating_given(self.state)
        return True

    async def send_feedback_message(self, text: str) -> bool:
        chat_id = self.state.chat_id
        if chat_id is None:
            return False
        try:
            await self.api.send_feedback_message(chat_id, text)
        except Exception as e:
            logger.warning("Sending feedback for chat %s failed: %s", chat_id, e)
            lifecycle.record_feedback_failure(self.state, self.context.config.error_message)
            return False
        if self._is_stale(chat_id):
            return False
        lifecycle.mark_feedback_message_given(self.state)
        return True

    # ------------------------------------------------------------------
    # Greeting, waiting time, forwarding
    # ------------------------------------------------------------------

    async def get_greeting(self) -> Optional[Message]:
        greeting = await self.api.get_greeting()
        if not greeting or not greeting.get("isActive"):
            return None
        content = greeting.get(self.context.config.greeting_language) or ""
        message = Message(
            content=content.replace("\\n", "\n"),
            chat_id=None,
            event=ChatEvent.GREETING.value,
            author_timestamp=self._now(),
        )
        self.add_message(message)
        return message

    async def get_estimated_waiting_time(self) -> EstimatedWaiting:
        estimate = await self.api.get_estimated_waiting_time()
        if isinstance(estimate, dict):
            estimate = EstimatedWaiting.from_payload(estimate)
        waiting.apply_estimate(self.state, estimate)
        return self.state.estimated_waiting

    def set_estimated_waiting_time_to_zero(self) -> None:
        waiting.reset_to_zero(self.state)

    async def remove_chat_forwarding_value(self) -> None:
        await self.api.remove_chat_forwarding_value()

    async def generate_forwarding_request(self) -> bool:
        chat_id = self.state.chat_id
        chats = [_as_chat(c) for c in await self.api.generate_forwarding_request() or []]
        if self._is_stale(chat_id):
            return False
        return lifecycle.apply_forwarding(self.state, chats)

    # ------------------------------------------------------------------
    # Plain state updates
    # ------------------------------------------------------------------

    def reset_state(self) -> None:
        self.state.reset()

    def set_chat_id(self, chat_id: str) -> None:
        lifecycle.switch_chat_id(self.state, chat_id)

    def set_chat(self, chat: Any) -> None:
        lifecycle.apply_chat(self.state, _as_chat(chat))

    def set_is_chat_open(self, is_open: bool) -> None:
        lifecycle.switch_chat_id(self.state, self.persistence.get_session_chat_id())
        self.state.is_chat_open = is_open
        self.state.new_messages_amount = 0

    def add_message(self, message: Message) -> None:
        self.state.messages.append(message)
        self.state.chat_mode = derive_chat_mode(self.state.messages)

    def update_message(self, message: Message) -> None:
        self.state.messages = [
            message if message.id is not None and m.id == message.id else m
            for m in self.state.messages
        ]
        self.state.chat_mode = derive_chat_mode(self.state.messages)

    def queue_message(self, message: Message) -> None:
        self.state.message_queue.append(message)

    def clear_message_queue(self) -> None:
        self.state.message_queue = []

    def reset_new_messages_amount(self) -> None:
        self.state.new_messages_amount = 0

    def set_feedback_message_given(self, given: bool) -> None:
        lifecycle.mark_feedback_message_given(self.state, given)

    def set_feedback_rating_given(self, given: bool) -> None:
        lifecycle.mark_rating_given(self.state, given)

    def set_feedback_warning(self, shown: bool) -> None:
        self.state.feedback.show_feedback_warning = shown

    def set_is_feedback_confirmation_shown(self, shown: bool) -> None:
        self.state.feedback.is_feedback_confirmation_shown = shown

    def set_show_contact_form(self, shown: bool) -> None:
        self.state.show_contact_form = shown

    def set_email_address(self, address: str) -> None:
        self.state.end_user_contacts.mail_address = address

    def set_phone_number(self, phone_nr: str) -> None:
        self.state.end_user_contacts.phone_nr = phone_nr
