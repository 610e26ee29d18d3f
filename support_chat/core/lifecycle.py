"""
Chat lifecycle state machine

    UNINITIALIZED --init--> OPEN --ANSWERED/TERMINATED/end chat--> ENDED

ENDED is terminal for a chat id; a new chat id starts from a reset state.
Each function here is one transition applied to the session state. The
feedback flags move independently of the chat status.
"""

import logging
from typing import Iterable, List, Optional

from support_chat.core.chat_mode import derive_chat_mode
from support_chat.core.storage import PersistenceAdapter
from support_chat.models.chat import Chat, ChatEvent, ChatStatus, Message
from support_chat.models.state import ChatState

logger = logging.getLogger(__name__)

ENDING_EVENTS = frozenset({ChatEvent.ANSWERED.value, ChatEvent.TERMINATED.value})


def switch_chat_id(state: ChatState, chat_id: Optional[str]) -> None:
    """Point the state at ``chat_id``, resetting it first if it held another chat."""
    if state.chat_id and chat_id and state.chat_id != chat_id:
        logger.info("Chat id changed from %s to %s, resetting state", state.chat_id, chat_id)
        state.reset()
    state.chat_id = chat_id


def mark_init_pending(state: ChatState, now: str) -> None:
    state.last_read_message_timestamp = now
    state.loading = True


def mark_init_succeeded(
    state: ChatState, chat: Chat, persistence: PersistenceAdapter
) -> None:
    switch_chat_id(state, chat.id)
    state.loading = False
    state.chat_status = ChatStatus.OPEN.value
    persistence.set_session_chat_id(chat.id)


def apply_chat(state: ChatState, chat: Optional[Chat]) -> None:
    if chat is None:
        return
    state.chat_status = chat.status
    state.customer_support_id = chat.customer_support_id


def mark_ended(state: ChatState, persistence: PersistenceAdapter) -> None:
    """The chat was ended by this client."""
    state.chat_status = ChatStatus.ENDED.value
    state.feedback.is_feedback_message_given = False
    state.feedback.is_feedback_rating_given = False
    persistence.clear_resume_markers()


def mark_queued_for_termination(
    state: ChatState, persistence: PersistenceAdapter
) -> None:
    """The chat was handed to the termination queue.

    ``previousChatId`` is kept so a reload can still take it back.
    """
    state.chat_status = ChatStatus.ENDED.value
    state.feedback.is_feedback_message_given = False
    state.feedback.is_feedback_rating_given = False
    persistence.clear_session_keys()


def apply_event(
    state: ChatState, message: Message, persistence: PersistenceAdapter
) -> None:
    """Apply one state-changing event message.

    Unknown event kinds are display-only and leave the state alone.
    """
    event = message.event
    if event == ChatEvent.ASK_PERMISSION_IGNORED.value:
        if message.id is not None:
            state.messages = [message if m.id == message.id else m for m in state.messages]
        state.chat_mode = derive_chat_mode(state.messages)
    elif event == ChatEvent.CONTACT_INFORMATION.value:
        state.show_contact_form = True
        state.contact_msg_id = message.id or ""
    elif event in ENDING_EVENTS:
        logger.info("Chat %s ended by server event %s", state.chat_id, event)
        state.chat_status = ChatStatus.ENDED.value
        persistence.clear_resume_markers()


def apply_events(
    state: ChatState, messages: Iterable[Message], persistence: PersistenceAdapter
) -> None:
    for message in messages:
        apply_event(state, message, persistence)


def event_messages(messages: Iterable[Message]) -> List[Message]:
    return [m for m in messages if m.event]


def record_feedback_failure(state: ChatState, error_message: str) -> None:
    state.error_message = error_message


def mark_rating_given(state: ChatState, given: bool = True) -> None:
    state.feedback.is_feedback_rating_given = given
    state.feedback.show_feedback_warning = False


def mark_feedback_message_given(state: ChatState, given: bool = True) -> None:
    state.feedback.is_feedback_message_given = given


def apply_forwarding(state: ChatState, chats: List[Chat]) -> bool:
    """Follow a forwarding redirect to the external chat id.

    The conversation keeps its messages under the new id; there is no way
    back to the original id within the session.
    """
    if not chats or not chats[0].external_id:
        return False
    logger.info("Chat %s redirected to %s", state.chat_id, chats[0].external_id)
    state.chat_id = chats[0].external_id
    state.is_chat_redirected = True
    return True
