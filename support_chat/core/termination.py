"""
Termination lifecycle across page reloads

When the client decides a chat should be closed by the server, the chat is
put on a termination queue. Closing takes a while, and the page may be
reloaded in the meantime. Two breadcrumbs make that recoverable:

    terminationTime  (session scope)  when the chat was handed over
    previousChatId   (durable)        which chat was handed over

On bootstrap after a reload, a pending handover is taken back: the previous
chat id becomes the active one again and the server is told to drop it from
the queue.

Flow:
    enter_termination ---> [reload] ---> resume_after_reload
        |                                   |
        v                                   v
    enqueue(chat_id)                    dequeue(chat_id)
"""

import logging
from typing import Optional

from support_chat.core.clock import parse_iso
from support_chat.core.lifecycle import switch_chat_id
from support_chat.core.storage import PersistenceAdapter
from support_chat.models.state import ChatState

logger = logging.getLogger(__name__)


def is_termination_pending(persistence: PersistenceAdapter) -> bool:
    """True when a parseable ``terminationTime`` marker is present."""
    marker = persistence.get_termination_time()
    if not marker:
        return False
    try:
        parse_iso(marker)
    except ValueError:
        return False
    return True


def enter_termination(
    state: ChatState, persistence: PersistenceAdapter, now: str
) -> Optional[str]:
    """Record the handover and reset the state.

    A second call before the first resolves overwrites the markers.

    Returns:
        The chat id to enqueue, or None when no chat was active
    """
    chat_id = state.chat_id
    persistence.set_termination_time(now)
    persistence.set_previous_chat_id(chat_id)
    state.reset()
    logger.info("Chat %s handed to termination queue", chat_id)
    return chat_id or None


def resume_after_reload(
    state: ChatState,
    persistence: PersistenceAdapter,
    page_reloaded: bool,
    about_to_be_terminated: Optional[bool] = None,
) -> Optional[str]:
    """Take back a chat that was queued for termination before a reload.

    Args:
        state: Session state, expected to be fresh
        persistence: Storage holding the handover breadcrumbs
        page_reloaded: Whether this page load is a reload
        about_to_be_terminated: Host signal; derived from the
            ``terminationTime`` marker when omitted

    Returns:
        The chat id to dequeue, or None when nothing was resumed
    """
    if about_to_be_terminated is None:
        about_to_be_terminated = is_termination_pending(persistence)
    if not page_reloaded or not about_to_be_terminated:
        return None

    chat_id = persistence.get_previous_chat_id()
    if not chat_id:
        # Nothing to take back; the handover already completed.
        persistence.remove_termination_time()
        logger.debug("Termination marker without previous chat id, cleared")
        return None

    persistence.set_session_chat_id(chat_id)
    persistence.remove_termination_time()
    switch_chat_id(state, chat_id)
    logger.info("Resuming chat %s after reload", chat_id)
    return chat_id
