"""
Chat mode derivation

Decides from the message list whether the end user may type freely or must
answer through the options the last agent message offers.
"""

import json
from typing import Any, List, Sequence

from support_chat.models.chat import AuthorRole, ChatEvent, ChatMode, Message

RESTRICTING_EVENTS = frozenset(
    {ChatEvent.ASK_PERMISSION.value, ChatEvent.CONTACT_INFORMATION.value}
)


def parse_buttons(message: Message) -> List[Any]:
    """Buttons arrive either as a list or as a JSON-encoded list."""
    buttons = message.buttons
    if not buttons:
        return []
    if isinstance(buttons, str):
        try:
            buttons = json.loads(buttons)
        except ValueError:
            return []
    return list(buttons) if isinstance(buttons, list) else []


def derive_chat_mode(messages: Sequence[Message]) -> ChatMode:
    """Classify the chat by its most recent conversational message."""
    for message in reversed(messages):
        restricting = message.event in RESTRICTING_EVENTS
        buttons = parse_buttons(message)
        if not message.content and not buttons and not restricting:
            # status-only events
            continue
        if message.author_role == AuthorRole.END_USER.value:
            return ChatMode.FREE
        if buttons or restricting:
            return ChatMode.RESTRICTED
        return ChatMode.FREE
    return ChatMode.FREE
