"""
Tests for support_chat.core.chat_mode - deriving the input mode
"""

from support_chat.core.chat_mode import derive_chat_mode, parse_buttons
from support_chat.models.chat import ChatMode, Message


def agent(content="", **kw):
    return Message(content=content, author_role="backoffice-user", **kw)


def user(content="", **kw):
    return Message(content=content, author_role="end-user", **kw)


BUTTONS = '[{"title": "Yes", "payload": "#yes"}, {"title": "No", "payload": "#no"}]'


def test_empty_list_is_free():
    assert derive_chat_mode([]) == ChatMode.FREE


def test_plain_agent_message_is_free():
    assert derive_chat_mode([user("hi"), agent("hello")]) == ChatMode.FREE


def test_agent_buttons_restrict():
    assert derive_chat_mode([user("hi"), agent("Pick one", buttons=BUTTONS)]) == ChatMode.RESTRICTED


def test_buttons_as_list_restrict():
    buttons = [{"title": "Yes", "payload": "#yes"}]
    assert derive_chat_mode([agent("Pick", buttons=buttons)]) == ChatMode.RESTRICTED


def test_empty_buttons_do_not_restrict():
    assert derive_chat_mode([agent("Pick", buttons="[]")]) == ChatMode.FREE


def test_ask_permission_event_restricts():
    messages = [user("hi"), agent("May we keep your data?", event="ASK_PERMISSION")]
    assert derive_chat_mode(messages) == ChatMode.RESTRICTED


def test_later_user_message_counters_restriction():
    messages = [agent("Pick", buttons=BUTTONS), user("Yes")]
    assert derive_chat_mode(messages) == ChatMode.FREE


def test_status_events_are_skipped():
    messages = [agent("Pick", buttons=BUTTONS), agent(event="READ"), agent(event="ANSWERED")]
    assert derive_chat_mode(messages) == ChatMode.RESTRICTED


def test_derivation_is_deterministic():
    messages = [user("hi"), agent("Pick", buttons=BUTTONS)]
    assert derive_chat_mode(messages) == derive_chat_mode(messages)
    assert len(messages) == 2


def test_parse_buttons_tolerates_garbage():
    assert parse_buttons(agent(buttons="not json")) == []
    assert parse_buttons(agent(buttons='{"title": "x"}')) == []
    assert parse_buttons(agent()) == []
    assert len(parse_buttons(agent(buttons=BUTTONS))) == 2
