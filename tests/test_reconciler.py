"""
Tests for support_chat.core.reconciler - merging poll and push batches
"""

from support_chat.core.reconciler import find_matching_message, is_same_message, reconcile
from support_chat.models.chat import Message


def msg(id=None, content="", role="end-user", ts="2024-01-01T10:00:00.000Z", **kw):
    return Message(id=id, content=content, author_role=role, author_timestamp=ts, **kw)


class TestIdentityRule:
    def test_ids_match_on_equality(self):
        assert is_same_message(msg(id="1", content="a"), msg(id="1", content="b"))
        assert not is_same_message(msg(id="1", content="a"), msg(id="2", content="a"))

    def test_id_less_matches_structurally(self):
        local = msg(content="hello")
        assert is_same_message(local, msg(content="hello"))
        assert is_same_message(local, msg(id="9", content="hello"))
        assert not is_same_message(local, msg(content="hello", role="backoffice-user"))
        assert not is_same_message(local, msg(content="hello", ts="2024-01-01T10:00:01.000Z"))

    def test_message_with_id_never_matches_id_less_copy(self):
        """Identical content is not enough once the server assigned an id"""
        assert not is_same_message(msg(id="1", content="hello"), msg(content="hello"))

    def test_find_matching_message_returns_first_index(self):
        candidates = [msg(id="3"), msg(id="1"), msg(id="1", content="dup")]
        assert find_matching_message(msg(id="1"), candidates) == 1
        assert find_matching_message(msg(id="4"), candidates) is None


class TestReconcile:
    def test_appends_new_and_keeps_matched(self):
        existing = [msg(id="1", content="hi")]
        incoming = [msg(id="1", content="hi"), msg(id="2", content="yo")]

        result = reconcile(existing, incoming)

        assert [m.id for m in result.messages] == ["1", "2"]
        assert [m.content for m in result.messages] == ["hi", "yo"]
        assert result.appended_count == 1
        assert result.changed

    def test_duplicate_batch_is_a_noop(self):
        existing = [msg(id="1", content="hi"), msg(content="queued")]
        incoming = [msg(id="1", content="hi"), msg(content="queued")]

        result = reconcile(existing, incoming)

        assert result.messages == existing
        assert result.appended_count == 0
        assert not result.changed

    def test_noop_discards_in_place_updates(self):
        existing = [msg(id="1", content="draft")]
        result = reconcile(existing, [msg(id="1", content="edited")])

        assert result.appended_count == 0
        assert result.messages[0].content == "draft"

    def test_empty_batch(self):
        existing = [msg(id="1")]
        result = reconcile(existing, [])
        assert result.messages == existing
        assert result.appended_count == 0

    def test_matched_message_merges_incoming_fields(self):
        existing = [msg(id="1", content="question", author_first_name="Mari")]
        incoming = [msg(id="1", content="question", rating=5), msg(id="2", content="next")]

        merged = reconcile(existing, incoming).messages[0]

        assert merged.rating == 5
        assert merged.author_first_name == "Mari"

    def test_local_message_acquires_server_id(self):
        existing = [msg(content="hello")]
        incoming = [msg(id="42", content="hello"), msg(id="43", content="reply", role="backoffice-user")]

        result = reconcile(existing, incoming)

        assert [m.id for m in result.messages] == ["42", "43"]
        assert result.appended_count == 1

    def test_ids_are_never_rewritten(self):
        existing = [msg(id="1", content="a"), msg(id="2", content="b")]
        incoming = [msg(id="2", content="b2"), msg(id="3", content="c")]

        result = reconcile(existing, incoming)

        assert [m.id for m in result.messages] == ["1", "2", "3"]
        assert result.messages[1].content == "b2"

    def test_never_removes_existing_messages(self):
        existing = [msg(id=str(i), content=str(i)) for i in range(5)]
        incoming = [msg(id="7", content="7"), msg(id="2", content="2")]

        result = reconcile(existing, incoming)

        assert len(result.messages) >= len(existing)
        assert [m.id for m in result.messages[:5]] == [m.id for m in existing]

    def test_matched_entry_leaves_pool_once(self):
        """Only the matched entry is consumed, a second copy still appends"""
        existing = [msg(id="1", content="hi")]
        incoming = [msg(id="1", content="hi"), msg(id="1", content="hi")]

        result = reconcile(existing, incoming)

        assert result.appended_count == 1

    def test_same_signature_messages_coalesce(self):
        """Known limitation: same timestamp, content and role look like one message"""
        existing = [msg(content="ok")]
        incoming = [msg(id="5", content="ok")]

        result = reconcile(existing, incoming)

        assert len(result.messages) == 1
        assert result.appended_count == 0

    def test_each_local_message_consumes_its_own_match(self):
        existing = [msg(content="ok"), msg(content="ok")]
        incoming = [msg(id="5", content="ok"), msg(id="6", content="other")]

        result = reconcile(existing, incoming)

        assert [m.id for m in result.messages] == ["5", None, "6"]

    def test_appends_in_given_order(self):
        result = reconcile([], [msg(id="b"), msg(id="a"), msg(id="c")])
        assert [m.id for m in result.messages] == ["b", "a", "c"]
        assert result.appended_count == 3

    def test_input_lists_are_not_mutated(self):
        existing = [msg(id="1")]
        incoming = [msg(id="1"), msg(id="2")]
        reconcile(existing, incoming)
        assert len(existing) == 1
        assert len(incoming) == 2


class TestFreshMessages:
    def test_appended_messages_are_fresh(self):
        incoming = [msg(id="1", content="hi"), msg(id="2", content="yo", event="READ")]
        result = reconcile([msg(id="1", content="hi")], incoming)
        assert result.fresh == [incoming[1]]

    def test_redelivery_is_not_fresh(self):
        existing = [msg(id="30", content="contacts?", event="CONTACT_INFORMATION")]
        result = reconcile(existing, [msg(id="30", content="contacts?", event="CONTACT_INFORMATION")])
        assert result.fresh == []

    def test_changed_event_on_known_message_is_fresh(self):
        existing = [msg(id="2", content="May we?", event="ASK_PERMISSION")]
        update = msg(id="2", content="May we?", event="ASK_PERMISSION_IGNORED")

        result = reconcile(existing, [update])

        assert result.appended_count == 0
        assert result.fresh == [update]
