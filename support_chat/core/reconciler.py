"""
Message reconciliation

Merges a batch of incoming messages (poll response or push event) into the
ordered message list kept by the session.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from support_chat.models.chat import Message


@dataclass
class ReconcileResult:
    """Outcome of merging one batch.

    ``fresh`` holds the incoming messages that were appended or that carry a
    different event than the message they matched, in batch order. A
    redelivered message is never fresh.
    """

    messages: List[Message]
    appended_count: int
    fresh: List[Message] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.appended_count > 0


def is_same_message(existing: Message, incoming: Message) -> bool:
    """Identity rule used when merging.

    Messages that both carry an id match on id alone. A local message
    without an id matches on (author_timestamp, content, author_role); once
    it has an id it can no longer be matched structurally.

    Two different id-less messages with the same timestamp, content and role
    are indistinguishable and will coalesce.
    """
    if existing.id is not None:
        return incoming.id is not None and incoming.id == existing.id
    return (
        existing.author_timestamp == incoming.author_timestamp
        and existing.content == incoming.content
        and existing.author_role == incoming.author_role
    )


def find_matching_message(
    existing: Message, candidates: Sequence[Message]
) -> Optional[int]:
    """Return the index of the first candidate matching ``existing``."""
    for index, candidate in enumerate(candidates):
        if is_same_message(existing, candidate):
            return index
    return None


def reconcile(
    existing: Sequence[Message], incoming: Sequence[Message]
) -> ReconcileResult:
    """Merge ``incoming`` into ``existing``.

    Matched entries are updated in place with the incoming fields, the rest
    of the batch is appended in order. When nothing new is appended the
    original list is returned untouched, including any in-place updates the
    batch would have carried.

    Args:
        existing: Current ordered message list
        incoming: Messages received from the server

    Returns:
        ReconcileResult with the merged list, number of appended messages and
        the fresh messages whose events still need handling
    """
    if not incoming:
        return ReconcileResult(list(existing), 0)

    pool = list(incoming)
    changed_events: List[Message] = []
    merged: List[Message] = []
    for message in existing:
        index = find_matching_message(message, pool)
        if index is None:
            merged.append(message)
            continue
        update = pool.pop(index)
        if update.event and update.event != message.event:
            changed_events.append(update)
        merged.append(message.merged_with(update))

    fresh = [m for m in incoming if any(m is f for f in changed_events + pool)]
    merged.extend(pool)
    if len(merged) == len(existing):
        return ReconcileResult(list(existing), 0, fresh)
    return ReconcileResult(merged, len(pool), fresh)
