"""
Support chat data models

Defines messages, chats and the waiting-time estimate exchanged with the
chat API, plus the enumerations shared by the session core.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional


class ChatStatus(str, Enum):
    NOT_ESTABLISHED = "NOT_ESTABLISHED"
    OPEN = "OPEN"
    ENDED = "ENDED"


class ChatEvent(str, Enum):
    ANSWERED = "ANSWERED"
    TERMINATED = "TERMINATED"
    CLIENT_LEFT = "CLIENT_LEFT"
    READ = "READ"
    ASK_PERMISSION = "ASK_PERMISSION"
    ASK_PERMISSION_ACCEPTED = "ASK_PERMISSION_ACCEPTED"
    ASK_PERMISSION_REJECTED = "ASK_PERMISSION_REJECTED"
    ASK_PERMISSION_IGNORED = "ASK_PERMISSION_IGNORED"
    CONTACT_INFORMATION = "CONTACT_INFORMATION"
    CONTACT_INFORMATION_FULFILLED = "CONTACT_INFORMATION_FULFILLED"
    GREETING = "greeting"


class AuthorRole(str, Enum):
    END_USER = "end-user"
    BACKOFFICE_USER = "backoffice-user"
    CHATBOT = "buerokratt"


class ChatMode(str, Enum):
    FREE = "FREE"
    RESTRICTED = "RESTRICTED"


# Collaborator payload key -> dataclass attribute
_MESSAGE_KEYS = {
    "id": "id",
    "chatId": "chat_id",
    "content": "content",
    "authorRole": "author_role",
    "authorTimestamp": "author_timestamp",
    "event": "event",
    "rating": "rating",
    "authorId": "author_id",
    "authorFirstName": "author_first_name",
    "authorLastName": "author_last_name",
    "buttons": "buttons",
    "options": "options",
    "preview": "preview",
    "created": "created",
    "updated": "updated",
    "forwardedByUser": "forwarded_by_user",
    "forwardedFromCsa": "forwarded_from_csa",
    "forwardedToCsa": "forwarded_to_csa",
}


@dataclass
class Message:
    """A single chat message

    Unset optional fields are ``None`` so that a merge can tell a field the
    server sent apart from one it left out.
    """

    id: Optional[str] = None
    chat_id: Optional[str] = None
    content: str = ""
    author_role: Optional[str] = None
    author_timestamp: Optional[str] = None
    event: Optional[str] = None
    rating: Optional[int] = None
    author_id: Optional[str] = None
    author_first_name: Optional[str] = None
    author_last_name: Optional[str] = None
    buttons: Optional[Any] = None  # JSON string or list of button dicts
    options: Optional[Any] = None
    preview: Optional[str] = None
    created: Optional[str] = None
    updated: Optional[str] = None
    forwarded_by_user: Optional[str] = None
    forwarded_from_csa: Optional[str] = None
    forwarded_to_csa: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Message":
        """Build a message from a camelCase API payload.

        Unknown keys are kept in ``extra``.
        """
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in payload.items():
            attr = _MESSAGE_KEYS.get(key)
            if attr is None:
                extra[key] = value
            else:
                kwargs[attr] = value
        if kwargs.get("id") is not None:
            kwargs["id"] = str(kwargs["id"])
        if kwargs.get("content") is None:
            kwargs["content"] = ""
        return cls(extra=extra, **kwargs)

    def to_payload(self) -> Dict[str, Any]:
        """Convert to the camelCase payload, leaving out unset fields."""
        payload: Dict[str, Any] = dict(self.extra)
        for key, attr in _MESSAGE_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                payload[key] = value
        return payload

    def merged_with(self, other: "Message") -> "Message":
        """Shallow merge where the set fields of ``other`` win."""
        values = {}
        for f in fields(self):
            if f.name == "extra":
                continue
            theirs = getattr(other, f.name)
            values[f.name] = theirs if theirs is not None else getattr(self, f.name)
        return Message(extra={**self.extra, **other.extra}, **values)


@dataclass
class Chat:
    """Chat record as returned by the chat API"""

    id: str
    status: Optional[str] = None
    customer_support_id: str = ""
    external_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Chat":
        known = {"id", "status", "customerSupportId", "externalId"}
        return cls(
            id=str(payload.get("id") or ""),
            status=payload.get("status"),
            customer_support_id=payload.get("customerSupportId") or "",
            external_id=payload.get("externalId") or None,
            extra={k: v for k, v in payload.items() if k not in known},
        )


@dataclass
class EstimatedWaiting:
    """Point-in-time queue waiting estimate"""

    is_active: bool = False
    time: int = 0

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "EstimatedWaiting":
        return cls(
            is_active=bool(payload.get("isActive", False)),
            time=int(payload.get("time") or 0),
        )


def messages_from_payload(payload: Any) -> List[Message]:
    """Normalize a message, payload dict, or a list of either into messages."""
    if payload is None:
        return []
    if isinstance(payload, (Message, dict)):
        payload = [payload]
    return [m if isinstance(m, Message) else Message.from_payload(m) for m in payload]
