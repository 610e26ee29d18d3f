"""
Aggregate state of one chat session

A single ``ChatState`` exists per tab and is owned by the session core.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from support_chat.models.chat import ChatMode, EstimatedWaiting, Message


@dataclass
class FeedbackState:
    is_feedback_confirmation_shown: bool = False
    is_feedback_message_given: bool = False
    is_feedback_rating_given: bool = False
    show_feedback_warning: bool = False


@dataclass
class EndUserContacts:
    id_code: str = ""
    mail_address: str = ""
    phone_nr: str = ""
    comment: str = ""


@dataclass
class ChatState:
    """Session state with empty defaults"""

    chat_id: Optional[str] = None
    is_chat_open: bool = False
    chat_status: Optional[str] = None
    customer_support_id: str = ""
    last_read_message_timestamp: Optional[str] = None
    messages: List[Message] = field(default_factory=list)
    message_queue: List[Message] = field(default_factory=list)
    new_messages_amount: int = 0
    event_messages_to_handle: List[Message] = field(default_factory=list)
    error_message: str = ""
    estimated_waiting: EstimatedWaiting = field(default_factory=EstimatedWaiting)
    loading: bool = False
    show_contact_form: bool = False
    contact_msg_id: str = ""
    is_chat_redirected: bool = False
    feedback: FeedbackState = field(default_factory=FeedbackState)
    end_user_contacts: EndUserContacts = field(default_factory=EndUserContacts)
    chat_mode: ChatMode = ChatMode.FREE

    def reset(self) -> None:
        """Restore every field to its default in place."""
        self.__dict__.update(ChatState().__dict__)
