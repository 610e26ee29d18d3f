"""
Chat routes - session state, messages and lifecycle.

Provides endpoints for:
- Reading the session state
- Opening the widget and starting a chat
- Refreshing history, polling and ingesting push events
- Sending messages and ending the chat
- Following and clearing chat forwarding
"""

from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from support_chat.api.routes.dependencies import get_session
from support_chat.core.errors import ChatApiError
from support_chat.core.session import ChatSession
from support_chat.models.chat import AuthorRole, Message
from support_chat.models.state import ChatState


router = APIRouter()
forwarding_router = APIRouter()


class MessageResponse(BaseModel):
    """Response model for a message"""

    id: Optional[str] = None
    chat_id: Optional[str] = None
    content: str
    author_role: Optional[str] = None
    author_timestamp: Optional[str] = None
    event: Optional[str] = None
    rating: Optional[int] = None


class FeedbackStateResponse(BaseModel):
    is_feedback_confirmation_shown: bool
    is_feedback_message_given: bool
    is_feedback_rating_given: bool
    show_feedback_warning: bool


class ChatStateResponse(BaseModel):
    """Response model for the session state"""

    chat_id: Optional[str] = None
    is_chat_open: bool
    chat_status: Optional[str] = None
    customer_support_id: str
    last_read_message_timestamp: Optional[str] = None
    messages: List[MessageResponse]
    queued_messages: int
    new_messages_amount: int
    error_message: str
    loading: bool
    show_contact_form: bool
    contact_msg_id: str
    is_chat_redirected: bool
    feedback: FeedbackStateResponse
    chat_mode: str


class OpenRequest(BaseModel):
    is_open: bool


class SendMessageRequest(BaseModel):
    """Request model for the end user's message"""

    content: str
    author_timestamp: Optional[str] = None


class InitRequest(SendMessageRequest):
    end_user_url: Optional[str] = None
    end_user_os: Optional[str] = None


class PollRequest(BaseModel):
    since: Optional[str] = None


class ReconcileResponse(BaseModel):
    appended_count: int
    message_count: int


class PushRequest(BaseModel):
    """Decoded push-channel payload, one message or a list"""

    payload: Union[List[Dict[str, Any]], Dict[str, Any]]


def message_to_response(m: Message) -> dict:
    return {
        "id": m.id,
        "chat_id": m.chat_id,
        "content": m.content,
        "author_role": m.author_role,
        "author_timestamp": m.author_timestamp,
        "event": m.event,
        "rating": m.rating,
    }


def state_to_response(state: ChatState) -> dict:
    return {
        "chat_id": state.chat_id,
        "is_chat_open": state.is_chat_open,
        "chat_status": state.chat_status,
        "customer_support_id": state.customer_support_id,
        "last_read_message_timestamp": state.last_read_message_timestamp,
        "messages": [message_to_response(m) for m in state.messages],
        "queued_messages": len(state.message_queue),
        "new_messages_amount": state.new_messages_amount,
        "error_message": state.error_message,
        "loading": state.loading,
        "show_contact_form": state.show_contact_form,
        "contact_msg_id": state.contact_msg_id,
        "is_chat_redirected": state.is_chat_redirected,
        "feedback": {
            "is_feedback_confirmation_shown": state.feedback.is_feedback_confirmation_shown,
            "is_feedback_message_given": state.feedback.is_feedback_message_given,
            "is_feedback_rating_given": state.feedback.is_feedback_rating_given,
            "show_feedback_warning": state.feedback.show_feedback_warning,
        },
        "chat_mode": state.chat_mode.value,
    }


def _end_user_message(session: ChatSession, req: SendMessageRequest) -> Message:
    return Message(
        chat_id=session.state.chat_id,
        content=req.content,
        author_role=AuthorRole.END_USER.value,
        author_timestamp=req.author_timestamp or session.context.clock(),
    )


@router.get("/state", response_model=ChatStateResponse)
async def get_state(session: ChatSession = Depends(get_session)):
    """Current session state"""
    return state_to_response(session.state)


@router.post("/open", response_model=ChatStateResponse)
async def set_open(req: OpenRequest, session: ChatSession = Depends(get_session)):
    """Open or close the widget; reloads the active chat id from storage"""
    session.set_is_chat_open(req.is_open)
    return state_to_response(session.state)


@router.post("/init", response_model=ChatStateResponse)
async def init_chat(req: InitRequest, session: ChatSession = Depends(get_session)):
    """Start a chat with the end user's first message"""
    if not req.content.strip():
        raise HTTPException(status_code=400, detail="Message content is empty")

    message = _end_user_message(session, req)
    try:
        await session.init_chat(message, req.end_user_url, req.end_user_os)
    except ChatApiError as e:
        raise HTTPException(status_code=502, detail=f"Failed to start chat: {str(e)}")
    session.add_message(message)
    await session.flush_message_queue()
    return state_to_response(session.state)


@router.post("/refresh", response_model=ChatStateResponse)
async def refresh(session: ChatSession = Depends(get_session)):
    """Reload chat status and full message history"""
    try:
        await session.get_chat()
        await session.get_chat_messages()
    except ChatApiError as e:
        raise HTTPException(status_code=502, detail=f"Failed to refresh chat: {str(e)}")
    return state_to_response(session.state)


@router.post("/poll", response_model=ReconcileResponse)
async def poll(req: PollRequest, session: ChatSession = Depends(get_session)):
    """Fetch and merge messages newer than ``since``"""
    try:
        result = await session.get_new_messages(req.since)
    except ChatApiError as e:
        raise HTTPException(status_code=502, detail=f"Failed to poll messages: {str(e)}")
    return {
        "appended_count": result.appended_count,
        "message_count": len(session.state.messages),
    }


@router.post("/push", response_model=ReconcileResponse)
async def push(req: PushRequest, session: ChatSession = Depends(get_session)):
    """Ingest a payload delivered by the push channel"""
    result = session.receive_push(req.payload)
    return {
        "appended_count": result.appended_count,
        "message_count": len(session.state.messages),
    }


@router.post("/messages")
async def send_message(
    req: SendMessageRequest, session: ChatSession = Depends(get_session)
):
    """Send an end-user message, or queue it while no chat is active"""
    if not req.content.strip():
        raise HTTPException(status_code=400, detail="Message content is empty")

    message = _end_user_message(session, req)
    session.add_message(message)
    if not session.state.chat_id:
        session.queue_message(message)
        return {"queued": True, "id": None}

    try:
        response = await session.send_new_message(message)
    except ChatApiError as e:
        raise HTTPException(status_code=502, detail=f"Failed to send message: {str(e)}")
    return {"queued": False, "id": (response or {}).get("id")}


@router.post("/end", response_model=ChatStateResponse)
async def end_chat(session: ChatSession = Depends(get_session)):
    """End the chat on the user's request"""
    await session.end_chat()
    return state_to_response(session.state)


@router.post("/greeting")
async def greeting(session: ChatSession = Depends(get_session)):
    """Show the greeting when the service has one active"""
    try:
        message = await session.get_greeting()
    except ChatApiError as e:
        raise HTTPException(status_code=502, detail=f"Failed to get greeting: {str(e)}")
    return {"message": message_to_response(message) if message else None}


@forwarding_router.post("")
async def generate_forwarding_request(session: ChatSession = Depends(get_session)):
    """Ask the server to forward the chat"""
    try:
        redirected = await session.generate_forwarding_request()
    except ChatApiError as e:
        raise HTTPException(status_code=502, detail=f"Forwarding failed: {str(e)}")
    return {"redirected": redirected, "chat_id": session.state.chat_id}


@forwarding_router.delete("")
async def remove_forwarding_value(session: ChatSession = Depends(get_session)):
    """Clear the chat's forwarding value"""
    try:
        await session.remove_chat_forwarding_value()
    except ChatApiError as e:
        raise HTTPException(status_code=502, detail=f"Failed to remove forwarding: {str(e)}")
    return {"success": True}
