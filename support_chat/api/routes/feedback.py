"""
Feedback routes - post-chat rating and free-text feedback.

Submission failures are not HTTP errors: the session records them in its
error message and the response reports ``success: false``.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from support_chat.api.routes.dependencies import get_session
from support_chat.core.session import ChatSession


router = APIRouter()


class RatingRequest(BaseModel):
    """Request model for the NPM rating"""

    rating: int = Field(ge=0, le=10)


class FeedbackMessageRequest(BaseModel):
    """Request model for free-text feedback"""

    text: str


class FeedbackResultResponse(BaseModel):
    success: bool
    error_message: Optional[str] = None


def _result(session: ChatSession, success: bool) -> dict:
    return {
        "success": success,
        "error_message": None if success else session.state.error_message or None,
    }


@router.post("/rating", response_model=FeedbackResultResponse)
async def send_rating(req: RatingRequest, session: ChatSession = Depends(get_session)):
    """Submit the chat rating"""
    success = await session.send_chat_npm_rating(req.rating)
    return _result(session, success)


@router.post("/message", response_model=FeedbackResultResponse)
async def send_feedback(
    req: FeedbackMessageRequest, session: ChatSession = Depends(get_session)
):
    """Submit free-text feedback"""
    success = await session.send_feedback_message(req.text)
    return _result(session, success)
