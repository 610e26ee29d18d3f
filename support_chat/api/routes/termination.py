"""
Termination routes - hand a chat to the termination queue and take it back.

The frontend calls ``/enqueue`` when the page is about to unload with an open
chat, and ``/resume`` first thing on the next page load.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from support_chat.api.routes.dependencies import get_session
from support_chat.core.session import ChatSession


router = APIRouter()


class ResumeRequest(BaseModel):
    """Request model for the bootstrap resume check"""

    page_reloaded: bool
    about_to_be_terminated: Optional[bool] = None


class TerminationResponse(BaseModel):
    chat_id: Optional[str] = None


@router.post("/enqueue", response_model=TerminationResponse)
async def enqueue(session: ChatSession = Depends(get_session)):
    """Queue the active chat for termination"""
    chat_id = await session.add_chat_to_termination_queue()
    return {"chat_id": chat_id}


@router.post("/resume", response_model=TerminationResponse)
async def resume(req: ResumeRequest, session: ChatSession = Depends(get_session)):
    """Take back a chat queued before a reload"""
    chat_id = await session.bootstrap(req.page_reloaded, req.about_to_be_terminated)
    return {"chat_id": chat_id}
