"""
Waiting time routes.

Provides endpoints for:
- Fetching the queue waiting estimate
- Zeroing it once an agent has joined
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from support_chat.api.routes.dependencies import get_session
from support_chat.core.errors import ChatApiError
from support_chat.core.session import ChatSession


router = APIRouter()


class EstimatedWaitingResponse(BaseModel):
    is_active: bool
    time: int


@router.get("", response_model=EstimatedWaitingResponse)
async def get_estimated_waiting(session: ChatSession = Depends(get_session)):
    """Fetch a fresh waiting estimate"""
    try:
        estimate = await session.get_estimated_waiting_time()
    except ChatApiError as e:
        raise HTTPException(
            status_code=502, detail=f"Failed to get waiting time: {str(e)}"
        )
    return {"is_active": estimate.is_active, "time": estimate.time}


@router.post("/reset", response_model=EstimatedWaitingResponse)
async def reset_estimated_waiting(session: ChatSession = Depends(get_session)):
    """Force the estimate's time to zero"""
    session.set_estimated_waiting_time_to_zero()
    estimate = session.state.estimated_waiting
    return {"is_active": estimate.is_active, "time": estimate.time}
