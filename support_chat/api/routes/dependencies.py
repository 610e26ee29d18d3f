"""
Shared dependencies for API routes.

Provides FastAPI dependency injection for the hosted ChatSession.
"""

from fastapi import HTTPException, Request

from support_chat.core.session import ChatSession


def get_session(request: Request) -> ChatSession:
    """Get the ChatSession the app was created with.

    Raises:
        HTTPException: If the host has not attached a session
    """
    session = getattr(request.app.state, "chat_session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="No chat session is configured.")
    return session
