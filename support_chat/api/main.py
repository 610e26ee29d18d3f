"""
Support Chat - FastAPI host application

Hosts a single ``ChatSession`` for a widget frontend and exposes the
session's intents as REST endpoints.
"""

from typing import Optional

from fastapi import FastAPI

from support_chat import __version__
from support_chat.core.session import ChatSession
from support_chat.utils.logging import configure_logging


def create_app(session: Optional[ChatSession] = None) -> FastAPI:
    """Build the app around the session the host owns."""
    configure_logging(session.context.config.log_level if session else None)
    app = FastAPI(
        title="Support Chat",
        description="Session core for a live support-chat widget",
        version=__version__,
    )
    app.state.chat_session = session

    @app.get("/api/health")
    async def health():
        """Health check endpoint"""
        return {"status": "ok", "session": app.state.chat_session is not None}

    from support_chat.api.routes import chat, feedback, termination, waiting

    app.include_router(chat.router, prefix="/api/chat", tags=["chat"])
    app.include_router(feedback.router, prefix="/api/feedback", tags=["feedback"])
    app.include_router(waiting.router, prefix="/api/waiting", tags=["waiting"])
    app.include_router(
        termination.router, prefix="/api/termination", tags=["termination"]
    )
    app.include_router(chat.forwarding_router, prefix="/api/forwarding", tags=["chat"])
    return app
