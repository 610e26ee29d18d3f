"""API routes"""

from support_chat.api.routes import chat, feedback, termination, waiting

__all__ = ["chat", "feedback", "termination", "waiting"]
