"""
Exceptions raised by the session core and its collaborators
"""


class SupportChatError(Exception):
    """Base class for support chat errors"""

    pass


class ChatApiError(SupportChatError):
    """Raised by collaborator clients when a request/response call fails"""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class StorageError(SupportChatError):
    """Raised when the durable store cannot be opened or written"""

    pass
