# backend/livechat/errors.py
from typing import Any, Dict, Optional


class ChatError(Exception):
    """Expected, recoverable condition reported to the originating connection."""

    code = "chat_error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()

    def to_payload(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class Unauthenticated(ChatError):
    """Missing or invalid credentials"""
    code = "unauthenticated"


class DuplicateActiveSession(ChatError):
    """Customer already has an open chat"""
    code = "duplicate_active_session"

    def __init__(self, room, message: Optional[str] = None):
        super().__init__(message)
        self.room = room


class AlreadyClaimed(ChatError):
    """Chat was already accepted by another agent"""
    code = "already_claimed"


class RoomNotFound(ChatError):
    """Chat room not found"""
    code = "room_not_found"


class RoomClosed(ChatError):
    """Chat room is closed"""
    code = "room_closed"


class InvalidTransition(ChatError):
    """Transition not allowed from the current state"""
    code = "invalid_transition"


class Forbidden(ChatError):
    """Not allowed for this participant"""
    code = "forbidden"


class InvalidEvent(ChatError):
    """Malformed or unknown event"""
    code = "invalid_event"
