from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from .core.domain import Role, RoomState


class WireModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# === inbound ===

class InboundFrame(BaseModel):
    event: str = Field(min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)


class NewChatRequestIn(WireModel):
    customer_id: Optional[str] = None
    customer_name: Optional[str] = Field(default=None, max_length=100)
    department: Optional[str] = Field(default=None, max_length=64)
    is_guest: bool = False


class RoomRef(WireModel):
    room_id: str = Field(min_length=1, max_length=128)


class AcceptChatIn(RoomRef):
    pass


class SendMessageIn(RoomRef):
    body: str


class TypingIn(RoomRef):
    pass


class CloseChatIn(RoomRef):
    pass


class RefreshChatListsIn(WireModel):
    pass


# === outbound ===

class MessageOut(WireModel):
    id: int
    room_id: str
    sender_id: str
    sender_role: Role
    sender_name: str
    body: str
    created_at: datetime


class RoomOut(WireModel):
    room_id: str
    customer_id: str
    customer_name: str
    agent_id: Optional[str]
    agent_name: Optional[str]
    department: str
    state: RoomState
    is_guest: bool
    created_at: datetime
    last_activity_at: datetime
    claimed_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None


class RoomRefOut(WireModel):
    room_id: str


class AgentJoinedOut(WireModel):
    room_id: str
    agent_id: str
    agent_name: str


class TypingOut(WireModel):
    room_id: str
    participant_id: str
    name: str


class ErrorOut(WireModel):
    code: str
    message: str
    event: Optional[str] = None
    room_id: Optional[str] = None


class OnlineOut(WireModel):
    room_id: str
    customer_online: bool
    agent_online: bool


def dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")
