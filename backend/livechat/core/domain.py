# backend/livechat/core/domain.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    customer = "customer"
    agent = "agent"
    admin = "admin"


AGENT_ROLES = (Role.agent, Role.admin)


class RoomState(str, Enum):
    waiting = "waiting"
    active = "active"
    closed = "closed"


@dataclass(frozen=True)
class Identity:
    """Verified participant handed over by the authenticator."""

    participant_id: str
    role: Role
    display_name: str = ""
    is_guest: bool = False
    organization_id: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.participant_id


@dataclass(frozen=True)
class Room:
    room_id: str
    customer_id: str
    state: RoomState = RoomState.waiting
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    customer_name: str = ""
    department: str = "general"
    is_guest: bool = False
    organization_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    last_activity_at: datetime = field(default_factory=utcnow)
    claimed_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state is not RoomState.closed

    def participants(self):
        return tuple(p for p in (self.customer_id, self.agent_id) if p)

    def other_participant(self, participant_id: str) -> Optional[str]:
        if participant_id == self.customer_id:
            return self.agent_id
        if participant_id == self.agent_id:
            return self.customer_id
        return None


@dataclass(frozen=True)
class Message:
    id: int
    room_id: str
    sender_id: str
    sender_role: Role
    body: str
    sender_name: str = ""
    created_at: datetime = field(default_factory=utcnow)
