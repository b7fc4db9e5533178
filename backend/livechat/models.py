# backend/livechat/models.py
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func

from .database import Base


class ChatRoomRecord(Base):
    __tablename__ = "chat_rooms"
    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(String, unique=True, index=True, nullable=False)
    customer_id = Column(String, index=True, nullable=False)
    customer_name = Column(String)
    agent_id = Column(String, index=True, nullable=True)
    agent_name = Column(String, nullable=True)
    department = Column(String, default="general")
    is_guest = Column(Boolean, default=False)
    organization_id = Column(String, nullable=True)
    state = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closed_by = Column(String, nullable=True)
    archived_at = Column(DateTime(timezone=True), server_default=func.now())


class ChatMessageRecord(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (UniqueConstraint("room_id", "seq"),)
    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(String, ForeignKey("chat_rooms.room_id"), index=True, nullable=False)
    seq = Column(Integer, nullable=False)
    sender_id = Column(String, nullable=False)
    sender_role = Column(String, nullable=False)
    sender_name = Column(String)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
