# backend/livechat/core/gateway.py
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from ..errors import ChatError, DuplicateActiveSession, Forbidden, InvalidEvent, RoomClosed
from ..schemas import (
    AcceptChatIn,
    AgentJoinedOut,
    CloseChatIn,
    ErrorOut,
    InboundFrame,
    MessageOut,
    NewChatRequestIn,
    RefreshChatListsIn,
    RoomOut,
    RoomRefOut,
    SendMessageIn,
    TypingIn,
    TypingOut,
    dump,
)
from .domain import AGENT_ROLES, Role, Room, RoomState
from .events import MESSAGE_APPENDED, ROOM_CLAIMED, ROOM_CLOSED, ROOM_CREATED
from .registry import ConnectionRegistry
from .rooms import MessageAppended, RoomClosedEvent, RoomStore

logger = logging.getLogger(__name__)

# outbound event names
NEW_CHAT_REQUEST = "new_chat_request"
EXISTING_WAITING_CHATS = "existing_waiting_chats"
EXISTING_ACTIVE_CHATS = "existing_active_chats"
CHAT_ACCEPTED = "chat_accepted"
AGENT_JOINED = "agent_joined"
NEW_MESSAGE = "new_message"
USER_TYPING = "user_typing"
USER_STOP_TYPING = "user_stop_typing"
CHAT_CLOSED = "chat_closed"
CHAT_TAKEN = "chat_taken"
ERROR = "error"

Handler = Callable[[Any, Any], Awaitable[None]]


def room_payload(room: Room, messages: Optional[Iterable] = None) -> Dict[str, Any]:
    data = dump(RoomOut.model_validate(room))
    if messages is not None:
        data["messages"] = [message_payload(m) for m in messages]
    return data


def message_payload(message) -> Dict[str, Any]:
    return dump(MessageOut.model_validate(message))


class EventGateway:
    """Wire protocol <-> room operations.

    Inbound frames go through `dispatch`. Outbound fan-out is driven by the
    store's events, so every broadcast happens in commit order and exactly
    once per state change.
    """

    def __init__(self, store: RoomStore, registry: ConnectionRegistry, presence=None):
        self.store = store
        self.registry = registry
        self.presence = presence
        self._handlers: Dict[str, Tuple[Type[BaseModel], Handler]] = {
            "new_chat_request": (NewChatRequestIn, self.on_new_chat_request),
            "accept_chat": (AcceptChatIn, self.on_accept_chat),
            "send_message": (SendMessageIn, self.on_send_message),
            "typing": (TypingIn, self.on_typing),
            "stop_typing": (TypingIn, self.on_stop_typing),
            "close_chat": (CloseChatIn, self.on_close_chat),
            "refresh_chat_lists": (RefreshChatListsIn, self.on_refresh_chat_lists),
        }
        self._unsubscribe = [
            store.bus.subscribe(ROOM_CREATED, self._room_created),
            store.bus.subscribe(ROOM_CLAIMED, self._room_claimed),
            store.bus.subscribe(MESSAGE_APPENDED, self._message_appended),
            store.bus.subscribe(ROOM_CLOSED, self._room_closed),
        ]

    def detach(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    # connection lifecycle

    async def connect(self, conn) -> None:
        self.registry.register(conn)
        if self.presence is not None:
            await self.presence.mark_online(conn.participant_id, conn.role)
        self.rehydrate(conn, on_connect=True)

    async def disconnect(self, conn) -> None:
        self.registry.unregister(conn)
        if self.presence is not None and not self.registry.is_online(conn.participant_id):
            await self.presence.mark_offline(conn.participant_id)

    def rehydrate(self, conn, on_connect: bool = False) -> None:
        """Push the chats this participant should see right now."""
        pid = conn.participant_id
        if conn.role is Role.customer:
            room = self.store.open_room_for(pid)
            if room is None:
                if not on_connect:
                    self._push([conn], EXISTING_WAITING_CHATS, [])
                    self._push([conn], EXISTING_ACTIVE_CHATS, [])
                return
            payload = [room_payload(room, self.store.history(room.room_id))]
            waiting = payload if room.state is RoomState.waiting else []
            active = payload if room.state is RoomState.active else []
        else:
            waiting = [room_payload(r) for r in self.store.list_waiting()]
            active = [
                room_payload(r, self.store.history(r.room_id))
                for r in self.store.active_rooms_for(pid)
            ]
        self._push([conn], EXISTING_WAITING_CHATS, waiting)
        self._push([conn], EXISTING_ACTIVE_CHATS, active)

    # dispatch

    async def dispatch(self, conn, frame: Any) -> None:
        event = None
        payload = None
        try:
            try:
                inbound = InboundFrame.model_validate(frame)
            except ValidationError:
                raise InvalidEvent("Frames look like {\"event\": name, \"data\": {...}}") from None
            event = inbound.event
            handler_entry = self._handlers.get(event)
            if handler_entry is None:
                raise InvalidEvent(f"Unknown event '{event}'")
            model, handler = handler_entry
            try:
                payload = model.model_validate(inbound.data)
            except ValidationError as exc:
                fields = ", ".join(".".join(str(p) for p in e["loc"]) or "data" for e in exc.errors())
                raise InvalidEvent(f"Invalid payload for '{event}': {fields}") from None
            await handler(conn, payload)
        except ChatError as exc:
            logger.info("%s from %s rejected: %s", event, conn.participant_id, exc.code)
            self._send_error(conn, exc.code, exc.message, event, getattr(payload, "room_id", None))
        except Exception:
            logger.exception("Handler for %s failed", event)
            self._send_error(conn, "internal_error", "Internal server error", event, getattr(payload, "room_id", None))

    def _send_error(self, conn, code, message, event=None, room_id=None) -> None:
        out = ErrorOut(code=code, message=message, event=event, room_id=room_id)
        self._push([conn], ERROR, dump(out))

    # handlers

    async def on_new_chat_request(self, conn, payload: NewChatRequestIn) -> None:
        identity = conn.identity
        if identity.role is not Role.customer:
            raise Forbidden("Only customers can request a chat")
        if payload.customer_id and payload.customer_id != identity.participant_id:
            raise Forbidden("customerId does not match the connection")
        metadata = {
            "customer_name": payload.customer_name or identity.name,
            "department": payload.department,
            "is_guest": identity.is_guest,
            "organization_id": identity.organization_id,
        }
        try:
            await self.store.create_room(identity.participant_id, metadata)
        except DuplicateActiveSession as exc:
            logger.info("Customer %s already has chat %s", identity.participant_id, exc.room.room_id)
        # confirmation and duplicate both answer with the customer's current chat
        self.rehydrate(conn)

    async def on_accept_chat(self, conn, payload: AcceptChatIn) -> None:
        if conn.role not in AGENT_ROLES:
            raise Forbidden("Only agents can accept chats")
        await self.store.claim(payload.room_id, conn.participant_id, conn.identity.name)

    async def on_send_message(self, conn, payload: SendMessageIn) -> None:
        await self.store.append(
            payload.room_id,
            conn.participant_id,
            conn.role,
            payload.body,
            sender_name=conn.identity.name,
        )
        if self.presence is not None:
            await self.presence.set_typing(payload.room_id, conn.participant_id, False)

    async def on_typing(self, conn, payload: TypingIn) -> None:
        await self._forward_typing(conn, payload.room_id, USER_TYPING, True)

    async def on_stop_typing(self, conn, payload: TypingIn) -> None:
        await self._forward_typing(conn, payload.room_id, USER_STOP_TYPING, False)

    async def on_close_chat(self, conn, payload: CloseChatIn) -> None:
        await self.close_room(payload.room_id, conn.identity)

    async def on_refresh_chat_lists(self, conn, payload: RefreshChatListsIn) -> None:
        self.rehydrate(conn)

    async def close_room(self, room_id: str, actor) -> Room:
        """Close on behalf of `actor` (an Identity); shared by socket and HTTP."""

        def authorize(room: Room) -> None:
            if actor.role is Role.admin:
                return
            if actor.role is Role.customer and room.customer_id == actor.participant_id:
                return
            if actor.role is Role.agent and (
                room.agent_id == actor.participant_id or room.state is RoomState.waiting
            ):
                return
            raise Forbidden(f"{actor.participant_id} cannot close chat {room_id}")

        return await self.store.close(room_id, actor.participant_id, authorize=authorize)

    async def _forward_typing(self, conn, room_id: str, event: str, is_typing: bool) -> None:
        room = self.store.get(room_id)
        if conn.participant_id not in room.participants():
            raise Forbidden(f"{conn.participant_id} is not a participant of chat {room_id}")
        if room.state is RoomState.closed:
            raise RoomClosed(f"Chat {room_id} is closed")
        if self.presence is not None:
            await self.presence.set_typing(room_id, conn.participant_id, is_typing)
        other = room.other_participant(conn.participant_id)
        out = TypingOut(room_id=room_id, participant_id=conn.participant_id, name=conn.identity.name)
        self._push(self.registry.handles_for(other), event, dump(out))

    # fan-out, driven by store events

    def _room_created(self, room: Room) -> None:
        self._push(self.registry.all_agent_handles(), NEW_CHAT_REQUEST, room_payload(room))

    def _room_claimed(self, room: Room) -> None:
        data = room_payload(room)
        customer = self.registry.handles_for(room.customer_id)
        agent = self.registry.handles_for(room.agent_id)
        self._push(customer | agent, CHAT_ACCEPTED, data)
        joined = AgentJoinedOut(room_id=room.room_id, agent_id=room.agent_id, agent_name=room.agent_name or room.agent_id)
        self._push(customer, AGENT_JOINED, dump(joined))
        self._push(self.registry.all_agent_handles() - agent, CHAT_TAKEN, dump(RoomRefOut(room_id=room.room_id)))

    def _message_appended(self, event: MessageAppended) -> None:
        handles = set()
        for participant_id in event.room.participants():
            handles |= self.registry.handles_for(participant_id)
        self._push(handles, NEW_MESSAGE, message_payload(event.message))

    def _room_closed(self, event: RoomClosedEvent) -> None:
        room = event.room
        handles = self.registry.all_agent_handles()
        for participant_id in room.participants():
            handles |= self.registry.handles_for(participant_id)
        self._push(handles, CHAT_CLOSED, room_payload(room))

    def _push(self, handles, event: str, data) -> None:
        for handle in handles:
            try:
                handle.push(event, data)
            except Exception:
                logger.warning("Dropping %s for %s", event, getattr(handle, "participant_id", handle), exc_info=True)
