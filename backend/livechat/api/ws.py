# backend/livechat/api/ws.py
import asyncio
import logging
from itertools import count
from typing import Any, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..core.domain import Identity
from ..errors import Unauthenticated

logger = logging.getLogger(__name__)

router = APIRouter()

_connection_ids = count(1)

SEND_TIMEOUT = 10


class Connection:
    """One live socket of a participant.

    `push` never blocks: frames go to a bounded queue drained by a writer
    task, so a slow client only ever delays itself.
    """

    def __init__(self, websocket: WebSocket, identity: Identity, queue_size: int = 256):
        self.id = next(_connection_ids)
        self.websocket = websocket
        self.identity = identity
        self._queue: "asyncio.Queue[Optional[dict]]" = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None
        self._closer: Optional[asyncio.Task] = None
        self.closed = False

    @property
    def participant_id(self) -> str:
        return self.identity.participant_id

    @property
    def role(self):
        return self.identity.role

    def push(self, event: str, data: Any) -> None:
        if self.closed:
            return
        try:
            self._queue.put_nowait({"event": event, "data": data})
        except asyncio.QueueFull:
            logger.warning("Send queue full for %s (connection %s), dropping it", self.participant_id, self.id)
            self._abort(status.WS_1013_TRY_AGAIN_LATER)

    def start(self) -> None:
        self._writer = asyncio.create_task(self._drain())

    async def stop(self) -> None:
        self.closed = True
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
        if self._closer is not None:
            await self._closer

    def _abort(self, code: int) -> None:
        # closing the socket ends the read loop; the client reconnects and is rehydrated
        self.closed = True
        if self._writer is not None and self._writer is not asyncio.current_task():
            self._writer.cancel()
        if self._closer is None:
            self._closer = asyncio.create_task(self._close_socket(code))

    async def _close_socket(self, code: int) -> None:
        try:
            await asyncio.wait_for(self.websocket.close(code=code), SEND_TIMEOUT)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.info("Closing socket of %s failed: %s", self.participant_id, e)

    async def _drain(self) -> None:
        while True:
            frame = await self._queue.get()
            try:
                await asyncio.wait_for(self.websocket.send_json(frame), SEND_TIMEOUT)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Delivery to %s failed: %s", self.participant_id, e)
                self._abort(status.WS_1011_INTERNAL_ERROR)
                return

    def __repr__(self) -> str:
        return f"<Connection {self.id} {self.role.value}:{self.participant_id}>"


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    token: Optional[str] = None,
    guest_id: Optional[str] = None,
    name: Optional[str] = None,
):
    hub = websocket.app.state.hub
    try:
        identity = hub.authenticator.authenticate(token=token, guest_id=guest_id, name=name)
    except Unauthenticated as e:
        logger.info("Rejected socket: %s", e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    conn = Connection(websocket, identity, queue_size=hub.settings.send_queue_size)
    conn.start()
    logger.info("%s connected", conn)
    try:
        await hub.gateway.connect(conn)
        while not conn.closed:
            try:
                frame = await websocket.receive_json()
            except (ValueError, KeyError):
                # not JSON: reject the frame, keep the socket
                await hub.gateway.dispatch(conn, None)
                continue
            if hub.presence is not None:
                await hub.presence.mark_online(conn.participant_id, conn.role)
            await hub.gateway.dispatch(conn, frame)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.gateway.disconnect(conn)
        await conn.stop()
        logger.info("%s disconnected", conn)
