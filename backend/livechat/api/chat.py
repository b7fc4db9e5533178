import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ..core.domain import Identity
from ..core.gateway import message_payload, room_payload
from ..errors import Forbidden, RoomNotFound
from ..schemas import OnlineOut, dump
from .auth import verify_operator

router = APIRouter(dependencies=[Depends(verify_operator)])


def get_hub(request: Request):
    return request.app.state.hub


@router.get("/chats/waiting")
def list_waiting(hub=Depends(get_hub)):
    return [room_payload(room) for room in hub.store.list_waiting()]


@router.get("/chats/{room_id}")
async def get_chat(room_id: str, hub=Depends(get_hub)):
    try:
        room = hub.store.get(room_id)
    except RoomNotFound:
        transcript = await _archived(hub, room_id)
        return room_payload(transcript[0])
    return room_payload(room)


@router.get("/chats/{room_id}/messages")
async def get_messages(
        room_id: str,
        since: Optional[int] = Query(None, ge=0),
        hub=Depends(get_hub),
):
    try:
        history = hub.store.history(room_id, since)
    except RoomNotFound:
        _, messages = await _archived(hub, room_id)
        history = [m for m in messages if since is None or m.id > since]
    return [message_payload(m) for m in history]


@router.get("/chats/{room_id}/online", response_model=OnlineOut)
async def get_online_status(room_id: str, hub=Depends(get_hub)):
    try:
        room = hub.store.get(room_id)
    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Chat not found")

    async def online(participant_id):
        if not participant_id:
            return False
        if hub.registry.is_online(participant_id):
            return True
        # the participant may be connected to another process
        if hub.presence is not None:
            return await hub.presence.is_online(participant_id)
        return False

    return OnlineOut(
        room_id=room.room_id,
        customer_online=await online(room.customer_id),
        agent_online=await online(room.agent_id),
    )


@router.post("/chats/{room_id}/close")
async def close_chat(
        room_id: str,
        hub=Depends(get_hub),
        operator: Identity = Depends(verify_operator),
):
    try:
        room = await hub.gateway.close_room(room_id, operator)
    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Chat not found")
    except Forbidden as e:
        raise HTTPException(status_code=403, detail=e.message)
    return {"success": True, "chat": room_payload(room)}


async def _archived(hub, room_id: str):
    transcript = None
    if hub.archive is not None:
        transcript = await asyncio.to_thread(hub.archive.load_transcript, room_id)
    if transcript is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return transcript
