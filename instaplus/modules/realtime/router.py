from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from instaplus.core.security import verify_access_token
from instaplus.db.session import SessionLocal
from instaplus.modules.messages.services.message import get_conversation, is_participant
from instaplus.modules.users.services.user import get_user
from instaplus.modules.realtime import events
from instaplus.modules.realtime.manager import manager
from instaplus.modules.realtime.schemas import DeletePayload, Envelope, MessagePayload, RoomPayload

logger = logging.getLogger(__name__)

router = APIRouter()

def _authenticate(token: Optional[str]) -> Optional[str]:
    user_id = verify_access_token(token) if token else None
    if not user_id:
        return None
    with SessionLocal() as db:
        return user_id if get_user(db, user_id) else None

def _may_join(user_id: str, conversation_id: str) -> bool:
    with SessionLocal() as db:
        return get_conversation(db, conversation_id) is not None and is_participant(db, conversation_id, user_id)

async def _handle(websocket: WebSocket, user_id: str, envelope: Envelope) -> None:
    event, data = envelope.event, envelope.data

    if event == events.JOIN_CONVERSATION:
        room = RoomPayload.model_validate(data).conversation_id
        if not _may_join(user_id, room):
            await _error(websocket, f"Cannot join conversation {room}")
            return
        manager.join(websocket, room)
        logger.info(f"User {user_id} joined room {room}")
        await manager.send(websocket, events.JOINED, {"conversationId": room})
        return

    if event == events.LEAVE_CONVERSATION:
        room = RoomPayload.model_validate(data).conversation_id
        manager.leave(websocket, room)
        await manager.send(websocket, events.LEFT, {"conversationId": room})
        return

    if event not in events.BROADCASTS:
        await _error(websocket, f"Unknown event {event}")
        return

    if event == events.DELETE_MESSAGE:
        payload = DeletePayload.model_validate(data)
        outbound: Dict[str, Any] = {"conversationId": payload.conversation_id, "messageId": payload.message_id}
    else:
        payload = MessagePayload.model_validate(data)
        if payload.message.conversation_id != payload.conversation_id or payload.message.sender_id != user_id:
            await _error(websocket, "Message does not belong to this sender and conversation")
            return
        outbound = payload.message.model_dump(by_alias=True, mode="json")

    if not manager.in_room(websocket, payload.conversation_id):
        await _error(websocket, f"Join conversation {payload.conversation_id} before publishing")
        return

    delivered = await manager.broadcast(
        payload.conversation_id, events.BROADCASTS[event], outbound, exclude=websocket
    )
    logger.debug(f"{event} from {user_id} reached {delivered} member(s) of {payload.conversation_id}")

async def _error(websocket: WebSocket, detail: str) -> None:
    logger.warning(f"Realtime error: {detail}")
    await manager.send(websocket, events.ERROR, {"detail": detail})

@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Realtime channel. Connect with ?token=<bearer token>.
    Receives: joinConversation, leaveConversation, sendMessage, editMessage, deleteMessage
    Sends: joined, left, receiveMessage, messageEdited, messageDeleted, error
    """
    user_id = _authenticate(token)
    if not user_id:
        # a close before accept reaches the client as an HTTP 403, not 4401
        await websocket.accept()
        await websocket.close(code=events.UNAUTHORIZED_CLOSE_CODE)
        return

    await manager.connect(websocket)
    logger.info(f"Realtime client connected for user {user_id}")
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                await _handle(websocket, user_id, Envelope.model_validate_json(raw))
            except ValidationError as e:
                await _error(websocket, f"Malformed payload: {e.errors()[0]['msg']}")
    except WebSocketDisconnect:
        logger.info(f"Realtime client disconnected for user {user_id}")
    finally:
        manager.disconnect(websocket)
