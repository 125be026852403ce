from typing import Any, Dict

from pydantic import BaseModel

from instaplus.modules.messages.schemas.message import Message
from instaplus.modules.users.schemas.user import CamelModel

class Envelope(BaseModel):
    """Wire frame in both directions: {"event": ..., "data": {...}}"""
    event: str
    data: Dict[str, Any] = {}

class RoomPayload(CamelModel):
    conversation_id: str

class MessagePayload(RoomPayload):
    message: Message

class DeletePayload(RoomPayload):
    message_id: str
