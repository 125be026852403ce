from dataclasses import dataclass
from typing import List, Optional, Sequence

from instaplus.modules.messages.schemas.message import Message
from instaplus.modules.realtime import events

@dataclass(frozen=True)
class RemoteEvent:
    """A message mutation received over the realtime channel"""
    kind: str
    conversation_id: str
    message: Optional[Message] = None
    message_id: Optional[str] = None

    @property
    def target_id(self) -> Optional[str]:
        return self.message.id if self.message is not None else self.message_id

    @classmethod
    def from_wire(cls, event: str, data: dict) -> "RemoteEvent":
        if event == events.MESSAGE_DELETED:
            return cls(kind=event, conversation_id=data["conversationId"], message_id=data["messageId"])
        message = Message.model_validate(data)
        return cls(kind=event, conversation_id=message.conversation_id, message=message)

def apply_remote_event(messages: Sequence[Message], event: RemoteEvent) -> List[Message]:
    """
    Apply a created/edited/deleted event to a local ordered message list.
    Returns a new list; events about unknown ids (or duplicates of known
    ones) leave the list as it was.
    """
    current = list(messages)
    index = next((i for i, m in enumerate(current) if m.id == event.target_id), None)

    if event.kind == events.RECEIVE_MESSAGE:
        if index is None and event.message is not None:
            current.append(event.message)
    elif event.kind == events.MESSAGE_EDITED:
        if index is not None and event.message is not None:
            current[index] = event.message
    elif event.kind == events.MESSAGE_DELETED:
        if index is not None:
            del current[index]
    return current
