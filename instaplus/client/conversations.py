import logging
from typing import Callable, List, Optional, Set

from instaplus.client.errors import ClientError, ValidationError
from instaplus.client.reconcile import RemoteEvent, apply_remote_event
from instaplus.core.config import settings
from instaplus.modules.messages.schemas.message import Conversation, Message, message_text_problem
from instaplus.modules.realtime import events

logger = logging.getLogger(__name__)

class MessageComposer:
    """Text input for a message; refuses changes that would break a limit"""

    def __init__(
        self,
        max_chars: int = settings.MESSAGE_MAX_CHARS,
        max_newlines: int = settings.MESSAGE_MAX_NEWLINES,
    ):
        self.max_chars = max_chars
        self.max_newlines = max_newlines
        self.text = ""

    def set_text(self, text: str) -> bool:
        if len(text) > self.max_chars or text.count("\n") > self.max_newlines:
            return False
        self.text = text
        return True

    def clear(self) -> None:
        self.text = ""

    def problem(self, text: Optional[str] = None) -> Optional[str]:
        return message_text_problem(
            self.text if text is None else text, self.max_chars, self.max_newlines
        )

class ScrollTracker:
    """Decides when the message list jumps to the newest message.

    A new conversation scrolls once; afterwards only a longer list of the same
    conversation scrolls. Edits keep the length and deletes shrink it, so
    neither scrolls.
    """

    def __init__(self, on_scroll: Optional[Callable[[str], None]] = None):
        self.on_scroll = on_scroll
        self.conversation_id: Optional[str] = None
        self.length = 0
        self.scrolls = 0

    def observe(self, conversation_id: str, length: int) -> bool:
        switched = conversation_id != self.conversation_id
        grew = length > self.length
        self.conversation_id = conversation_id
        self.length = length
        if not (switched or grew):
            return False
        self.scrolls += 1
        if self.on_scroll is not None:
            self.on_scroll(conversation_id)
        return True

class ConversationView:
    """Direct messages: sidebar, the open conversation and its composer"""

    def __init__(self, api, realtime, user_id: str, tracker: Optional[ScrollTracker] = None):
        self.api = api
        self.realtime = realtime
        self.user_id = user_id
        self.tracker = tracker or ScrollTracker()
        self.composer = MessageComposer()
        self.edit_composer = MessageComposer()
        self.conversations: List[Conversation] = []
        self.active_id: Optional[str] = None
        self.messages: List[Message] = []
        self.editing: Optional[str] = None
        self.pending_edits: Set[str] = set()
        self.status: Optional[str] = None
        self._loading_id: Optional[str] = None
        self._held: List[RemoteEvent] = []

    def attach(self) -> None:
        self.realtime.on(events.RECEIVE_MESSAGE, self._on_receive)
        self.realtime.on(events.MESSAGE_EDITED, self._on_edited)
        self.realtime.on(events.MESSAGE_DELETED, self._on_deleted)

    def detach(self) -> None:
        self.realtime.off(events.RECEIVE_MESSAGE, self._on_receive)
        self.realtime.off(events.MESSAGE_EDITED, self._on_edited)
        self.realtime.off(events.MESSAGE_DELETED, self._on_deleted)

    def conversation(self, conversation_id: str) -> Optional[Conversation]:
        return next((c for c in self.conversations if c.id == conversation_id), None)

    def message(self, message_id: str) -> Optional[Message]:
        return next((m for m in self.messages if m.id == message_id), None)

    async def load_conversations(self) -> None:
        try:
            self.conversations = await self.api.list_conversations()
        except ClientError as e:
            logger.error(f"Error loading conversations: {e}")
            self.status = "Failed to load conversations"
            return
        for conversation in self.conversations:
            await self.realtime.join_room(conversation.id)

    async def select(self, conversation_id: str) -> None:
        self.active_id = conversation_id
        self.messages = []
        self.editing = None
        self._loading_id = conversation_id
        self._held = []
        await self.realtime.join_room(conversation_id)
        try:
            loaded = await self.api.list_messages(conversation_id)
        except ClientError as e:
            logger.error(f"Error loading messages of {conversation_id}: {e}")
            self.status = "Failed to load messages"
            loaded = []
        if self.active_id != conversation_id:
            return
        # events that arrived during the load land in the loaded list
        for event in self._held:
            loaded = apply_remote_event(loaded, event)
        self._loading_id = None
        self._held = []
        self.messages = loaded
        self.tracker.observe(conversation_id, len(self.messages))

    async def start_conversation(self, user_id: str) -> Optional[Conversation]:
        try:
            conversation = await self.api.start_conversation(user_id)
        except ClientError as e:
            logger.error(f"Error starting conversation with {user_id}: {e}")
            self.status = "Failed to start conversation"
            return None
        if conversation is None:
            return None
        if self.conversation(conversation.id) is None:
            self.conversations.insert(0, conversation)
        await self.select(conversation.id)
        return conversation

    async def send(self, text: Optional[str] = None) -> Optional[Message]:
        text = self.composer.text if text is None else text
        problem = self.composer.problem(text)
        if problem:
            raise ValidationError(problem)
        if self.active_id is None:
            raise ValidationError("No conversation selected")

        conversation_id = self.active_id
        try:
            message = await self.api.send_message(conversation_id, text)
        except ClientError as e:
            logger.error(f"Error sending message: {e}")
            self.status = "Failed to send message"
            return None
        if message is None:
            return None

        self.composer.clear()
        self.status = None
        self._update_preview(message)
        self._merge(RemoteEvent(events.RECEIVE_MESSAGE, conversation_id, message=message))
        await self.realtime.publish(events.SEND_MESSAGE, _message_payload(message))
        return message

    def start_edit(self, message_id: str) -> None:
        message = self._own_message(message_id)
        if message_id in self.pending_edits:
            raise ValidationError("This message is already being saved")
        self.editing = message_id
        self.edit_composer.set_text(message.text)

    def cancel_edit(self) -> None:
        self.editing = None
        self.edit_composer.clear()

    async def save_edit(self) -> Optional[Message]:
        if self.editing is None:
            raise ValidationError("No message is being edited")
        message_id = self.editing
        if message_id in self.pending_edits:
            raise ValidationError("This message is already being saved")
        problem = self.edit_composer.problem()
        if problem:
            raise ValidationError(problem)

        self.pending_edits.add(message_id)
        try:
            updated = await self.api.edit_message(message_id, self.edit_composer.text)
        except ClientError as e:
            logger.error(f"Error editing message {message_id}: {e}")
            self.status = "Failed to edit message"
            return None
        finally:
            self.pending_edits.discard(message_id)
        if updated is None:
            return None

        self.cancel_edit()
        self._update_preview(updated, edited=True)
        self._merge(RemoteEvent(events.MESSAGE_EDITED, updated.conversation_id, message=updated))
        await self.realtime.publish(events.EDIT_MESSAGE, _message_payload(updated))
        return updated

    async def delete(self, message_id: str) -> bool:
        message = self._own_message(message_id)
        conversation_id = message.conversation_id
        self.messages = apply_remote_event(
            self.messages, RemoteEvent(events.MESSAGE_DELETED, conversation_id, message_id=message_id)
        )
        self.tracker.observe(conversation_id, len(self.messages))
        if self.editing == message_id:
            self.cancel_edit()

        try:
            deleted = await self.api.delete_message(message_id)
        except ClientError as e:
            logger.error(f"Error deleting message {message_id}: {e}")
            return False
        if deleted:
            await self.realtime.publish(
                events.DELETE_MESSAGE, {"conversationId": conversation_id, "messageId": message_id}
            )
        return deleted

    def _own_message(self, message_id: str) -> Message:
        message = self.message(message_id)
        if message is None:
            raise ValidationError("Message not found")
        if message.sender_id != self.user_id:
            raise ValidationError("You can only change your own messages")
        return message

    def _update_preview(self, message: Message, edited: bool = False) -> None:
        for i, conversation in enumerate(self.conversations):
            if conversation.id != message.conversation_id:
                continue
            last = conversation.last_message
            if not edited or (last is not None and last.id == message.id):
                self.conversations[i] = conversation.model_copy(update={"last_message": message})

    def _apply_remote(self, event: RemoteEvent) -> None:
        if event.message is not None:
            self._update_preview(event.message, edited=event.kind == events.MESSAGE_EDITED)
        self._merge(event)

    def _merge(self, event: RemoteEvent) -> None:
        if event.conversation_id != self.active_id:
            return
        if event.conversation_id == self._loading_id:
            self._held.append(event)
            return
        self.messages = apply_remote_event(self.messages, event)
        self.tracker.observe(event.conversation_id, len(self.messages))

    def _on_receive(self, data: dict) -> None:
        self._apply_remote(RemoteEvent.from_wire(events.RECEIVE_MESSAGE, data))

    def _on_edited(self, data: dict) -> None:
        self._apply_remote(RemoteEvent.from_wire(events.MESSAGE_EDITED, data))

    def _on_deleted(self, data: dict) -> None:
        self._apply_remote(RemoteEvent.from_wire(events.MESSAGE_DELETED, data))

def _message_payload(message: Message) -> dict:
    return {
        "conversationId": message.conversation_id,
        "message": message.model_dump(by_alias=True, mode="json"),
    }
