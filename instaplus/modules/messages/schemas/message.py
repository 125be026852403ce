from typing import List, Optional
from datetime import datetime
from pydantic import field_validator

from instaplus.core.config import settings
from instaplus.modules.users.schemas.user import CamelModel, UserSummary

def message_text_problem(
    text: str,
    max_chars: int = settings.MESSAGE_MAX_CHARS,
    max_newlines: int = settings.MESSAGE_MAX_NEWLINES,
) -> Optional[str]:
    """Return why a message text is unacceptable, or None when it is fine"""
    if not text or not text.strip():
        return "Message cannot be empty"
    if len(text) > max_chars:
        return f"Message must be at most {max_chars} characters"
    if text.count("\n") > max_newlines:
        return f"Message must have at most {max_newlines} line breaks"
    return None

class MessageText(CamelModel):
    text: str

    @field_validator("text")
    @classmethod
    def check_text(cls, v: str) -> str:
        problem = message_text_problem(v)
        if problem:
            raise ValueError(problem)
        return v

class MessageCreate(MessageText):
    pass

class MessageUpdate(MessageText):
    pass

class Message(CamelModel):
    """Message model returned to client"""
    id: str
    conversation_id: str
    sender_id: str
    text: str
    edited: bool = False
    created_at: datetime

class Conversation(CamelModel):
    """Conversation model returned to client"""
    id: str
    participants: List[UserSummary]
    last_message: Optional[Message] = None
    updated_at: datetime

class MessageDeleted(CamelModel):
    ok: bool = True
    id: str
