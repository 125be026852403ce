from typing import Any, List
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from instaplus.db.session import get_db
from instaplus.deps import get_current_user
from instaplus.modules.users.models.user import User
from instaplus.modules.users.services.user import get_user
from instaplus.modules.messages.models.message import Conversation, Message
from instaplus.modules.messages.schemas.message import (
    Conversation as ConversationSchema, Message as MessageSchema,
    MessageCreate, MessageDeleted, MessageUpdate
)
from instaplus.modules.messages.services.message import (
    conversation_to_schema, create_message, delete_message, get_conversation,
    get_message, get_messages, get_user_conversations, is_participant,
    start_conversation, update_message
)

logger = logging.getLogger(__name__)

router = APIRouter()

def _validate_conversation(db: Session, conversation_id: str, user_id: str) -> Conversation:
    """Validate conversation exists and the user takes part in it"""
    conversation = get_conversation(db, conversation_id)
    if not conversation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found"
        )
    if not is_participant(db, conversation_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a participant of this conversation"
        )
    return conversation

def _validate_own_message(db: Session, message_id: str, user_id: str) -> Message:
    """Validate message exists and was sent by the user"""
    message = get_message(db, message_id)
    if not message:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found"
        )
    if message.sender_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions"
        )
    return message

@router.get("/conversations", response_model=List[ConversationSchema])
def read_conversations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Get the current user's conversations, most recent first"""
    return get_user_conversations(db, current_user.id)

@router.post("/start/{user_id}", response_model=ConversationSchema)
def start_new_conversation(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Open the direct conversation with another user, creating it if needed"""
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot start a conversation with yourself"
        )
    if not get_user(db, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    conversation = start_conversation(db, current_user.id, user_id)
    return conversation_to_schema(db, conversation)

@router.get("/{conversation_id}", response_model=List[MessageSchema])
def read_messages(
    conversation_id: str,
    db: Session = Depends(get_db),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Get the latest messages of a conversation, oldest first"""
    _validate_conversation(db, conversation_id, current_user.id)
    return get_messages(db, conversation_id, limit=limit)

@router.post("/{conversation_id}", response_model=MessageSchema, status_code=status.HTTP_201_CREATED)
def send_message(
    conversation_id: str,
    message_in: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Send a message to a conversation"""
    conversation = _validate_conversation(db, conversation_id, current_user.id)
    message = create_message(db, conversation, current_user.id, message_in.text)
    logger.info(f"User {current_user.id} sent message {message.id} to {conversation_id}")
    return message

@router.patch("/{message_id}", response_model=MessageSchema)
def edit_message(
    message_id: str,
    message_in: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Edit the text of one of the current user's messages"""
    message = _validate_own_message(db, message_id, current_user.id)
    return update_message(db, message, message_in.text)

@router.delete("/{message_id}", response_model=MessageDeleted)
def remove_message(
    message_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Delete one of the current user's messages"""
    message = _validate_own_message(db, message_id, current_user.id)
    return MessageDeleted(id=delete_message(db, message))
