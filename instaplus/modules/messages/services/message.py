from typing import List, Optional
import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from instaplus.modules.messages.models.message import Conversation, Message, conversation_participants
from instaplus.modules.messages.schemas.message import (
    Conversation as ConversationSchema, Message as MessageSchema
)
from instaplus.modules.users.schemas.user import UserSummary
from instaplus.modules.users.services.user import get_users_by_ids

logger = logging.getLogger(__name__)

def get_conversation(db: Session, conversation_id: str) -> Optional[Conversation]:
    """Get conversation by ID"""
    return db.query(Conversation).filter(Conversation.id == conversation_id).first()

def get_message(db: Session, message_id: str) -> Optional[Message]:
    """Get message by ID"""
    return db.query(Message).filter(Message.id == message_id).first()

def get_participant_ids(db: Session, conversation_id: str) -> List[str]:
    rows = db.execute(
        conversation_participants.select()
        .where(conversation_participants.c.conversation_id == conversation_id)
        .order_by(conversation_participants.c.position)
    ).all()
    return [row.user_id for row in rows]

def is_participant(db: Session, conversation_id: str, user_id: str) -> bool:
    return user_id in get_participant_ids(db, conversation_id)

def get_user_conversations(db: Session, user_id: str) -> List[ConversationSchema]:
    """Get the user's conversations, most recently active first"""
    conversations = (
        db.query(Conversation)
        .join(conversation_participants, conversation_participants.c.conversation_id == Conversation.id)
        .filter(conversation_participants.c.user_id == user_id)
        .order_by(Conversation.updated_at.desc())
        .all()
    )
    return [conversation_to_schema(db, conversation) for conversation in conversations]

def find_direct_conversation(db: Session, user_id: str, other_id: str) -> Optional[Conversation]:
    """Find the two-party conversation between two users"""
    members = conversation_participants.c
    with_both = (
        select(members.conversation_id)
        .where(members.user_id.in_([user_id, other_id]))
        .group_by(members.conversation_id)
        .having(func.count(members.user_id) == 2)
    )
    two_party = (
        select(members.conversation_id)
        .group_by(members.conversation_id)
        .having(func.count(members.user_id) == 2)
    )
    return (
        db.query(Conversation)
        .filter(Conversation.id.in_(with_both), Conversation.id.in_(two_party))
        .first()
    )

def start_conversation(db: Session, user_id: str, other_id: str) -> Conversation:
    """Return the existing direct conversation or create one"""
    existing = find_direct_conversation(db, user_id, other_id)
    if existing:
        return existing

    conversation = Conversation(id=str(uuid.uuid4()))
    db.add(conversation)
    db.flush()
    db.execute(
        conversation_participants.insert(),
        [
            {"conversation_id": conversation.id, "user_id": user_id, "position": 0},
            {"conversation_id": conversation.id, "user_id": other_id, "position": 1},
        ],
    )
    db.commit()
    db.refresh(conversation)
    logger.info(f"Started conversation {conversation.id} between {user_id} and {other_id}")
    return conversation

def get_messages(db: Session, conversation_id: str, limit: int = 100) -> List[Message]:
    """Get the latest messages of a conversation, oldest first"""
    latest = (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
        .all()
    )
    return list(reversed(latest))

def create_message(db: Session, conversation: Conversation, sender_id: str, text: str) -> Message:
    """Create a message and make it the conversation's last message"""
    message = Message(
        id=str(uuid.uuid4()),
        conversation_id=conversation.id,
        sender_id=sender_id,
        text=text,
        edited=False,
    )
    db.add(message)
    db.flush()

    conversation.last_message_id = message.id
    conversation.updated_at = message.created_at
    db.commit()
    db.refresh(message)
    return message

def update_message(db: Session, message: Message, text: str) -> Message:
    """Replace the message text and flag it as edited"""
    message.text = text
    message.edited = True
    db.commit()
    db.refresh(message)
    return message

def delete_message(db: Session, message: Message) -> str:
    """Hard delete a message, re-pointing the conversation's last message if needed"""
    message_id = message.id
    conversation = get_conversation(db, message.conversation_id)
    db.delete(message)
    db.flush()

    if conversation and conversation.last_message_id == message_id:
        newest = (
            db.query(Message)
            .filter(Message.conversation_id == conversation.id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .first()
        )
        conversation.last_message_id = newest.id if newest else None

    db.commit()
    return message_id

def conversation_to_schema(db: Session, conversation: Conversation) -> ConversationSchema:
    participant_ids = get_participant_ids(db, conversation.id)
    users = {user.id: user for user in get_users_by_ids(db, participant_ids)}
    last_message = get_message(db, conversation.last_message_id) if conversation.last_message_id else None
    return ConversationSchema(
        id=conversation.id,
        participants=[UserSummary.model_validate(users[uid]) for uid in participant_ids if uid in users],
        last_message=MessageSchema.model_validate(last_message) if last_message else None,
        updated_at=conversation.updated_at,
    )
