from typing import Dict, List
from datetime import datetime, timedelta
import logging
import uuid

from sqlalchemy.orm import Session

from instaplus.core.config import settings
from instaplus.db.session import utcnow
from instaplus.modules.stories.models.story import Story, StoryView
from instaplus.modules.stories.schemas.story import StoryCreate
from instaplus.modules.users.models.user import User
from instaplus.modules.users.services.user import get_following_ids, get_users_by_ids

logger = logging.getLogger(__name__)

def _visible_since() -> datetime:
    return utcnow() - timedelta(hours=settings.STORY_TTL_HOURS)

def get_active_stories(db: Session, user_id: str) -> List[Story]:
    """Unexpired stories of the viewer and the users they follow, oldest first"""
    author_ids = [user_id] + get_following_ids(db, user_id)
    return (
        db.query(Story)
        .filter(Story.author_id.in_(author_ids), Story.created_at >= _visible_since())
        .order_by(Story.created_at.asc(), Story.id.asc())
        .all()
    )

def get_story_set(db: Session, user_id: str) -> Dict[str, List[str]]:
    """Map each author with active stories to their story URLs in posting order.

    Authors appear in the order of their oldest active story.
    """
    story_set: Dict[str, List[str]] = {}
    for story in get_active_stories(db, user_id):
        story_set.setdefault(story.author_id, []).append(story.media["src"])
    return story_set

def get_story_authors(db: Session, user_id: str) -> List[User]:
    author_ids = list(get_story_set(db, user_id).keys())
    users = {user.id: user for user in get_users_by_ids(db, author_ids)}
    return [users[author_id] for author_id in author_ids if author_id in users]

def create_story(db: Session, story_in: StoryCreate, author_id: str) -> Story:
    """Create new story"""
    logger.info(f"Creating story for author ID: {author_id}")
    story = Story(
        id=str(uuid.uuid4()),
        author_id=author_id,
        media=story_in.media.model_dump(),
    )
    db.add(story)
    db.commit()
    db.refresh(story)
    return story

def get_viewed_authors(db: Session, viewer_id: str) -> List[str]:
    """Authors whose stories the viewer has seen since their newest story"""
    views = db.query(StoryView).filter(StoryView.viewer_id == viewer_id).all()
    if not views:
        return []

    newest: Dict[str, datetime] = {}
    stories = (
        db.query(Story)
        .filter(Story.author_id.in_([view.author_id for view in views]))
        .all()
    )
    for story in stories:
        if story.author_id not in newest or story.created_at > newest[story.author_id]:
            newest[story.author_id] = story.created_at

    return [
        view.author_id for view in views
        if view.author_id not in newest or view.viewed_at >= newest[view.author_id]
    ]

def mark_viewed(db: Session, viewer_id: str, author_id: str) -> List[str]:
    """Record that the viewer watched the author's stories (idempotent)"""
    view = db.query(StoryView).filter(
        StoryView.viewer_id == viewer_id,
        StoryView.author_id == author_id,
    ).first()
    if view:
        view.viewed_at = utcnow()
    else:
        db.add(StoryView(viewer_id=viewer_id, author_id=author_id, viewed_at=utcnow()))
    db.commit()
    return get_viewed_authors(db, viewer_id)
