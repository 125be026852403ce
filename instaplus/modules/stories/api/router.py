from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from instaplus.db.session import get_db
from instaplus.deps import get_current_user
from instaplus.modules.users.models.user import User
from instaplus.modules.users.schemas.user import UserSummary
from instaplus.modules.users.services.user import get_user
from instaplus.modules.stories.schemas.story import (
    Story as StorySchema, StoryCreate, StoriesViewed, ViewedUpdate
)
from instaplus.modules.stories.services.story import (
    create_story, get_story_authors, get_story_set, get_viewed_authors, mark_viewed
)

router = APIRouter()

@router.get("", response_model=Dict[str, List[str]])
def read_stories(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Map of author id to story URLs for the current user's story tray"""
    return get_story_set(db, current_user.id)

@router.post("", response_model=StorySchema, status_code=status.HTTP_201_CREATED)
def create_new_story(
    story_in: StoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Create a story from an already uploaded media item"""
    return create_story(db, story_in, current_user.id)

@router.get("/users", response_model=List[UserSummary])
def read_story_authors(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Profiles of the authors in the story tray, in tray order"""
    return get_story_authors(db, current_user.id)

@router.get("/viewed", response_model=StoriesViewed)
def read_viewed(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Authors whose current stories the user has already watched"""
    return StoriesViewed(stories_viewed=get_viewed_authors(db, current_user.id))

@router.patch("/viewed", response_model=StoriesViewed)
def update_viewed(
    viewed_in: ViewedUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Mark an author's stories as watched"""
    if not get_user(db, viewed_in.author_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return StoriesViewed(stories_viewed=mark_viewed(db, current_user.id, viewed_in.author_id))
