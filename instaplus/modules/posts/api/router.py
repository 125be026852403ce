from typing import Any, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from instaplus.core.config import settings
from instaplus.db.session import get_db
from instaplus.deps import get_current_user
from instaplus.modules.users.models.user import User
from instaplus.modules.posts.schemas.post import Post as PostSchema, PostCreate, PostPage
from instaplus.modules.posts.services.post import (
    FEED_SCOPES, InvalidCursor, create_post, get_feed_page, post_with_author
)

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("", response_model=PostPage)
def read_posts(
    db: Session = Depends(get_db),
    limit: int = Query(settings.FEED_PAGE_SIZE, ge=1, le=settings.FEED_MAX_PAGE_SIZE),
    cursor: Optional[str] = Query(None),
    scope: str = Query("following"),
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Retrieve one page of the feed and the cursor of the next page.
    """
    if scope not in FEED_SCOPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"scope must be one of: {', '.join(FEED_SCOPES)}",
        )
    try:
        return get_feed_page(db, current_user.id, cursor=cursor, limit=limit, scope=scope)
    except InvalidCursor as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.post("", response_model=PostSchema, status_code=status.HTTP_201_CREATED)
def create_new_post(
    *,
    db: Session = Depends(get_db),
    post_in: PostCreate,
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Create new post from already uploaded media.
    """
    post = create_post(db, post_in, current_user.id)
    return post_with_author(post, current_user)
