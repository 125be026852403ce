from typing import List, Optional, Tuple
from datetime import datetime
import base64
import binascii
import json
import logging
import uuid

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from instaplus.modules.posts.models.post import Post
from instaplus.modules.posts.schemas.post import Post as PostSchema, PostCreate, PostPage
from instaplus.modules.users.models.user import User
from instaplus.modules.users.schemas.user import UserSummary
from instaplus.modules.users.services.user import get_following_ids

logger = logging.getLogger(__name__)

FEED_SCOPES = ("following", "all")

class InvalidCursor(ValueError):
    """Raised when a feed cursor cannot be decoded"""

def encode_cursor(created_at: datetime, post_id: str) -> str:
    """Opaque token for the (created_at, id) keyset of the last item of a page"""
    raw = json.dumps([created_at.isoformat(), post_id]).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")

def decode_cursor(cursor: str) -> Tuple[datetime, str]:
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        created_at, post_id = json.loads(base64.urlsafe_b64decode(padded.encode()))
        return datetime.fromisoformat(created_at), str(post_id)
    except (binascii.Error, ValueError, TypeError) as e:
        raise InvalidCursor(f"Invalid cursor: {cursor!r}") from e

def get_post(db: Session, post_id: str) -> Optional[Post]:
    """Get post by ID"""
    return db.query(Post).filter(Post.id == post_id).first()

def get_feed_page(
    db: Session,
    user_id: str,
    cursor: Optional[str] = None,
    limit: int = 5,
    scope: str = "following",
) -> PostPage:
    """Get one page of the feed, newest first.

    The cursor names the last item already delivered; the page holds the
    items strictly after it in (created_at desc, id desc) order, so a page
    boundary is never re-issued.
    """
    logger.info(f"Getting feed page for user {user_id} scope={scope} cursor={cursor} limit={limit}")
    query = db.query(Post, User).join(User, User.id == Post.author_id)

    if scope == "following":
        author_ids = get_following_ids(db, user_id) + [user_id]
        query = query.filter(Post.author_id.in_(author_ids))

    if cursor:
        created_at, post_id = decode_cursor(cursor)
        query = query.filter(
            or_(
                Post.created_at < created_at,
                and_(Post.created_at == created_at, Post.id < post_id),
            )
        )

    rows = query.order_by(Post.created_at.desc(), Post.id.desc()).limit(limit + 1).all()
    has_more = len(rows) > limit
    rows = rows[:limit]

    items = [_to_schema(post, author) for post, author in rows]
    next_cursor = None
    if has_more and rows:
        last = rows[-1][0]
        next_cursor = encode_cursor(last.created_at, last.id)

    return PostPage(items=items, next_cursor=next_cursor)

def create_post(db: Session, post_in: PostCreate, author_id: str) -> Post:
    """Create new post"""
    logger.info(f"Creating post for author ID: {author_id} with {len(post_in.media)} media item(s)")
    post = Post(
        id=str(uuid.uuid4()),
        author_id=author_id,
        caption=post_in.caption,
        media=[item.model_dump() for item in post_in.media],
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post

def post_with_author(post: Post, author: User) -> PostSchema:
    return _to_schema(post, author)

def _to_schema(post: Post, author: User) -> PostSchema:
    return PostSchema(
        id=post.id,
        author_id=post.author_id,
        caption=post.caption or "",
        media=post.media or [],
        created_at=post.created_at,
        author=UserSummary.model_validate(author),
    )
