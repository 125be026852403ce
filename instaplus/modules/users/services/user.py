from typing import List, Optional
import uuid
import logging
from sqlalchemy.orm import Session

from instaplus.modules.users.models.user import User, Follow
from instaplus.modules.users.schemas.user import UserCreate, UserProfile, UserSummary

logger = logging.getLogger(__name__)

def get_user(db: Session, user_id: str) -> Optional[User]:
    """Get user by ID"""
    return db.query(User).filter(User.id == user_id).first()

def get_user_by_username(db: Session, username: str) -> Optional[User]:
    """Get user by username"""
    return db.query(User).filter(User.username == username).first()

def get_users_by_ids(db: Session, user_ids: List[str]) -> List[User]:
    if not user_ids:
        return []
    return db.query(User).filter(User.id.in_(user_ids)).all()

def create_user(db: Session, user_in: UserCreate) -> User:
    """Create new user"""
    user = User(id=str(uuid.uuid4()), **user_in.model_dump())
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {user.username} ({user.id})")
    return user

def get_following_ids(db: Session, user_id: str) -> List[str]:
    """IDs of the users that user_id follows"""
    rows = db.query(Follow.followed_id).filter(Follow.follower_id == user_id).all()
    return [row.followed_id for row in rows]

def get_follower_ids(db: Session, user_id: str) -> List[str]:
    rows = db.query(Follow.follower_id).filter(Follow.followed_id == user_id).all()
    return [row.follower_id for row in rows]

def follow_user(db: Session, follower_id: str, followed_id: str) -> Follow:
    """Create a follow edge, returning the existing one if already present"""
    existing = db.query(Follow).filter(
        Follow.follower_id == follower_id,
        Follow.followed_id == followed_id,
    ).first()
    if existing:
        return existing

    follow = Follow(follower_id=follower_id, followed_id=followed_id)
    db.add(follow)
    db.commit()
    db.refresh(follow)
    return follow

def unfollow_user(db: Session, follower_id: str, followed_id: str) -> bool:
    deleted = db.query(Follow).filter(
        Follow.follower_id == follower_id,
        Follow.followed_id == followed_id,
    ).delete()
    db.commit()
    return deleted > 0

def get_user_profile(db: Session, user: User) -> UserProfile:
    """Build a profile with follower and following summaries"""
    followers = get_users_by_ids(db, get_follower_ids(db, user.id))
    following = get_users_by_ids(db, get_following_ids(db, user.id))
    return UserProfile(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        profile_pic=user.profile_pic,
        created_at=user.created_at,
        followers=[UserSummary.model_validate(u) for u in followers],
        following=[UserSummary.model_validate(u) for u in following],
    )
