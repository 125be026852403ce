from typing import Any
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from instaplus.db.session import get_db
from instaplus.deps import get_current_user
from instaplus.modules.users.models.user import User
from instaplus.modules.users.schemas.user import UserProfile
from instaplus.modules.users.services.user import (
    follow_user, get_user, get_user_profile, unfollow_user
)

router = APIRouter()
logger = logging.getLogger("instaplus")

def _validate_user(db: Session, user_id: str) -> User:
    """Validate user exists and return user object or raise HTTPException"""
    user = get_user(db, user_id=user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user

@router.get("/me", response_model=UserProfile)
def read_user_me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Get current user with follow lists"""
    return get_user_profile(db, current_user)

@router.get("/{user_id}", response_model=UserProfile)
def read_user_by_id(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Get a specific user with follow lists"""
    return get_user_profile(db, _validate_user(db, user_id))

@router.post("/{user_id}/follow", response_model=UserProfile)
def follow(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Follow a user; following twice is a no-op"""
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot follow yourself",
        )
    _validate_user(db, user_id)
    follow_user(db, current_user.id, user_id)
    logger.info(f"User {current_user.id} now follows {user_id}")
    return get_user_profile(db, current_user)

@router.delete("/{user_id}/follow", response_model=UserProfile)
def unfollow(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Stop following a user"""
    _validate_user(db, user_id)
    unfollow_user(db, current_user.id, user_id)
    return get_user_profile(db, current_user)
