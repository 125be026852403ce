# Implements token-related functionality:
# JWT access token generation (used by the user provisioning script and tests)
# JWT access token verification for REST dependencies and the realtime socket
# Token issuance flows (login, registration, OAuth) live outside this service

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union
import logging

from jose import jwt, JWTError

from instaplus.core.config import settings

logger = logging.getLogger("instaplus")

def create_access_token(subject: Union[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"exp": expire, "sub": str(subject)}
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt

def verify_access_token(token: str) -> Optional[str]:
    """Return the user id carried by a valid token, or None"""
    if not token:
        return None
    try:
        # jose checks the exp claim itself
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        user_id: str = payload.get("sub")
        if user_id is None:
            logger.warning("Token payload missing 'sub' field")
            return None

        return user_id
    except JWTError as e:
        logger.warning(f"JWT verification error: {e}")
        return None
