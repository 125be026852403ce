from typing import List, Optional
from datetime import datetime
from pydantic import Field, field_validator

from instaplus.core.config import settings
from instaplus.modules.media.schemas import MediaItem
from instaplus.modules.users.schemas.user import CamelModel, UserSummary

class PostCreate(CamelModel):
    caption: str = ""
    media: List[MediaItem] = Field(default_factory=list)

    @field_validator("caption")
    @classmethod
    def caption_length(cls, v: str) -> str:
        if len(v) > settings.CAPTION_MAX_CHARS:
            raise ValueError(f"Caption must be at most {settings.CAPTION_MAX_CHARS} characters")
        return v

    @field_validator("media")
    @classmethod
    def media_count(cls, v: List[MediaItem]) -> List[MediaItem]:
        if not v:
            raise ValueError("Add at least one image or video")
        if len(v) > settings.MAX_UPLOAD_FILES:
            raise ValueError(f"A post holds at most {settings.MAX_UPLOAD_FILES} media items")
        return v

class Post(CamelModel):
    """Post model returned to client"""
    id: str
    author_id: str
    caption: str
    media: List[MediaItem]
    created_at: datetime
    author: Optional[UserSummary] = None

class PostPage(CamelModel):
    """One page of the feed plus the cursor of the next page"""
    items: List[Post]
    next_cursor: Optional[str] = None
