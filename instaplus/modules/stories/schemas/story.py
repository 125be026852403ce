from typing import List
from datetime import datetime

from instaplus.modules.media.schemas import MediaItem
from instaplus.modules.users.schemas.user import CamelModel

class StoryCreate(CamelModel):
    media: MediaItem

class Story(CamelModel):
    """Story model returned to client"""
    id: str
    author_id: str
    media: MediaItem
    created_at: datetime

class ViewedUpdate(CamelModel):
    author_id: str

class StoriesViewed(CamelModel):
    stories_viewed: List[str]
