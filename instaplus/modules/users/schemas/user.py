from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """Base for every wire schema: camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

class UserSummary(CamelModel):
    id: str
    username: str
    full_name: Optional[str] = None
    profile_pic: Optional[str] = None

class User(UserSummary):
    """User model returned to client"""
    created_at: datetime

class UserProfile(User):
    """User with follow lists"""
    followers: List[UserSummary] = []
    following: List[UserSummary] = []

class UserCreate(BaseModel):
    username: str
    full_name: Optional[str] = None
    profile_pic: Optional[str] = None
