from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Index

from instaplus.db.session import Base, utcnow

class Story(Base):
    __tablename__ = "stories"

    id = Column(String, primary_key=True, index=True)
    author_id = Column(String, ForeignKey("users.id"), index=True)
    media = Column(JSON, nullable=False)  # single media item
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("ix_stories_author_created", "author_id", "created_at"),
    )

# Per viewer record of the last time an author's stories were watched
class StoryView(Base):
    __tablename__ = "story_views"

    viewer_id = Column(String, ForeignKey("users.id"), primary_key=True)
    author_id = Column(String, ForeignKey("users.id"), primary_key=True)
    viewed_at = Column(DateTime, default=utcnow, onupdate=utcnow)
