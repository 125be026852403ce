from sqlalchemy import Column, String, DateTime, Text, ForeignKey, JSON, Index

from instaplus.db.session import Base, utcnow

class Post(Base):
    __tablename__ = "posts"

    id = Column(String, primary_key=True, index=True)
    author_id = Column(String, ForeignKey("users.id"), index=True)
    caption = Column(Text, default="")
    media = Column(JSON, default=list)  # ordered list of media items
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Feed pages walk (created_at, id) newest first
    __table_args__ = (
        Index("ix_posts_created_at_id", "created_at", "id"),
    )
