from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint

from instaplus.db.session import Base, utcnow

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    username = Column(String, unique=True, index=True)
    full_name = Column(String, nullable=True)
    profile_pic = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

# Directed follow edge: follower_id follows followed_id
class Follow(Base):
    __tablename__ = "follows"

    follower_id = Column(String, ForeignKey("users.id"), primary_key=True)
    followed_id = Column(String, ForeignKey("users.id"), primary_key=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("follower_id", "followed_id", name="unique_follow"),
        CheckConstraint("follower_id != followed_id", name="no_self_follow"),
    )
