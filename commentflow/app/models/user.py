# commentflow/app/models/user.py
"""
User and Post Models
Content owners and their posts, deduplicated by the content source id
"""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from commentflow.app.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Content author imported from the external source"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(
        Integer, nullable=False, unique=True, index=True, comment="Content source id"
    )
    username = Column(String(255), nullable=False, index=True, comment="Handle")
    name = Column(String(255), comment="Display name")
    email = Column(String(255), comment="Contact email")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    posts = relationship("Post", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "username": self.username,
            "name": self.name,
            "email": self.email,
        }


class Post(Base):
    """Post owned by a user"""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(
        Integer, nullable=False, unique=True, index=True, comment="Content source id"
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning user",
    )
    title = Column(String(500), nullable=False, comment="Post title")
    body = Column(Text, comment="Post body")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    user = relationship("User", back_populates="posts")
    comments = relationship(
        "Comment", back_populates="post", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Post(id={self.id}, title='{self.title[:30]}...')>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "user_id": self.user_id,
            "title": self.title,
            "body": self.body,
        }
