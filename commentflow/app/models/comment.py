# commentflow/app/models/comment.py
"""
Comment Model
A comment moving through the translate -> classify lifecycle
"""

import enum
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from commentflow.app.database import Base
from commentflow.app.models.user import utcnow


class CommentStatus(str, enum.Enum):
    """Comment lifecycle state"""

    NEW = "new"
    PROCESSING = "processing"
    APPROVED = "approved"
    REJECTED = "rejected"


class Comment(Base):
    """
    Comment imported from the content source

    ``status`` is only changed through the comment state machine.
    """

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(
        Integer, nullable=False, unique=True, index=True, comment="Content source id"
    )
    post_id = Column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning post",
    )

    name = Column(String(500), comment="Comment title/author name")
    email = Column(String(255), comment="Author email")
    body = Column(Text, comment="Original text")
    translated_body = Column(Text, nullable=True, comment="Translated text")

    status = Column(
        SQLEnum(CommentStatus),
        nullable=False,
        default=CommentStatus.NEW,
        index=True,
        comment="Lifecycle state",
    )
    keyword_count = Column(Integer, nullable=True, comment="Distinct keywords matched")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    post = relationship("Post", back_populates="comments")

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, status='{self.status}')>"

    @property
    def classification_text(self) -> Optional[str]:
        """Translated body when present, otherwise the original body"""
        if self.translated_body and self.translated_body.strip():
            return self.translated_body
        if self.body and self.body.strip():
            return self.body
        return None

    @property
    def is_terminal(self) -> bool:
        return self.status in (CommentStatus.APPROVED, CommentStatus.REJECTED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "post_id": self.post_id,
            "name": self.name,
            "email": self.email,
            "body": self.body,
            "translated_body": self.translated_body,
            "status": self.status.value if self.status else None,
            "keyword_count": self.keyword_count,
        }
