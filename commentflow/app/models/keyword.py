# commentflow/app/models/keyword.py
"""
Keyword Model
"""

from typing import Any, Dict

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from commentflow.app.database import Base
from commentflow.app.models.user import utcnow


class Keyword(Base):
    """Classification keyword; active keywords form the dictionary"""

    __tablename__ = "keywords"

    id = Column(Integer, primary_key=True, autoincrement=True)
    word = Column(String(100), nullable=False, unique=True, comment="Lowercased word")
    active = Column(Boolean, nullable=False, default=True, index=True)
    description = Column(Text, comment="Why the word is in the dictionary")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Keyword(word='{self.word}', active={self.active})>"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "word": self.word, "active": self.active}
