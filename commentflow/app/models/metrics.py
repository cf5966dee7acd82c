# commentflow/app/models/metrics.py
"""
User Metrics Model
Persisted per-user aggregates; always reconstructible from comment rows
"""

from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer

from commentflow.app.database import Base
from commentflow.app.models.user import utcnow


class UserMetrics(Base):
    """Latest computed metrics for one user"""

    __tablename__ = "user_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    total_comments = Column(Integer, nullable=False, default=0)
    approved_comments = Column(Integer, nullable=False, default=0)
    rejected_comments = Column(Integer, nullable=False, default=0)
    approval_rate = Column(Float, nullable=False, default=0.0)
    data = Column(JSON, default=dict, comment="Full metrics payload")
    calculated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            **(self.data or {}),
            "calculated_at": self.calculated_at.isoformat() if self.calculated_at else None,
        }
