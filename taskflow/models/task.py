# taskflow/models/task.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from taskflow.database import Base


class TaskRecord(Base):
    """One task document under users/{uid}/tasks; subtasks are embedded."""

    __tablename__ = "board_tasks"

    id = Column(String(64), primary_key=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)

    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    due_date = Column(DateTime, nullable=False)

    priority = Column(String, nullable=True)   # Low | Medium | High
    category = Column(String, nullable=True)   # Work | Personal | Home | Other
    status = Column(String, nullable=False, default="incomplete")

    column_id = Column(String(64), nullable=False)
    subtasks = Column(JSON, nullable=False, default=list)

    # explicit user order vs. position in the board array
    sort_order = Column(Integer, nullable=True)
    position = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
