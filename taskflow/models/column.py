# taskflow/models/column.py
from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, String
from taskflow.database import Base


class ColumnRecord(Base):
    __tablename__ = "board_columns"

    id = Column(String(64), primary_key=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)

    title = Column(String, nullable=False)

    sort_order = Column(Integer, nullable=True)
    position = Column(Integer, nullable=False, default=0)
