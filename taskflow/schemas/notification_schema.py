# taskflow/schemas/notification_schema.py
from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, ConfigDict


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    task_id: str | None = None
    type: str  # info | success | warning | error
    title: str
    message: str | None = None
    is_read: bool
    created_at: datetime
