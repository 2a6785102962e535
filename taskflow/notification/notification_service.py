from __future__ import annotations

import itertools
import threading
from datetime import datetime
from typing import Optional

from taskflow.schemas.notification_schema import NotificationRead


class NotificationCenter:
    """Per-user toast queue.

    Kept in process so that a failing database can still be reported.
    """

    def __init__(self, limit: int = 100):
        self.limit = limit
        self._items: dict[int, list[NotificationRead]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create_notification(
        self,
        *,
        user_id: int,
        title: str,
        message: str | None = None,
        type: str = "info",
        task_id: Optional[str] = None,
    ) -> NotificationRead:
        n = NotificationRead(
            id=next(self._ids),
            user_id=user_id,
            task_id=task_id,
            type=type,
            title=title,
            message=message,
            is_read=False,
            created_at=datetime.utcnow(),
        )
        with self._lock:
            items = self._items.setdefault(user_id, [])
            items.append(n)
            # drop the oldest once over the limit
            del items[:-self.limit]
        return n

    def list_notifications(self, user_id: int, limit: int = 30) -> list[NotificationRead]:
        with self._lock:
            items = list(self._items.get(user_id, []))
        return list(reversed(items))[:limit]

    def unread_count(self, user_id: int) -> int:
        with self._lock:
            return sum(1 for n in self._items.get(user_id, []) if not n.is_read)

    def mark_read(self, user_id: int, notification_id: int) -> Optional[NotificationRead]:
        with self._lock:
            items = self._items.get(user_id, [])
            for i, n in enumerate(items):
                if n.id == notification_id:
                    items[i] = n.model_copy(update={"is_read": True})
                    return items[i]
        return None

    def mark_all_read(self, user_id: int) -> None:
        with self._lock:
            items = self._items.get(user_id, [])
            self._items[user_id] = [n.model_copy(update={"is_read": True}) for n in items]

    def delete(self, user_id: int, notification_id: int) -> bool:
        with self._lock:
            items = self._items.get(user_id, [])
            kept = [n for n in items if n.id != notification_id]
            self._items[user_id] = kept
            return len(kept) != len(items)


notifications = NotificationCenter()
