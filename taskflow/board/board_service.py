"""
Per-user board sessions.

The in-memory BoardState is the source of truth for the UI. Each operation is
applied to it first and then written to the store; a failed write is reported
as an error notification and the in-memory state is kept as is. Callbacks for
one user run one at a time under the session lock.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from taskflow.board import board_state
from taskflow.board.board_store import BoardStore, PersistenceError, SubtaskChange
from taskflow.notification.notification_service import NotificationCenter
from taskflow.schemas.board_schema import (
    BoardState,
    DragItem,
    SubtaskCreate,
    TaskCreate,
    TaskUpdate,
)

logger = logging.getLogger("taskflow.board")


@dataclass
class BoardSession:
    user_id: int
    state: BoardState
    lock: threading.Lock = field(default_factory=threading.Lock)
    # snapshot taken at drag start; committed against on drag end
    drag_base: Optional[BoardState] = None


class BoardService:
    def __init__(self, store: BoardStore, notifications: NotificationCenter):
        self.store = store
        self.notifications = notifications
        self._sessions: dict[int, BoardSession] = {}
        self._lock = threading.Lock()

    # -------------------------
    # Sessions
    # -------------------------

    def _load(self, user_id: int) -> BoardState:
        try:
            state = self.store.load(user_id)
        except PersistenceError as exc:
            self._report(user_id, "Could not load your board", exc)
            return board_state.default_board()

        if not state.tasks and not state.columns:
            seeded = board_state.default_board()
            self._write(user_id, lambda: self.store.commit(user_id, state, seeded))
            return seeded
        return state

    def session(self, user_id: int) -> BoardSession:
        with self._lock:
            session = self._sessions.get(user_id)
            if session is None:
                session = BoardSession(user_id=user_id, state=self._load(user_id))
                self._sessions[user_id] = session
            return session

    def snapshot(self, user_id: int, refresh: bool = False) -> BoardState:
        session = self.session(user_id)
        if refresh:
            with session.lock:
                # remote copy wins over anything not yet written
                session.state = self._load(user_id)
                session.drag_base = None
        return session.state

    # -------------------------
    # Persistence
    # -------------------------

    def _report(self, user_id: int, title: str, exc: Exception, task_id: Optional[str] = None) -> None:
        logger.warning(
            "board_persistence_failed",
            exc_info=exc,
            extra={"user_id": user_id, "task_id": task_id, "error_type": type(exc).__name__},
        )
        self.notifications.create_notification(
            user_id=user_id,
            title=title,
            message=str(exc),
            type="error",
            task_id=task_id,
        )

    def _write(self, user_id: int, write: Callable[[], None], task_id: Optional[str] = None) -> None:
        try:
            write()
        except (PersistenceError, board_state.BoardError) as exc:
            self._report(user_id, "Your last change could not be saved", exc, task_id)

    def _apply(self, user_id: int, op: Callable[[BoardState], BoardState]) -> BoardState:
        session = self.session(user_id)
        with session.lock:
            before = session.state
            after = op(before)
            session.state = after
            if after is not before:
                self._write(user_id, lambda: self.store.commit(user_id, before, after))
            return after

    def _apply_subtasks(
        self,
        user_id: int,
        task_id: str,
        op: Callable[[BoardState], BoardState],
        change: SubtaskChange,
    ) -> BoardState:
        session = self.session(user_id)
        with session.lock:
            session.state = op(session.state)
            self._write(user_id, lambda: self.store.mutate_subtasks(user_id, task_id, change), task_id)
            return session.state

    # -------------------------
    # Tasks and columns
    # -------------------------

    def add_task(self, user_id: int, data: TaskCreate) -> BoardState:
        state = self._apply(user_id, lambda s: board_state.add_task(s, data))
        logger.info("task_added", extra={"user_id": user_id, "task_id": state.tasks[-1].id})
        return state

    def update_task(self, user_id: int, task_id: str, changes: TaskUpdate) -> BoardState:
        return self._apply(user_id, lambda s: board_state.update_task(s, task_id, changes))

    def toggle_task_complete(self, user_id: int, task_id: str) -> BoardState:
        return self._apply(user_id, lambda s: board_state.toggle_task_complete(s, task_id))

    def delete_task(self, user_id: int, task_id: str) -> BoardState:
        state = self._apply(user_id, lambda s: board_state.delete_task(s, task_id))
        logger.info("task_deleted", extra={"user_id": user_id, "task_id": task_id})
        return state

    def add_column(self, user_id: int, title: str) -> BoardState:
        return self._apply(user_id, lambda s: board_state.add_column(s, title))

    def delete_column(self, user_id: int, column_id: str) -> BoardState:
        state = self._apply(user_id, lambda s: board_state.delete_column(s, column_id))
        logger.info("column_deleted", extra={"user_id": user_id, "column_id": column_id})
        return state

    # -------------------------
    # Subtasks
    # -------------------------

    def add_subtask(self, user_id: int, task_id: str, data: SubtaskCreate) -> BoardState:
        subtask = board_state.new_subtask(data)
        return self._apply_subtasks(
            user_id,
            task_id,
            lambda s: board_state.add_subtask(s, task_id, subtask),
            lambda subtasks: board_state.insert_subtask(subtasks, subtask),
        )

    def toggle_subtask_complete(self, user_id: int, task_id: str, subtask_id: str) -> BoardState:
        return self._apply_subtasks(
            user_id,
            task_id,
            lambda s: board_state.toggle_subtask_complete(s, task_id, subtask_id),
            lambda subtasks: board_state.flip_subtask(subtasks, subtask_id),
        )

    def delete_subtask(self, user_id: int, task_id: str, subtask_id: str) -> BoardState:
        return self._apply_subtasks(
            user_id,
            task_id,
            lambda s: board_state.delete_subtask(s, task_id, subtask_id),
            lambda subtasks: board_state.remove_subtask(subtasks, subtask_id),
        )

    # -------------------------
    # Drag lifecycle
    # -------------------------

    def drag_start(self, user_id: int, active: DragItem) -> BoardState:
        session = self.session(user_id)
        with session.lock:
            session.state = board_state.drag_start(session.state, active)
            session.drag_base = session.state
            return session.state

    def drag_over(self, user_id: int, active: DragItem, over: Optional[DragItem]) -> BoardState:
        session = self.session(user_id)
        with session.lock:
            # provisional only, nothing is written until the drop
            session.state = board_state.drag_over(session.state, active, over)
            return session.state

    def drag_end(self, user_id: int, active: DragItem, over: Optional[DragItem]) -> BoardState:
        session = self.session(user_id)
        with session.lock:
            base = session.drag_base or session.state
            current = session.state
            valid = board_state.is_valid_drop(current, active, over)
            after = board_state.drag_end(current, active, over)
            session.state = after
            session.drag_base = None

            if not valid:
                logger.info("drag_cancelled", extra={"user_id": user_id, "item_id": active.id})
                # edits made during the drag may have stored the provisional column
                if after.tasks != current.tasks:
                    self._write(user_id, lambda: self.store.commit(user_id, current, after))
                return after

            logger.info(
                "drag_committed",
                extra={"user_id": user_id, "item_type": active.type.value, "item_id": active.id, "over_id": over.id},
            )
            self._write(user_id, lambda: self.store.commit(user_id, base, after))
            return after
