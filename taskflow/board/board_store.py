"""
Persistence collaborators for the board.

Three interchangeable stores, selected with ``BOARD_STORE``:

- ``memory``: snapshots kept in process, nothing survives a restart.
- ``json``: one file per collection under ``BOARD_DATA_DIR/<user>/``; every
  mutation rewrites the whole collection.
- ``sql``: one row per task/column document scoped by user. Mutations are
  applied per document (create, update or delete) and subtask edits are a
  locked read-modify-write of the parent task row.

All stores raise ``PersistenceError`` on failure; callers decide how to
report it.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Callable, Optional, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from taskflow.database import SessionLocal
from taskflow.models.column import ColumnRecord
from taskflow.models.task import TaskRecord
from taskflow.schemas.board_schema import BoardState, Column, Subtask, Task

logger = logging.getLogger("taskflow.store")

SubtaskChange = Callable[[list[Subtask]], list[Subtask]]

M = TypeVar("M", bound=BaseModel)


class PersistenceError(Exception):
    pass


def diff_documents(before: list[M], after: list[M]) -> tuple[list[tuple[int, M]], list[str]]:
    """Return (position, document) pairs that were created or changed, and deleted ids.

    A document whose position in the array moved counts as changed.
    """
    previous = {item.id: (i, item) for i, item in enumerate(before)}
    changed = [(i, item) for i, item in enumerate(after) if previous.get(item.id) != (i, item)]
    remaining = {item.id for item in after}
    deleted = [item_id for item_id in previous if item_id not in remaining]
    return changed, deleted


class BoardStore:
    def load(self, user_id: int) -> BoardState:
        raise NotImplementedError

    def commit(self, user_id: int, before: BoardState, after: BoardState) -> None:
        raise NotImplementedError

    def mutate_subtasks(self, user_id: int, task_id: str, change: SubtaskChange) -> None:
        raise NotImplementedError


# -------------------------
# In-memory
# -------------------------

class MemoryStore(BoardStore):
    def __init__(self):
        self._boards: dict[int, BoardState] = {}

    def load(self, user_id: int) -> BoardState:
        board = self._boards.get(user_id)
        if board is None:
            return BoardState()
        return BoardState(tasks=list(board.tasks), columns=list(board.columns))

    def commit(self, user_id: int, before: BoardState, after: BoardState) -> None:
        self._boards[user_id] = BoardState(tasks=list(after.tasks), columns=list(after.columns))

    def mutate_subtasks(self, user_id: int, task_id: str, change: SubtaskChange) -> None:
        board = self._boards.get(user_id)
        task = next((t for t in board.tasks if t.id == task_id), None) if board else None
        if task is None:
            raise PersistenceError(f"Task {task_id} is not stored")
        updated = task.model_copy(update={"subtasks": change(task.subtasks)})
        tasks = [updated if t.id == task_id else t for t in board.tasks]
        self._boards[user_id] = board.model_copy(update={"tasks": tasks})


# -------------------------
# Local JSON files
# -------------------------

class JsonFileStore(BoardStore):
    TASKS = "tasks"
    COLUMNS = "columns"

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, user_id: int, name: str) -> Path:
        return self.root / str(user_id) / f"{name}.json"

    def _read(self, user_id: int, name: str, model: type[M]) -> list[M]:
        path = self._path(user_id, name)
        if not path.exists():
            return []
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return [model.model_validate(item) for item in raw]
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise PersistenceError(f"Could not read {path}") from exc

    def _write(self, user_id: int, name: str, items: list[BaseModel]) -> None:
        path = self._path(user_id, name)
        tmp = path.with_suffix(".json.tmp")
        payload = [item.model_dump(mode="json") for item in items]
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as exc:
            raise PersistenceError(f"Could not write {path}") from exc

    def load(self, user_id: int) -> BoardState:
        return BoardState(
            tasks=self._read(user_id, self.TASKS, Task),
            columns=self._read(user_id, self.COLUMNS, Column),
        )

    def commit(self, user_id: int, before: BoardState, after: BoardState) -> None:
        if before.tasks != after.tasks:
            self._write(user_id, self.TASKS, after.tasks)
        if before.columns != after.columns:
            self._write(user_id, self.COLUMNS, after.columns)

    def mutate_subtasks(self, user_id: int, task_id: str, change: SubtaskChange) -> None:
        tasks = self._read(user_id, self.TASKS, Task)
        if not any(t.id == task_id for t in tasks):
            raise PersistenceError(f"Task {task_id} is not stored")
        tasks = [
            t.model_copy(update={"subtasks": change(t.subtasks)}) if t.id == task_id else t
            for t in tasks
        ]
        self._write(user_id, self.TASKS, tasks)


# -------------------------
# SQL documents
# -------------------------

def _dump_subtasks(subtasks: list[Subtask]) -> list[dict]:
    return [s.model_dump(mode="json") for s in subtasks]


def _task_from_row(row: TaskRecord) -> Task:
    return Task(
        id=row.id,
        title=row.title,
        description=row.description,
        due_date=row.due_date,
        priority=row.priority,
        category=row.category,
        column_id=row.column_id,
        subtasks=[Subtask.model_validate(s) for s in row.subtasks or []],
        order=row.sort_order,
        status=row.status,
        created_at=row.created_at,
    )


def _column_from_row(row: ColumnRecord) -> Column:
    return Column(id=row.id, title=row.title, order=row.sort_order)


class SqlStore(BoardStore):
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def load(self, user_id: int) -> BoardState:
        try:
            with self.session_factory() as db:
                task_rows = (
                    db.query(TaskRecord)
                    .filter(TaskRecord.user_id == user_id)
                    .order_by(TaskRecord.position)
                    .all()
                )
                column_rows = (
                    db.query(ColumnRecord)
                    .filter(ColumnRecord.user_id == user_id)
                    .order_by(ColumnRecord.position)
                    .all()
                )
                return BoardState(
                    tasks=[_task_from_row(r) for r in task_rows],
                    columns=[_column_from_row(r) for r in column_rows],
                )
        except SQLAlchemyError as exc:
            raise PersistenceError("Could not load board") from exc

    def commit(self, user_id: int, before: BoardState, after: BoardState) -> None:
        changed_tasks, deleted_tasks = diff_documents(before.tasks, after.tasks)
        changed_columns, deleted_columns = diff_documents(before.columns, after.columns)
        if not (changed_tasks or deleted_tasks or changed_columns or deleted_columns):
            return

        try:
            with self.session_factory.begin() as db:
                if deleted_tasks:
                    db.query(TaskRecord).filter(
                        TaskRecord.user_id == user_id, TaskRecord.id.in_(deleted_tasks)
                    ).delete(synchronize_session=False)
                if deleted_columns:
                    db.query(ColumnRecord).filter(
                        ColumnRecord.user_id == user_id, ColumnRecord.id.in_(deleted_columns)
                    ).delete(synchronize_session=False)

                for position, task in changed_tasks:
                    self._save_task(db, user_id, position, task)
                for position, column in changed_columns:
                    self._save_column(db, user_id, position, column)
        except SQLAlchemyError as exc:
            raise PersistenceError("Could not save board") from exc

        logger.debug(
            "board_committed",
            extra={
                "user_id": user_id,
                "tasks_written": len(changed_tasks),
                "tasks_deleted": len(deleted_tasks),
                "columns_written": len(changed_columns),
                "columns_deleted": len(deleted_columns),
            },
        )

    def _save_task(self, db, user_id: int, position: int, task: Task) -> None:
        row = db.get(TaskRecord, {"id": task.id, "user_id": user_id})
        if row is None:
            # subtasks are only written here on create; later edits go through mutate_subtasks
            row = TaskRecord(id=task.id, user_id=user_id, subtasks=_dump_subtasks(task.subtasks))
            db.add(row)

        row.title = task.title
        row.description = task.description
        row.due_date = task.due_date
        row.priority = task.priority.value if task.priority else None
        row.category = task.category.value if task.category else None
        row.status = task.status.value
        row.column_id = task.column_id
        row.sort_order = task.order
        row.position = position
        if task.created_at is not None:
            row.created_at = task.created_at

    def _save_column(self, db, user_id: int, position: int, column: Column) -> None:
        row = db.get(ColumnRecord, {"id": column.id, "user_id": user_id})
        if row is None:
            row = ColumnRecord(id=column.id, user_id=user_id)
            db.add(row)
        row.title = column.title
        row.sort_order = column.order
        row.position = position

    def mutate_subtasks(self, user_id: int, task_id: str, change: SubtaskChange) -> None:
        try:
            with self.session_factory.begin() as db:
                row = (
                    db.query(TaskRecord)
                    .filter(TaskRecord.user_id == user_id, TaskRecord.id == task_id)
                    .with_for_update()
                    .one_or_none()
                )
                if row is None:
                    raise PersistenceError(f"Task {task_id} is not stored")
                current = [Subtask.model_validate(s) for s in row.subtasks or []]
                row.subtasks = _dump_subtasks(change(current))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not update subtasks of task {task_id}") from exc


def get_store(kind: Optional[str] = None) -> BoardStore:
    kind = (kind or os.getenv("BOARD_STORE", "sql")).lower()
    if kind == "memory":
        return MemoryStore()
    if kind == "json":
        return JsonFileStore(os.getenv("BOARD_DATA_DIR", "./board-data"))
    if kind == "sql":
        return SqlStore()
    raise ValueError(f"Unknown BOARD_STORE: {kind}")
