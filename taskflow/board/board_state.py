"""
Board state transitions.

Every operation takes the current BoardState and returns a new one; entities
are replaced via ``model_copy`` so their identity (id) is preserved while the
old snapshot stays untouched. The service layer owns the current snapshot and
is the only caller.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, TypeVar

from taskflow.schemas.board_schema import (
    BoardState,
    Column,
    DragItem,
    DragOrigin,
    ItemType,
    Subtask,
    SubtaskCreate,
    Task,
    TaskCreate,
    TaskStatus,
    TaskUpdate,
)

FALLBACK_COLUMN_ID = "backlog"

DEFAULT_COLUMNS = [
    ("backlog", "Backlog"),
    ("todo", "To Do"),
    ("in-progress", "In Progress"),
    ("done", "Done"),
]

T = TypeVar("T")


class BoardError(Exception):
    pass


class TaskNotFoundError(BoardError):
    pass


class ColumnNotFoundError(BoardError):
    pass


class SubtaskNotFoundError(BoardError):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


def default_board() -> BoardState:
    columns = [Column(id=cid, title=title, order=i) for i, (cid, title) in enumerate(DEFAULT_COLUMNS)]
    return BoardState(columns=columns)


# -------------------------
# Lookups
# -------------------------

def find_task(state: BoardState, task_id: str) -> Optional[Task]:
    return next((t for t in state.tasks if t.id == task_id), None)


def find_column(state: BoardState, column_id: str) -> Optional[Column]:
    return next((c for c in state.columns if c.id == column_id), None)


def _task_index(state: BoardState, task_id: str) -> int:
    for i, task in enumerate(state.tasks):
        if task.id == task_id:
            return i
    return -1


def _column_index(state: BoardState, column_id: str) -> int:
    for i, column in enumerate(state.columns):
        if column.id == column_id:
            return i
    return -1


def _require_task(state: BoardState, task_id: str) -> Task:
    task = find_task(state, task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    return task


def _replace_task(state: BoardState, updated: Task) -> BoardState:
    tasks = [updated if t.id == updated.id else t for t in state.tasks]
    return state.model_copy(update={"tasks": tasks})


def array_move(items: list[T], from_index: int, to_index: int) -> list[T]:
    """Reposition one element: remove it at ``from_index``, insert at ``to_index``.

    Relative order of all other elements is preserved (not a swap).
    """
    moved = list(items)
    item = moved.pop(from_index)
    moved.insert(to_index, item)
    return moved


# -------------------------
# Tasks
# -------------------------

def add_task(state: BoardState, data: TaskCreate) -> BoardState:
    column_id = state.columns[0].id if state.columns else FALLBACK_COLUMN_ID
    task = Task(
        id=_new_id(),
        title=data.title,
        description=data.description,
        due_date=data.due_date,
        priority=data.priority,
        category=data.category,
        column_id=column_id,
        subtasks=[],
        order=len(state.tasks),
        created_at=datetime.utcnow(),
    )
    return state.model_copy(update={"tasks": [*state.tasks, task]})


def update_task(state: BoardState, task_id: str, changes: TaskUpdate) -> BoardState:
    task = _require_task(state, task_id)
    # None means "leave as is"
    update = changes.model_dump(exclude_none=True)
    return _replace_task(state, task.model_copy(update=update))


def toggle_task_complete(state: BoardState, task_id: str) -> BoardState:
    task = _require_task(state, task_id)
    status = TaskStatus.INCOMPLETE if task.status == TaskStatus.COMPLETED else TaskStatus.COMPLETED
    return _replace_task(state, task.model_copy(update={"status": status}))


def delete_task(state: BoardState, task_id: str) -> BoardState:
    _require_task(state, task_id)
    return state.model_copy(update={"tasks": [t for t in state.tasks if t.id != task_id]})


# -------------------------
# Columns
# -------------------------

def add_column(state: BoardState, title: str) -> BoardState:
    title = (title or "").strip()
    if not title:
        return state
    column = Column(id=_new_id(), title=title, order=len(state.columns))
    return state.model_copy(update={"columns": [*state.columns, column]})


def delete_column(state: BoardState, column_id: str) -> BoardState:
    """Remove a column, moving its tasks to the first remaining column.

    When no column remains the orphaned tasks are deleted instead.
    """
    if find_column(state, column_id) is None:
        raise ColumnNotFoundError(column_id)

    remaining = [c for c in state.columns if c.id != column_id]
    columns = [
        c.model_copy(update={"order": i}) if c.order is not None else c
        for i, c in enumerate(remaining)
    ]

    if columns:
        target = columns[0].id
        tasks = [
            t.model_copy(update={"column_id": target}) if t.column_id == column_id else t
            for t in state.tasks
        ]
    else:
        tasks = [t for t in state.tasks if t.column_id != column_id]

    return state.model_copy(update={"columns": columns, "tasks": tasks})


# -------------------------
# Subtasks
# -------------------------

def new_subtask(data: SubtaskCreate) -> Subtask:
    return Subtask(
        id=_new_id(),
        title=data.title,
        description=data.description,
        due_date=data.due_date,
        completed=False,
    )


def insert_subtask(subtasks: list[Subtask], subtask: Subtask) -> list[Subtask]:
    # sorted() is stable: equal due dates keep insertion order
    return sorted([*subtasks, subtask], key=lambda s: s.due_date)


def flip_subtask(subtasks: list[Subtask], subtask_id: str) -> list[Subtask]:
    if not any(s.id == subtask_id for s in subtasks):
        raise SubtaskNotFoundError(subtask_id)
    return [
        s.model_copy(update={"completed": not s.completed}) if s.id == subtask_id else s
        for s in subtasks
    ]


def remove_subtask(subtasks: list[Subtask], subtask_id: str) -> list[Subtask]:
    if not any(s.id == subtask_id for s in subtasks):
        raise SubtaskNotFoundError(subtask_id)
    return [s for s in subtasks if s.id != subtask_id]


def add_subtask(state: BoardState, task_id: str, subtask: Subtask) -> BoardState:
    task = _require_task(state, task_id)
    return _replace_task(state, task.model_copy(update={"subtasks": insert_subtask(task.subtasks, subtask)}))


def toggle_subtask_complete(state: BoardState, task_id: str, subtask_id: str) -> BoardState:
    task = _require_task(state, task_id)
    return _replace_task(state, task.model_copy(update={"subtasks": flip_subtask(task.subtasks, subtask_id)}))


def delete_subtask(state: BoardState, task_id: str, subtask_id: str) -> BoardState:
    task = _require_task(state, task_id)
    return _replace_task(state, task.model_copy(update={"subtasks": remove_subtask(task.subtasks, subtask_id)}))


# -------------------------
# Drag lifecycle
# -------------------------

def _exists(state: BoardState, item: DragItem) -> bool:
    if item.type == ItemType.TASK:
        return find_task(state, item.id) is not None
    return find_column(state, item.id) is not None


def is_valid_drop(state: BoardState, active: DragItem, over: Optional[DragItem]) -> bool:
    """True when the drop lands on something; dropping onto itself counts."""
    if over is None:
        return False
    return _exists(state, active) and _exists(state, over)


def drag_start(state: BoardState, active: DragItem) -> BoardState:
    if not _exists(state, active):
        return state
    origin = None
    if active.type == ItemType.TASK:
        index = _task_index(state, active.id)
        origin = DragOrigin(column_id=state.tasks[index].column_id, index=index)
    return state.model_copy(update={"active_drag": active, "drag_origin": origin})


def drag_over(state: BoardState, active: DragItem, over: Optional[DragItem]) -> BoardState:
    """Provisionally move a dragged task into the column under the pointer."""
    if active.type != ItemType.TASK or not is_valid_drop(state, active, over) or over.id == active.id:
        return state

    active_index = _task_index(state, active.id)
    task = state.tasks[active_index]

    if over.type == ItemType.TASK:
        over_task = find_task(state, over.id)
        if task.column_id == over_task.column_id:
            return state
        tasks = list(state.tasks)
        tasks[active_index] = task.model_copy(update={"column_id": over_task.column_id})
        tasks = array_move(tasks, active_index, _task_index(state, over.id))
        return state.model_copy(update={"tasks": tasks})

    if task.column_id == over.id:
        return state
    return _replace_task(state, task.model_copy(update={"column_id": over.id}))


def _renumber_tasks(tasks: list[Task]) -> list[Task]:
    return [
        t.model_copy(update={"order": i}) if t.order is not None and t.order != i else t
        for i, t in enumerate(tasks)
    ]


def _renumber_columns(columns: list[Column]) -> list[Column]:
    return [
        c.model_copy(update={"order": i}) if c.order is not None and c.order != i else c
        for i, c in enumerate(columns)
    ]


def _commit_column(state: BoardState, active: DragItem, over: DragItem) -> BoardState:
    if over.type == ItemType.TASK:
        target_id = find_task(state, over.id).column_id
    else:
        target_id = over.id
    from_index = _column_index(state, active.id)
    to_index = _column_index(state, target_id)
    if to_index < 0 or from_index == to_index:
        return state
    columns = _renumber_columns(array_move(state.columns, from_index, to_index))
    return state.model_copy(update={"columns": columns})


def _commit_task(state: BoardState, active: DragItem, over: DragItem) -> BoardState:
    tasks = list(state.tasks)
    active_index = _task_index(state, active.id)

    if over.type == ItemType.TASK:
        over_index = _task_index(state, over.id)
        column_id = tasks[over_index].column_id
        to_index = over_index
    else:
        column_id = over.id
        # after the last task already in that column, or in place if it is empty
        in_column = [i for i, t in enumerate(tasks) if t.column_id == column_id and i != active_index]
        if in_column:
            last = in_column[-1]
            to_index = last if last > active_index else last + 1
        else:
            to_index = active_index

    if tasks[active_index].column_id != column_id:
        tasks[active_index] = tasks[active_index].model_copy(update={"column_id": column_id})

    tasks = _renumber_tasks(array_move(tasks, active_index, to_index))
    return state.model_copy(update={"tasks": tasks})


def _restore_origin(state: BoardState, active: DragItem) -> list[Task]:
    # only the dragged task goes back; other tasks may have changed meanwhile
    origin = state.drag_origin
    index = _task_index(state, active.id)
    if origin is None or index < 0:
        return state.tasks
    tasks = list(state.tasks)
    task = tasks.pop(index)
    if task.column_id != origin.column_id:
        task = task.model_copy(update={"column_id": origin.column_id})
    tasks.insert(min(origin.index, len(tasks)), task)
    return tasks


def drag_end(state: BoardState, active: DragItem, over: Optional[DragItem]) -> BoardState:
    """Commit the drop, or cancel it when there is no target.

    A cancelled drag puts the dragged task back in the column and position it
    had at drag start. Dropping an item onto itself keeps whatever the hover
    already did.
    """
    idle = {"active_drag": None, "drag_origin": None}

    if not is_valid_drop(state, active, over):
        if active.type == ItemType.TASK:
            idle["tasks"] = _restore_origin(state, active)
        return state.model_copy(update=idle)

    if over.id == active.id:
        if active.type == ItemType.TASK:
            idle["tasks"] = _renumber_tasks(state.tasks)
        return state.model_copy(update=idle)

    if active.type == ItemType.COLUMN:
        committed = _commit_column(state, active, over)
    else:
        committed = _commit_task(state, active, over)
    return committed.model_copy(update=idle)
