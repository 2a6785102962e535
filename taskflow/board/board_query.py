from __future__ import annotations

from typing import Optional

from taskflow.schemas.board_schema import BoardState, Category, Priority, Task, TaskStatus

PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}

SORT_KEYS = ("order", "due_date", "priority", "title", "created_at")


def filter_tasks(
    tasks: list[Task],
    search: Optional[str] = None,
    priority: Optional[Priority] = None,
    category: Optional[Category] = None,
    status: Optional[TaskStatus] = None,
    column_id: Optional[str] = None,
) -> list[Task]:
    needle = search.strip().lower() if search else ""
    result = []
    for task in tasks:
        if needle and needle not in task.title.lower() and needle not in (task.description or "").lower():
            continue
        if priority is not None and task.priority != priority:
            continue
        if category is not None and task.category != category:
            continue
        if status is not None and task.status != status:
            continue
        if column_id is not None and task.column_id != column_id:
            continue
        result.append(task)
    return result


def sort_tasks(tasks: list[Task], key: str = "order") -> list[Task]:
    """Stable sort; tasks missing the key go last in their original order."""
    if key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {key}")

    def value(task: Task):
        if key == "priority":
            return PRIORITY_RANK.get(task.priority)
        if key == "title":
            return task.title.lower()
        return getattr(task, key)

    present = [t for t in tasks if value(t) is not None]
    missing = [t for t in tasks if value(t) is None]
    return sorted(present, key=value) + missing


def tasks_by_column(state: BoardState) -> dict[str, list[Task]]:
    grouped: dict[str, list[Task]] = {c.id: [] for c in state.columns}
    for task in state.tasks:
        grouped.setdefault(task.column_id, []).append(task)
    return grouped


def subtask_progress(task: Task) -> tuple[int, int]:
    completed = sum(1 for s in task.subtasks if s.completed)
    return completed, len(task.subtasks)
