# taskflow/board/board_router.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from taskflow.auth.auth_router import current_user_id
from taskflow.board.board_query import SORT_KEYS, filter_tasks, sort_tasks, subtask_progress, tasks_by_column
from taskflow.board.board_service import BoardService
from taskflow.board.board_state import ColumnNotFoundError, SubtaskNotFoundError, TaskNotFoundError
from taskflow.board.board_store import get_store
from taskflow.notification.notification_service import notifications
from taskflow.schemas.board_schema import (
    BoardRead,
    BoardState,
    Category,
    ColumnCreate,
    DragEvent,
    Priority,
    SubtaskCreate,
    SubtaskProgress,
    Task,
    TaskCreate,
    TaskStatus,
    TaskUpdate,
)

router = APIRouter(
    prefix="/board",
    tags=["board"],
)

_service: Optional[BoardService] = None


def get_board_service() -> BoardService:
    global _service
    if _service is None:
        _service = BoardService(get_store(), notifications)
    return _service


def _read(state: BoardState, user_id: int) -> BoardRead:
    progress = {}
    for task in state.tasks:
        completed, total = subtask_progress(task)
        progress[task.id] = SubtaskProgress(completed=completed, total=total)
    return BoardRead(
        tasks=state.tasks,
        columns=state.columns,
        active_drag=state.active_drag,
        layout={cid: [t.id for t in tasks] for cid, tasks in tasks_by_column(state).items()},
        progress=progress,
        unread_notifications=notifications.unread_count(user_id),
    )


def _not_found(exc: Exception):
    if isinstance(exc, TaskNotFoundError):
        return HTTPException(404, "Task not found")
    if isinstance(exc, SubtaskNotFoundError):
        return HTTPException(404, "Subtask not found")
    return HTTPException(404, "Column not found")


# ==========================
#  BOARD
# ==========================
@router.get("/", response_model=BoardRead)
def get_board(
    refresh: bool = False,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    return _read(service.snapshot(user_id, refresh=refresh), user_id)


@router.get("/tasks", response_model=list[Task])
def list_tasks(
    search: Optional[str] = None,
    priority: Optional[Priority] = None,
    category: Optional[Category] = None,
    status: Optional[TaskStatus] = None,
    column_id: Optional[str] = None,
    sort: str = "order",
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    if sort not in SORT_KEYS:
        raise HTTPException(400, f"sort must be one of: {', '.join(SORT_KEYS)}")

    tasks = filter_tasks(
        service.snapshot(user_id).tasks,
        search=search,
        priority=priority,
        category=category,
        status=status,
        column_id=column_id,
    )
    return sort_tasks(tasks, sort)


# ==========================
#  TASKS
# ==========================
@router.post("/tasks", response_model=BoardRead, status_code=201)
def create_task(
    data: TaskCreate,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    return _read(service.add_task(user_id, data), user_id)


@router.patch("/tasks/{task_id}", response_model=BoardRead)
def update_task(
    task_id: str,
    data: TaskUpdate,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    try:
        state = service.update_task(user_id, task_id, data)
    except TaskNotFoundError as exc:
        raise _not_found(exc)
    return _read(state, user_id)


@router.post("/tasks/{task_id}/toggle", response_model=BoardRead)
def toggle_task(
    task_id: str,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    try:
        state = service.toggle_task_complete(user_id, task_id)
    except TaskNotFoundError as exc:
        raise _not_found(exc)
    return _read(state, user_id)


@router.delete("/tasks/{task_id}", response_model=BoardRead)
def delete_task(
    task_id: str,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    try:
        state = service.delete_task(user_id, task_id)
    except TaskNotFoundError as exc:
        raise _not_found(exc)
    return _read(state, user_id)


# ==========================
#  COLUMNS
# ==========================
@router.post("/columns", response_model=BoardRead)
def create_column(
    data: ColumnCreate,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    # blank titles are ignored, the board comes back unchanged
    return _read(service.add_column(user_id, data.title), user_id)


@router.delete("/columns/{column_id}", response_model=BoardRead)
def delete_column(
    column_id: str,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    try:
        state = service.delete_column(user_id, column_id)
    except ColumnNotFoundError as exc:
        raise _not_found(exc)
    return _read(state, user_id)


# ==========================
#  SUBTASKS
# ==========================
@router.post("/tasks/{task_id}/subtasks", response_model=BoardRead, status_code=201)
def create_subtask(
    task_id: str,
    data: SubtaskCreate,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    try:
        state = service.add_subtask(user_id, task_id, data)
    except TaskNotFoundError as exc:
        raise _not_found(exc)
    return _read(state, user_id)


@router.post("/tasks/{task_id}/subtasks/{subtask_id}/toggle", response_model=BoardRead)
def toggle_subtask(
    task_id: str,
    subtask_id: str,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    try:
        state = service.toggle_subtask_complete(user_id, task_id, subtask_id)
    except (TaskNotFoundError, SubtaskNotFoundError) as exc:
        raise _not_found(exc)
    return _read(state, user_id)


@router.delete("/tasks/{task_id}/subtasks/{subtask_id}", response_model=BoardRead)
def delete_subtask(
    task_id: str,
    subtask_id: str,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    try:
        state = service.delete_subtask(user_id, task_id, subtask_id)
    except (TaskNotFoundError, SubtaskNotFoundError) as exc:
        raise _not_found(exc)
    return _read(state, user_id)


# ==========================
#  DRAG AND DROP
# ==========================
@router.post("/drag/start", response_model=BoardRead)
def drag_start(
    event: DragEvent,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    return _read(service.drag_start(user_id, event.active), user_id)


@router.post("/drag/over", response_model=BoardRead)
def drag_over(
    event: DragEvent,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    return _read(service.drag_over(user_id, event.active, event.over), user_id)


@router.post("/drag/end", response_model=BoardRead)
def drag_end(
    event: DragEvent,
    user_id: int = Depends(current_user_id),
    service: BoardService = Depends(get_board_service),
):
    return _read(service.drag_end(user_id, event.active, event.over), user_id)
