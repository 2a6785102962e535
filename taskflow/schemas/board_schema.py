# taskflow/schemas/board_schema.py
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Category(str, Enum):
    WORK = "Work"
    PERSONAL = "Personal"
    HOME = "Home"
    OTHER = "Other"


class TaskStatus(str, Enum):
    INCOMPLETE = "incomplete"
    COMPLETED = "completed"


class ItemType(str, Enum):
    TASK = "Task"
    COLUMN = "Column"


class DatedModel(BaseModel):
    """Stores every date as naive UTC so naive and offset inputs stay comparable."""

    @field_validator("due_date", "created_at", check_fields=False)
    def to_naive_utc(cls, value):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


# --------- Board entities ----------
class Subtask(DatedModel):
    id: str
    title: str
    description: Optional[str] = None
    due_date: datetime
    completed: bool = False


class Task(DatedModel):
    id: str
    title: str
    description: Optional[str] = None
    due_date: datetime
    priority: Optional[Priority] = None
    category: Optional[Category] = None
    column_id: str
    subtasks: list[Subtask] = Field(default_factory=list)
    order: Optional[int] = None
    status: TaskStatus = TaskStatus.INCOMPLETE
    created_at: Optional[datetime] = None


class Column(BaseModel):
    id: str
    title: str
    order: Optional[int] = None


class DragItem(BaseModel):
    type: ItemType
    id: str
    container_id: Optional[str] = None


class DragOrigin(BaseModel):
    column_id: str
    index: int


class BoardState(BaseModel):
    tasks: list[Task] = Field(default_factory=list)
    columns: list[Column] = Field(default_factory=list)

    # item currently held by the pointer, None when idle
    active_drag: Optional[DragItem] = None
    # where the dragged task sat when the drag started
    drag_origin: Optional[DragOrigin] = None


# --------- Pentru CREATE ----------
class TaskCreate(DatedModel):
    title: str
    description: Optional[str] = None
    due_date: datetime
    priority: Optional[Priority] = None
    category: Optional[Category] = None


class SubtaskCreate(DatedModel):
    title: str
    description: Optional[str] = None
    due_date: datetime


class ColumnCreate(BaseModel):
    title: str


# --------- Pentru UPDATE (PATCH) ----------
class TaskUpdate(DatedModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: Optional[Priority] = None
    category: Optional[Category] = None


# --------- Drag lifecycle ----------
class DragEvent(BaseModel):
    active: DragItem
    over: Optional[DragItem] = None


# --------- Pentru READ (răspunsuri) ----------
class SubtaskProgress(BaseModel):
    completed: int
    total: int


class BoardRead(BaseModel):
    tasks: list[Task]
    columns: list[Column]
    active_drag: Optional[DragItem] = None

    # task ids per column id, in display order
    layout: dict[str, list[str]] = Field(default_factory=dict)
    progress: dict[str, SubtaskProgress] = Field(default_factory=dict)
    unread_notifications: int = 0
