"""Shared fixtures for the TaskFlow board tests."""

import itertools
import os
import tempfile
import uuid
from datetime import datetime

import pytest

# Configure the app before anything from taskflow is imported
_tmp_dir = tempfile.mkdtemp(prefix="taskflow-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["PASSWORD_SCHEMES"] = "pbkdf2_sha256"
os.environ["BOARD_STORE"] = "memory"
os.environ["LOG_LEVEL"] = "WARNING"

from fastapi.testclient import TestClient  # noqa: E402

from taskflow.main import app  # noqa: E402
from taskflow.board.board_router import get_board_service  # noqa: E402
from taskflow.board.board_service import BoardService  # noqa: E402
from taskflow.board.board_store import MemoryStore  # noqa: E402
from taskflow.notification.notification_service import notifications  # noqa: E402
from taskflow.schemas.board_schema import (  # noqa: E402
    BoardState,
    Column,
    DragItem,
    ItemType,
    Subtask,
    Task,
)

_user_ids = itertools.count(1000)


def day(n: int) -> datetime:
    return datetime(2026, 1, n)


def make_task(task_id: str, column_id: str, order=None, **kwargs) -> Task:
    fields = {"title": f"Task {task_id}", "due_date": day(10)}
    fields.update(kwargs)
    return Task(id=task_id, column_id=column_id, order=order, **fields)


def make_subtask(subtask_id: str, due: int, completed: bool = False) -> Subtask:
    return Subtask(id=subtask_id, title=f"Step {subtask_id}", due_date=day(due), completed=completed)


def task_item(task_id: str) -> DragItem:
    return DragItem(type=ItemType.TASK, id=task_id)


def column_item(column_id: str) -> DragItem:
    return DragItem(type=ItemType.COLUMN, id=column_id)


@pytest.fixture
def user_id():
    return next(_user_ids)


@pytest.fixture
def board():
    """Two columns: backlog holds t1 and t2, todo holds t3."""
    return BoardState(
        columns=[
            Column(id="backlog", title="Backlog", order=0),
            Column(id="todo", title="To Do", order=1),
        ],
        tasks=[
            make_task("t1", "backlog", order=0),
            make_task("t2", "backlog", order=1),
            make_task("t3", "todo", order=2),
        ],
    )


@pytest.fixture
def service():
    return BoardService(MemoryStore(), notifications)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_board_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    email = f"user-{uuid.uuid4().hex[:8]}@example.com"
    password = "Secret#123"
    resp = client.post(
        "/auth/register",
        json={"email": email, "password": password, "confirm_password": password},
    )
    assert resp.status_code == 201
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}
