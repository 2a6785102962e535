"""
Tests for per-user board sessions: seeding, optimistic writes, failure
reporting and when drag gestures reach the store.
"""
import pytest

from conftest import column_item, day, task_item
from taskflow.board.board_service import BoardService
from taskflow.board.board_state import TaskNotFoundError, find_task
from taskflow.board.board_store import MemoryStore, PersistenceError
from taskflow.notification.notification_service import NotificationCenter
from taskflow.schemas.board_schema import BoardState, Column, SubtaskCreate, TaskCreate, TaskUpdate


class FlakyStore(MemoryStore):
    """Memory store whose writes can be switched off."""

    def __init__(self):
        super().__init__()
        self.failing = False

    def commit(self, user_id, before, after):
        if self.failing:
            raise PersistenceError("database unavailable")
        super().commit(user_id, before, after)

    def mutate_subtasks(self, user_id, task_id, change):
        if self.failing:
            raise PersistenceError("database unavailable")
        super().mutate_subtasks(user_id, task_id, change)


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def center():
    return NotificationCenter()


@pytest.fixture
def svc(store, center):
    return BoardService(store, center)


def _add(svc, user_id=1, title="Plan sprint"):
    state = svc.add_task(user_id, TaskCreate(title=title, due_date=day(4)))
    return state.tasks[-1].id


def test_new_user_gets_default_columns(svc, store):
    state = svc.snapshot(1)
    assert [c.id for c in state.columns] == ["backlog", "todo", "in-progress", "done"]
    assert [c.id for c in store.load(1).columns] == ["backlog", "todo", "in-progress", "done"]


def test_existing_board_is_not_reseeded(store, center):
    store.commit(1, BoardState(), BoardState(columns=[Column(id="mine", title="Mine")]))
    state = BoardService(store, center).snapshot(1)
    assert [c.id for c in state.columns] == ["mine"]


def test_mutations_are_written_through(svc, store):
    task_id = _add(svc)
    assert find_task(store.load(1), task_id).column_id == "backlog"

    svc.delete_column(1, "backlog")
    assert find_task(store.load(1), task_id).column_id == "todo"


def test_failed_write_keeps_memory_and_notifies(svc, store, center):
    svc.snapshot(1)
    store.failing = True

    task_id = _add(svc)

    assert find_task(svc.snapshot(1), task_id) is not None
    assert find_task(store.load(1), task_id) is None
    assert center.unread_count(1) == 1
    notice = center.list_notifications(1)[0]
    assert notice.type == "error"
    assert "database unavailable" in notice.message


def test_failed_subtask_write_notifies_with_task(svc, store, center):
    task_id = _add(svc)
    store.failing = True
    state = svc.add_subtask(1, task_id, SubtaskCreate(title="Step", due_date=day(2)))
    assert len(find_task(state, task_id).subtasks) == 1
    assert center.list_notifications(1)[0].task_id == task_id


def test_subtasks_are_persisted(svc, store):
    task_id = _add(svc)
    state = svc.add_subtask(1, task_id, SubtaskCreate(title="Late", due_date=day(8)))
    state = svc.add_subtask(1, task_id, SubtaskCreate(title="Early", due_date=day(2)))
    early = find_task(state, task_id).subtasks[0]
    svc.toggle_subtask_complete(1, task_id, early.id)

    stored = find_task(store.load(1), task_id).subtasks
    assert [s.title for s in stored] == ["Early", "Late"]
    assert stored[0].completed is True

    svc.delete_subtask(1, task_id, early.id)
    assert [s.title for s in find_task(store.load(1), task_id).subtasks] == ["Late"]


def test_unknown_task_propagates(svc):
    with pytest.raises(TaskNotFoundError):
        svc.delete_task(1, "ghost")


def test_drag_is_written_only_on_drop(svc, store):
    task_id = _add(svc)
    svc.drag_start(1, task_item(task_id))
    state = svc.drag_over(1, task_item(task_id), column_item("todo"))
    assert find_task(state, task_id).column_id == "todo"
    assert find_task(store.load(1), task_id).column_id == "backlog"

    state = svc.drag_end(1, task_item(task_id), column_item("todo"))
    assert state.active_drag is None
    assert find_task(store.load(1), task_id).column_id == "todo"


def test_cancelled_drag_leaves_store_as_before(svc, store):
    task_id = _add(svc)
    before = store.load(1)
    svc.drag_start(1, task_item(task_id))
    svc.drag_over(1, task_item(task_id), column_item("done"))
    state = svc.drag_end(1, task_item(task_id), None)

    assert find_task(state, task_id).column_id == "backlog"
    assert store.load(1) == before


def test_drop_onto_itself_is_persisted(svc, store):
    first = _add(svc, title="First")
    second = _add(svc, title="Second")
    svc.drag_start(1, task_item(first))
    svc.drag_over(1, task_item(first), column_item("todo"))
    state = svc.drag_end(1, task_item(first), task_item(first))

    assert state.active_drag is None
    assert find_task(state, first).column_id == "todo"
    assert find_task(store.load(1), first).column_id == "todo"
    assert find_task(store.load(1), second).column_id == "backlog"


def test_cancel_keeps_tasks_added_during_the_drag(svc, store):
    first = _add(svc, title="a")
    svc.drag_start(1, task_item(first))
    second = _add(svc, title="b")
    state = svc.drag_end(1, task_item(first), None)

    assert [t.id for t in state.tasks] == [first, second]
    assert [t.id for t in store.load(1).tasks] == [first, second]


def test_cancel_after_edits_leaves_store_matching_memory(svc, store):
    first = _add(svc, title="a")
    other = _add(svc, title="b")
    svc.drag_start(1, task_item(first))
    svc.drag_over(1, task_item(first), column_item("done"))
    # this write carries the provisional column of the dragged task
    svc.update_task(1, other, TaskUpdate(title="b2"))
    state = svc.drag_end(1, task_item(first), None)

    assert find_task(state, first).column_id == "backlog"
    assert store.load(1).tasks == state.tasks


def test_column_drag_is_persisted(svc, store):
    svc.snapshot(1)
    svc.drag_start(1, column_item("done"))
    svc.drag_end(1, column_item("done"), column_item("backlog"))
    assert [c.id for c in store.load(1).columns] == ["done", "backlog", "todo", "in-progress"]


def test_refresh_reloads_from_store(svc, store):
    svc.snapshot(1)
    remote = store.load(1)
    store.commit(1, remote, remote.model_copy(update={"columns": remote.columns[:1]}))

    assert len(svc.snapshot(1).columns) == 4
    assert [c.id for c in svc.snapshot(1, refresh=True).columns] == ["backlog"]
