"""Tests for the optimistic client board reducer."""

import pytest

from taskboard.models import TaskStatus
from taskboard.reconciler import (
    BoardState,
    Move,
    apply_optimistic_move,
    board_state_from,
    reconcile,
    resync,
)

TODO = TaskStatus.TODO
DOING = TaskStatus.IN_PROGRESS
DONE = TaskStatus.DONE


def _task(task_id, status, position, **extra):
    return {"id": task_id, "title": task_id, "status": status.value, "position": position, **extra}


@pytest.fixture
def state() -> BoardState:
    return board_state_from({
        "TODO": [_task("a", TODO, 0), _task("b", TODO, 1)],
        "IN_PROGRESS": [_task("c", DOING, 0)],
        "DONE": [],
    })


class TestBoardStateFrom:
    def test_every_status_has_a_column(self, state):
        assert set(state.columns) == set(TaskStatus)
        assert state.column(TaskStatus.IN_REVIEW) == ()

    def test_columns_sorted_by_position(self):
        board = board_state_from({"TODO": [_task("y", TODO, 1), _task("x", TODO, 0)]})
        assert board.ids(TODO) == ["x", "y"]

    def test_input_is_copied(self):
        raw = {"TODO": [_task("x", TODO, 0)]}
        board = board_state_from(raw)
        raw["TODO"][0]["title"] = "changed"
        assert board.column(TODO)[0]["title"] == "x"


class TestApplyOptimisticMove:
    def test_cross_column_splice(self, state):
        after = apply_optimistic_move(state, Move("a", DOING, 0))
        assert after.ids(TODO) == ["b"]
        assert after.ids(DOING) == ["a", "c"]
        assert [t["position"] for t in after.column(DOING)] == [0, 1]
        assert after.column(TODO)[0]["position"] == 0
        assert after.column(DOING)[0]["status"] == "IN_PROGRESS"

    def test_reorder_in_column(self, state):
        after = apply_optimistic_move(state, Move("b", TODO, 0))
        assert after.ids(TODO) == ["b", "a"]

    def test_index_clamped(self, state):
        after = apply_optimistic_move(state, Move("a", DOING, 40))
        assert after.ids(DOING) == ["c", "a"]

    def test_original_state_untouched(self, state):
        apply_optimistic_move(state, Move("a", DONE, 0))
        assert state.ids(TODO) == ["a", "b"]
        assert state.ids(DONE) == []
        assert state.column(TODO)[0]["status"] == "TODO"
        assert dict(state.pending) == {}

    def test_remembers_pre_drag_slot(self, state):
        after = apply_optimistic_move(state, Move("b", DONE, 0))
        pending = after.pending["b"]
        assert (pending.origin_status, pending.origin_index) == (TODO, 1)
        assert pending.original["status"] == "TODO"

    def test_redrag_keeps_first_origin(self, state):
        once = apply_optimistic_move(state, Move("a", DOING, 0))
        twice = apply_optimistic_move(once, Move("a", DONE, 0))
        pending = twice.pending["a"]
        assert pending.move == Move("a", DONE, 0)
        assert (pending.origin_status, pending.origin_index) == (TODO, 0)

    def test_unknown_task_is_ignored(self, state):
        assert apply_optimistic_move(state, Move("zzz", DONE, 0)) is state


class TestReconcile:
    def test_success_takes_server_record(self, state):
        moved = apply_optimistic_move(state, Move("a", DONE, 0))
        server_task = _task("a", DONE, 0, completed_at="2025-03-14T09:26:00")
        after = reconcile(moved, "a", server_task)
        assert after.column(DONE)[0] == server_task
        assert "a" not in after.pending
        assert after.error is None
        assert after.needs_resync is False

    def test_success_places_task_where_server_put_it(self, state):
        moved = apply_optimistic_move(state, Move("b", DOING, 0))
        after = reconcile(moved, "b", _task("b", DOING, 1))
        assert after.ids(DOING) == ["c", "b"]
        assert [t["position"] for t in after.column(DOING)] == [0, 1]

    def test_failure_restores_pre_drag_arrangement(self, state):
        moved = apply_optimistic_move(state, Move("a", DOING, 1))
        after = reconcile(moved, "a", RuntimeError("Access denied"))
        assert after.ids(TODO) == ["a", "b"]
        assert after.ids(DOING) == ["c"]
        assert after.column(TODO) == state.column(TODO)
        assert after.error == "Access denied"
        assert after.needs_resync is True
        assert "a" not in after.pending

    def test_failure_keeps_other_confirmed_moves(self):
        board = board_state_from({
            "TODO": [_task(1, TODO, 0), _task(2, TODO, 1), _task(3, TODO, 2)],
        })
        board = apply_optimistic_move(board, Move(1, DOING, 0))
        board = apply_optimistic_move(board, Move(3, TODO, 0))
        board = reconcile(board, 3, _task(3, TODO, 0))
        after = reconcile(board, 1, RuntimeError("Conflict"))
        assert after.ids(TODO) == [1, 3, 2]
        assert [t["position"] for t in after.column(TODO)] == [0, 1, 2]
        assert after.ids(DOING) == []
        assert after.column(TODO)[0]["status"] == "TODO"
        assert dict(after.pending) == {}

    def test_failed_redrag_returns_to_first_origin(self, state):
        moved = apply_optimistic_move(state, Move("a", DOING, 0))
        moved = apply_optimistic_move(moved, Move("a", DONE, 0))
        after = reconcile(moved, "a", RuntimeError("Forbidden"))
        assert after.ids(TODO) == ["a", "b"]
        assert after.ids(DONE) == []
        assert after.ids(DOING) == ["c"]

    def test_failure_without_message_uses_exception_name(self, state):
        moved = apply_optimistic_move(state, Move("a", DOING, 0))
        after = reconcile(moved, "a", TimeoutError())
        assert after.error == "TimeoutError"


def test_resync_replaces_columns_and_clears_flag(state):
    moved = apply_optimistic_move(state, Move("a", DOING, 0))
    failed = reconcile(moved, "a", RuntimeError("Conflict"))
    fresh = resync(failed, {"TODO": [_task("b", TODO, 0)], "DONE": [_task("a", DONE, 0)]})
    assert fresh.ids(TODO) == ["b"]
    assert fresh.ids(DONE) == ["a"]
    assert fresh.ids(DOING) == []
    assert fresh.needs_resync is False
    assert fresh.error == "Conflict"
