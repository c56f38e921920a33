"""Client-side optimistic board state.

The board a client renders is a :class:`BoardState` snapshot. A drag-end
produces a new snapshot with the task already spliced into place
(:func:`apply_optimistic_move`) while the move request is in flight. The
server's answer is folded back in with :func:`reconcile`: the
authoritative task replaces the local copy on success, and on failure
only the failed task goes back to its pre-drag slot so other confirmed
moves survive. None of these functions mutate their
input; tasks are plain JSON dicts as returned by the API.

The server stays the only source of truth for ordering. A rejected move
sets ``needs_resync`` so the caller fetches a fresh board.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from taskboard.models import TaskStatus

Column = tuple[dict, ...]


@dataclass(frozen=True)
class Move:
    """A drag-end: which task, and where it was dropped."""
    task_id: Any
    status: TaskStatus
    index: int


@dataclass(frozen=True)
class PendingMove:
    """An in-flight move and where its task sat before it was dragged."""
    move: Move
    origin_status: TaskStatus
    origin_index: int
    original: Mapping[str, Any]


@dataclass(frozen=True)
class BoardState:
    columns: Mapping[TaskStatus, Column]
    pending: Mapping[Any, PendingMove] = field(
        default_factory=lambda: MappingProxyType({})
    )
    error: Optional[str] = None
    needs_resync: bool = False

    def column(self, status: TaskStatus) -> Column:
        return self.columns.get(status, ())

    def find(self, task_id) -> Optional[tuple[TaskStatus, int]]:
        """Return (status, index) of a task in the local view, or None."""
        for status, tasks in self.columns.items():
            for index, task in enumerate(tasks):
                if task["id"] == task_id:
                    return status, index
        return None

    def ids(self, status: TaskStatus) -> list:
        return [task["id"] for task in self.column(status)]


def _freeze(columns: Mapping[TaskStatus, Column]) -> Mapping[TaskStatus, Column]:
    return MappingProxyType({status: tuple(columns.get(status, ())) for status in TaskStatus})


def _renumber(tasks: list[dict]) -> Column:
    """Copy tasks with ``position`` set to their index in the column."""
    return tuple({**task, "position": index} for index, task in enumerate(tasks))


def board_state_from(columns: Mapping[Any, list[dict]]) -> BoardState:
    """Build a snapshot from the board endpoint's ``columns`` payload."""
    normalized = {
        TaskStatus(status): tuple(
            sorted((copy.deepcopy(t) for t in tasks), key=lambda t: t["position"])
        )
        for status, tasks in columns.items()
    }
    return BoardState(columns=_freeze(normalized))


def apply_optimistic_move(state: BoardState, move: Move) -> BoardState:
    """Splice the task into its drop slot ahead of the server's answer.

    Unknown tasks leave the state unchanged. The drop index is clamped to
    the destination column the same way the server clamps it.
    """
    located = state.find(move.task_id)
    if located is None:
        return state
    source, source_index = located
    target = TaskStatus(move.status)

    columns = dict(state.columns)

    source_tasks = list(state.column(source))
    moved = source_tasks.pop(source_index)
    if target == source:
        target_tasks = source_tasks
    else:
        target_tasks = list(state.column(target))
        columns[source] = _renumber(source_tasks)

    index = max(0, min(move.index, len(target_tasks)))
    target_tasks.insert(index, {**moved, "status": target.value})
    columns[target] = _renumber(target_tasks)

    pending = dict(state.pending)
    earlier = pending.get(move.task_id)
    if earlier is None:
        pending[move.task_id] = PendingMove(
            move=move,
            origin_status=source,
            origin_index=source_index,
            original=MappingProxyType(copy.deepcopy(moved)),
        )
    else:
        # A re-drag keeps the slot from before the first unconfirmed drag.
        pending[move.task_id] = replace(earlier, move=move)
    return replace(
        state,
        columns=_freeze(columns),
        pending=MappingProxyType(pending),
        error=None,
    )


def _without_pending(state: BoardState, task_id) -> Mapping[Any, PendingMove]:
    return MappingProxyType({k: v for k, v in state.pending.items() if k != task_id})


def reconcile(
    state: BoardState,
    task_id,
    outcome: Union[dict, BaseException],
) -> BoardState:
    """Fold the server's answer for *task_id* into the local view.

    *outcome* is either the authoritative task dict or the error the move
    request failed with.
    """
    pending = state.pending.get(task_id)
    if isinstance(outcome, BaseException):
        return _roll_back(state, task_id, pending, outcome)

    authoritative = copy.deepcopy(outcome)
    columns = {status: list(tasks) for status, tasks in state.columns.items()}
    located = state.find(task_id)
    if located is not None:
        status, index = located
        del columns[status][index]
        columns[status] = list(_renumber(columns[status]))

    target = TaskStatus(authoritative["status"])
    target_tasks = columns.setdefault(target, [])
    index = max(0, min(authoritative["position"], len(target_tasks)))
    target_tasks.insert(index, authoritative)
    columns[target] = list(_renumber(target_tasks))
    # Keep the server's record intact, renumbering only touches neighbours.
    columns[target][index] = authoritative

    return replace(
        state,
        columns=_freeze(columns),
        pending=_without_pending(state, task_id),
    )


def _roll_back(
    state: BoardState,
    task_id,
    pending: Optional[PendingMove],
    error: BaseException,
) -> BoardState:
    columns = {status: list(tasks) for status, tasks in state.columns.items()}
    if pending is not None:
        located = state.find(task_id)
        if located is not None:
            status, index = located
            del columns[status][index]
            columns[status] = list(_renumber(columns[status]))
        origin_tasks = columns.setdefault(pending.origin_status, [])
        index = max(0, min(pending.origin_index, len(origin_tasks)))
        origin_tasks.insert(index, dict(pending.original))
        columns[pending.origin_status] = list(_renumber(origin_tasks))
    remaining = _without_pending(state, task_id)
    return replace(
        state,
        columns=_freeze(columns),
        pending=remaining,
        error=str(error) or error.__class__.__name__,
        needs_resync=True,
    )


def resync(state: BoardState, columns: Mapping[Any, list[dict]]) -> BoardState:
    """Replace the whole view with a fresh authoritative board."""
    fresh = board_state_from(columns)
    return replace(
        fresh,
        error=state.error,
        needs_resync=False,
    )
