"""Position reindexing for drag-and-drop moves.

Every (project, status) partition holds positions ``0..n-1`` with no gaps
and no duplicates. A move is realised by shifting only the tasks between
the old and new slot, then writing the moved task:

* same status, moving down (new > old): ``(old, new]`` shift by -1
* same status, moving up (new < old):   ``[new, old)`` shift by +1
* other status: source ``(old, end)`` shift by -1, destination
  ``[new, end)`` shift by +1

Removing a task is the source half of a cross-status move.

Planning is pure (:func:`plan_move`, :func:`plan_removal`); applying a plan
needs a :class:`~taskboard.store.TaskStore` whose session the caller commits
or rolls back as one unit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from taskboard.errors import InvalidStatus
from taskboard.models import Task, TaskStatus, utcnow
from taskboard.store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Shift:
    """Add ``delta`` to positions in ``[start, stop)`` of one status partition."""
    status: TaskStatus
    start: int
    stop: Optional[int]
    delta: int


@dataclass(frozen=True)
class MovePlan:
    task_id: int
    source_status: TaskStatus
    source_position: int
    target_status: Optional[TaskStatus]
    target_position: Optional[int]
    shifts: tuple[Shift, ...] = ()

    @property
    def is_removal(self) -> bool:
        return self.target_status is None

    @property
    def is_noop(self) -> bool:
        return (
            not self.shifts
            and self.target_status == self.source_status
            and self.target_position == self.source_position
        )


def coerce_status(value) -> TaskStatus:
    """Map *value* onto the closed status set or raise InvalidStatus."""
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(value)
    except ValueError:
        raise InvalidStatus(value) from None


def clamp_index(index: int, size: int) -> int:
    return max(0, min(index, size))


def plan_move(
    task: Task,
    destination_status,
    destination_index: int,
    destination_size: int,
) -> MovePlan:
    """Compute the shifts for moving *task*.

    *destination_size* is the current size of the destination partition,
    including *task* itself when it already lives there.
    """
    target = coerce_status(destination_status)
    source = task.status
    old = task.position

    if target == source:
        new = clamp_index(destination_index, destination_size - 1)
        if new > old:
            shifts = (Shift(source, old + 1, new + 1, -1),)
        elif new < old:
            shifts = (Shift(source, new, old, +1),)
        else:
            shifts = ()
    else:
        new = clamp_index(destination_index, destination_size)
        shifts = (
            Shift(source, old + 1, None, -1),
            Shift(target, new, None, +1),
        )

    return MovePlan(
        task_id=task.id,
        source_status=source,
        source_position=old,
        target_status=target,
        target_position=new,
        shifts=shifts,
    )


def plan_removal(task: Task) -> MovePlan:
    return MovePlan(
        task_id=task.id,
        source_status=task.status,
        source_position=task.position,
        target_status=None,
        target_position=None,
        shifts=(Shift(task.status, task.position + 1, None, -1),),
    )


class PositionReindexer:
    """Applies move and removal plans against a task store."""

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    def plan(self, task: Task, destination_status, destination_index: int) -> MovePlan:
        """Plan a move of *task* against the current partition sizes."""
        target = coerce_status(destination_status)
        size = self._store.count_partition(task.project_id, target)
        return plan_move(task, target, destination_index, size)

    def move(self, task: Task, destination_status, destination_index: int) -> MovePlan:
        """Reposition *task*, shifting its neighbours. Returns the applied plan."""
        plan = self.plan(task, destination_status, destination_index)
        self.apply(task, plan)
        return plan

    def apply(self, task: Task, plan: MovePlan) -> None:
        """Write *plan*. A no-op plan performs no writes at all."""
        if plan.is_noop:
            return
        self._apply_shifts(task.project_id, plan)
        task.status = plan.target_status
        task.position = plan.target_position
        task.updated_at = utcnow()
        self._store.save(task)

    def remove(self, task: Task) -> MovePlan:
        """Delete *task* and close the gap it leaves in its partition."""
        plan = plan_removal(task)
        project_id = task.project_id
        self._store.delete_by_id(task.id)
        self._apply_shifts(project_id, plan)
        return plan

    def _apply_shifts(self, project_id: int, plan: MovePlan) -> None:
        for shift in plan.shifts:
            rows = self._store.shift_positions(
                project_id, shift.status, shift.start, shift.stop, shift.delta
            )
            logger.debug(
                "project=%s task=%s shifted %s rows in %s [%s, %s) by %+d",
                project_id, plan.task_id, rows, shift.status.value,
                shift.start, "end" if shift.stop is None else shift.stop,
                shift.delta,
            )
