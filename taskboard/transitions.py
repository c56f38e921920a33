"""Status transition engine: the only writer of task status, position and completion.

Every board write follows the same sequence under the project's lock:

1. open a session and read the project's board revision
2. read the tasks involved and plan the shifts
3. claim the revision (``UPDATE ... WHERE revision = seen``)
4. apply the shifts and the moved task, then commit

Steps 2-4 share one transaction, so readers never see half of a move. If
another process committed to the same board between steps 1 and 3 the
claim fails, the transaction is rolled back and the whole sequence runs
again against fresh state. After ``retries`` failed claims the caller
gets :class:`~taskboard.errors.Conflict`.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from taskboard.access import user_can_access_project
from taskboard.errors import Conflict, Forbidden, NotFound
from taskboard.locks import ProjectLockRegistry
from taskboard.models import (
    TERMINAL_STATUS,
    Project,
    Task,
    TaskCreate,
    TaskStatus,
    TaskUpdate,
    utcnow,
)
from taskboard.reindexer import PositionReindexer, coerce_status
from taskboard.store import TaskStore

logger = logging.getLogger(__name__)

MOVE_RETRIES = int(os.getenv("TASKBOARD_MOVE_RETRIES", "3"))

AccessCheck = Callable[[Session, str, int], bool]


class _StaleRevision(Exception):
    """The board revision changed between read and claim."""


def apply_completion_rule(task: Task, now: datetime) -> None:
    """Stamp ``completed_at`` on entering DONE, clear it on leaving."""
    if task.status == TERMINAL_STATUS:
        if task.completed_at is None:
            task.completed_at = now
    else:
        task.completed_at = None


class TransitionEngine:
    """Moves, creates, edits and deletes tasks on behalf of a user."""

    def __init__(
        self,
        db_engine: Engine,
        locks: Optional[ProjectLockRegistry] = None,
        retries: int = MOVE_RETRIES,
        access_check: AccessCheck = user_can_access_project,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if retries < 1:
            raise ValueError("retries must be at least 1")
        self._db_engine = db_engine
        self._locks = locks or ProjectLockRegistry()
        self._retries = retries
        self._access_check = access_check
        self._clock = clock

    @property
    def locks(self) -> ProjectLockRegistry:
        return self._locks

    # -- public API -----------------------------------------------------------

    def move_task(
        self,
        user_id: str,
        task_id: int,
        destination_status: Any,
        destination_index: int,
    ) -> Task:
        """Move a task to *destination_index* of *destination_status*.

        Raises NotFound, Forbidden, InvalidStatus or Conflict. Moving a
        task onto its current slot writes nothing.
        """
        project_id = self._authorize_task(user_id, task_id)
        target = coerce_status(destination_status)

        def work(store: TaskStore, claim: Callable[[], None]) -> Task:
            task = self._require_task(store, task_id)
            previous = task.status
            reindexer = PositionReindexer(store)
            plan = reindexer.plan(task, target, destination_index)
            if plan.is_noop:
                logger.debug("Move of task %s onto its own slot ignored", task_id)
                return task
            claim()
            reindexer.apply(task, plan)
            if previous != task.status:
                apply_completion_rule(task, self._clock())
                store.save(task)
            logger.info(
                "Moved task %s in project %s: %s@%s -> %s@%s",
                task_id, project_id, previous.value, plan.source_position,
                task.status.value, task.position,
            )
            return task

        with self._locks.hold(project_id):
            return self._write(project_id, work)

    def delete_task(self, user_id: str, task_id: int) -> None:
        """Delete a task and close the gap in its former partition."""
        project_id = self._authorize_task(user_id, task_id)

        def work(store: TaskStore, claim: Callable[[], None]) -> None:
            task = self._require_task(store, task_id)
            claim()
            plan = PositionReindexer(store).remove(task)
            logger.info(
                "Deleted task %s from project %s (%s@%s)",
                task_id, project_id, plan.source_status.value, plan.source_position,
            )

        with self._locks.hold(project_id):
            self._write(project_id, work)

    def create_task(self, user_id: str, payload: TaskCreate) -> Task:
        """Append a new task to the end of the project's TODO column."""
        project_id = payload.project_id
        with Session(self._db_engine) as session:
            self._authorize_project(session, user_id, project_id)

        def work(store: TaskStore, claim: Callable[[], None]) -> Task:
            claim()
            position = store.count_partition(project_id, TaskStatus.TODO)
            task = Task.model_validate(
                payload,
                update={
                    "reporter_id": user_id,
                    "status": TaskStatus.TODO,
                    "position": position,
                },
            )
            store.save(task)
            logger.info(
                "Created task %s in project %s at TODO@%s", task.id, project_id, position
            )
            return task

        with self._locks.hold(project_id):
            return self._write(project_id, work)

    def update_task(self, user_id: str, task_id: int, payload: TaskUpdate) -> Task:
        """Apply a direct field edit. Ordering fields are never touched here."""
        self._authorize_task(user_id, task_id)
        with Session(self._db_engine) as session:
            store = TaskStore(session)
            task = self._require_task(store, task_id)
            for key, value in payload.model_dump(exclude_unset=True).items():
                setattr(task, key, value)
            task.updated_at = utcnow()
            store.save(task)
            session.commit()
            session.refresh(task)
            return task

    # -- internals ------------------------------------------------------------

    def _authorize_task(self, user_id: str, task_id: int) -> int:
        """Return the task's project id once the caller may act on it."""
        with Session(self._db_engine) as session:
            task = session.get(Task, task_id)
            if task is None:
                raise NotFound.task(task_id)
            self._authorize_project(session, user_id, task.project_id)
            return task.project_id

    def _authorize_project(self, session: Session, user_id: str, project_id: int) -> None:
        if session.get(Project, project_id) is None:
            raise NotFound.project(project_id)
        if not self._access_check(session, user_id, project_id):
            raise Forbidden(user_id, project_id)

    @staticmethod
    def _require_task(store: TaskStore, task_id: int) -> Task:
        task = store.find_by_id(task_id)
        if task is None:
            raise NotFound.task(task_id)
        return task

    def _write(self, project_id: int, work: Callable[[TaskStore, Callable[[], None]], Any]):
        """Run *work* in one transaction, retrying when the board revision moves."""
        for attempt in range(1, self._retries + 1):
            with Session(self._db_engine) as session:
                store = TaskStore(session)
                seen = store.project_revision(project_id)
                if seen is None:
                    raise NotFound.project(project_id)

                def claim() -> None:
                    if not store.claim_revision(project_id, seen):
                        raise _StaleRevision()

                try:
                    result = work(store, claim)
                    session.commit()
                except _StaleRevision:
                    session.rollback()
                    logger.warning(
                        "Board of project %s changed since revision %s "
                        "(attempt %d/%d), retrying",
                        project_id, seen, attempt, self._retries,
                    )
                    continue
                except Exception:
                    session.rollback()
                    raise

                if isinstance(result, Task):
                    session.refresh(result)
                return result

        logger.error(
            "Giving up on project %s after %d conflicting attempts",
            project_id, self._retries,
        )
        raise Conflict(project_id, self._retries)
