"""Task persistence over a SQLModel session.

All writes go through the caller's session; nothing here commits. The
transition engine owns the transaction boundary.
"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import func, update
from sqlmodel import Session, select

from taskboard.models import Project, Task, TaskStatus, utcnow


class TaskStore:
    """Task Store contract used by the reindexer and the transition engine."""

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # -- reads ---------------------------------------------------------------

    def find_by_id(self, task_id: int) -> Optional[Task]:
        return self._session.get(Task, task_id)

    def find_by_project_and_status(
        self, project_id: int, status: TaskStatus
    ) -> list[Task]:
        """Tasks of one partition, ordered by ascending position."""
        statement = (
            select(Task)
            .where(Task.project_id == project_id, Task.status == status)
            .order_by(Task.position, Task.id)
        )
        return list(self._session.exec(statement).all())

    def find_by_project(self, project_id: int) -> list[Task]:
        statement = (
            select(Task)
            .where(Task.project_id == project_id)
            .order_by(Task.position, Task.id)
        )
        return list(self._session.exec(statement).all())

    def find_many(
        self,
        project_ids: Iterable[int],
        status: Optional[TaskStatus] = None,
        assignee_id: Optional[str] = None,
    ) -> list[Task]:
        statement = select(Task).where(Task.project_id.in_(list(project_ids)))
        if status is not None:
            statement = statement.where(Task.status == status)
        if assignee_id is not None:
            statement = statement.where(Task.assignee_id == assignee_id)
        statement = statement.order_by(Task.position, Task.created_at.desc())
        return list(self._session.exec(statement).all())

    def count_partition(self, project_id: int, status: TaskStatus) -> int:
        statement = select(func.count()).select_from(Task).where(
            Task.project_id == project_id, Task.status == status
        )
        return self._session.exec(statement).one()

    def project_revision(self, project_id: int) -> Optional[int]:
        project = self._session.get(Project, project_id)
        return project.revision if project is not None else None

    # -- writes --------------------------------------------------------------

    def shift_positions(
        self,
        project_id: int,
        status: TaskStatus,
        start: int,
        stop: Optional[int],
        delta: int,
    ) -> int:
        """Add *delta* to every position in ``[start, stop)`` of one partition.

        ``stop=None`` leaves the range open-ended. Returns the number of rows
        rewritten.
        """
        conditions = [
            Task.project_id == project_id,
            Task.status == status,
            Task.position >= start,
        ]
        if stop is not None:
            conditions.append(Task.position < stop)
        statement = (
            update(Task)
            .where(*conditions)
            .values(position=Task.position + delta, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return self._session.execute(statement).rowcount

    def claim_revision(self, project_id: int, seen: int) -> bool:
        """Advance the project's board revision only if it is still *seen*."""
        statement = (
            update(Project)
            .where(Project.id == project_id, Project.revision == seen)
            .values(revision=seen + 1)
            .execution_options(synchronize_session="fetch")
        )
        return self._session.execute(statement).rowcount == 1

    def save(self, task: Task) -> Task:
        self._session.add(task)
        self._session.flush()
        return task

    def delete_by_id(self, task_id: int) -> None:
        task = self._session.get(Task, task_id)
        if task is not None:
            self._session.delete(task)
            self._session.flush()
