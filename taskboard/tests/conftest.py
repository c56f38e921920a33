"""Shared fixtures: throwaway databases and a seeded project."""

from __future__ import annotations

from typing import Iterable, Mapping

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from taskboard.models import Project, ProjectMember, Task, TaskStatus
from taskboard.store import TaskStore

OWNER = "owner-1"
MEMBER = "member-2"
OUTSIDER = "outsider-3"


@pytest.fixture(name="db_engine")
def db_engine_fixture():
    """A fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


def make_project(db_engine: Engine, key: str = "APO", members: Iterable[str] = (MEMBER,)) -> int:
    with Session(db_engine) as session:
        project = Project(name=f"Project {key}", key=key, owner_id=OWNER)
        session.add(project)
        session.commit()
        session.refresh(project)
        for user_id in members:
            session.add(ProjectMember(project_id=project.id, user_id=user_id))
        session.commit()
        return project.id


@pytest.fixture(name="project_id")
def project_fixture(db_engine: Engine) -> int:
    return make_project(db_engine)


def seed(
    db_engine: Engine,
    project_id: int,
    columns: Mapping[TaskStatus, Iterable[str]],
) -> dict[str, int]:
    """Insert tasks titled as given, positions in list order. Returns title -> id."""
    ids: dict[str, int] = {}
    with Session(db_engine) as session:
        for status, titles in columns.items():
            for position, title in enumerate(titles):
                task = Task(
                    title=title,
                    project_id=project_id,
                    reporter_id=OWNER,
                    status=status,
                    position=position,
                )
                session.add(task)
                session.flush()
                ids[title] = task.id
        session.commit()
    return ids


def layout(db_engine: Engine, project_id: int) -> dict[TaskStatus, list[str]]:
    """Titles per status in position order."""
    with Session(db_engine) as session:
        store = TaskStore(session)
        return {
            status: [t.title for t in store.find_by_project_and_status(project_id, status)]
            for status in TaskStatus
        }


def assert_dense(db_engine: Engine, project_id: int) -> None:
    """Every partition of the project holds exactly positions 0..n-1."""
    with Session(db_engine) as session:
        store = TaskStore(session)
        for status in TaskStatus:
            positions = [
                t.position for t in store.find_by_project_and_status(project_id, status)
            ]
            assert positions == list(range(len(positions))), (status, positions)


def revision(db_engine: Engine, project_id: int) -> int:
    with Session(db_engine) as session:
        return session.get(Project, project_id).revision
