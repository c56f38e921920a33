"""Board views of a project."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from taskboard.access import user_can_access_project
from taskboard.board import COLUMN_TITLES, group_by_status, status_summary
from taskboard.database import get_session
from taskboard.dependencies import get_current_user
from taskboard.models import Project
from taskboard.store import TaskStore

router = APIRouter(prefix="/api/projects", tags=["projects"])


def _accessible_project(session: Session, user_id: str, project_id: int) -> Project:
    project = session.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    if not user_can_access_project(session, user_id, project_id):
        raise HTTPException(status_code=403, detail="Access denied to this project")
    return project


@router.get("/{project_id}/board")
def get_board(
    project_id: int,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Tasks grouped by status, each column ordered by position."""
    project = _accessible_project(session, user_id, project_id)
    columns = group_by_status(TaskStore(session).find_by_project(project_id))
    return {
        "project_id": project.id,
        "revision": project.revision,
        "titles": {status.value: title for status, title in COLUMN_TITLES.items()},
        "columns": {status.value: tasks for status, tasks in columns.items()},
    }


@router.get("/{project_id}/stats")
def get_stats(
    project_id: int,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Per-status task counts for the project."""
    _accessible_project(session, user_id, project_id)
    return status_summary(TaskStore(session).find_by_project(project_id))
