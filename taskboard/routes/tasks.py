"""Task endpoints: CRUD plus the drag-and-drop position update."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from taskboard.access import accessible_project_ids, user_can_access_project
from taskboard.database import get_session
from taskboard.dependencies import get_current_user, get_transitions
from taskboard.models import Task, TaskCreate, TaskMove, TaskStatus, TaskUpdate
from taskboard.store import TaskStore
from taskboard.transitions import TransitionEngine

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("/")
def list_tasks(
    project_id: Optional[int] = None,
    status: Optional[TaskStatus] = None,
    assignee_id: Optional[str] = None,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> list[Task]:
    """List tasks ordered by position, across every project the caller can see."""
    if project_id is not None:
        if not user_can_access_project(session, user_id, project_id):
            raise HTTPException(status_code=403, detail="Access denied to this project")
        project_ids = [project_id]
    else:
        project_ids = accessible_project_ids(session, user_id)
    return TaskStore(session).find_many(project_ids, status=status, assignee_id=assignee_id)


@router.get("/{task_id}")
def get_task(
    task_id: int,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Task:
    """Get a single task by ID."""
    task = TaskStore(session).find_by_id(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    if not user_can_access_project(session, user_id, task.project_id):
        raise HTTPException(status_code=403, detail="Access denied to this task")
    return task


@router.post("/", status_code=201)
def create_task(
    body: TaskCreate,
    user_id: str = Depends(get_current_user),
    transitions: TransitionEngine = Depends(get_transitions),
) -> Task:
    """Create a task at the end of the project's TODO column."""
    return transitions.create_task(user_id, body)


@router.put("/{task_id}")
def update_task(
    task_id: int,
    body: TaskUpdate,
    user_id: str = Depends(get_current_user),
    transitions: TransitionEngine = Depends(get_transitions),
) -> Task:
    """Edit descriptive fields. Only provided fields are changed."""
    return transitions.update_task(user_id, task_id, body)


@router.put("/{task_id}/position")
def move_task(
    task_id: int,
    body: TaskMove,
    user_id: str = Depends(get_current_user),
    transitions: TransitionEngine = Depends(get_transitions),
) -> Task:
    """Move a task to another slot or column and return the updated record."""
    return transitions.move_task(user_id, task_id, body.status, body.position)


@router.delete("/{task_id}", status_code=204)
def delete_task(
    task_id: int,
    user_id: str = Depends(get_current_user),
    transitions: TransitionEngine = Depends(get_transitions),
) -> None:
    """Delete a task and close the gap in its column."""
    transitions.delete_task(user_id, task_id)
