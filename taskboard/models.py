"""Task, project and membership models for the board API."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column, Index
from pydantic import field_validator
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    """Workflow stages, in board order. DONE is terminal."""
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"


TERMINAL_STATUS = TaskStatus.DONE


MAX_TAG_LENGTH = 50


def _check_tags(tags: Optional[list[str]]) -> Optional[list[str]]:
    for tag in tags or ():
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"tag {tag!r} is longer than {MAX_TAG_LENGTH} characters")
    return tags


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TaskType(str, Enum):
    TASK = "TASK"
    BUG = "BUG"
    STORY = "STORY"
    EPIC = "EPIC"


class Project(SQLModel, table=True):
    """Project row. Only the fields the board needs are modelled here."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=200)
    key: str = Field(max_length=20, unique=True)
    owner_id: str = Field(index=True)
    # Bumped by every committed move/create/delete on the project's board.
    revision: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)


class ProjectMember(SQLModel, table=True):
    project_id: int = Field(foreign_key="project.id", primary_key=True)
    user_id: str = Field(primary_key=True)


class TaskBase(SQLModel):
    """Descriptive fields. The ordering engine carries these through untouched."""
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(default="", max_length=2000)
    type: TaskType = Field(default=TaskType.TASK)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    assignee_id: Optional[str] = Field(default=None)
    estimated_hours: Optional[float] = Field(default=None, ge=0, le=1000)
    actual_hours: Optional[float] = Field(default=None, ge=0, le=1000)
    story_points: Optional[int] = Field(default=None, ge=1, le=100)
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    due_date: Optional[datetime] = Field(default=None)

    @field_validator("tags")
    @classmethod
    def check_tag_length(cls, tags: list[str]) -> list[str]:
        return _check_tags(tags)


class Task(TaskBase, table=True):
    """Task database table."""
    __table_args__ = (
        Index("ix_task_partition", "project_id", "status", "position"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="project.id")
    reporter_id: str
    status: TaskStatus = Field(default=TaskStatus.TODO)
    position: int = Field(default=0, ge=0)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class TaskCreate(TaskBase):
    """Schema for creating a task. New tasks always start at the end of TODO."""
    project_id: int


class TaskUpdate(SQLModel):
    """Schema for direct edits. Status, position and completion are not editable here."""
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    type: Optional[TaskType] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[str] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0, le=1000)
    actual_hours: Optional[float] = Field(default=None, ge=0, le=1000)
    story_points: Optional[int] = Field(default=None, ge=1, le=100)
    tags: Optional[list[str]] = None
    due_date: Optional[datetime] = None

    @field_validator("tags")
    @classmethod
    def check_tag_length(cls, tags: Optional[list[str]]) -> Optional[list[str]]:
        return _check_tags(tags)

    @field_validator("title", "description")
    @classmethod
    def reject_null(cls, value: Optional[str]) -> str:
        # Both columns are NOT NULL; omit the key to leave them unchanged.
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class TaskMove(SQLModel):
    """Body of a drag-and-drop move. Out-of-range positions are clamped."""
    status: str
    position: int
