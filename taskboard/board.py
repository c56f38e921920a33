"""Read-side board projection: tasks grouped into status columns."""

from datetime import datetime, timezone
from typing import Iterable, Optional

from taskboard.models import TERMINAL_STATUS, Task, TaskStatus

COLUMN_TITLES = {
    TaskStatus.TODO: "To Do",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.IN_REVIEW: "In Review",
    TaskStatus.DONE: "Done",
}


def group_by_status(tasks: Iterable[Task]) -> dict[TaskStatus, list[Task]]:
    """Bucket tasks into one list per status, each sorted by position.

    Every status is present, empty columns included, in workflow order.
    """
    columns: dict[TaskStatus, list[Task]] = {status: [] for status in TaskStatus}
    for task in tasks:
        columns[task.status].append(task)
    for column in columns.values():
        column.sort(key=lambda t: (t.position, t.id))
    return columns


def _is_overdue(task: Task, now: datetime) -> bool:
    if task.due_date is None or task.status == TERMINAL_STATUS:
        return False
    due = task.due_date
    if due.tzinfo is None:
        due = due.replace(tzinfo=timezone.utc)
    return due < now


def status_summary(tasks: Iterable[Task], now: Optional[datetime] = None) -> dict:
    """Count tasks per status, plus overdue and unassigned totals."""
    now = now or datetime.now(timezone.utc)
    tasks = list(tasks)
    counts = {status.value: 0 for status in TaskStatus}
    for task in tasks:
        counts[task.status.value] += 1
    return {
        "total": len(tasks),
        "by_status": counts,
        "overdue": sum(1 for t in tasks if _is_overdue(t, now)),
        "unassigned": sum(1 for t in tasks if t.assignee_id is None),
    }
