"""Board errors raised by the ordering engine and rendered at the HTTP edge."""

from __future__ import annotations


class BoardError(Exception):
    """Base for all board-specific errors."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(BoardError):
    status_code = 404

    @classmethod
    def task(cls, task_id: int) -> "NotFound":
        return cls(f"Task {task_id} not found")

    @classmethod
    def project(cls, project_id: int) -> "NotFound":
        return cls(f"Project {project_id} not found")


class Forbidden(BoardError):
    status_code = 403

    def __init__(self, user_id: str, project_id: int) -> None:
        super().__init__(f"User {user_id!r} has no access to project {project_id}")
        self.user_id = user_id
        self.project_id = project_id


class InvalidStatus(BoardError):
    status_code = 422

    def __init__(self, status: object) -> None:
        super().__init__(f"Invalid status: {status!r}")
        self.status = status


class Conflict(BoardError):
    """Concurrent modification retries were exhausted."""

    status_code = 409

    def __init__(self, project_id: int, attempts: int) -> None:
        super().__init__(
            f"Board for project {project_id} changed concurrently; "
            f"gave up after {attempts} attempts"
        )
        self.project_id = project_id
        self.attempts = attempts
