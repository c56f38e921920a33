"""Async board client that keeps a local optimistic view in step with the API."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from taskboard.models import TaskStatus
from taskboard.reconciler import (
    BoardState,
    Move,
    apply_optimistic_move,
    board_state_from,
    reconcile,
    resync,
)

logger = logging.getLogger(__name__)


class MoveRejected(Exception):
    """A move the server refused or never answered."""


class BoardClient:
    """Drives one project's board through the HTTP API.

    Parameters
    ----------
    http : httpx.AsyncClient
        Client whose ``base_url`` points at the board API.
    project_id : int
        Project whose board is shown.
    user_id : str
        Sent as ``X-User-Id`` on every request.
    """

    def __init__(self, http: httpx.AsyncClient, project_id: int, user_id: str) -> None:
        self._http = http
        self._project_id = project_id
        self._headers = {"X-User-Id": user_id}
        self.state: BoardState = board_state_from({})

    async def load(self) -> BoardState:
        """Fetch the authoritative board and replace the local view."""
        response = await self._http.get(
            f"/api/projects/{self._project_id}/board", headers=self._headers
        )
        response.raise_for_status()
        self.state = resync(self.state, response.json()["columns"])
        return self.state

    async def move(self, task_id, status: TaskStatus, index: int) -> BoardState:
        """Apply a drag-end locally, then confirm it with the server.

        On failure the local splice is reverted, ``state.error`` describes
        the failure and one resync fetch is attempted. The move itself is
        never retried.
        """
        move = Move(task_id=task_id, status=TaskStatus(status), index=index)
        self.state = apply_optimistic_move(self.state, move)

        try:
            response = await self._http.put(
                f"/api/tasks/{task_id}/position",
                json={"status": move.status.value, "position": index},
                headers=self._headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Move of task %s failed: %s", task_id, _describe(exc))
            self.state = reconcile(self.state, task_id, MoveRejected(_describe(exc)))
            await self._resync_after_failure()
            return self.state

        self.state = reconcile(self.state, task_id, response.json())
        return self.state

    async def delete(self, task_id) -> BoardState:
        """Delete a task; the board is refetched so neighbours pick up new positions."""
        response = await self._http.delete(
            f"/api/tasks/{task_id}", headers=self._headers
        )
        response.raise_for_status()
        return await self.load()

    async def _resync_after_failure(self) -> None:
        try:
            await self.load()
        except httpx.HTTPError as exc:
            logger.warning(
                "Resync of project %s board failed: %s", self._project_id, _describe(exc)
            )


def _describe(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            detail: Optional[str] = exc.response.json().get("detail")
        except ValueError:
            detail = None
        return detail or f"HTTP {exc.response.status_code}"
    return str(exc) or exc.__class__.__name__
