"""Per-project write locks for board reordering.

Moves, creates and deletes on one project's board must not interleave
their read-compute-write sequences. Each project gets its own lock, so
writers on different projects never wait on each other.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class ProjectLockRegistry:
    """Thread-safe map of project id -> lock.

    Internal state:
        _locks: dict mapping project_id -> threading.Lock
        _guard: threading.Lock protecting _locks itself
    """

    def __init__(self) -> None:
        self._locks: dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, project_id: int) -> threading.Lock:
        """Return the lock for *project_id*, creating it on first use."""
        with self._guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[project_id] = lock
            return lock

    @contextmanager
    def hold(self, project_id: int) -> Iterator[None]:
        """Block until the project's board is free, then hold it for the block."""
        lock = self.lock_for(project_id)
        with lock:
            yield

    def is_held(self, project_id: int) -> bool:
        with self._guard:
            lock = self._locks.get(project_id)
        return lock is not None and lock.locked()

