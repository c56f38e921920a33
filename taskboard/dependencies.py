"""FastAPI dependencies shared by the routers."""

from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from taskboard.database import engine
from taskboard.transitions import TransitionEngine


@lru_cache(maxsize=1)
def get_transitions() -> TransitionEngine:
    """Process-wide transition engine, so every request shares one lock registry."""
    return TransitionEngine(engine)


def get_current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity, set by the authenticating gateway in front of the API."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id
