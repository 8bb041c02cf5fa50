"""Staff authentication: session tokens and role checks."""

from .gate import (
    ForbiddenError,
    UnauthorizedError,
    get_session_store,
    login,
    logout,
    require_role,
    require_user,
    set_session_store,
    start_session_sweeper,
    stop_session_sweeper,
)
from .sessions import InMemorySessionBackend, SessionData, SessionStore, SessionSweeper

__all__ = [
    "ForbiddenError",
    "InMemorySessionBackend",
    "SessionData",
    "SessionStore",
    "SessionSweeper",
    "UnauthorizedError",
    "get_session_store",
    "login",
    "logout",
    "require_role",
    "require_user",
    "set_session_store",
    "start_session_sweeper",
    "stop_session_sweeper",
]
