"""
Auth gate for MCP tools.

Every protected tool receives a ``session_token`` argument and calls
``require_user`` or ``require_role`` before touching the database.
"""

import logging

from ..config import get_config
from ..database.errors import RepositoryException
from ..database.session import session_scope
from ..database.user_repository import UserRepository
from ..models.user import User, UserRole
from .sessions import SessionStore, SessionSweeper

logger = logging.getLogger(__name__)


class UnauthorizedError(RepositoryException):
    """Missing, unknown or expired session."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, field="session_token")


class ForbiddenError(RepositoryException):
    """Valid session, but the user's role may not perform the operation."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message, field="session_token")


def load_active_user(user_id: int) -> User | None:
    with session_scope() as session:
        return UserRepository(session).get_active(user_id)


_store: SessionStore | None = None
_sweeper: SessionSweeper | None = None


def get_session_store() -> SessionStore:
    """The process-wide session store."""
    global _store  # noqa: PLW0603 - Singleton pattern for the session store

    if _store is None:
        _store = SessionStore(load_active_user, ttl_seconds=get_config().session_ttl_seconds)
    return _store


def set_session_store(store: SessionStore | None) -> None:
    """Replace the process-wide store (tests inject their own)."""
    global _store  # noqa: PLW0603
    _store = store


def start_session_sweeper() -> SessionSweeper:
    global _sweeper  # noqa: PLW0603

    if _sweeper is None:
        _sweeper = SessionSweeper(
            get_session_store(), get_config().session_sweep_interval_seconds
        )
    _sweeper.start()
    return _sweeper


def stop_session_sweeper() -> None:
    global _sweeper  # noqa: PLW0603

    if _sweeper is not None:
        _sweeper.stop()
        _sweeper = None


def require_user(session_token: str | None) -> User:
    """
    Resolve a session token to its user.

    Raises:
        UnauthorizedError: If the token is missing, unknown or expired
    """
    user = get_session_store().validate_session(session_token)
    if user is None:
        raise UnauthorizedError()
    return user


def require_role(session_token: str | None, role: UserRole) -> User:
    """
    Resolve a session token and check the user's role.

    Raises:
        UnauthorizedError: If the token is missing, unknown or expired
        ForbiddenError: If the user does not have the role
    """
    user = require_user(session_token)
    if user.role != role:
        logger.info("User %s (%s) denied %s-only operation", user.id, user.role, role.value)
        raise ForbiddenError()
    return user


def login(
    user_name: str,
    password: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[str, User]:
    """
    Check credentials, record the login and open a session.

    Raises:
        ValidationError: If a credential is missing
        UnauthorizedError: If the credentials are wrong or the user is inactive
    """
    with session_scope() as session:
        repo = UserRepository(session)
        user = repo.authenticate(user_name, password)
        if user is None:
            logger.info("Failed login for %r", user_name)
            raise UnauthorizedError("Invalid username or password")
        repo.record_login(user.id, ip_address=ip_address, user_agent=user_agent)

    token = get_session_store().create_session(user.id)
    logger.info("User %s (%s) logged in", user.id, user.user_name)
    return token, user


def logout(session_token: str) -> None:
    get_session_store().delete_session(session_token)
