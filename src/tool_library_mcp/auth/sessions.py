"""
Session store for staff logins.

A session token is an opaque 256-bit random hex string mapped to the user
id and creation time. Sessions live in process memory only, so a restart
logs everybody out. Expired entries are evicted lazily on validation and
periodically by ``SessionSweeper``.
"""

import logging
import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class SessionData:
    user_id: int
    created_at: float


class SessionBackend(Protocol):
    """Key-value storage for sessions."""

    def get(self, token: str) -> SessionData | None: ...

    def set(self, token: str, data: SessionData) -> None: ...

    def delete(self, token: str) -> None: ...

    def evict_where(self, predicate: Callable[[SessionData], bool]) -> int: ...


class InMemorySessionBackend:
    """Lock-protected dict; safe to share between handler and sweeper threads."""

    def __init__(self):
        self._data: dict[str, SessionData] = {}
        self._lock = threading.Lock()

    def get(self, token: str) -> SessionData | None:
        with self._lock:
            return self._data.get(token)

    def set(self, token: str, data: SessionData) -> None:
        with self._lock:
            self._data[token] = data

    def delete(self, token: str) -> None:
        with self._lock:
            self._data.pop(token, None)

    def evict_where(self, predicate: Callable[[SessionData], bool]) -> int:
        with self._lock:
            doomed = [token for token, data in self._data.items() if predicate(data)]
            for token in doomed:
                del self._data[token]
        return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class SessionStore:
    """
    Creates, validates and expires session tokens.

    ``user_loader`` maps a user id to the user, or None when the user is
    gone or inactive; such sessions are evicted on validation.
    """

    def __init__(
        self,
        user_loader: Callable[[int], object | None],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        backend: SessionBackend | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.user_loader = user_loader
        self.ttl_seconds = ttl_seconds
        self.backend = backend if backend is not None else InMemorySessionBackend()
        self.clock = clock

    def _expired(self, data: SessionData, now: float) -> bool:
        return now - data.created_at > self.ttl_seconds

    def create_session(self, user_id: int) -> str:
        token = secrets.token_hex(32)
        self.backend.set(token, SessionData(user_id=user_id, created_at=self.clock()))
        logger.debug("Created session for user %s", user_id)
        return token

    def validate_session(self, token: str | None):
        """The session's user, or None if the token is unknown, expired or the user inactive."""
        if not token:
            return None

        data = self.backend.get(token)
        if data is None:
            return None

        if self._expired(data, self.clock()):
            self.backend.delete(token)
            logger.debug("Session for user %s expired", data.user_id)
            return None

        user = self.user_loader(data.user_id)
        if user is None:
            self.backend.delete(token)
            logger.info("Dropped session of missing or inactive user %s", data.user_id)
            return None
        return user

    def delete_session(self, token: str) -> None:
        self.backend.delete(token)

    def cleanup_expired(self) -> int:
        now = self.clock()
        removed = self.backend.evict_where(lambda data: self._expired(data, now))
        if removed:
            logger.info("Evicted %d expired session(s)", removed)
        return removed


class SessionSweeper:
    """Daemon thread that runs ``cleanup_expired`` on a fixed interval."""

    def __init__(self, store: SessionStore, interval_seconds: float):
        self.store = store
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="session-sweeper", daemon=True)
        self._thread.start()
        logger.info("Session sweeper started (every %ss)", self.interval_seconds)

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.store.cleanup_expired()
            except Exception:
                logger.exception("Session sweep failed")

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
