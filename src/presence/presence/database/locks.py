"""Per-user serialization of attendance mutations.

Time-in, time-out and correction application for one user must not
interleave; different users never wait on each other.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import ContextManager, Iterator, Protocol
from weakref import WeakValueDictionary

import mysql.connector

from ..core.constants import USER_LOCK_TIMEOUT_SECONDS
from ..core.exceptions import PersistenceError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)


class UserLocks(Protocol):
    def hold(self, user_id: int) -> ContextManager[None]:
        raise NotImplementedError


class InProcessUserLocks:
    """Keyed threading locks; serializes users only inside one process."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "WeakValueDictionary[int, threading.Lock]" = WeakValueDictionary()

    def _lock_for(self, user_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(int(user_id))
            if lock is None:
                lock = threading.Lock()
                self._locks[int(user_id)] = lock
            return lock

    @contextmanager
    def hold(self, user_id: int) -> Iterator[None]:
        lock = self._lock_for(user_id)
        with lock:
            yield


class MySQLUserLocks:
    """Advisory lock per user via MySQL GET_LOCK, shared by every app process."""

    def __init__(self, conn_factory: DatabaseConnection, *, timeout_seconds: int = USER_LOCK_TIMEOUT_SECONDS):
        self._conn_factory = conn_factory
        self._timeout = int(timeout_seconds)

    @staticmethod
    def _name(user_id: int) -> str:
        return f"presence:user:{int(user_id)}"

    @contextmanager
    def hold(self, user_id: int) -> Iterator[None]:
        name = self._name(user_id)
        try:
            conn = self._conn_factory.connect()
        except mysql.connector.Error as exc:
            raise PersistenceError("Database unavailable") from exc
        cur = conn.cursor()
        try:
            try:
                cur.execute("SELECT GET_LOCK(%s, %s)", (name, self._timeout))
                row = cur.fetchone()
            except mysql.connector.Error as exc:
                raise PersistenceError(f"Could not acquire attendance lock of user {user_id}") from exc
            if not row or row[0] != 1:
                raise PersistenceError(f"Timed out waiting for attendance lock of user {user_id}")
            logger.debug("Acquired %s", name)
            try:
                yield
            finally:
                cur.execute("SELECT RELEASE_LOCK(%s)", (name,))
                cur.fetchone()
        finally:
            cur.close()
            conn.close()
