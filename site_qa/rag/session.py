"""Per-session index storage with shared-read / exclusive-write access."""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from .index import Index

logger = logging.getLogger(__name__)

DEFAULT_SESSION = "default"


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Waiting writers block new readers so a long stream of questions cannot
    starve an index update.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self):
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class SessionSlot:
    """One session's index and its lock. ``index`` is None until the first build succeeds."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.lock = ReadWriteLock()
        self.index: Index | None = None


class SessionStore:
    """Maps session ids to indexes.

    Readers (question answering) hold a session's read lock for the whole
    query; builds and extensions hold its write lock for their whole duration.
    The session map itself is guarded by a plain mutex held only briefly.
    """

    def __init__(self):
        self._slots: dict[str, SessionSlot] = {}
        self._lock = threading.Lock()

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            slot = self._slots.get(session_id)
        return slot is not None and slot.index is not None

    def session_ids(self) -> list[str]:
        with self._lock:
            return [sid for sid, slot in self._slots.items() if slot.index is not None]

    @contextmanager
    def reading(self, session_id: str) -> Iterator[Index | None]:
        """Hold the session's read lock and yield its index (None if it has none)."""
        with self._lock:
            slot = self._slots.get(session_id)
        if slot is None:
            yield None
            return
        with slot.lock.read():
            yield slot.index

    @contextmanager
    def writing(self, session_id: str) -> Iterator[SessionSlot]:
        """Hold the session's write lock and yield its slot for building or extending.

        The slot only counts as a session once ``slot.index`` is set, so a failed
        first build leaves no session behind.
        """
        with self._lock:
            slot = self._slots.get(session_id)
            if slot is None:
                slot = SessionSlot(session_id)
                self._slots[session_id] = slot

        with slot.lock.write():
            yield slot
            if slot.index is not None:
                logger.debug(f"[RAG] Session {session_id} now holds {slot.index.total_docs} chunks")
