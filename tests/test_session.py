"""Tests for the session store and its readers-writer lock."""

import threading

import pytest

from site_qa.rag.index import Index
from site_qa.rag.session import ReadWriteLock, SessionStore


@pytest.mark.unit
class TestReadWriteLock:
    """Test ReadWriteLock."""

    def test_readers_share(self):
        """Test that two readers hold the lock at the same time."""
        lock = ReadWriteLock()
        barrier = threading.Barrier(2, timeout=5)
        errors = []

        def reader():
            with lock.read():
                try:
                    barrier.wait()
                except threading.BrokenBarrierError as e:
                    errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert errors == []

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        entered = threading.Event()

        def reader():
            with lock.read():
                entered.set()

        lock.acquire_write()
        thread = threading.Thread(target=reader)
        thread.start()
        try:
            assert not entered.wait(timeout=0.2)
        finally:
            lock.release_write()

        assert entered.wait(timeout=5)
        thread.join(timeout=5)

    def test_writer_waits_for_reader(self):
        lock = ReadWriteLock()
        written = threading.Event()

        def writer():
            with lock.write():
                written.set()

        lock.acquire_read()
        thread = threading.Thread(target=writer)
        thread.start()
        try:
            assert not written.wait(timeout=0.2)
        finally:
            lock.release_read()

        assert written.wait(timeout=5)
        thread.join(timeout=5)


@pytest.mark.unit
class TestSessionStore:
    """Test SessionStore."""

    def test_missing_session_reads_none(self):
        store = SessionStore()

        with store.reading("nope") as index:
            assert index is None
        assert "nope" not in store

    def test_write_then_read(self):
        store = SessionStore()
        built = Index(embed_model_id="e", gen_model_id="g")

        with store.writing("s1") as slot:
            slot.index = built

        assert "s1" in store
        assert store.session_ids() == ["s1"]
        with store.reading("s1") as index:
            assert index is built

    def test_failed_first_build_leaves_no_session(self):
        store = SessionStore()

        with pytest.raises(RuntimeError):
            with store.writing("s1"):
                raise RuntimeError("embedding failed")

        assert "s1" not in store
        assert store.session_ids() == []

    def test_sessions_are_independent(self):
        store = SessionStore()
        for session_id in ("a", "b"):
            with store.writing(session_id) as slot:
                slot.index = Index(embed_model_id=session_id, gen_model_id="g")

        with store.reading("a") as index:
            assert index.embed_model_id == "a"
        assert sorted(store.session_ids()) == ["a", "b"]
