"""Tests for the shared status store."""

import threading
from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from pin_client.state import ReadWriteLock, StateStore


class TestStateStore:

    def test_initial_snapshot(self, store):
        snap = store.snapshot()
        assert snap.connected is False
        assert snap.operator_id is None
        assert snap.last_heartbeat is None
        assert snap.models == ()
        assert snap.current_load == 0
        assert snap.total_requests == 0
        assert snap.session_state == "disconnected"

    def test_snapshot_is_frozen_copy(self, store):
        store.set_models(["a"])
        snap = store.snapshot()
        store.set_models(["b", "c"])
        assert snap.models == ("a",)
        with pytest.raises(FrozenInstanceError):
            snap.connected = True

    def test_latest_model_listing_wins(self, store):
        store.set_models(["a", "b"])
        store.set_models(["c"])
        assert store.snapshot().models == ("c",)

    def test_connect_then_disconnect_keeps_counters(self, store):
        store.mark_connected("op1")
        store.begin_request()
        store.end_request()
        store.mark_disconnected()
        snap = store.snapshot()
        assert snap.connected is False
        assert snap.operator_id == "op1"
        assert snap.total_requests == 1

    def test_load_never_negative(self, store):
        store.end_request()
        store.end_request()
        assert store.snapshot().current_load == 0

    def test_load_accounting(self, store):
        for _ in range(3):
            store.begin_request()
        assert store.snapshot().current_load == 3
        for _ in range(3):
            store.end_request()
        snap = store.snapshot()
        assert snap.current_load == 0
        assert snap.total_requests == 3

    def test_heartbeat_never_moves_backwards(self, store):
        now = datetime.now(timezone.utc)
        assert store.record_heartbeat(now) == now
        assert store.record_heartbeat(now - timedelta(seconds=5)) == now
        later = now + timedelta(seconds=1)
        assert store.record_heartbeat(later) == later
        assert store.snapshot().last_heartbeat == later

    def test_to_dict(self, store):
        when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        store.mark_connected("op1")
        store.record_heartbeat(when)
        store.set_models(["llama2"])
        assert store.snapshot().to_dict() == {
            "connected": True,
            "operator_id": "op1",
            "last_heartbeat": "2024-01-02T03:04:05+00:00",
            "models": ["llama2"],
            "current_load": 0,
            "total_requests": 0,
            "session_state": "disconnected",
        }

    def test_concurrent_writers_and_readers(self, store):
        """Counters stay exact with many threads writing and reading."""
        def worker():
            for _ in range(200):
                store.begin_request()
                store.snapshot()
                store.end_request()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snap = store.snapshot()
        assert snap.total_requests == 1600
        assert snap.current_load == 0


class TestReadWriteLock:

    def test_readers_share(self):
        lock = ReadWriteLock()
        with lock.read():
            with lock.read():
                pass

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        entered = threading.Event()

        def reader():
            with lock.read():
                entered.set()

        with lock.write():
            t = threading.Thread(target=reader)
            t.start()
            assert not entered.wait(0.1)
        t.join(1.0)
        assert entered.is_set()
