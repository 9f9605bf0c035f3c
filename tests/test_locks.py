"""Tests for per-key locking."""

import threading
import time

from outreach_flow.locks import KeyedLock


class TestKeyedLock:
    def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order = []

        def worker():
            with locks.hold("lead:1"):
                order.append("second")

        with locks.hold("lead:1"):
            thread = threading.Thread(target=worker)
            thread.start()
            time.sleep(0.05)
            order.append("first")
            assert locks.is_held("lead:1")
        thread.join(timeout=2)

        assert order == ["first", "second"]

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        done = threading.Event()

        def worker():
            with locks.hold("lead:2"):
                done.set()

        with locks.hold("lead:1"):
            thread = threading.Thread(target=worker)
            thread.start()
            assert done.wait(timeout=2)
        thread.join(timeout=2)

    def test_entries_cleaned_up(self):
        locks = KeyedLock()
        with locks.hold("sequence:9"):
            pass
        assert not locks.is_held("sequence:9")
        assert locks._locks == {}

    def test_released_on_error(self):
        locks = KeyedLock()
        try:
            with locks.hold("lead:3"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        start = time.monotonic()
        with locks.hold("lead:3"):
            pass
        assert time.monotonic() - start < 1
