"""
Unit tests for the key-value stores and the debounced persistence gateway.

Async behavior runs inside asyncio.run so the gateway has a loop to
debounce on.

Run: pytest tests/unit/test_persistence.py -v
"""

import asyncio
import json

from allears.persistence import (
    JsonFileStore,
    MemoryStore,
    PersistenceGateway,
    StoreError,
)

QUIET = 0.02


class FailingStore(MemoryStore):
    def __init__(self):
        super().__init__()
        self.fail = True
        self.attempts = 0

    def set(self, key, value):
        self.attempts += 1
        if self.fail:
            raise StoreError("quota exceeded")
        super().set(key, value)


class TestDebounce:

    def test_burst_coalesces_into_one_write(self):
        store = MemoryStore()

        async def scenario():
            gw = PersistenceGateway(store, debounce_s=QUIET)
            for i in range(10):
                gw.save("draft", f"v{i}")
            assert store.writes == []
            await asyncio.sleep(QUIET * 5)

        asyncio.run(scenario())
        assert store.writes == [("draft", "v9")]

    def test_new_save_restarts_quiet_period(self):
        store = MemoryStore()

        async def scenario():
            gw = PersistenceGateway(store, debounce_s=0.2)
            gw.save("draft", "a")
            await asyncio.sleep(0.12)
            gw.save("draft", "b")
            await asyncio.sleep(0.12)
            assert store.writes == []
            await asyncio.sleep(0.25)

        asyncio.run(scenario())
        assert store.writes == [("draft", "b")]

    def test_unchanged_value_is_not_rewritten(self):
        store = MemoryStore()

        async def scenario():
            gw = PersistenceGateway(store, debounce_s=QUIET)
            gw.save("draft", "same")
            await asyncio.sleep(QUIET * 5)
            gw.save("draft", "same")
            gw.save("draft", "same")
            await asyncio.sleep(QUIET * 5)

        asyncio.run(scenario())
        assert store.writes == [("draft", "same")]

    def test_reverting_within_window_writes_nothing(self):
        store = MemoryStore()

        async def scenario():
            gw = PersistenceGateway(store, debounce_s=QUIET)
            gw.save("draft", "original")
            await asyncio.sleep(QUIET * 5)
            gw.save("draft", "typo")
            gw.save("draft", "original")
            await asyncio.sleep(QUIET * 5)

        asyncio.run(scenario())
        assert store.writes == [("draft", "original")]

    def test_keys_are_independent(self):
        store = MemoryStore()

        async def scenario():
            gw = PersistenceGateway(store, debounce_s=QUIET)
            gw.save("a", "1")
            gw.save("b", "2")
            gw.save("a", "3")
            await asyncio.sleep(QUIET * 5)

        asyncio.run(scenario())
        assert sorted(store.writes) == [("a", "3"), ("b", "2")]

    def test_flush_writes_pending_immediately(self):
        store = MemoryStore()

        async def scenario():
            gw = PersistenceGateway(store, debounce_s=10)
            gw.save("draft", "now")
            gw.flush()
            assert store.writes == [("draft", "now")]
            assert gw.pending_keys == []

        asyncio.run(scenario())


class TestGateway:

    def test_write_through_without_loop(self):
        store = MemoryStore()
        gw = PersistenceGateway(store)
        gw.save("k", "v")
        gw.save("k", "v")
        assert store.writes == [("k", "v")]

    def test_load_prefers_pending_then_written_then_store(self):
        store = MemoryStore({"k": "stored"})

        async def scenario():
            gw = PersistenceGateway(store, debounce_s=10)
            assert gw.load("k") == "stored"
            gw.save("k", "pending")
            assert gw.load("k") == "pending"
            assert gw.load("missing") is None

        asyncio.run(scenario())

    def test_write_failure_is_swallowed(self):
        store = FailingStore()
        gw = PersistenceGateway(store)
        gw.save("k", "v1")
        assert store.attempts == 1
        assert store.writes == []

        store.fail = False
        gw.save("k", "v1")
        assert store.writes == [("k", "v1")]

    def test_remove(self):
        store = MemoryStore({"k": "v"})
        gw = PersistenceGateway(store)
        assert gw.load("k") == "v"
        gw.remove("k")
        assert gw.load("k") is None
        assert "k" not in store.data


class TestJsonFileStore:

    def test_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "state.json"
        store = JsonFileStore(path)
        assert store.get("draft") is None
        store.set("draft", "hello")
        store.set("settings", "{}")
        assert JsonFileStore(path).get("draft") == "hello"
        assert json.loads(path.read_text(encoding="utf-8")) == {"draft": "hello", "settings": "{}"}

    def test_remove(self, tmp_path):
        store = JsonFileStore(tmp_path / "state.json")
        store.set("a", "1")
        store.remove("a")
        store.remove("never-there")
        assert store.get("a") is None

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonFileStore(path)
        assert store.get("draft") is None
        store.set("draft", "fresh")
        assert store.get("draft") == "fresh"

    def test_unwritable_location_does_not_raise(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        store = JsonFileStore(blocker / "state.json")
        gw = PersistenceGateway(store)
        # parent is a regular file: the write fails but the gateway carries on
        gw.save("draft", "text")
        assert gw.load("draft") is None
