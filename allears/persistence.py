"""Key-value stores and the debounced, change-gated gateway in front of them."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_S = 0.3


class StoreError(Exception):
    """A store could not complete a read or write."""


class KeyValueStore(ABC):
    """Abstract string key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class MemoryStore(KeyValueStore):
    """In-process store; also records every write for inspection."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.writes: list[tuple[str, str]] = []

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value
        self.writes.append((key, value))

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """All keys kept in one JSON object file, replaced atomically on write."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StoreError(f"read failed: {e}") from e
        try:
            data = json.loads(raw or "{}")
        except json.JSONDecodeError:
            logger.warning("[PERSIST] Ignoring corrupt state file %s", self.path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise StoreError(f"write failed: {e}") from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if data.pop(key, None) is not None:
                self._write_all(data)


class PersistenceGateway:
    """Debounced writer in front of a KeyValueStore.

    A save is dropped when the value matches the last one written for the key.
    Otherwise the write waits for a quiet period; a newer save for the same
    key cancels the pending one, so a burst of edits costs one write. Store
    failures are logged and swallowed: the caller's in-memory state stays the
    source of truth.
    """

    def __init__(self, store: KeyValueStore, debounce_s: float = DEFAULT_DEBOUNCE_S):
        self.store = store
        self.debounce_s = float(debounce_s)
        self._written: Dict[str, str] = {}
        self._pending: Dict[str, str] = {}
        self._handles: Dict[str, asyncio.TimerHandle] = {}

    def save(self, key: str, value: str) -> None:
        if key not in self._pending and self._written.get(key) == value:
            return

        self._cancel(key)
        self._pending[key] = value

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to debounce on: write through
            self._flush_key(key)
            return

        self._handles[key] = loop.call_later(self.debounce_s, self._flush_key, key)

    def load(self, key: str) -> Optional[str]:
        if key in self._pending:
            return self._pending[key]
        if key in self._written:
            return self._written[key]
        try:
            value = self.store.get(key)
        except StoreError as e:
            logger.warning("[PERSIST] Read of %s failed: %s", key, e)
            return None
        if value is not None:
            self._written[key] = value
        return value

    def remove(self, key: str) -> None:
        self._cancel(key)
        self._pending.pop(key, None)
        self._written.pop(key, None)
        try:
            self.store.remove(key)
        except (StoreError, OSError) as e:
            logger.warning("[PERSIST] Remove of %s failed: %s", key, e)

    def flush(self) -> None:
        """Write every pending value now."""
        for key in list(self._pending):
            self._cancel(key)
            self._flush_key(key)

    @property
    def pending_keys(self) -> list[str]:
        return list(self._pending)

    def _cancel(self, key: str) -> None:
        handle = self._handles.pop(key, None)
        if handle is not None:
            handle.cancel()

    def _flush_key(self, key: str) -> None:
        self._handles.pop(key, None)
        if key not in self._pending:
            return
        value = self._pending.pop(key)
        if self._written.get(key) == value:
            return
        try:
            self.store.set(key, value)
        except (StoreError, OSError) as e:
            # e.g. disk full / read-only; keep going with in-memory state
            logger.warning("[PERSIST] Write of %s failed: %s", key, e)
            return
        self._written[key] = value
        logger.debug("[PERSIST] Wrote %s (%d chars)", key, len(value))
