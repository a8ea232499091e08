"""Shared fixtures and fakes for the allears test-suite."""

from datetime import datetime, timezone
from typing import List, Optional

import pytest

from allears.catalog import build_catalog
from allears.export import Clipboard, ClipboardError
from allears.models import RecognitionResult
from allears.persistence import MemoryStore, PersistenceGateway
from allears.recognition import RecognitionConfig, Recognizer
from allears.session import CaptureSession

FROZEN_NOW = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def final(index: int, text: str) -> RecognitionResult:
    return RecognitionResult(index=index, transcript=text, is_final=True)


def interim(index: int, text: str) -> RecognitionResult:
    return RecognitionResult(index=index, transcript=text, is_final=False)


class FakeRecognizer(Recognizer):
    """Scriptable recognizer: the test drives every engine callback."""

    def __init__(self, supported: bool = True, fail_start: bool = False):
        self._supported = supported
        self.fail_start = fail_start
        self.configs: List[RecognitionConfig] = []
        self.listeners = []
        self.stop_calls = 0

    @property
    def listener(self):
        return self.listeners[-1]

    @property
    def start_calls(self) -> int:
        return len(self.configs)

    def supported(self) -> bool:
        return self._supported

    def start(self, config, listener) -> None:
        if self.fail_start:
            raise PermissionError("not-allowed")
        self.configs.append(config)
        self.listeners.append(listener)

    def stop(self) -> None:
        self.stop_calls += 1

    # helpers
    def emit_start(self):
        self.listener.on_start()

    def emit(self, *results):
        self.listener.on_result(list(results))

    def emit_error(self, code: str):
        self.listener.on_error(code)

    def emit_end(self):
        self.listener.on_end()


class FakeClipboard(Clipboard):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.copied: List[str] = []

    def copy(self, text: str) -> None:
        if self.fail:
            raise ClipboardError("clipboard unavailable")
        self.copied.append(text)


@pytest.fixture
def catalog():
    return build_catalog()


@pytest.fixture
def clock():
    return lambda: FROZEN_NOW


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def gateway(store):
    return PersistenceGateway(store, debounce_s=0.01)


@pytest.fixture
def recognizer():
    return FakeRecognizer()


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def session(catalog, gateway, recognizer, clipboard, clock):
    s = CaptureSession(catalog, gateway, recognizer=recognizer, clipboard=clipboard, clock=clock)
    s.restore()
    return s


def make_session(catalog, store: Optional[MemoryStore] = None, **kwargs) -> CaptureSession:
    gateway = PersistenceGateway(store if store is not None else MemoryStore(), debounce_s=0.01)
    s = CaptureSession(catalog, gateway, **kwargs)
    s.restore()
    return s
