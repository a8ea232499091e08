"""Recognizer abstraction and the per-dictation state machine."""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Protocol

from allears.models import RecognitionResult
from allears.transcript import MergeResult, TranscriptMerger

logger = logging.getLogger(__name__)

STATUS_IDLE = "Mic idle"
STATUS_LISTENING = "Listening…"
STATUS_UNSUPPORTED = "Voice not supported in this environment."
STATUS_BLOCKED = "Mic blocked. Check permissions."


class RecognitionState(str, enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    LISTENING = "listening"
    STOPPING = "stopping"


@dataclass(frozen=True)
class RecognitionConfig:
    language: str = "en-US"
    continuous: bool = True
    interim_results: bool = True


class RecognitionListener(Protocol):
    def on_start(self) -> None: ...
    def on_result(self, batch: List[RecognitionResult]) -> None: ...
    def on_error(self, code: str) -> None: ...
    def on_end(self) -> None: ...


class Recognizer(ABC):
    """Abstract interface for speech recognition engines."""

    @abstractmethod
    def supported(self) -> bool:
        """Whether this platform can run the engine at all."""
        pass

    @abstractmethod
    def start(self, config: RecognitionConfig, listener: RecognitionListener) -> None:
        """Begin a run. Events for the run are delivered to `listener`.

        Raises on immediate failure (e.g. no microphone permission).
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Ask the current run to finish; `on_end` follows asynchronously."""
        pass


class DictationSink(Protocol):
    """What a dictation reports back to its owner."""
    def dictation_started(self, dictation: "DictationSession") -> None: ...
    def dictation_merged(self, dictation: "DictationSession", result: MergeResult) -> None: ...
    def dictation_status(self, dictation: "DictationSession", message: str) -> None: ...
    def dictation_ended(self, dictation: "DictationSession") -> None: ...


class DictationSession:
    """One dictation run: Idle -> Starting -> Listening -> Stopping -> Idle.

    Created per run and never reused. Engine callbacks are accepted only while
    Starting/Listening; anything arriving after stop() (or after the run
    errored) is dropped so it can never touch the draft.
    """

    def __init__(self, recognizer: Recognizer, config: RecognitionConfig, sink: DictationSink):
        self.recognizer = recognizer
        self.config = config
        self.sink = sink
        self.merger = TranscriptMerger()
        self.state = RecognitionState.IDLE
        self.ended = False
        self.last_error: Optional[str] = None
        self._begun = False

    @property
    def active(self) -> bool:
        return self.state in (RecognitionState.STARTING, RecognitionState.LISTENING)

    @property
    def preview(self) -> str:
        return self.merger.preview

    def begin(self) -> bool:
        if self._begun:
            raise RuntimeError("DictationSession is single-use")
        self._begun = True
        self.state = RecognitionState.STARTING
        try:
            self.recognizer.start(self.config, _Listener(self))
        except Exception as e:
            logger.warning("[DICTATION] Recognizer failed to start: %s", e)
            self.last_error = "start_failed"
            self._finish()
            self.sink.dictation_status(self, STATUS_BLOCKED)
            return False
        return True

    def stop(self) -> None:
        """Stop accepting results now; the engine may still be flushing."""
        if not self.active:
            return
        self.merger.discard_preview()
        self.state = RecognitionState.STOPPING
        self.sink.dictation_status(self, STATUS_IDLE)
        try:
            self.recognizer.stop()
        except Exception as e:
            logger.warning("[DICTATION] Recognizer stop raised: %s", e)
            self._finish()

    # -- engine callbacks ------------------------------------------------

    def handle_start(self) -> None:
        if self.state != RecognitionState.STARTING:
            return
        self.state = RecognitionState.LISTENING
        self.sink.dictation_started(self)
        self.sink.dictation_status(self, STATUS_LISTENING)

    def handle_result(self, batch: List[RecognitionResult]) -> None:
        if not self.active:
            logger.debug("[DICTATION] Dropped %d late result(s)", len(batch))
            return
        if self.state == RecognitionState.STARTING:
            # Some engines emit results before onstart
            self.handle_start()
        result = self.merger.merge(batch)
        self.sink.dictation_merged(self, result)

    def handle_error(self, code: str) -> None:
        if not self.active:
            return
        # Idle right away; the run counts as ended once on_end arrives
        self.last_error = code or "unknown"
        logger.warning("[DICTATION] Recognition error: %s", self.last_error)
        self.merger.discard_preview()
        self.state = RecognitionState.IDLE
        self.sink.dictation_status(self, f"Mic error: {self.last_error}")

    def handle_end(self) -> None:
        if self.ended:
            return
        natural_end = self.active
        self.merger.discard_preview()
        self._finish()
        if natural_end:
            self.sink.dictation_status(self, STATUS_IDLE)

    def _finish(self) -> None:
        self.state = RecognitionState.IDLE
        if not self.ended:
            self.ended = True
            self.sink.dictation_ended(self)


class _Listener:
    """Binds engine callbacks to one DictationSession."""

    def __init__(self, dictation: DictationSession):
        self._dictation = dictation

    def on_start(self) -> None:
        self._dictation.handle_start()

    def on_result(self, batch: List[RecognitionResult]) -> None:
        self._dictation.handle_result(list(batch))

    def on_error(self, code: str) -> None:
        self._dictation.handle_error(code)

    def on_end(self) -> None:
        self._dictation.handle_end()


class UnsupportedRecognizer(Recognizer):
    """Stand-in when no recognition engine is available on this platform."""

    def supported(self) -> bool:
        return False

    def start(self, config: RecognitionConfig, listener: RecognitionListener) -> None:
        raise RuntimeError(STATUS_UNSUPPORTED)

    def stop(self) -> None:
        pass

