"""The capture session: draft, undo history, dictation and brief in one owner."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from allears.brief import BriefRejected, BriefSynthesizer
from allears.catalog import Catalog
from allears.export import COPY_FAILED_MESSAGE, Clipboard, ClipboardError, SystemClipboard, export_brief
from allears.history import DraftHistory
from allears.models import Brief, BriefRequest, count_words
from allears.persistence import PersistenceGateway
from allears.recognition import (
    STATUS_IDLE,
    STATUS_UNSUPPORTED,
    DictationSession,
    RecognitionConfig,
    Recognizer,
    UnsupportedRecognizer,
)
from allears.state import VOICE_FIELDS, SessionSettings
from allears.transcript import PREVIEW_PLACEHOLDER, MergeResult, insert_at_cursor

logger = logging.getLogger(__name__)

KEY_DRAFT = "allears.draft"
KEY_HISTORY = "allears.history"
KEY_SETTINGS = "allears.settings"
KEY_BRIEF_TEXT = "allears.brief.text"
KEY_BRIEF_RECORD = "allears.brief.record"

NOTHING_TO_UNDO = "Nothing to undo."
NOTHING_TO_EXPORT = "Nothing yet."


class CaptureSession:
    """Single owner of the draft for one local user.

    Collaborators (store gateway, recognizer, clipboard, clock) are passed in.
    A DictationSession is created per dictation run and replaced on
    configuration change; the draft is only mutated through this object.
    """

    def __init__(
        self,
        catalog: Catalog,
        gateway: PersistenceGateway,
        recognizer: Optional[Recognizer] = None,
        clipboard: Optional[Clipboard] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.catalog = catalog
        self.gateway = gateway
        self.recognizer = recognizer or UnsupportedRecognizer()
        self.clipboard = clipboard or SystemClipboard()
        self.synthesizer = BriefSynthesizer(catalog, clock=clock)

        self.settings = SessionSettings(lang=catalog.app.default_language)
        self.text = ""
        self.cursor = 0
        self.history = DraftHistory()

        self.voice_supported = catalog.voice_enabled and self.recognizer.supported()
        self.status = STATUS_IDLE if self.voice_supported else STATUS_UNSUPPORTED
        self.message: Optional[str] = None

        self.dictation: Optional[DictationSession] = None
        self._restart_pending = False
        self._anchor: Optional[Tuple[str, str]] = None

        self.brief: Optional[Brief] = None
        self.brief_text = ""
        self.brief_json = ""

        self._subscribers: List[asyncio.Queue] = []

    # -- persistence -------------------------------------------------------

    def restore(self) -> None:
        """Rehydrate settings, draft, undo snapshots and the last brief."""
        raw = self.gateway.load(KEY_SETTINGS)
        if raw:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("[PERSIST] Ignoring corrupt settings")
                data = {}
            if isinstance(data, dict):
                self.settings = SessionSettings.from_dict(data, self.settings)

        self.text = self.gateway.load(KEY_DRAFT) or ""
        self.cursor = len(self.text)

        snapshots: List[str] = []
        raw = self.gateway.load(KEY_HISTORY)
        if raw:
            try:
                loaded = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("[PERSIST] Ignoring corrupt undo history")
                loaded = []
            if isinstance(loaded, list):
                snapshots = [s for s in loaded if isinstance(s, str)]
        self.history = DraftHistory(snapshots)
        self.history.push(self.text)

        self.brief_text = self.gateway.load(KEY_BRIEF_TEXT) or ""
        self.brief_json = self.gateway.load(KEY_BRIEF_RECORD) or ""

    def _save_draft(self) -> None:
        if not self.catalog.app.autosave:
            return
        self.gateway.save(KEY_DRAFT, self.text)
        self.gateway.save(KEY_HISTORY, json.dumps(self.history.snapshots(), ensure_ascii=False))

    def _save_settings(self) -> None:
        if not self.catalog.app.autosave:
            return
        self.gateway.save(KEY_SETTINGS, json.dumps(self.settings.to_dict(), ensure_ascii=False, sort_keys=True))

    # -- events ------------------------------------------------------------

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=100)
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)

    def _publish(self, kind: str, **payload: Any) -> None:
        event = {"type": kind, **payload}
        for q in list(self._subscribers):
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                # slow consumer; it can resync from /state
                pass

    # -- draft ---------------------------------------------------------------

    @property
    def word_count(self) -> int:
        return count_words(self.text)

    @property
    def preview(self) -> str:
        if self.dictation is None:
            return ""
        return self.dictation.preview

    def _set_draft(self, text: str, cursor: int) -> None:
        self.text = text
        self.cursor = max(0, min(len(text), cursor))
        self.history.push(text)
        self._save_draft()
        self._publish("draft", text=self.text, cursor=self.cursor, words=self.word_count,
                      can_undo=self.history.can_undo)

    def _reanchor(self) -> None:
        """Dictated text continues at the cursor of the draft as it is now."""
        if self.dictation is not None and self.dictation.active:
            self.dictation.merger.rebase()
            self._anchor = (self.text[:self.cursor], self.text[self.cursor:])

    def edit(self, text: str, cursor: Optional[int] = None) -> None:
        """Direct user edit of the draft."""
        text = text or ""
        cursor = len(text) if cursor is None else cursor
        if text == self.text:
            self.cursor = max(0, min(len(text), cursor))
            self._reanchor()
            return
        self._set_draft(text, cursor)
        self._reanchor()

    def clear(self) -> None:
        if self.dictation is not None:
            self.dictation.merger.discard_preview()
        self._set_draft("", 0)
        self._reanchor()
        self._publish("preview", text=PREVIEW_PLACEHOLDER)

    def undo(self) -> bool:
        restored = self.history.undo()
        if restored is None:
            self.message = NOTHING_TO_UNDO
            return False
        self.text = restored
        self.cursor = len(restored)
        self._save_draft()
        self._reanchor()
        self._publish("draft", text=self.text, cursor=self.cursor, words=self.word_count,
                      can_undo=self.history.can_undo)
        return True

    def insert_preview(self) -> bool:
        """Commit the visible interim preview into the draft at the cursor."""
        if self.dictation is None or not self.preview:
            return False
        text = self.dictation.merger.absorb_preview()
        if not text:
            return False
        new_text, new_cursor = insert_at_cursor(self.text, self.cursor, text)
        self._set_draft(new_text, new_cursor)
        self._reanchor()
        self._publish("preview", text=PREVIEW_PLACEHOLDER)
        return True

    # -- interview & settings ------------------------------------------------

    def set_answer(self, qid: str, answer: str) -> None:
        answer = (answer or "").strip()
        if answer:
            self.settings.answers[qid] = answer
        else:
            self.settings.answers.pop(qid, None)
        self._save_settings()

    def update_settings(self, **changes: Any) -> None:
        voice_changed = False
        for name, value in changes.items():
            if value is None or name == "answers" or not hasattr(self.settings, name):
                continue
            if getattr(self.settings, name) != value:
                setattr(self.settings, name, value)
                voice_changed = voice_changed or name in VOICE_FIELDS
        self._save_settings()

        if voice_changed and self.dictation is not None and self.dictation.active:
            # The dictation is bound to its config: recreate it
            logger.info("[DICTATION] Voice settings changed, restarting dictation")
            self.stop_dictation()
            self.start_dictation()

    # -- dictation -------------------------------------------------------------

    def start_dictation(self) -> bool:
        if not self.voice_supported:
            self.status = STATUS_UNSUPPORTED
            self._publish("status", text=self.status)
            return False
        if self.dictation is not None and self.dictation.active:
            return False
        if self.dictation is not None and not self.dictation.ended:
            # Previous run is still flushing; start once it has ended
            self._restart_pending = True
            return True
        return self._begin_dictation()

    def _begin_dictation(self) -> bool:
        config = RecognitionConfig(
            language=self.settings.lang or self.catalog.app.default_language,
            continuous=self.settings.continuous,
            interim_results=self.settings.interim,
        )
        self._anchor = None
        self.dictation = DictationSession(self.recognizer, config, self)
        logger.info("[DICTATION] Starting (lang=%s continuous=%s interim=%s)",
                    config.language, config.continuous, config.interim_results)
        return self.dictation.begin()

    def stop_dictation(self) -> None:
        self._restart_pending = False
        if self.dictation is None:
            return
        self.dictation.stop()
        self._anchor = None
        self._publish("preview", text=PREVIEW_PLACEHOLDER)

    # DictationSink

    def dictation_started(self, dictation: DictationSession) -> None:
        if dictation is not self.dictation:
            return
        self._anchor = (self.text[:self.cursor], self.text[self.cursor:])

    def dictation_merged(self, dictation: DictationSession, result: MergeResult) -> None:
        if dictation is not self.dictation:
            return
        self._publish("preview", text=result.preview or PREVIEW_PLACEHOLDER)
        if not result.has_final:
            return
        if self._anchor is None:
            self._anchor = (self.text[:self.cursor], self.text[self.cursor:])
        before, after = self._anchor
        new_text, new_cursor = insert_at_cursor(before + after, len(before), dictation.merger.committed)
        self._set_draft(new_text, new_cursor)

    def dictation_status(self, dictation: DictationSession, message: str) -> None:
        if dictation is not self.dictation:
            return
        self.status = message
        self._publish("status", text=message, state=dictation.state.value)

    def dictation_ended(self, dictation: DictationSession) -> None:
        if dictation is not self.dictation:
            return
        self._anchor = None
        if self._restart_pending:
            self._restart_pending = False
            self._begin_dictation()

    # -- brief -------------------------------------------------------------------

    def build_request(self) -> BriefRequest:
        s = self.settings
        return BriefRequest(
            vision=self.text,
            tier_key=s.tier,
            tier=self.catalog.tier(s.tier),
            answers=dict(s.answers),
            industry=s.industry,
            language=s.lang or self.catalog.app.default_language,
            consent=s.consent,
            continuous=s.continuous,
            live_preview=s.interim,
        )

    def generate_brief(self) -> Optional[Brief]:
        """Synthesize and persist a brief; None (with self.message set) if rejected."""
        try:
            brief = self.synthesizer.synthesize(self.build_request())
        except BriefRejected as e:
            self.message = str(e)
            self._publish("message", text=self.message)
            return None

        self.brief = brief
        self.brief_text = brief.document
        self.brief_json = brief.record_json
        self.message = None
        self.gateway.save(KEY_BRIEF_TEXT, self.brief_text)
        self.gateway.save(KEY_BRIEF_RECORD, self.brief_json)
        self._publish("brief", text=self.brief_text, record=self.brief_json)
        return brief

    def copy_brief(self) -> bool:
        if not self.brief_text:
            self.message = NOTHING_TO_EXPORT
            return False
        try:
            self.clipboard.copy(self.brief_text)
        except ClipboardError as e:
            logger.warning("Clipboard copy failed: %s", e)
            self.message = COPY_FAILED_MESSAGE
            return False
        return True

    def export_brief(self, directory: str | Path) -> Optional[Path]:
        if not self.brief_text:
            self.message = NOTHING_TO_EXPORT
            return None
        try:
            return export_brief(self.brief_text, directory)
        except OSError as e:
            logger.warning("Export failed: %s", e)
            self.message = f"Export failed: {e}"
            return None

    # -- lifecycle -----------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        return {
            "draft": {
                "text": self.text,
                "cursor": self.cursor,
                "words": self.word_count,
                "can_undo": self.history.can_undo,
            },
            "preview": self.preview or PREVIEW_PLACEHOLDER,
            "mic": {
                "supported": self.voice_supported,
                "state": self.dictation.state.value if self.dictation else "idle",
                "status": self.status,
            },
            "settings": self.settings.to_dict(),
            "questions": [q.to_dict() for q in self.catalog.questions],
            "tiers": {k: t.to_dict() for k, t in self.catalog.tiers.items()},
            "app": {
                "version": self.catalog.app.version,
                "modes": self.catalog.app.modes if self.voice_supported else ["text"],
                "autosave": self.catalog.app.autosave,
                "languages": self.catalog.supported_languages,
            },
            "brief": {"text": self.brief_text, "record": self.brief_json},
            "message": self.message,
        }

    def shutdown(self) -> None:
        self.stop_dictation()
        self.gateway.flush()
