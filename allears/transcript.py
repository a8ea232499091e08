"""Merging of streamed recognition results into draft text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Set, Tuple

from allears.models import RecognitionResult

# Finalized text longer than this gets closing punctuation
SENTENCE_MIN_CHARS = 20
SENTENCE_ENDINGS = (".", "!", "?")

# What the UI shows when there is no interim speech
PREVIEW_PLACEHOLDER = "—"

_WS = re.compile(r"\s+")


def normalize_transcript(text: str) -> str:
    """
    Tidy finalized speech before it lands in the draft.

    Collapses whitespace, capitalizes the first character and closes longer
    utterances with a period. Applying it twice changes nothing.
    """
    s = _WS.sub(" ", text or "").strip()
    if not s:
        return ""
    s = s[0].upper() + s[1:]
    if len(s) > SENTENCE_MIN_CHARS and not s.endswith(SENTENCE_ENDINGS):
        s += "."
    return s


def insert_at_cursor(text: str, cursor: int, insertion: str) -> Tuple[str, int]:
    """Insert `insertion` at `cursor`, keeping exactly one space on each side.

    Returns the new text and the cursor position just after the insertion.
    """
    text = text or ""
    cursor = max(0, min(len(text), int(cursor)))
    if not insertion:
        return text, cursor

    before = text[:cursor]
    after = text[cursor:]
    lead = " " if before and not before[-1].isspace() else ""
    tail = " " if after and not after[0].isspace() else ""
    merged = f"{before}{lead}{insertion}{tail}{after}"
    return merged, len(before) + len(lead) + len(insertion)


@dataclass(frozen=True)
class MergeResult:
    finalized: str  # finals from this batch, trimmed and space-joined
    preview: str  # interim text from this batch, replaces the previous preview

    @property
    def has_final(self) -> bool:
        return bool(self.finalized)


class TranscriptMerger:
    """Turns a stream of result batches into committed text and a live preview.

    Finals are remembered per insertion span so that the committed text does
    not depend on how the engine split results across events.
    """

    def __init__(self) -> None:
        self._consumed: Set[int] = set()
        self._span: Dict[int, str] = {}
        self._preview_indices: Set[int] = set()
        self.preview = ""

    def merge(self, batch: Iterable[RecognitionResult]) -> MergeResult:
        finals = []
        interim = []
        interim_indices = set()
        for res in sorted(batch, key=lambda r: r.index):
            if res.is_final:
                if res.index in self._consumed:
                    continue
                self._consumed.add(res.index)
                t = (res.transcript or "").strip()
                if t:
                    self._span[res.index] = t
                    finals.append(t)
            else:
                if res.index in self._consumed:
                    continue
                interim.append(res.transcript or "")
                interim_indices.add(res.index)

        preview = "".join(interim)
        self.preview = preview if preview.strip() else ""
        self._preview_indices = interim_indices if self.preview else set()
        return MergeResult(finalized=" ".join(finals), preview=self.preview)

    @property
    def committed(self) -> str:
        """Normalized text of every final result in the current span."""
        return normalize_transcript(" ".join(self._span[i] for i in sorted(self._span)))

    def rebase(self) -> None:
        """Start a new insertion span; consumed indices stay consumed."""
        self._span.clear()

    def discard_preview(self) -> None:
        self.preview = ""
        self._preview_indices = set()

    def absorb_preview(self) -> str:
        """Take the current preview as committed text.

        The slots it came from are marked consumed so their later finals are
        not inserted a second time.
        """
        text = normalize_transcript(self.preview)
        self._consumed.update(self._preview_indices)
        self.discard_preview()
        return text
