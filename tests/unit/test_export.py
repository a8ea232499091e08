"""
Unit tests for brief export and the clipboard wrapper.

Run: pytest tests/unit/test_export.py -v
"""

from datetime import date

import pytest

from allears.export import ClipboardError, SystemClipboard, brief_filename, export_brief


def test_filename_uses_iso_day():
    assert brief_filename(date(2026, 3, 7)) == "ai-all-ears-brief-2026-03-07.txt"


def test_export_writes_text(tmp_path):
    path = export_brief("Line one\nLine two — done", tmp_path / "briefs", day=date(2026, 1, 2))
    assert path == tmp_path / "briefs" / "ai-all-ears-brief-2026-01-02.txt"
    assert path.read_text(encoding="utf-8") == "Line one\nLine two — done"


def test_export_overwrites_same_day(tmp_path):
    export_brief("old", tmp_path, day=date(2026, 1, 2))
    path = export_brief("new", tmp_path, day=date(2026, 1, 2))
    assert path.read_text(encoding="utf-8") == "new"


def test_clipboard_without_command_raises(monkeypatch):
    clip = SystemClipboard()
    monkeypatch.setattr(clip, "_command", lambda: None)
    with pytest.raises(ClipboardError):
        clip.copy("text")


def test_clipboard_command_failure_raises(monkeypatch):
    clip = SystemClipboard()
    monkeypatch.setattr(clip, "_command", lambda: ["definitely-not-a-real-clipboard-tool"])
    with pytest.raises(ClipboardError):
        clip.copy("text")
