"""Clipboard and file export for generated briefs."""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

COPY_FAILED_MESSAGE = "Copy failed. Try selecting the text and copying manually."


class ClipboardError(Exception):
    """Text could not be placed on the clipboard."""


class Clipboard(ABC):
    @abstractmethod
    def copy(self, text: str) -> None:
        """Place `text` on the clipboard or raise ClipboardError."""
        pass


class SystemClipboard(Clipboard):
    """Pipes text into the platform's clipboard command."""

    CANDIDATES = (
        ["pbcopy"],
        ["wl-copy"],
        ["xclip", "-selection", "clipboard"],
        ["xsel", "--clipboard", "--input"],
    )

    def _command(self) -> Optional[List[str]]:
        if sys.platform == "win32":
            return ["clip"]
        for cmd in self.CANDIDATES:
            if shutil.which(cmd[0]):
                return list(cmd)
        return None

    def copy(self, text: str) -> None:
        cmd = self._command()
        if cmd is None:
            raise ClipboardError("no clipboard command available")
        try:
            subprocess.run(cmd, input=text.encode("utf-8"), check=True, timeout=5)
        except (OSError, subprocess.SubprocessError) as e:
            raise ClipboardError(f"{cmd[0]} failed: {e}") from e


def brief_filename(day: date) -> str:
    return f"ai-all-ears-brief-{day.isoformat()}.txt"


def export_brief(text: str, directory: str | Path, day: Optional[date] = None) -> Path:
    """Write the brief document to `directory` and return the file path."""
    target = Path(directory) / brief_filename(day or date.today())
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    logger.info("Exported brief to %s", target)
    return target
