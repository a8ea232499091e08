"""Bounded undo history over draft text snapshots."""

from typing import Iterable, List, Optional

UNDO_MAX = 25


class DraftHistory:
    """Undo stack whose top entry is always the current committed draft.

    Adjacent duplicates are collapsed and the oldest snapshot is evicted
    once the stack holds more than `capacity` entries.
    """

    def __init__(self, snapshots: Iterable[str] = (), capacity: int = UNDO_MAX):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._stack: List[str] = []
        for text in snapshots:
            self.push(text)

    def __len__(self) -> int:
        return len(self._stack)

    @property
    def top(self) -> Optional[str]:
        return self._stack[-1] if self._stack else None

    @property
    def can_undo(self) -> bool:
        # need at least 2 to go back
        return len(self._stack) >= 2

    def push(self, text: str) -> None:
        text = text or ""
        if self._stack and self._stack[-1] == text:
            return
        self._stack.append(text)
        if len(self._stack) > self.capacity:
            del self._stack[0]

    def undo(self) -> Optional[str]:
        """Drop the current entry and return the restored text.

        Returns None when there is nothing to revert to.
        """
        if not self.can_undo:
            return None
        self._stack.pop()
        return self._stack[-1]

    def snapshots(self) -> List[str]:
        return list(self._stack)

    def clear(self) -> None:
        self._stack.clear()
