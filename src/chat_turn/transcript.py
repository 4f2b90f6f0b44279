"""In-memory chat transcript with a pinned anchor message."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Tuple


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A single role-tagged chat message."""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class Transcript:
    """Append-only message log exposed through a bounded view.

    The view is ``[log[0]] + log[window_start:]``. ``log[0]`` is the anchor
    (the oldest non-system message) and always stays in the view; trimming
    only ever advances ``window_start`` past the message at view index 1.
    The system message is not stored here.
    """

    def __init__(self) -> None:
        self._log: List[Message] = []
        self._window_start = 1

    # -------------------------
    # Growth
    # -------------------------
    def append(self, message: Message) -> None:
        self._log.append(message)

    # -------------------------
    # View
    # -------------------------
    @property
    def messages(self) -> Tuple[Message, ...]:
        if not self._log:
            return ()
        return (self._log[0], *self._log[self._window_start:])

    def __len__(self) -> int:
        if not self._log:
            return 0
        return 1 + len(self._log) - self._window_start

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    @property
    def evicted(self) -> int:
        """Number of messages dropped from the view so far."""
        return self._window_start - 1

    @property
    def history(self) -> Tuple[Message, ...]:
        """Full log, including messages no longer in the view."""
        return tuple(self._log)

    # -------------------------
    # Trimming
    # -------------------------
    def drop_oldest_unpinned(self) -> Message:
        """Remove view index 1 and return it.

        The view never shrinks below two messages.
        """
        if len(self) <= 2:
            raise ValueError("transcript view cannot shrink below 2 messages")
        dropped = self._log[self._window_start]
        self._window_start += 1
        return dropped

    def to_dicts(self) -> List[Dict[str, str]]:
        return [m.to_dict() for m in self.messages]
