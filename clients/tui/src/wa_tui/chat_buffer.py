"""Per-chat transcripts shared between the event pump and the render loop."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from wa_bridge.records import ChatIdentity


@dataclass(frozen=True)
class ChatLine:
    sender: str
    body: str
    timestamp: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return bool(self.sender) and bool(self.body)

    def render(self) -> str:
        if self.timestamp:
            return f"[{self.timestamp}] {self.sender}: {self.body}"
        return f"{self.sender}: {self.body}"


class ChatBufferStore:
    """Append-only line logs keyed by chat identity.

    A single lock guards every buffer. Buffers are never trimmed, so memory
    grows with the session.
    """

    def __init__(self) -> None:
        self._buffers: Dict[ChatIdentity, List[ChatLine]] = {}
        self._lock = threading.Lock()

    def append_line(self, identity: ChatIdentity, line: ChatLine) -> None:
        with self._lock:
            self._buffers.setdefault(identity, []).append(line)

    def append_history_batch(self, identity: ChatIdentity, lines: Iterable[object]) -> int:
        """Append a history batch in order, skipping unusable entries.

        Returns the number of lines appended.
        """

        accepted = [line for line in lines if isinstance(line, ChatLine) and line.is_valid]
        with self._lock:
            self._buffers.setdefault(identity, []).extend(accepted)
        return len(accepted)

    def lines(self, identity: ChatIdentity) -> Tuple[ChatLine, ...]:
        with self._lock:
            return tuple(self._buffers.get(identity, ()))

    def try_lines(self, identity: ChatIdentity) -> Optional[Tuple[ChatLine, ...]]:
        """Like :meth:`lines` but returns None instead of waiting for the lock."""

        if not self._lock.acquire(blocking=False):
            return None
        try:
            return tuple(self._buffers.get(identity, ()))
        finally:
            self._lock.release()

    def identities(self) -> List[ChatIdentity]:
        with self._lock:
            return sorted(self._buffers)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(lines) for lines in self._buffers.values())
