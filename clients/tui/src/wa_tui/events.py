from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, Optional

from wa_bridge.records import ChatIdentity
from wa_bridge.session import HistorySyncEvent, MessageEvent, SessionEvent

from .chat_buffer import ChatBufferStore, ChatLine

logger = logging.getLogger(__name__)


def format_timestamp(value: Any) -> Optional[str]:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        return None
    return time.strftime("%H:%M", time.localtime(value))


def line_from_history(item: Dict[str, Any]) -> Optional[ChatLine]:
    """Build a ChatLine from one history-sync message, or None if unusable."""

    if not isinstance(item, dict):
        return None
    sender = item.get("sender")
    body = item.get("body")
    if not isinstance(sender, str) or not isinstance(body, str):
        return None
    line = ChatLine(sender=sender, body=body, timestamp=format_timestamp(item.get("timestamp")))
    return line if line.is_valid else None


class EventDispatcher:
    """Routes session events into a ChatBufferStore."""

    def __init__(self, store: ChatBufferStore) -> None:
        self.store = store

    def on_message_event(
        self, sender: str, body: str, identity: ChatIdentity, timestamp: Optional[float] = None
    ) -> bool:
        line = ChatLine(sender=sender, body=body, timestamp=format_timestamp(timestamp))
        if not line.is_valid:
            logger.debug("dropping empty message for %s", identity)
            return False
        self.store.append_line(identity, line)
        return True

    def on_history_sync_batch(self, identity: ChatIdentity, messages: Iterable[Dict[str, Any]]) -> int:
        messages = list(messages)
        lines = [line_from_history(item) for item in messages]
        appended = self.store.append_history_batch(identity, lines)
        if appended != len(messages):
            logger.info("history sync for %s: skipped %d malformed entries", identity, len(messages) - appended)
        return appended

    def dispatch(self, event: SessionEvent) -> None:
        match event:
            case MessageEvent(identity=identity, sender=sender, body=body, timestamp=timestamp):
                self.on_message_event(sender, body, identity, timestamp)
            case HistorySyncEvent(identity=identity, messages=messages):
                self.on_history_sync_batch(identity, messages)
            case _:
                raise TypeError(f"unsupported session event: {type(event).__name__}")
