"""Pure-Python state machine for the chat browser (list + transcript)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

from wa_bridge.records import ChatIdentity, ChatListEntry, ContactRecord, GroupRecord, build_chat_list

from .chat_buffer import ChatBufferStore, ChatLine

# Rows not available to the list: title, key help, status line.
CHROME_HEIGHT = 3
FOCUS_CHATS = "chats"
FOCUS_TRANSCRIPT = "transcript"
FOCUS_ORDER = [FOCUS_CHATS, FOCUS_TRANSCRIPT]

T = TypeVar("T")


@dataclass(frozen=True)
class Window:
    start: int
    end: int
    cursor_in_view: int


def visible_window(count: int, cursor: int, viewport_height: int, chrome_height: int = CHROME_HEIGHT) -> Window:
    """Centered scroll window over ``count`` rows.

    Pinned to the top near the start, to the bottom near the end, and keeps
    the cursor in the middle everywhere else.
    """

    max_lines = max(1, min(viewport_height - chrome_height, count))
    half = max_lines // 2
    if cursor <= half:
        start = 0
    elif cursor >= count - half:
        start = max(0, count - max_lines)
    else:
        start = cursor - half
    end = min(start + max_lines, count)
    return Window(start=start, end=end, cursor_in_view=cursor - start)


def list_width_for(width: int) -> int:
    return min(max(0, width - 1), min(40, max(24, width // 3)))


def visible_transcript(entries: Sequence[T], height: int, scroll: int) -> list[T]:
    """Bottom-anchored slice; ``scroll`` counts rows back from the newest."""

    collected = list(entries)
    if height <= 0:
        return []
    end = max(0, len(collected) - scroll)
    start = max(0, end - height)
    return collected[start:end]


@dataclass
class RenderState:
    focus_area: str
    width: int
    height: int
    list_width: int
    transcript_width: int
    total_chats: int
    entries: List[ChatListEntry]
    window: Window
    selected: Optional[ChatListEntry]
    transcript: List[str]
    transcript_scroll: int
    status_line: str


class BrowserModel:
    """Cursor, viewport and selection over the chat list."""

    def __init__(
        self,
        store: ChatBufferStore,
        contacts: Iterable[ContactRecord] = (),
        groups: Iterable[GroupRecord] = (),
        width: int = 80,
        height: int = 24,
        status_line: str = "",
    ) -> None:
        self.store = store
        self.entries: List[ChatListEntry] = []
        self.cursor = 0
        self.width = max(0, width)
        self.height = max(0, height)
        self.list_width = list_width_for(self.width)
        self.focus_area = FOCUS_CHATS
        self.transcript_scroll = 0
        self.status_line = status_line
        self.quit_requested = False
        self._transcript_cache: Tuple[Optional[ChatIdentity], Tuple[ChatLine, ...]] = (None, ())
        self.set_records(contacts, groups)

    def set_records(self, contacts: Iterable[ContactRecord], groups: Iterable[GroupRecord]) -> None:
        """Rebuild the sorted list, keeping the selected chat when it survives."""

        selected = self.selected_entry()
        self.entries = build_chat_list(contacts, groups)
        self.cursor = 0
        if selected is not None:
            for idx, entry in enumerate(self.entries):
                if entry.identity == selected.identity:
                    self.cursor = idx
                    break

    def chat_list_entries(self) -> Tuple[ChatListEntry, ...]:
        return tuple(self.entries)

    def transcript_for(self, identity: ChatIdentity) -> Tuple[ChatLine, ...]:
        return self.store.lines(identity)

    def selected_entry(self) -> Optional[ChatListEntry]:
        if not self.entries:
            return None
        return self.entries[self.cursor]

    @property
    def viewport_rows(self) -> int:
        return max(1, self.height - CHROME_HEIGHT)

    def window(self) -> Window:
        return visible_window(len(self.entries), self.cursor, self.height)

    def _set_cursor(self, cursor: int) -> None:
        last = max(0, len(self.entries) - 1)
        clamped = max(0, min(last, cursor))
        if clamped != self.cursor:
            self.transcript_scroll = 0
        self.cursor = clamped

    def move_up(self) -> None:
        self._set_cursor(self.cursor - 1)

    def move_down(self) -> None:
        self._set_cursor(self.cursor + 1)

    def page_up(self) -> None:
        self._set_cursor(self.cursor - self.viewport_rows)

    def page_down(self) -> None:
        self._set_cursor(self.cursor + self.viewport_rows)

    def move_home(self) -> None:
        self._set_cursor(0)

    def move_end(self) -> None:
        self._set_cursor(len(self.entries) - 1)

    def resize(self, width: int, height: int) -> None:
        self.width = max(0, width)
        self.height = max(0, height)
        self.list_width = list_width_for(self.width)

    def focus_next(self) -> None:
        idx = FOCUS_ORDER.index(self.focus_area)
        self.focus_area = FOCUS_ORDER[(idx + 1) % len(FOCUS_ORDER)]

    def scroll_transcript(self, delta: int) -> None:
        transcript = self._current_transcript()
        max_scroll = max(0, len(transcript) - 1)
        self.transcript_scroll = max(0, min(max_scroll, self.transcript_scroll + delta))

    def handle_key(self, key: str, char: Optional[str] = None) -> Optional[str]:
        """Handle a normalized key and return an action string when needed."""

        if self.quit_requested:
            return "quit"
        if key in {"q", "ESC", "CTRL_C"}:
            self.quit_requested = True
            return "quit"
        if key == "TAB":
            self.focus_next()
            return None
        if key == "CHAR" and char in {"k", "j"}:
            key = "UP" if char == "k" else "DOWN"

        if self.focus_area == FOCUS_TRANSCRIPT:
            if key == "UP":
                self.scroll_transcript(1)
            elif key == "DOWN":
                self.scroll_transcript(-1)
            elif key == "PAGE_UP":
                self.scroll_transcript(self.viewport_rows)
            elif key == "PAGE_DOWN":
                self.scroll_transcript(-self.viewport_rows)
            return None

        if key == "UP":
            self.move_up()
        elif key == "DOWN":
            self.move_down()
        elif key == "PAGE_UP":
            self.page_up()
        elif key == "PAGE_DOWN":
            self.page_down()
        elif key == "HOME":
            self.move_home()
        elif key == "END":
            self.move_end()
        return None

    def _current_transcript(self) -> Tuple[ChatLine, ...]:
        entry = self.selected_entry()
        if entry is None:
            return ()
        lines = self.store.try_lines(entry.identity)
        if lines is None:
            cached_identity, cached_lines = self._transcript_cache
            return cached_lines if cached_identity == entry.identity else ()
        self._transcript_cache = (entry.identity, lines)
        return lines

    def render(self) -> RenderState:
        window = self.window()
        transcript = self._current_transcript()
        visible = visible_transcript(transcript, self.viewport_rows, self.transcript_scroll)
        return RenderState(
            focus_area=self.focus_area,
            width=self.width,
            height=self.height,
            list_width=self.list_width,
            transcript_width=max(0, self.width - self.list_width - 2),
            total_chats=len(self.entries),
            entries=self.entries[window.start : window.end],
            window=window,
            selected=self.selected_entry(),
            transcript=[line.render() for line in visible],
            transcript_scroll=self.transcript_scroll,
            status_line=self.status_line,
        )
