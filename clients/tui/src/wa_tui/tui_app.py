"""Curses front end for the chat browser."""

from __future__ import annotations

import argparse
import curses
import logging
import sys
from pathlib import Path
from typing import Optional

from wa_bridge.client import fetch_snapshot
from wa_bridge.config import BridgeSettings, load_settings_from_env
from wa_bridge.errors import BridgeError, BrowserRunError
from wa_bridge.records import Snapshot
from wa_bridge.session import EventPump, HttpBridgeSession

from .chat_buffer import ChatBufferStore
from .events import EventDispatcher
from .tui_model import FOCUS_CHATS, FOCUS_TRANSCRIPT, BrowserModel, RenderState

logger = logging.getLogger(__name__)

DEFAULT_LOG_FILE = Path.home() / ".wa_tui.log"
# getch() timeout; each expiry is a render tick that picks up new lines.
TICK_MS = 250
HELP_LINE = "Up/Down or j/k: move | PgUp/PgDn | Home/End | Tab: focus list/transcript | q: quit"
LIVE_EVENTS_STOPPED = "live events stopped"


def _normalize_key(key: int) -> tuple[str, str | None]:
    key_tab = getattr(curses, "KEY_TAB", 9)
    if key in (key_tab, 9):
        return "TAB", None
    if key == curses.KEY_UP:
        return "UP", None
    if key == curses.KEY_DOWN:
        return "DOWN", None
    if key == curses.KEY_PPAGE:
        return "PAGE_UP", None
    if key == curses.KEY_NPAGE:
        return "PAGE_DOWN", None
    if key == curses.KEY_HOME:
        return "HOME", None
    if key == curses.KEY_END:
        return "END", None
    if key == curses.KEY_RESIZE:
        return "RESIZE", None
    if key == 3:  # ctrl-c
        return "CTRL_C", None
    if key == 27:
        return "ESC", None
    if key in (ord("q"), ord("Q")):
        return "q", None
    if 32 <= key <= 126:
        return "CHAR", chr(key)
    return "UNKNOWN", None


def _render_text(window: curses.window, y: int, x: int, text: str, attr: int = 0) -> None:
    max_y, max_x = window.getmaxyx()
    if 0 <= y < max_y and x < max_x - 1:
        window.addnstr(y, x, text, max_x - x - 1, attr)


def _init_default_colors(stdscr: curses.window) -> None:
    """Respect the terminal's configured theme instead of forcing black."""

    if not curses.has_colors():
        return
    try:
        curses.start_color()
        curses.use_default_colors()
        stdscr.bkgd(" ", curses.color_pair(0))
    except curses.error:
        return


def _draw_list(stdscr: curses.window, render: RenderState, top: int) -> None:
    for idx, entry in enumerate(render.entries):
        is_cursor = idx == render.window.cursor_in_view
        attr = curses.A_REVERSE if is_cursor and render.focus_area == FOCUS_CHATS else 0
        if is_cursor and render.focus_area != FOCUS_CHATS:
            attr = curses.A_BOLD
        marker = "#" if entry.identity.is_group else " "
        label = f"{marker} {entry.name}"[: max(1, render.list_width - 1)]
        _render_text(stdscr, top + idx, 1, label, attr)


def _draw_transcript(stdscr: curses.window, render: RenderState, top: int, left: int) -> None:
    if render.selected is None:
        _render_text(stdscr, top, left, "No chats received from the bridge.")
        return
    if not render.transcript:
        _render_text(stdscr, top, left, "(no messages yet)")
        return
    width = max(1, render.transcript_width)
    for idx, line in enumerate(render.transcript):
        _render_text(stdscr, top + idx, left, line[:width])


def draw_screen(stdscr: curses.window, model: BrowserModel) -> None:
    stdscr.erase()
    render = model.render()
    top = 2
    title = f"WhatsApp chats ({render.total_chats})"
    if render.selected is not None:
        title = f"{title} | {render.selected.name} <{render.selected.identity}>"
    _render_text(stdscr, 0, 1, title)
    _render_text(stdscr, 1, 1, HELP_LINE)
    if render.list_width > 0 and render.height > top:
        stdscr.vline(top, render.list_width, curses.ACS_VLINE, max(1, render.height - top - 1))
    _draw_list(stdscr, render, top)
    right_start = render.list_width + 2
    focus_hint = " [transcript]" if render.focus_area == FOCUS_TRANSCRIPT else ""
    _draw_transcript(stdscr, render, top, right_start)
    status = render.status_line
    if render.transcript_scroll:
        status = f"{status} scrolled back {render.transcript_scroll}".strip()
    _render_text(stdscr, render.height - 1, 1, f"{status}{focus_hint}")
    stdscr.refresh()


def note_pump_failure(model: BrowserModel, pump: Optional[EventPump]) -> None:
    """Flag a dead event pump on the status line (once)."""

    if pump is None or pump.error is None or LIVE_EVENTS_STOPPED in model.status_line:
        return
    if model.status_line:
        model.status_line = f"{model.status_line} | {LIVE_EVENTS_STOPPED}"
    else:
        model.status_line = LIVE_EVENTS_STOPPED


def run_browser(model: BrowserModel, pump: Optional[EventPump] = None) -> None:
    def _runner(stdscr: curses.window) -> None:
        try:
            curses.curs_set(0)
        except curses.error:
            logger.debug("terminal cannot hide the cursor")
        _init_default_colors(stdscr)
        stdscr.keypad(True)
        stdscr.timeout(TICK_MS)
        max_y, max_x = stdscr.getmaxyx()
        model.resize(max_x, max_y)
        while True:
            note_pump_failure(model, pump)
            draw_screen(stdscr, model)
            raw = stdscr.getch()
            if raw == -1:
                continue
            key, char = _normalize_key(raw)
            if key == "RESIZE":
                max_y, max_x = stdscr.getmaxyx()
                model.resize(max_x, max_y)
                continue
            if model.handle_key(key, char) == "quit":
                return

    if pump is not None:
        pump.start()
    try:
        curses.wrapper(_runner)
    except curses.error as exc:
        raise BrowserRunError(f"failed to run terminal UI: {exc}") from exc
    finally:
        if pump is not None:
            pump.stop()


def _status_for(snapshot: Snapshot) -> str:
    status = f"{len(snapshot.contacts)} contacts, {len(snapshot.groups)} groups"
    if not snapshot.complete:
        status = f"{status} (partial snapshot)"
    return status


def configure_logging(level: str, log_file: Path) -> None:
    log_file.expanduser().parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        filename=str(log_file.expanduser()),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Browse WhatsApp chats served by the snapshot bridge")
    parser.add_argument("--host", default=None, help="Bridge host")
    parser.add_argument("--port", type=int, default=None, help="Bridge port")
    parser.add_argument(
        "--events-url",
        default=None,
        help="Websocket URL of the session event stream; live messages are off when omitted",
    )
    parser.add_argument("--session-url", default=None, help="Base URL of the WhatsApp bridge HTTP API")
    parser.add_argument("--log-file", type=Path, default=DEFAULT_LOG_FILE, help="Where to write diagnostics")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser


def build_browser(
    snapshot: Snapshot, settings: BridgeSettings, live_events: bool
) -> tuple[BrowserModel, Optional[EventPump]]:
    store = ChatBufferStore()
    model = BrowserModel(store, snapshot.contacts, snapshot.groups, status_line=_status_for(snapshot))
    pump = None
    if live_events:
        dispatcher = EventDispatcher(store)
        pump = EventPump(lambda: HttpBridgeSession(settings.session_url, settings.events_url), dispatcher.dispatch)
    return model, pump


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    try:
        settings = load_settings_from_env().with_overrides(
            host=args.host,
            port=args.port,
            session_url=args.session_url,
            events_url=args.events_url,
        )
        snapshot = fetch_snapshot(settings.address)
        model, pump = build_browser(snapshot, settings, live_events=args.events_url is not None)
        run_browser(model, pump)
    except BridgeError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return 0
