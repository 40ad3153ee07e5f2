"""Thin runnable wrapper for the chat browser."""

from wa_tui.tui_app import main

if __name__ == "__main__":
    raise SystemExit(main())
