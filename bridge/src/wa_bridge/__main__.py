"""Thin runnable wrapper for the producer CLI."""

from wa_bridge.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
