"""Producer CLI: collect a snapshot from the session and hand it to one consumer."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import TextIO

from . import client, server
from .config import BridgeSettings, load_settings_from_env
from .errors import BridgeError
from .records import Snapshot
from .session import HttpBridgeSession, StaticSession, collect_snapshot

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _settings_from_args(args: argparse.Namespace) -> BridgeSettings:
    return load_settings_from_env().with_overrides(
        host=args.host,
        port=args.port,
        accept_timeout_s=getattr(args, "accept_timeout", None),
        session_url=getattr(args, "session_url", None),
        events_url=getattr(args, "events_url", None),
    )


def _load_snapshot(args: argparse.Namespace, settings: BridgeSettings) -> Snapshot:
    if args.snapshot_file:
        session = StaticSession.from_file(args.snapshot_file)
    else:
        session = HttpBridgeSession(settings.session_url, settings.events_url)

    async def _collect() -> Snapshot:
        async with session:
            return await collect_snapshot(session)

    return asyncio.run(_collect())


def _run_serve(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)
    snapshot = _load_snapshot(args, settings)
    server.serve_once(settings.address, snapshot, settings.accept_timeout_s)
    return 0


def _run_dump(args: argparse.Namespace, output: TextIO) -> int:
    settings = _settings_from_args(args)
    snapshot = client.fetch_snapshot(settings.address)
    for contact in snapshot.contacts:
        output.write(json.dumps({"t": "contact", **contact.to_dict()}, sort_keys=True) + "\n")
    for group in snapshot.groups:
        output.write(json.dumps({"t": "group", **group.to_dict()}, sort_keys=True) + "\n")
    output.write(json.dumps({"t": "end", "complete": snapshot.complete}) + "\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="WhatsApp snapshot bridge")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Serve the current snapshot to one consumer")
    serve_parser.add_argument("--host", default=None, help="Host to bind")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to bind")
    serve_parser.add_argument(
        "--accept-timeout",
        type=float,
        default=None,
        help="Seconds to wait for the consumer; waits forever by default",
    )
    serve_parser.add_argument("--session-url", default=None, help="Base URL of the WhatsApp bridge HTTP API")
    serve_parser.add_argument(
        "--snapshot-file",
        default=None,
        help="Serve contacts/groups from a JSON file instead of the live session",
    )

    dump_parser = subparsers.add_parser("dump", help="Fetch a snapshot and print it as JSON lines")
    dump_parser.add_argument("--host", default=None, help="Bridge host")
    dump_parser.add_argument("--port", type=int, default=None, help="Bridge port")
    return parser


def main(argv: list[str] | None = None, output: TextIO | None = None) -> int:
    """Entry point for the producer CLI."""

    if argv is None:
        argv = sys.argv[1:]
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        if args.command == "serve":
            return _run_serve(args)
        return _run_dump(args, output or sys.stdout)
    except BridgeError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return exc.exit_code


if __name__ == "__main__":  # pragma: no cover - convenience execution
    raise SystemExit(main())
