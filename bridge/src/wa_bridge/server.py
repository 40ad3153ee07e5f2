"""One-shot snapshot server: accept a single consumer, send, close."""

from __future__ import annotations

import logging
import socket
from typing import Optional, TextIO

from . import codec
from .errors import AcceptError, BindError, SendError
from .records import Snapshot

logger = logging.getLogger(__name__)

Address = tuple[str, int]


def listen(address: Address, backlog: int = 1) -> socket.socket:
    """Bind and listen on ``address``; port 0 picks a free port."""

    try:
        return socket.create_server(address, backlog=backlog)
    except OSError as exc:
        raise BindError(f"cannot listen on {address[0]}:{address[1]}: {exc}") from exc


def bound_address(listener: socket.socket) -> Address:
    host, port = listener.getsockname()[:2]
    return host, port


def accept(listener: socket.socket, timeout_s: Optional[float] = None) -> socket.socket:
    """Block until a consumer connects (forever when ``timeout_s`` is None)."""

    listener.settimeout(timeout_s)
    try:
        connection, peer = listener.accept()
    except socket.timeout as exc:
        raise AcceptError(f"no consumer connected within {timeout_s}s") from exc
    except OSError as exc:
        raise AcceptError(f"accept failed: {exc}") from exc
    connection.settimeout(None)
    logger.info("consumer connected from %s:%s", peer[0], peer[1])
    return connection


def _write_frame(writer: TextIO, line: str) -> None:
    try:
        writer.write(line)
        writer.flush()
    except OSError as exc:
        raise SendError(f"failed to send frame: {exc}") from exc


def send_snapshot(connection: socket.socket, snapshot: Snapshot) -> int:
    """Write contacts, then groups, then End; flush after every frame.

    Returns the number of frames written including the terminator.
    """

    frames = 0
    writer = connection.makefile("w", encoding="utf-8", newline="\n")
    try:
        for contact in snapshot.contacts:
            _write_frame(writer, codec.encode_contact(contact))
            frames += 1
        for group in snapshot.groups:
            _write_frame(writer, codec.encode_group(group))
            frames += 1
        _write_frame(writer, codec.encode_end())
        frames += 1
    finally:
        try:
            writer.close()
        except OSError:
            # Peer already gone; a failed write has been reported.
            logger.debug("closing snapshot writer failed", exc_info=True)
    logger.info(
        "sent snapshot: %d contacts, %d groups",
        len(snapshot.contacts),
        len(snapshot.groups),
    )
    return frames


def serve_listener(listener: socket.socket, snapshot: Snapshot, accept_timeout_s: Optional[float] = None) -> int:
    """Hand ``snapshot`` to the first consumer on an already bound listener."""

    with listener:
        connection = accept(listener, accept_timeout_s)
        with connection:
            return send_snapshot(connection, snapshot)


def serve_once(address: Address, snapshot: Snapshot, accept_timeout_s: Optional[float] = None) -> int:
    listener = listen(address)
    logger.info("bridge listening on %s:%s", *bound_address(listener))
    return serve_listener(listener, snapshot, accept_timeout_s)
