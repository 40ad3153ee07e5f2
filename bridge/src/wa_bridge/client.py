"""Consumer side of the snapshot handoff."""

from __future__ import annotations

import logging
import socket
from typing import Iterable, Optional, Union

from . import codec
from .errors import ConnectError, MalformedFrameError, ReceiveError
from .records import ContactRecord, GroupRecord, Snapshot

logger = logging.getLogger(__name__)


def connect(address: tuple[str, int], timeout_s: Optional[float] = None) -> socket.socket:
    try:
        connection = socket.create_connection(address, timeout=timeout_s)
    except OSError as exc:
        raise ConnectError(f"cannot connect to bridge at {address[0]}:{address[1]}: {exc}") from exc
    connection.settimeout(None)
    return connection


def decode_stream(lines: Iterable[Union[str, bytes]]) -> Snapshot:
    """Fold frame lines into a Snapshot, stopping at End.

    Malformed frames are dropped with a warning. An unknown tag propagates
    as UnknownFrameTagError.
    """

    snapshot = Snapshot()
    for line in lines:
        if not line.strip():
            continue
        try:
            frame = codec.decode_line(line)
        except MalformedFrameError as exc:
            logger.warning("dropping frame: %s", exc)
            continue
        if frame.is_end:
            snapshot.complete = True
            break
        if isinstance(frame.record, ContactRecord):
            snapshot.contacts.append(frame.record)
        elif isinstance(frame.record, GroupRecord):
            snapshot.groups.append(frame.record)
    if not snapshot.complete:
        logger.warning(
            "snapshot stream closed before End; continuing with %d contacts, %d groups",
            len(snapshot.contacts),
            len(snapshot.groups),
        )
    return snapshot


def receive_snapshot(connection: socket.socket) -> Snapshot:
    # Binary reader: each line is decoded on its own by the codec.
    try:
        with connection.makefile("rb") as reader:
            return decode_stream(reader)
    except OSError as exc:
        raise ReceiveError(f"failed to read snapshot: {exc}") from exc


def fetch_snapshot(address: tuple[str, int], timeout_s: Optional[float] = None) -> Snapshot:
    """Connect, receive the snapshot and close the connection."""

    with connect(address, timeout_s) as connection:
        snapshot = receive_snapshot(connection)
    logger.info(
        "received snapshot: %d contacts, %d groups (complete=%s)",
        len(snapshot.contacts),
        len(snapshot.groups),
        snapshot.complete,
    )
    return snapshot
