"""Snapshot bridge between a messaging session and the terminal browser."""

from .client import fetch_snapshot, receive_snapshot
from .codec import Frame, decode_line, encode_contact, encode_end, encode_group
from .errors import BridgeError, MalformedFrameError, UnknownFrameTagError
from .records import ChatIdentity, ChatListEntry, ContactRecord, GroupRecord, Snapshot, build_chat_list
from .server import serve_once

__all__ = [
    "BridgeError",
    "ChatIdentity",
    "ChatListEntry",
    "ContactRecord",
    "Frame",
    "GroupRecord",
    "MalformedFrameError",
    "Snapshot",
    "UnknownFrameTagError",
    "build_chat_list",
    "decode_line",
    "encode_contact",
    "encode_end",
    "encode_group",
    "fetch_snapshot",
    "receive_snapshot",
    "serve_once",
]
