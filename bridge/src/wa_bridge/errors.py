"""Failure categories for the bridge and the chat browser.

Every fatal error carries the process exit status the entry points return,
so a wrapper script can tell a refused bind from a lost consumer.
"""

from __future__ import annotations


class BridgeError(Exception):
    exit_code = 1


class ConfigError(BridgeError):
    exit_code = 30


class SessionError(BridgeError):
    exit_code = 20


class GroupFetchError(SessionError):
    exit_code = 20


class ContactFetchError(SessionError):
    exit_code = 21


class BindError(BridgeError):
    exit_code = 22


class AcceptError(BridgeError):
    exit_code = 23


class ConnectError(BridgeError):
    exit_code = 24


class BrowserRunError(BridgeError):
    exit_code = 25


class SnapshotEncodeError(BridgeError):
    exit_code = 26


class UnknownFrameTagError(BridgeError):
    exit_code = 27

    def __init__(self, line: str) -> None:
        self.line = line
        preview = line if len(line) <= 40 else f"{line[:40]}…"
        super().__init__(f"unknown frame tag in line {preview!r}")


class SendError(BridgeError):
    exit_code = 28


class ReceiveError(BridgeError):
    exit_code = 29


class MalformedFrameError(ValueError):
    """A single frame could not be decoded; the stream itself is intact."""

    def __init__(self, tag: str, reason: str) -> None:
        self.tag = tag
        self.reason = reason
        super().__init__(f"malformed {tag} frame: {reason}")
