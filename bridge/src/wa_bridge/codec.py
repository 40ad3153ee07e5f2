"""Line-delimited framing for the snapshot handoff.

One frame per line::

    SetContact\\\\{"jid": ...}
    SetGroup\\\\{"jid": ...}
    End\\\\

Tags are matched against the start of the line only. Payloads are compact
JSON with ``ensure_ascii`` so a payload never contains a raw newline.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Optional, Union

from .errors import MalformedFrameError, SnapshotEncodeError, UnknownFrameTagError
from .records import ContactRecord, GroupRecord

TAG_CONTACT = "SetContact"
TAG_GROUP = "SetGroup"
TAG_END = "End"
SEPARATOR = "\\\\"

KNOWN_TAGS = (TAG_CONTACT, TAG_GROUP, TAG_END)
# Longest first so a tag that prefixes another never shadows it.
_PREFIXES = sorted(((tag + SEPARATOR, tag) for tag in KNOWN_TAGS), key=lambda item: len(item[0]), reverse=True)

Record = Union[ContactRecord, GroupRecord]


@dataclass(frozen=True)
class Frame:
    tag: str
    record: Optional[Record] = None

    @property
    def is_end(self) -> bool:
        return self.tag == TAG_END


def _encode(tag: str, payload: dict) -> str:
    try:
        body = json.dumps(payload, separators=(",", ":"), ensure_ascii=True, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise SnapshotEncodeError(f"cannot encode {tag} payload: {exc}") from exc
    return f"{tag}{SEPARATOR}{body}\n"


def encode_contact(record: ContactRecord) -> str:
    return _encode(TAG_CONTACT, record.to_dict())


def encode_group(record: GroupRecord) -> str:
    return _encode(TAG_GROUP, record.to_dict())


def encode_end() -> str:
    return f"{TAG_END}{SEPARATOR}\n"


def encode_record(record: Record) -> str:
    if isinstance(record, ContactRecord):
        return encode_contact(record)
    if isinstance(record, GroupRecord):
        return encode_group(record)
    raise SnapshotEncodeError(f"unsupported record type: {type(record).__name__}")


def classify(line: str) -> tuple[str, str]:
    """Split ``line`` into ``(tag, payload)`` or raise UnknownFrameTagError."""

    for prefix, tag in _PREFIXES:
        if line.startswith(prefix):
            return tag, line[len(prefix) :]
    # Bare terminator without separator.
    if line == TAG_END:
        return TAG_END, ""
    raise UnknownFrameTagError(line)


def decode_line(line: Union[str, bytes]) -> Frame:
    """Decode a single line (with or without its trailing newline).

    Raw bytes are accepted so that one frame with invalid UTF-8 is reported
    as malformed instead of breaking the whole stream.
    """

    if isinstance(line, bytes):
        try:
            text = line.decode("utf-8")
        except UnicodeDecodeError as exc:
            tag, _ = classify(line.decode("utf-8", errors="replace").rstrip("\r\n"))
            raise MalformedFrameError(tag, "invalid UTF-8") from exc
    else:
        text = line
    stripped = text.rstrip("\r\n")
    tag, payload = classify(stripped)
    if tag == TAG_END:
        return Frame(tag=TAG_END)

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedFrameError(tag, f"invalid JSON ({exc.msg})") from exc
    except (ValueError, RecursionError) as exc:
        raise MalformedFrameError(tag, f"undecodable payload ({type(exc).__name__})") from exc
    try:
        if tag == TAG_CONTACT:
            return Frame(tag=tag, record=ContactRecord.from_dict(data))
        return Frame(tag=tag, record=GroupRecord.from_dict(data))
    except ValueError as exc:
        raise MalformedFrameError(tag, str(exc)) from exc
