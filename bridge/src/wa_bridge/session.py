"""Adapters around the messaging session that owns contacts, groups and events.

The session itself (pairing, encryption, reconnects) lives in a separate
WhatsApp bridge service; ``HttpBridgeSession`` talks to its local HTTP and
websocket API. ``StaticSession`` replays records from a JSON file.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol, Tuple, Union

import aiohttp

from .config import DEFAULT_EVENTS_URL, DEFAULT_SESSION_URL
from .errors import ContactFetchError, GroupFetchError, SessionError
from .records import ChatIdentity, ContactRecord, GroupRecord, Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageEvent:
    identity: ChatIdentity
    sender: str
    body: str
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class HistorySyncEvent:
    identity: ChatIdentity
    # Raw message objects in source order; validated when buffered.
    messages: Tuple[Dict[str, Any], ...] = ()


SessionEvent = Union[MessageEvent, HistorySyncEvent]


class SessionAdapter(Protocol):
    async def list_contacts(self) -> List[ContactRecord]: ...

    async def list_joined_groups(self) -> List[GroupRecord]: ...

    def events(self, stop: Optional[threading.Event] = None) -> AsyncIterator[SessionEvent]: ...


def parse_event(data: Any) -> Optional[SessionEvent]:
    """Translate one bridge event object; None for kinds we do not buffer."""

    if not isinstance(data, dict):
        return None
    kind = data.get("type")
    if kind not in {"message", "history_sync"}:
        return None
    try:
        identity = ChatIdentity.parse(data.get("chat"))
    except ValueError:
        logger.warning("ignoring %s event without a valid chat identity", kind)
        return None
    if kind == "message":
        timestamp = data.get("timestamp")
        return MessageEvent(
            identity=identity,
            sender=str(data.get("sender") or ""),
            body=str(data.get("body") or ""),
            timestamp=float(timestamp) if isinstance(timestamp, (int, float)) else None,
        )
    messages = data.get("messages")
    if not isinstance(messages, list):
        messages = []
    return HistorySyncEvent(identity=identity, messages=tuple(item for item in messages if isinstance(item, dict)))


def _parse_records(items: Any, factory: Callable[[Dict[str, Any]], Any], label: str) -> list:
    if not isinstance(items, list):
        raise ValueError(f"{label} must be a list")
    records = []
    for item in items:
        try:
            records.append(factory(item))
        except ValueError as exc:
            logger.warning("skipping %s entry: %s", label, exc)
    return records


class HttpBridgeSession:
    """Client for a local WhatsApp bridge service.

    Example::

        async with HttpBridgeSession() as session:
            contacts = await session.list_contacts()
            async for event in session.events():
                ...
    """

    def __init__(
        self,
        session_url: str = DEFAULT_SESSION_URL,
        events_url: str = DEFAULT_EVENTS_URL,
        *,
        receive_timeout_s: float = 1.0,
    ) -> None:
        self.session_url = session_url.rstrip("/")
        self.events_url = events_url
        self.receive_timeout_s = receive_timeout_s
        self._http: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "HttpBridgeSession":
        self._http = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._http is not None:
            await self._http.close()
            self._http = None

    def _client(self) -> aiohttp.ClientSession:
        if self._http is None:
            raise SessionError("session is not open; use 'async with'")
        return self._http

    async def _get_json(self, path: str) -> Any:
        async with self._client().get(f"{self.session_url}{path}") as resp:
            resp.raise_for_status()
            return await resp.json()

    async def list_contacts(self) -> List[ContactRecord]:
        try:
            payload = await self._get_json("/contacts")
            contacts = _parse_records(payload.get("contacts"), ContactRecord.from_dict, "contacts")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, AttributeError) as exc:
            raise ContactFetchError(f"failed to fetch contacts: {exc}") from exc
        logger.info("found %d contacts", len(contacts))
        return contacts

    async def list_joined_groups(self) -> List[GroupRecord]:
        try:
            payload = await self._get_json("/groups")
            groups = _parse_records(payload.get("groups"), GroupRecord.from_dict, "groups")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, AttributeError) as exc:
            raise GroupFetchError(f"failed to fetch groups: {exc}") from exc
        logger.info("found %d groups", len(groups))
        return groups

    async def events(self, stop: Optional[threading.Event] = None) -> AsyncIterator[SessionEvent]:
        """Yield buffered event kinds until the socket closes or ``stop`` is set."""

        try:
            ws = await self._client().ws_connect(self.events_url)
        except aiohttp.ClientError as exc:
            raise SessionError(f"cannot connect to event stream {self.events_url}: {exc}") from exc
        async with ws:
            while stop is None or not stop.is_set():
                try:
                    msg = await ws.receive(timeout=self.receive_timeout_s)
                except asyncio.TimeoutError:
                    continue
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        data = json.loads(msg.data)
                    except json.JSONDecodeError:
                        logger.warning("ignoring non-JSON event")
                        continue
                    event = parse_event(data)
                    if event is not None:
                        yield event
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                    logger.info("event stream closed")
                    return
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise SessionError(f"event stream error: {ws.exception()}")


class StaticSession:
    """Session backed by a JSON document with contacts, groups and events."""

    def __init__(self, document: Dict[str, Any]) -> None:
        if not isinstance(document, dict):
            raise SessionError("snapshot document must be a JSON object")
        self._document = document

    @classmethod
    def from_file(cls, path: Path | str) -> "StaticSession":
        try:
            document = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SessionError(f"cannot load snapshot file {path}: {exc}") from exc
        return cls(document)

    async def __aenter__(self) -> "StaticSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def list_contacts(self) -> List[ContactRecord]:
        try:
            return _parse_records(self._document.get("contacts", []), ContactRecord.from_dict, "contacts")
        except ValueError as exc:
            raise ContactFetchError(str(exc)) from exc

    async def list_joined_groups(self) -> List[GroupRecord]:
        try:
            return _parse_records(self._document.get("groups", []), GroupRecord.from_dict, "groups")
        except ValueError as exc:
            raise GroupFetchError(str(exc)) from exc

    async def events(self, stop: Optional[threading.Event] = None) -> AsyncIterator[SessionEvent]:
        for item in self._document.get("events", []):
            if stop is not None and stop.is_set():
                return
            event = parse_event(item)
            if event is not None:
                yield event


async def collect_snapshot(session: SessionAdapter) -> Snapshot:
    contacts = await session.list_contacts()
    groups = await session.list_joined_groups()
    return Snapshot(contacts=contacts, groups=groups, complete=True)


class EventPump:
    """Runs ``session.events()`` on a background thread with its own loop."""

    def __init__(self, session_factory: Callable[[], Any], on_event: Callable[[SessionEvent], None]) -> None:
        self._session_factory = session_factory
        self._on_event = on_event
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.error: Optional[BaseException] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="session-events", daemon=True)
        self._thread.start()

    def stop(self, timeout_s: float = 2.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout_s)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        try:
            asyncio.run(self._pump())
        except (SessionError, aiohttp.ClientError) as exc:
            self.error = exc
            logger.error("event pump stopped: %s", exc)
        except Exception as exc:
            # Thread boundary: nothing above this frame can handle it.
            self.error = exc
            logger.exception("event pump crashed")

    async def _pump(self) -> None:
        async with self._session_factory() as session:
            async for event in session.events(self._stop):
                self._on_event(event)
