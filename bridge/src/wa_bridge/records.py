from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

GROUP_SERVER = "g.us"
USER_SERVER = "s.whatsapp.net"


@dataclass(frozen=True, order=True)
class ChatIdentity:
    """Address of a one-to-one or group conversation (``user@server``)."""

    user: str
    server: str = ""

    @classmethod
    def parse(cls, value: str) -> "ChatIdentity":
        if not isinstance(value, str) or not value:
            raise ValueError("chat identity must be a non-empty string")
        user, sep, server = value.rpartition("@")
        if not sep:
            return cls(user=value, server="")
        if not server:
            raise ValueError(f"chat identity {value!r} has an empty server")
        return cls(user=user, server=server)

    @property
    def is_group(self) -> bool:
        return self.server == GROUP_SERVER

    def __str__(self) -> str:
        if not self.server:
            return self.user
        return f"{self.user}@{self.server}"


@dataclass(frozen=True)
class ContactRecord:
    identity: ChatIdentity
    push_name: str = ""
    full_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        if self.push_name:
            return self.push_name
        return str(self.identity)

    def to_dict(self) -> Dict[str, Any]:
        return {"jid": str(self.identity), "push_name": self.push_name, "full_name": self.full_name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContactRecord":
        if not isinstance(data, dict):
            raise ValueError("contact payload must be a JSON object")
        full_name = data.get("full_name")
        if full_name is not None and not isinstance(full_name, str):
            raise ValueError("full_name must be a string or null")
        push_name = data.get("push_name") or ""
        if not isinstance(push_name, str):
            raise ValueError("push_name must be a string")
        return cls(identity=ChatIdentity.parse(data.get("jid")), push_name=push_name, full_name=full_name)


@dataclass(frozen=True)
class GroupRecord:
    identity: ChatIdentity
    name: str = ""
    # Opaque membership/topic data; passed through untouched.
    metadata: Dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def display_name(self) -> str:
        return self.name or str(self.identity)

    def to_dict(self) -> Dict[str, Any]:
        return {"jid": str(self.identity), "name": self.name, "metadata": dict(self.metadata)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupRecord":
        if not isinstance(data, dict):
            raise ValueError("group payload must be a JSON object")
        name = data.get("name") or ""
        if not isinstance(name, str):
            raise ValueError("name must be a string")
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise ValueError("metadata must be a JSON object")
        return cls(identity=ChatIdentity.parse(data.get("jid")), name=name, metadata=metadata)


@dataclass
class Snapshot:
    """Contacts and groups as transferred once over the bridge."""

    contacts: List[ContactRecord] = field(default_factory=list)
    groups: List[GroupRecord] = field(default_factory=list)
    complete: bool = False


@dataclass(frozen=True)
class ChatListEntry:
    identity: ChatIdentity
    name: str


def build_chat_list(contacts: Iterable[ContactRecord], groups: Iterable[GroupRecord]) -> List[ChatListEntry]:
    """Merge contacts and groups into one browsing list.

    Identities are unique in the result; a group record replaces a contact
    record for the same identity. Entries sort by name (case-sensitive), then
    by identity string.
    """

    merged: Dict[ChatIdentity, ChatListEntry] = {}
    for contact in contacts:
        merged[contact.identity] = ChatListEntry(identity=contact.identity, name=contact.display_name)
    for group in groups:
        merged[group.identity] = ChatListEntry(identity=group.identity, name=group.display_name)
    return sorted(merged.values(), key=lambda entry: (entry.name, str(entry.identity)))
