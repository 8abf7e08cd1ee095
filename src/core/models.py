"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional


class ChatKind(str, Enum):
    """Closed set of chat shapes the core distinguishes."""

    PRIVATE = "private"
    GROUP = "group"
    BROADCAST = "broadcast"


class EventKind(str, Enum):
    """Inbound event kinds handled at the ingress boundary."""

    NEW_MESSAGE = "new_message"
    EDITED_MESSAGE = "edited_message"
    CONNECTION_STATE = "connection_state"


@dataclass(frozen=True)
class IncomingMessage:
    """Minimal message context used by the classification pipeline."""

    chat_id: int
    chat_key: str
    chat_kind: ChatKind
    chat_title: str
    sender_id: str
    message_id: int
    date: datetime
    text: str
    has_media: bool = False
    is_service: bool = False
    # Normalized id the chat had as a basic group, when it was migrated.
    legacy_chat_key: str = ""
    permalink: Optional[str] = None


@dataclass(frozen=True)
class InboundEvent:
    """Tagged inbound event: a message (new or edited) or a connection change."""

    kind: EventKind
    message: Optional[IncomingMessage] = None
    connected: Optional[bool] = None

    @classmethod
    def new_message(cls, message: IncomingMessage) -> "InboundEvent":
        return cls(EventKind.NEW_MESSAGE, message=message)

    @classmethod
    def edited_message(cls, message: IncomingMessage) -> "InboundEvent":
        return cls(EventKind.EDITED_MESSAGE, message=message)

    @classmethod
    def connection_state(cls, connected: bool) -> "InboundEvent":
        return cls(EventKind.CONNECTION_STATE, connected=connected)


@dataclass(frozen=True)
class Prize:
    name: str
    count: int


@dataclass(frozen=True)
class LotteryInfo:
    """Structured fields extracted from a lottery or red-packet announcement."""

    create_time: Optional[str] = None
    creator: Optional[str] = None
    prizes: List[Prize] = field(default_factory=list)
    keyword: Optional[str] = None
    auto_open_count: Optional[int] = None
    is_red_packet: bool = False


@dataclass(frozen=True)
class ClassifierResult:
    """Outcome of classifying one message.

    ``retract`` means the message is eligible to trigger a retraction; it is
    independent of ``forward``.
    """

    forward: bool
    reason: str
    payload: Optional[LotteryInfo] = None
    retract: bool = False
    display_text: str = ""


@dataclass(frozen=True)
class ChatRef:
    """A chat as seen by the expiry and purge pipelines."""

    id: int
    title: str
    kind: ChatKind
    # Backend-specific handle (e.g. a Telethon entity); opaque to the core.
    entity: Any = None

    @property
    def label(self) -> str:
        return f"{self.title} ({self.id})"


@dataclass(frozen=True)
class AccountRef:
    """The local account; ``entity`` is whatever the backend needs for searches."""

    id: str
    entity: Any = None


@dataclass(frozen=True)
class MemberRef:
    """A chat participant, listed so its id can be added to the target users."""

    id: str
    first_name: str = ""
    last_name: str = ""
    username: str = ""

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part) or "N/A"


@dataclass(frozen=True)
class FetchedMessage:
    """A message returned by a list or search call."""

    id: int
    date: datetime
    sender_id: str
    has_text: bool
    has_media: bool
    is_service: bool = False

    @property
    def sent_at(self) -> int:
        return int(self.date.timestamp())

    @property
    def is_deletable(self) -> bool:
        # Service entries (joins, pins, title changes) cannot be revoked.
        if self.is_service:
            return False
        return self.has_text or self.has_media


@dataclass(frozen=True)
class ExpiredMessageCandidate:
    chat: ChatRef
    message_id: int
    sent_at: int
    sender_id: str


@dataclass(frozen=True)
class DeleteResult:
    deleted: int = 0
    failed: int = 0

    def __add__(self, other: "DeleteResult") -> "DeleteResult":
        return DeleteResult(self.deleted + other.deleted, self.failed + other.failed)
