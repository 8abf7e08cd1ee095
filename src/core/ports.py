"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the messaging backend and the
notification transport so that the core can be reused with different
clients and exercised with fakes in tests.
"""

from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence

from core.models import AccountRef, ChatRef, FetchedMessage

Sleep = Callable[[float], Awaitable[None]]


class MessageBackend(Protocol):
    """Operations the expiry and purge pipelines need from the messaging backend.

    Implementations raise ``core.errors`` types so retry decisions stay in the core.
    """

    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    async def get_me(self) -> AccountRef:
        ...

    async def list_chats(self) -> List[ChatRef]:
        ...

    async def fetch_recent(self, chat: ChatRef, limit: int) -> List[FetchedMessage]:
        """Return up to ``limit`` newest messages, newest first."""
        ...

    async def search_own(
        self,
        chat: ChatRef,
        me: AccountRef,
        *,
        offset_id: int,
        limit: int,
        max_date: Optional[datetime] = None,
        min_date: Optional[datetime] = None,
    ) -> List[FetchedMessage]:
        """Return one page of messages authored by ``me``, newest first."""
        ...

    async def delete_messages(self, chat: ChatRef, message_ids: Sequence[int]) -> None:
        ...


class DeliveryPort(Protocol):
    """Notification transport (bot push or direct client send)."""

    supports_bulk_delete: bool

    async def send(self, target: str, text: str) -> int:
        """Send HTML ``text`` to ``target`` and return the new message id."""
        ...

    async def delete(self, target: str, message_ids: Sequence[int]) -> None:
        ...
