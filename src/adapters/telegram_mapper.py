"""Telegram-to-core mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from telethon import functions
from telethon.tl.types import PeerChannel, PeerChat

from core.ids import legacy_group_id, normalize_id
from core.models import ChatKind, ChatRef, FetchedMessage, InboundEvent, IncomingMessage, MemberRef

LOGGER = logging.getLogger(__name__)


class MigrationResolver:
    """Resolve the basic-group id a supergroup was migrated from.

    Only consulted for supergroups missing from a non-empty allow-list.
    Successful lookups are cached; failures are retried on the next message
    from that chat.
    """

    def __init__(self, client, monitor_chat_ids: Iterable[str] = ()) -> None:
        self._client = client
        self._monitor_chat_ids = frozenset(monitor_chat_ids)
        self._cache: dict[int, str] = {}

    def wants(self, chat_key: str) -> bool:
        return bool(self._monitor_chat_ids) and chat_key not in self._monitor_chat_ids

    async def legacy_key(self, chat_id: int, entity: Any = None) -> str:
        if chat_id in self._cache:
            return self._cache[chat_id]
        try:
            full = await self._client(functions.channels.GetFullChannelRequest(entity or chat_id))
        except Exception as exc:
            LOGGER.debug("Could not resolve migration for %s: %s", chat_id, exc)
            return ""
        migrated_from = getattr(full.full_chat, "migrated_from_chat_id", None)
        legacy = legacy_group_id(migrated_from) if migrated_from else ""
        self._cache[chat_id] = legacy
        return legacy


def chat_kind_of(obj: Any) -> ChatKind:
    """Map a Telethon message, event or dialog to a ChatKind."""

    if getattr(obj, "is_private", False) or getattr(obj, "is_user", False):
        return ChatKind.PRIVATE
    if getattr(obj, "is_group", False):
        return ChatKind.GROUP
    if getattr(obj, "is_channel", False):
        return ChatKind.BROADCAST
    return ChatKind.GROUP


def chat_title_of(chat: Any, fallback_id: Any = None) -> str:
    title = getattr(chat, "title", None)
    if title:
        return str(title)
    first = getattr(chat, "first_name", None)
    last = getattr(chat, "last_name", None)
    if first or last:
        return " ".join(part for part in [first, last] if part)
    return f"Chat {normalize_id(fallback_id) or 'unknown'}"


def build_permalink(message: Any) -> Optional[str]:
    chat = getattr(message, "chat", None)
    username = getattr(chat, "username", None)
    # Prefer public usernames for permalinks when available.
    if isinstance(username, str) and username:
        return f"https://t.me/{username}/{message.id}"

    peer_id = getattr(message, "peer_id", None)
    if isinstance(peer_id, PeerChannel):
        return f"https://t.me/c/{peer_id.channel_id}/{message.id}"
    if isinstance(peer_id, PeerChat):
        return f"https://t.me/c/{peer_id.chat_id}/{message.id}"
    # PeerUser has no chat/channel id; no permalink is possible.
    return None


def is_service_message(message: Any) -> bool:
    return getattr(message, "action", None) is not None


async def build_incoming(message: Any, migrations: Optional[MigrationResolver] = None) -> IncomingMessage:
    """Build a core IncomingMessage from a Telethon Message."""

    chat = getattr(message, "chat", None)
    chat_id = message.chat_id
    chat_key = normalize_id(chat_id)
    kind = chat_kind_of(message)

    legacy_key = ""
    if (
        migrations is not None
        and kind is ChatKind.GROUP
        and isinstance(message.peer_id, PeerChannel)
        and migrations.wants(chat_key)
    ):
        legacy_key = await migrations.legacy_key(chat_id, chat)

    return IncomingMessage(
        chat_id=chat_id,
        chat_key=chat_key,
        chat_kind=kind,
        chat_title=chat_title_of(chat, chat_id),
        sender_id=normalize_id(message.sender_id),
        message_id=message.id,
        date=message.date,
        text=message.raw_text or "",
        has_media=message.media is not None,
        is_service=is_service_message(message),
        legacy_chat_key=legacy_key,
        permalink=build_permalink(message),
    )


async def build_event(
    event: Any,
    edited: bool = False,
    migrations: Optional[MigrationResolver] = None,
) -> InboundEvent:
    """Build a tagged InboundEvent from a Telethon NewMessage or MessageEdited event."""

    message = await build_incoming(event.message, migrations)
    if edited:
        return InboundEvent.edited_message(message)
    return InboundEvent.new_message(message)


def chat_from_dialog(dialog: Any) -> ChatRef:
    entity = getattr(dialog, "entity", None)
    name = getattr(dialog, "name", None)
    return ChatRef(
        id=dialog.id,
        title=str(name) if name else chat_title_of(entity, dialog.id),
        kind=chat_kind_of(dialog),
        entity=entity,
    )


def fetched_from_message(message: Any) -> FetchedMessage:
    return FetchedMessage(
        id=message.id,
        date=message.date,
        sender_id=normalize_id(getattr(message, "sender_id", None)),
        has_text=bool(getattr(message, "message", None)),
        has_media=getattr(message, "media", None) is not None,
        is_service=is_service_message(message),
    )


def member_from_user(user: Any) -> MemberRef:
    return MemberRef(
        id=normalize_id(user.id),
        first_name=getattr(user, "first_name", None) or "",
        last_name=getattr(user, "last_name", None) or "",
        username=getattr(user, "username", None) or "",
    )
