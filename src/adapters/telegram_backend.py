"""Telethon implementation of the ``MessageBackend`` port.

Telethon exceptions are translated into ``core.errors`` types here, so the
retry policy in the core never has to import Telethon.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar, Union

from telethon import errors

from adapters.telegram_mapper import chat_from_dialog, fetched_from_message, member_from_user
from core.errors import BackendError, EntityResolutionError, RateLimitError, TransientBackendError
from core.ids import normalize_id
from core.models import AccountRef, ChatRef, FetchedMessage, MemberRef

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def translate_errors(description: str) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator mapping Telethon and network errors to core error types."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except errors.FloodWaitError as exc:
                raise RateLimitError(exc.seconds, f"{description}: flood wait") from exc
            except (errors.ServerError, errors.RpcCallFailError, ConnectionError, asyncio.TimeoutError) as exc:
                raise TransientBackendError(f"{description}: {exc}") from exc
            except ValueError as exc:
                # Telethon raises ValueError when an entity cannot be resolved.
                raise EntityResolutionError(f"{description}: {exc}") from exc
            except errors.RPCError as exc:
                raise BackendError(f"{description}: {exc}") from exc

        return wrapper

    return decorator


class TelethonBackend:
    """Expiry and purge operations over a connected ``TelegramClient``."""

    def __init__(self, client) -> None:
        self._client = client

    @property
    def client(self):
        return self._client

    async def connect(self) -> None:
        await self._client.connect()
        if not await self._client.is_user_authorized():
            raise BackendError("Session is not authorized; provide a valid STRING_SESSION")

    async def disconnect(self) -> None:
        await self._client.disconnect()

    @translate_errors("get_me")
    async def get_me(self) -> AccountRef:
        me = await self._client.get_me(input_peer=False)
        if me is None:
            raise BackendError("get_me returned no account; is the session authorized?")
        return AccountRef(id=normalize_id(me.id), entity=me)

    @translate_errors("list chats")
    async def list_chats(self) -> List[ChatRef]:
        return [chat_from_dialog(dialog) async for dialog in self._client.iter_dialogs()]

    @translate_errors("list members")
    async def list_members(self, chat: Union[int, str]) -> List[MemberRef]:
        entity = await self._client.get_entity(chat)
        return [member_from_user(user) async for user in self._client.iter_participants(entity)]

    def _entity(self, chat: ChatRef):
        return chat.entity if chat.entity is not None else chat.id

    @translate_errors("fetch recent messages")
    async def fetch_recent(self, chat: ChatRef, limit: int) -> List[FetchedMessage]:
        messages = await self._client.get_messages(self._entity(chat), limit=limit)
        return [fetched_from_message(message) for message in messages]

    @translate_errors("search own messages")
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
        messages = await self._client.get_messages(
            self._entity(chat),
            limit=limit,
            offset_id=offset_id,
            offset_date=max_date,
            from_user=me.entity if me.entity is not None else "me",
        )
        fetched = [fetched_from_message(message) for message in messages]
        if min_date is not None:
            fetched = [message for message in fetched if message.date >= min_date]
        return fetched

    @translate_errors("delete messages")
    async def delete_messages(self, chat: ChatRef, message_ids: Sequence[int]) -> None:
        await self._client.delete_messages(self._entity(chat), list(message_ids), revoke=True)
