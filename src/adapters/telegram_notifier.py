"""Telegram notification adapter sending directly from the user session.

Targets are chat ids as configured (``-100…`` for channels) or ``"me"`` for
Saved Messages.
"""

from __future__ import annotations

from typing import Sequence, Union

from adapters.telegram_backend import translate_errors

SAVED_MESSAGES = "me"


def resolve_target(target: str) -> Union[int, str]:
    """Return an int peer id for numeric targets, otherwise the target as-is."""

    value = target.strip()
    try:
        return int(value)
    except ValueError:
        return value or SAVED_MESSAGES


class TelegramClientDelivery:
    """Delivery port backed by the Telethon client that also does the watching."""

    supports_bulk_delete = True

    def __init__(self, client) -> None:
        self._client = client

    @translate_errors("send notification")
    async def send(self, target: str, text: str) -> int:
        message = await self._client.send_message(
            resolve_target(target),
            text,
            parse_mode="html",
            link_preview=False,
        )
        return message.id

    @translate_errors("delete notifications")
    async def delete(self, target: str, message_ids: Sequence[int]) -> None:
        await self._client.delete_messages(resolve_target(target), list(message_ids), revoke=True)
