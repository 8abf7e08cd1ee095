"""Telegram Bot API notification adapter.

Uses the Bot API for delivery so notifications can be routed via a bot chat.
The HTTP calls are blocking ``urllib`` requests run in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request
from typing import Any, Optional, Sequence

from core.errors import DeliveryError, RateLimitError, TransientBackendError
from core.ids import normalize_id
from core.retry import RetryPolicy

LOGGER = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"
REQUEST_TIMEOUT = 10

# Bot API descriptions that deserve a configuration hint in the log.
_ERROR_HINTS = (
    ("bot was blocked", "the bot was blocked; check its permissions"),
    ("chat not found", "chat not found; check NOTIFICATION_CHAT_ID"),
    ("message is too long", "message too long; lower snippet_chars"),
)


def _decode_error(body: str) -> dict:
    try:
        parsed = json.loads(body)
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _log_hint(description: str, parameters: dict) -> None:
    lowered = description.lower()
    if "upgraded to a supergroup" in lowered and parameters.get("migrate_to_chat_id"):
        LOGGER.error("Notification chat was migrated to %s; update NOTIFICATION_CHAT_ID", parameters["migrate_to_chat_id"])
        return
    for key, hint in _ERROR_HINTS:
        if key in lowered:
            LOGGER.error("Bot API: %s", hint)
            return


class TelegramBotDelivery:
    """Delivery port that sends and deletes notifications through a bot."""

    supports_bulk_delete = False

    def __init__(self, bot_token: str, retry: Optional[RetryPolicy] = None) -> None:
        self._bot_token = bot_token
        self._retry = retry or RetryPolicy()

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"{API_BASE}/bot{self._bot_token}/{method}"

    def _request(self, method: str, payload: Optional[dict] = None) -> Any:
        data = json.dumps(payload or {}).encode("utf-8")
        request = urllib.request.Request(self._endpoint(method), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=REQUEST_TIMEOUT) as response:
                body = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            text = e.read().decode("utf-8", errors="replace")
            error = _decode_error(text)
            parameters = error.get("parameters") or {}
            if e.code == 429:
                raise RateLimitError(int(parameters.get("retry_after", 1)), f"Bot API {method} rate limited") from e
            if e.code >= 500:
                raise TransientBackendError(f"Bot API {method} error {e.code}: {text}") from e
            _log_hint(str(error.get("description", "")), parameters)
            raise DeliveryError(f"Bot API {method} error {e.code}: {text}") from e
        except (urllib.error.URLError, TimeoutError, ConnectionError) as e:
            raise TransientBackendError(f"Bot API {method} failed: {e}") from e

        if not body.get("ok"):
            raise DeliveryError(f"Bot API {method} returned an error: {body.get('description')}")
        return body.get("result")

    async def _call(self, method: str, payload: Optional[dict] = None) -> Any:
        return await self._retry.call(
            lambda: asyncio.to_thread(self._request, method, payload),
            f"Bot API {method}",
        )

    async def get_bot_id(self) -> str:
        """Return the normalized user id of the bot, or "" when it cannot be fetched."""

        try:
            result = await self._call("getMe")
        except Exception as exc:
            LOGGER.warning("Could not fetch bot identity: %s", exc)
            return ""
        bot_id = normalize_id((result or {}).get("id"))
        LOGGER.info("Bot identity: @%s (%s)", (result or {}).get("username", "?"), bot_id)
        return bot_id

    async def send(self, target: str, text: str) -> int:
        payload = {
            "chat_id": target,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        result = await self._call("sendMessage", payload)
        return int(result["message_id"])

    async def delete(self, target: str, message_ids: Sequence[int]) -> None:
        for message_id in message_ids:
            await self._call("deleteMessage", {"chat_id": target, "message_id": message_id})
