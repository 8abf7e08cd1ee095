"""Telegram client factory for warden.

We explicitly manage the client's lifecycle (connect/disconnect) so it is
obvious when the session is used and when it ends.
"""

from __future__ import annotations

import logging

from telethon import TelegramClient
from telethon.sessions import StringSession

from settings import Settings

LOGGER = logging.getLogger(__name__)

# Telethon sleeps through flood waits up to this many seconds on its own;
# longer waits surface as FloodWaitError and go through our retry policy.
FLOOD_SLEEP_THRESHOLD = 20


def build_client(settings: Settings) -> TelegramClient:
    """Create a Telethon client from loaded settings.

    A ``STRING_SESSION`` takes precedence; otherwise a local ``.session``
    file named after ``SESSION_NAME`` is used.
    """

    if settings.string_session:
        session = StringSession(settings.string_session)
        LOGGER.info("Initializing Telegram client from string session")
    else:
        session = settings.session_name
        LOGGER.info("Initializing Telegram client with session file %s", settings.session_name)

    return TelegramClient(
        session,
        settings.api_id,
        settings.api_hash,
        flood_sleep_threshold=FLOOD_SLEEP_THRESHOLD,
    )
