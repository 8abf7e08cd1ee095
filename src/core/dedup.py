"""Deduplication helpers (core domain)."""

from __future__ import annotations

import hashlib
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from core.config import DEFAULT_DEDUP_WINDOW_MINUTES

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


def _collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def normalize_for_fingerprint(text: str) -> str:
    """Normalize text for deterministic fingerprinting."""

    return _collapse_whitespace(text).lower()


def compute_fingerprint(chat_key: str, message_id: Optional[int], text: str = "") -> str:
    """Return the dedup key for a message event.

    ``chat:message`` when the message id is known, otherwise a content hash
    scoped to the chat so identical text in different chats stays distinct.
    """

    if message_id is not None:
        return f"{chat_key}:{message_id}"
    payload = f"{chat_key}\n{normalize_for_fingerprint(text)}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass
class DedupEntry:
    fingerprint: str
    first_seen_at: float
    payload: str


class DedupStore:
    """Time-windowed record of fingerprints that were already processed.

    Entries older than the window are treated as absent even before a sweep
    removes them, so acceptance never depends on sweep timing.
    """

    def __init__(self, window_minutes: int, clock: Clock = time.time) -> None:
        if window_minutes <= 0:
            LOGGER.warning(
                "Invalid dedup window %s, falling back to %s minutes",
                window_minutes,
                DEFAULT_DEDUP_WINDOW_MINUTES,
            )
            window_minutes = DEFAULT_DEDUP_WINDOW_MINUTES
        self._window_seconds = window_minutes * 60
        self._clock = clock
        self._entries: Dict[str, DedupEntry] = {}

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, fingerprint: str) -> Optional[DedupEntry]:
        return self._entries.get(fingerprint)

    def should_process(self, fingerprint: str, payload: str = "") -> bool:
        """Return True and record the fingerprint if it was not seen within the window."""

        now = self._clock()
        entry = self._entries.get(fingerprint)
        if entry is not None and now - entry.first_seen_at <= self._window_seconds:
            LOGGER.info(
                "Message %s already handled %ss ago, skipping",
                fingerprint,
                round(now - entry.first_seen_at),
            )
            return False
        self._entries[fingerprint] = DedupEntry(fingerprint, now, payload)
        return True

    def sweep(self, window_minutes: Optional[int] = None) -> int:
        """Delete entries older than the window and return the number removed."""

        window_seconds = self._window_seconds
        if window_minutes is not None and window_minutes > 0:
            window_seconds = window_minutes * 60
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items() if now - entry.first_seen_at > window_seconds
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            LOGGER.debug("Dedup sweep removed %s fingerprints", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
