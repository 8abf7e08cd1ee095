"""Find self-authored messages older than the auto-delete cutoff.

Two passes run concurrently per chat and their results are merged by id:

- recent: the newest ``recent_limit`` messages, stopping once messages are
  more than ``recency_horizon_seconds`` older than the cutoff. Catches
  messages that just crossed the cutoff without a server-side search.
- historical: a paginated search restricted to our own messages, bounded by
  ``search_max_pages`` and capped at ``now - recency_horizon_seconds`` so it
  does not race the recent pass on fresh messages.

A message is expired when ``sent_at < cutoff`` (strict).
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from core.config import ExpiryConfig
from core.models import AccountRef, ChatRef, ExpiredMessageCandidate, FetchedMessage
from core.ports import MessageBackend
from core.retry import RetryPolicy

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


def cutoff_for(now: float, auto_delete_minutes: int) -> int:
    return int(now) - auto_delete_minutes * 60


def is_expired(sent_at: int, cutoff: int) -> bool:
    return sent_at < cutoff


def _is_own(message: FetchedMessage, self_id: str) -> bool:
    return bool(self_id) and message.sender_id == self_id


def _to_candidate(chat: ChatRef, message: FetchedMessage) -> ExpiredMessageCandidate:
    return ExpiredMessageCandidate(
        chat=chat,
        message_id=message.id,
        sent_at=message.sent_at,
        sender_id=message.sender_id,
    )


def merge_candidates(*groups: Iterable[ExpiredMessageCandidate]) -> List[ExpiredMessageCandidate]:
    """Merge candidate lists, keeping the first occurrence of each message id."""

    merged: Dict[int, ExpiredMessageCandidate] = {}
    for group in groups:
        for candidate in group:
            merged.setdefault(candidate.message_id, candidate)
    return list(merged.values())


class ExpiryScanner:
    """Collect expired self-authored messages for one chat at a time."""

    def __init__(
        self,
        backend: MessageBackend,
        config: ExpiryConfig,
        retry: Optional[RetryPolicy] = None,
        clock: Clock = time.time,
    ) -> None:
        self._backend = backend
        self._config = config
        self._retry = retry or RetryPolicy()
        self._clock = clock

    async def recent_pass(self, chat: ChatRef, me: AccountRef, cutoff: int) -> List[ExpiredMessageCandidate]:
        config = self._config
        stop_before = cutoff - config.recency_horizon_seconds
        try:
            messages = await self._retry.call(
                lambda: self._backend.fetch_recent(chat, config.recent_limit),
                f"fetch recent messages in {chat.label}",
            )
        except Exception as exc:
            LOGGER.warning("Recent pass failed for %s: %s", chat.label, exc)
            return []

        found: List[ExpiredMessageCandidate] = []
        for message in messages:
            if message.sent_at < stop_before:
                break
            if not message.is_deletable or not _is_own(message, me.id):
                continue
            if is_expired(message.sent_at, cutoff):
                found.append(_to_candidate(chat, message))
        return found

    async def search_pass(
        self,
        chat: ChatRef,
        me: AccountRef,
        *,
        cutoff: Optional[int],
        max_date: Optional[datetime],
        max_pages: int,
        page_size: int,
        page_delay: float,
    ) -> List[ExpiredMessageCandidate]:
        """Page through our own messages in ``chat``; ``cutoff=None`` keeps everything."""

        found: List[ExpiredMessageCandidate] = []
        offset_id = 0
        for page_number in range(1, max_pages + 1):
            current_offset = offset_id
            page = await self._retry.call(
                lambda: self._backend.search_own(
                    chat, me, offset_id=current_offset, limit=page_size, max_date=max_date
                ),
                f"search own messages in {chat.label}",
            )
            if not page:
                break

            kept = 0
            for message in page:
                if not message.is_deletable:
                    continue
                if message.sender_id and not _is_own(message, me.id):
                    continue
                if cutoff is not None and not is_expired(message.sent_at, cutoff):
                    continue
                found.append(_to_candidate(chat, message))
                kept += 1
            LOGGER.debug("%s page %s: %s/%s messages kept", chat.label, page_number, kept, len(page))

            offset_id = page[-1].id
            if len(page) < page_size:
                break
            if page_number < max_pages:
                await self._retry.sleep(page_delay)
        return found

    async def historical_pass(self, chat: ChatRef, me: AccountRef, cutoff: int, now: float) -> List[ExpiredMessageCandidate]:
        config = self._config
        max_date = datetime.fromtimestamp(int(now) - config.recency_horizon_seconds, tz=timezone.utc)
        try:
            return await self.search_pass(
                chat,
                me,
                cutoff=cutoff,
                max_date=max_date,
                max_pages=config.search_max_pages,
                page_size=config.search_page_size,
                page_delay=config.search_page_delay,
            )
        except Exception as exc:
            LOGGER.warning("Historical pass failed for %s: %s", chat.label, exc)
            return []

    async def scan(
        self,
        chat: ChatRef,
        me: AccountRef,
        cutoff: Optional[int] = None,
    ) -> List[ExpiredMessageCandidate]:
        """Return expired messages authored by ``me`` in ``chat``, deduplicated by id."""

        now = self._clock()
        if cutoff is None:
            cutoff = cutoff_for(now, self._config.auto_delete_minutes)

        recent, older = await asyncio.gather(
            self.recent_pass(chat, me, cutoff),
            self.historical_pass(chat, me, cutoff, now),
        )
        candidates = merge_candidates(recent, older)
        if candidates:
            LOGGER.debug(
                "%s: %s expired messages (recent: %s, historical: %s)",
                chat.label,
                len(candidates),
                len(recent),
                len(older),
            )
        return candidates
