"""Retraction of previously sent notifications on trigger keywords."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from core.notifier import DispatchRecord
from core.ports import DeliveryPort

LOGGER = logging.getLogger(__name__)


def matches_trigger(text: str, trigger_keywords: Iterable[str]) -> bool:
    """True when any trigger keyword is a literal substring of ``text``.

    Matching is exact and case-sensitive; keywords may contain newlines.
    """

    return any(keyword and keyword in text for keyword in trigger_keywords)


class RetractionEngine:
    """Delete every notification recorded for the configured targets."""

    def __init__(
        self,
        delivery: DeliveryPort,
        targets: Iterable[str],
        trigger_keywords: Iterable[str],
        record: DispatchRecord,
    ) -> None:
        self._delivery = delivery
        self._targets = [target.strip() for target in targets if target and target.strip()]
        self._triggers = list(trigger_keywords)
        self._record = record

    async def _delete_each(self, target: str, message_ids: Sequence[int]) -> int:
        deleted = 0
        for message_id in message_ids:
            try:
                await self._delivery.delete(target, [message_id])
            except Exception as exc:
                LOGGER.error("Failed to retract notification %s in %s: %s", message_id, target, exc)
                continue
            deleted += 1
        return deleted

    async def _retract_target(self, target: str) -> int:
        message_ids = self._record.drain(target)
        if not message_ids:
            LOGGER.debug("No notifications recorded for %s", target)
            return 0

        if self._delivery.supports_bulk_delete:
            try:
                await self._delivery.delete(target, message_ids)
            except Exception as exc:
                LOGGER.warning("Bulk retraction in %s failed (%s), deleting one by one", target, exc)
            else:
                LOGGER.info("Retracted %s/%s notifications in %s", len(message_ids), len(message_ids), target)
                return len(message_ids)

        deleted = await self._delete_each(target, message_ids)
        LOGGER.info("Retracted %s/%s notifications in %s", deleted, len(message_ids), target)
        return deleted

    async def maybe_retract(self, text: str) -> int:
        """Retract all recorded notifications if ``text`` contains a trigger.

        Returns the number of notifications deleted across targets.
        """

        if not self._triggers or not matches_trigger(text, self._triggers):
            return 0

        LOGGER.info("Retraction keyword detected, deleting previous notifications")
        total = 0
        for target in self._targets:
            total += await self._retract_target(target)
        return total
