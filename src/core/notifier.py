"""Notification fan-out and dispatch bookkeeping (core domain).

The notifier is transport-agnostic: it formats through an injected callable
and delivers through a ``DeliveryPort``. Every successful send is appended to
the ``DispatchRecord`` so a later retraction can delete it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from core.models import ClassifierResult, IncomingMessage
from core.ports import DeliveryPort

LOGGER = logging.getLogger(__name__)

Formatter = Callable[[IncomingMessage, ClassifierResult], str]


class DispatchRecord:
    """Per-target ordered list of notification message ids we sent."""

    def __init__(self) -> None:
        self._sent: Dict[str, List[int]] = {}

    def append(self, target: str, message_id: int) -> None:
        self._sent.setdefault(target, []).append(message_id)

    def get(self, target: str) -> List[int]:
        return list(self._sent.get(target, []))

    def drain(self, target: str) -> List[int]:
        """Return the ids recorded for ``target`` and reset its list to empty."""

        ids = self._sent.get(target, [])
        self._sent[target] = []
        return list(ids)

    def targets(self) -> List[str]:
        return list(self._sent)

    def __len__(self) -> int:
        return sum(len(ids) for ids in self._sent.values())


class Notifier:
    """Send one formatted notification to every configured target independently."""

    def __init__(
        self,
        delivery: DeliveryPort,
        targets: Iterable[str],
        formatter: Formatter,
        record: Optional[DispatchRecord] = None,
    ) -> None:
        self._delivery = delivery
        self._targets = [target.strip() for target in targets if target and target.strip()]
        self._formatter = formatter
        self.record = record if record is not None else DispatchRecord()

    @property
    def targets(self) -> Sequence[str]:
        return tuple(self._targets)

    async def _send_one(self, target: str, text: str) -> bool:
        try:
            message_id = await self._delivery.send(target, text)
        except Exception:
            LOGGER.exception("Failed to deliver notification to %s", target)
            return False
        self.record.append(target, message_id)
        LOGGER.info("Notification sent to %s (message %s)", target, message_id)
        return True

    async def notify(self, message: IncomingMessage, result: ClassifierResult) -> int:
        """Deliver to all targets concurrently and return the number of successes."""

        if not self._targets:
            LOGGER.warning("No notification targets configured, skipping notification")
            return 0

        text = self._formatter(message, result)
        outcomes = await asyncio.gather(*(self._send_one(target, text) for target in self._targets))
        success_count = sum(1 for ok in outcomes if ok)
        LOGGER.info("Notification delivered to %s/%s targets", success_count, len(self._targets))
        return success_count
