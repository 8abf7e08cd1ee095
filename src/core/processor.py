"""Core message processing pipeline.

This module is integration-agnostic. It only relies on the classifier, the
notifier and the retraction engine, enabling other frontends or adapters
without changes here.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.classifier import Classifier
from core.models import ClassifierResult, EventKind, InboundEvent, IncomingMessage
from core.notifier import Notifier
from core.retraction import RetractionEngine

LOGGER = logging.getLogger(__name__)


class MessageProcessor:
    """Orchestrates classification, retraction, and notifications."""

    def __init__(
        self,
        classifier: Classifier,
        notifier: Notifier,
        retraction: RetractionEngine,
    ) -> None:
        self._classifier = classifier
        self._notifier = notifier
        self._retraction = retraction
        self._connected: Optional[bool] = None

    async def dispatch(self, event: InboundEvent) -> Optional[ClassifierResult]:
        """Route one inbound event by kind."""

        if event.kind is EventKind.CONNECTION_STATE:
            if event.connected != self._connected:
                LOGGER.info("Connection state changed: %s", "connected" if event.connected else "disconnected")
            self._connected = event.connected
            return None
        if event.kind in (EventKind.NEW_MESSAGE, EventKind.EDITED_MESSAGE):
            if event.message is None:
                raise ValueError(f"{event.kind.value} event without a message")
            return await self.handle(event.message)
        raise ValueError(f"Unsupported event kind: {event.kind}")

    async def handle(self, message: IncomingMessage) -> ClassifierResult:
        """Process one message through the core pipeline."""

        result = self._classifier.classify(message)
        LOGGER.debug(
            "Classified %s:%s -> forward=%s retract=%s (%s)",
            message.chat_key,
            message.message_id,
            result.forward,
            result.retract,
            result.reason,
        )

        # Retraction runs before forwarding so a trigger never deletes the
        # notification produced by the same message.
        if result.retract:
            await self._retraction.maybe_retract(result.display_text)

        if result.forward:
            await self._notifier.notify(message, result)
        return result
