from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from core.classifier import Classifier
from core.config import Identity
from core.dedup import DedupStore
from core.models import ChatKind, EventKind, InboundEvent, IncomingMessage
from core.notifier import DispatchRecord, Notifier
from core.processor import MessageProcessor
from core.retraction import RetractionEngine
from core.rules_engine import build_rules


class FakeDelivery:
    supports_bulk_delete = True

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, list[int]]] = []

    async def send(self, target: str, text: str) -> int:
        self.sent.append((target, text))
        return 1000 + len(self.sent)

    async def delete(self, target: str, message_ids) -> None:
        self.deleted.append((target, list(message_ids)))


def _message(text: str, message_id: int) -> IncomingMessage:
    return IncomingMessage(
        chat_id=-100100,
        chat_key="100",
        chat_kind=ChatKind.GROUP,
        chat_title="Group",
        sender_id="7",
        message_id=message_id,
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        text=text,
    )


def _processor(delivery: FakeDelivery) -> MessageProcessor:
    rules = build_rules(keywords=["红包"], retract_keywords=["已开奖"], notification_chat_ids=["-100900"])
    record = DispatchRecord()
    classifier = Classifier(rules, Identity(self_id="1"), DedupStore(10))
    notifier = Notifier(delivery, ["-100900"], lambda message, result: result.display_text, record)
    retraction = RetractionEngine(delivery, ["-100900"], rules.retract_keywords, record)
    return MessageProcessor(classifier, notifier, retraction)


def test_new_message_is_forwarded_and_recorded() -> None:
    delivery = FakeDelivery()
    processor = _processor(delivery)

    result = asyncio.run(processor.dispatch(InboundEvent.new_message(_message("发红包了", 1))))

    assert result is not None and result.forward is True
    assert delivery.sent == [("-100900", "发红包了")]


def test_edited_message_goes_through_the_same_pipeline() -> None:
    delivery = FakeDelivery()
    processor = _processor(delivery)

    asyncio.run(processor.dispatch(InboundEvent.edited_message(_message("红包", 2))))

    assert len(delivery.sent) == 1


def test_trigger_retracts_previous_notifications() -> None:
    delivery = FakeDelivery()
    processor = _processor(delivery)

    async def scenario() -> None:
        await processor.dispatch(InboundEvent.new_message(_message("红包 1", 1)))
        await processor.dispatch(InboundEvent.new_message(_message("红包 2", 2)))
        await processor.dispatch(InboundEvent.new_message(_message("已开奖", 3)))

    asyncio.run(scenario())

    assert delivery.deleted == [("-100900", [1001, 1002])]


def test_connection_state_event_is_not_classified() -> None:
    delivery = FakeDelivery()
    processor = _processor(delivery)

    result = asyncio.run(processor.dispatch(InboundEvent.connection_state(False)))

    assert result is None
    assert delivery.sent == []


def test_message_event_without_message_is_rejected() -> None:
    processor = _processor(FakeDelivery())
    with pytest.raises(ValueError):
        asyncio.run(processor.dispatch(InboundEvent(EventKind.NEW_MESSAGE)))
