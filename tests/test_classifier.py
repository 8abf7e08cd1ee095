from __future__ import annotations

from datetime import datetime, timezone

from core.classifier import Classifier, display_text
from core.config import Identity
from core.dedup import DedupStore
from core.models import ChatKind, IncomingMessage
from core.rules_engine import build_rules


class ManualClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _message(
    *,
    chat: str = "100",
    message_id: int = 1,
    text: str = "hello",
    sender: str = "7",
    kind: ChatKind = ChatKind.GROUP,
    has_media: bool = False,
    legacy_chat_key: str = "",
) -> IncomingMessage:
    return IncomingMessage(
        chat_id=int(f"-100{chat}"),
        chat_key=chat,
        chat_kind=kind,
        chat_title=f"Chat {chat}",
        sender_id=sender,
        message_id=message_id,
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        text=text,
        has_media=has_media,
        legacy_chat_key=legacy_chat_key,
    )


def _classifier(clock: ManualClock | None = None, **rules) -> Classifier:
    dedup = DedupStore(window_minutes=10, clock=clock or ManualClock())
    return Classifier(build_rules(**rules), Identity(self_id="1", bot_id="2"), dedup)


def test_allow_listed_keyword_message_is_forwarded_once() -> None:
    clock = ManualClock()
    classifier = _classifier(clock, monitor_chat_ids=["100"], exclude_chat_ids=[], keywords=["开奖"])

    first = classifier.classify(_message(chat="100", message_id=55, text="今晚开奖"))
    clock.now += 30
    replay = classifier.classify(_message(chat="100", message_id=55, text="今晚开奖"))

    assert first.forward is True
    assert replay.forward is False
    assert replay.reason == "duplicate"


def test_private_chats_are_rejected_first() -> None:
    classifier = _classifier(keywords=["hello"])
    result = classifier.classify(_message(kind=ChatKind.PRIVATE))

    assert result.forward is False
    assert result.reason == "private chat"


def test_excluded_chat_is_dropped_even_when_allowed() -> None:
    classifier = _classifier(monitor_chat_ids=["100"], exclude_chat_ids=["-100100"])
    assert classifier.classify(_message()).reason == "excluded chat"


def test_empty_allow_list_monitors_everything_not_excluded() -> None:
    classifier = _classifier()
    result = classifier.classify(_message(chat="555", text="anything"))

    assert result.forward is True
    assert result.reason == "monitor-all"


def test_chat_outside_allow_list_is_dropped() -> None:
    classifier = _classifier(monitor_chat_ids=["100"])
    assert classifier.classify(_message(chat="200")).reason == "chat not monitored"


def test_migrated_group_matches_its_legacy_id() -> None:
    classifier = _classifier(monitor_chat_ids=["-4242"])
    result = classifier.classify(_message(chat="999", legacy_chat_key="4242"))
    assert result.forward is True


def test_message_without_text_or_media_is_dropped() -> None:
    classifier = _classifier()
    assert classifier.classify(_message(text="   ")).reason == "empty message"


def test_media_only_message_uses_placeholder() -> None:
    message = _message(text="", has_media=True)
    assert display_text(message) == "[media]"
    assert _classifier().classify(message).forward is True


def test_global_keyword_required_when_configured() -> None:
    classifier = _classifier(keywords=["win"])
    assert classifier.classify(_message(text="the winner", message_id=1)).forward is False
    assert classifier.classify(_message(text="big win!", message_id=2)).forward is True


def test_target_user_passes_without_user_keywords() -> None:
    classifier = _classifier(keywords=["红包"], target_user_ids=["42"])
    assert classifier.classify(_message(sender="42", text="no keyword here")).forward is True
    assert classifier.classify(_message(sender="43", text="no keyword here", message_id=2)).forward is False


def test_target_user_needs_user_keyword_when_configured() -> None:
    classifier = _classifier(target_user_ids=["42"], user_keywords=["drop"])
    assert classifier.classify(_message(sender="42", text="airdrop soon", message_id=1)).forward is False
    assert classifier.classify(_message(sender="42", text="drop soon", message_id=2)).forward is True


def test_own_and_bot_messages_in_notification_channel_are_dropped() -> None:
    classifier = _classifier(notification_chat_ids=["-100900"])
    assert classifier.classify(_message(chat="900", sender="1")).forward is False
    assert classifier.classify(_message(chat="900", sender="2", message_id=2)).forward is False


def test_retraction_trigger_in_notification_channel_is_flagged() -> None:
    classifier = _classifier(
        monitor_chat_ids=["900"],
        notification_chat_ids=["900"],
        retract_keywords=["已开奖"],
    )
    result = classifier.classify(_message(chat="900", sender="1", text="本轮已开奖"))

    assert result.forward is False
    assert result.retract is True


def test_retraction_trigger_in_monitored_chat_without_forwarding() -> None:
    classifier = _classifier(keywords=["红包"], retract_keywords=["已开奖"])
    result = classifier.classify(_message(text="已开奖"))

    assert result.forward is False
    assert result.retract is True


def test_retraction_in_monitored_chat_is_gated_by_target_users() -> None:
    classifier = _classifier(target_user_ids=["42"], retract_keywords=["已开奖"])
    assert classifier.classify(_message(sender="7", text="已开奖", message_id=1)).retract is False
    assert classifier.classify(_message(sender="42", text="已开奖", message_id=2)).retract is True


def test_lottery_payload_is_attached() -> None:
    classifier = _classifier(keywords=["抽奖"])
    result = classifier.classify(_message(text="抽奖活动\n创建者：Alice"))

    assert result.forward is True
    assert result.payload is not None
    assert result.payload.creator == "Alice"
