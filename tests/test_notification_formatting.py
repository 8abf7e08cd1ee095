from __future__ import annotations

from datetime import datetime, timezone

from adapters.notification_formatting import (
    build_permalink,
    format_lottery_card,
    format_notification,
    format_source_label,
    truncate,
)
from core.models import ChatKind, ClassifierResult, IncomingMessage, LotteryInfo, Prize


def _message(*, title: str = "Lounge <1>", permalink: "str | None" = None) -> IncomingMessage:
    return IncomingMessage(
        chat_id=-1001234,
        chat_key="1234",
        chat_kind=ChatKind.GROUP,
        chat_title=title,
        sender_id="42",
        message_id=77,
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        text="a < b & c",
        permalink=permalink,
    )


def test_format_source_label() -> None:
    assert format_source_label(_message(title="Lounge")) == "Lounge (ID: 1234)"
    assert format_source_label(_message(title="")) == "1234"


def test_permalink_falls_back_to_private_link() -> None:
    assert build_permalink(_message()) == "https://t.me/c/1234/77"
    assert build_permalink(_message(permalink="https://t.me/pub/77")) == "https://t.me/pub/77"


def test_lottery_card_lists_fields_and_escapes() -> None:
    info = LotteryInfo(
        create_time="2024-05-01 12:00",
        creator="Alice & Bob",
        prizes=[Prize("USDT 10", 3)],
        keyword="来了",
        auto_open_count=50,
    )

    card = format_lottery_card(_message(), info)

    assert "Lounge &lt;1&gt; (ID: 1234)" in card
    assert "Alice &amp; Bob" in card
    assert "<code>来了</code>" in card
    assert "50 人" in card
    assert "USDT 10 × 3" in card
    assert "https://t.me/c/1234/77" in card


def test_plain_notification_escapes_and_clips_excerpt() -> None:
    result = ClassifierResult(forward=True, reason="keyword(s): b", display_text="a < b & c " * 50)

    body = format_notification(_message(), result, snippet_chars=20)

    assert "a &lt; b &amp; c" in body
    assert "keyword(s): b" in body
    assert "…" in body
    assert "a < b" not in body


def test_payload_selects_lottery_card() -> None:
    result = ClassifierResult(forward=True, reason="r", payload=LotteryInfo(is_red_packet=True), display_text="x")
    assert "红包提醒通知" in format_notification(_message(), result)


def test_truncate() -> None:
    assert truncate("hello", 10) == "hello"
    assert truncate("hello world", 6) == "hello…"
    assert truncate("hello", 0) == "hello"
