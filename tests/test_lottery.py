from __future__ import annotations

from core.lottery import parse_lottery_message
from core.models import Prize

LOTTERY_TEXT = "\n".join(
    [
        "🎉 抽奖活动已创建",
        "抽奖创建时间：2024-05-01 12:00",
        "创建者：Alice",
        "奖品：",
        "USDT 10 × 3",
        "会员月卡*2",
        "",
        "参与设置",
        "参与关键词：「来了」",
        "自动开奖人数：50",
    ]
)

RED_PACKET_TEXT = "\n".join(
    [
        "红包活动已创建",
        "创建者：Bob",
        "总金额: 100",
        "数量: 20份",
        "发送 恭喜发财 进行领取",
    ]
)


def test_returns_none_without_configured_keyword() -> None:
    assert parse_lottery_message(LOTTERY_TEXT, ["红包雨"]) is None
    assert parse_lottery_message(LOTTERY_TEXT, []) is None


def test_extracts_lottery_fields() -> None:
    info = parse_lottery_message(LOTTERY_TEXT, ["抽奖"])

    assert info is not None
    assert info.create_time == "2024-05-01 12:00"
    assert info.creator == "Alice"
    assert info.keyword == "来了"
    assert info.auto_open_count == 50
    assert info.prizes == [Prize("USDT 10", 3), Prize("会员月卡", 2)]
    assert info.is_red_packet is False


def test_prize_section_stops_at_settings_marker() -> None:
    text = "奖品：\nA × 1\n参与设置\nB × 9\n"
    info = parse_lottery_message(text, ["奖品"])

    assert info is not None
    assert info.prizes == [Prize("A", 1)]


def test_keyword_gate_is_case_insensitive() -> None:
    info = parse_lottery_message("Giveaway time\n创建者：Carol", ["GIVEAWAY"])

    assert info is not None
    assert info.creator == "Carol"
    assert info.prizes == []
    assert info.auto_open_count is None


def test_red_packet_amount_count_and_claim_keyword() -> None:
    info = parse_lottery_message(RED_PACKET_TEXT, ["红包"])

    assert info is not None
    assert info.is_red_packet is True
    assert info.creator == "Bob"
    assert info.prizes == [Prize("红包 100", 20)]
    assert info.keyword == "恭喜发财"


def test_red_packet_falls_back_to_generic_keyword() -> None:
    text = "红包活动已创建\n总金额: 5\n数量: 1份\n参与关键词：「口令」"
    info = parse_lottery_message(text, ["红包"])

    assert info is not None
    assert info.keyword == "口令"
