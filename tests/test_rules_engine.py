from __future__ import annotations

from core.rules_engine import build_rules, compile_keyword, describe_hits, match_keywords


def test_ascii_keyword_uses_word_boundaries() -> None:
    assert match_keywords("red win!", ["win"]) == ["win"]
    assert match_keywords("WIN big", ["win"]) == ["win"]
    assert match_keywords("the winner is", ["win"]) == []
    assert match_keywords("I won!", ["win"]) == []


def test_ascii_keyword_next_to_cjk_matches() -> None:
    assert match_keywords("大win了", ["win"]) == ["win"]


def test_cjk_keyword_matches_as_substring() -> None:
    assert match_keywords("今天发红包啦", ["红包"]) == ["红包"]


def test_keyword_with_punctuation_or_space_matches_as_substring() -> None:
    assert match_keywords("join the lucky draw now", ["lucky draw"]) == ["lucky draw"]
    assert match_keywords("price: $5", ["$5"]) == ["$5"]
    assert compile_keyword("lucky draw").pattern is None


def test_hits_follow_configuration_order() -> None:
    assert match_keywords("开奖 win 红包", ["红包", "win", "missing"]) == ["红包", "win"]


def test_build_rules_normalizes_ids_and_keywords() -> None:
    rules = build_rules(
        monitor_chat_ids="-100123, 456",
        exclude_chat_ids=["-789"],
        keywords="WIN, 红包",
        user_keywords=["Hello"],
        target_user_ids="42",
        notification_chat_ids="-100999",
        retract_keywords=r"已开奖\n结束,Done",
    )
    assert rules.monitor_chat_ids == ("123", "456")
    assert rules.exclude_chat_ids == ("789",)
    assert rules.keywords == ("win", "红包")
    assert rules.user_keywords == ("hello",)
    assert rules.target_user_ids == ("42",)
    assert rules.notification_chat_ids == ("999",)
    assert rules.retract_keywords == ("已开奖\n结束", "Done")


def test_build_rules_precompiles_keywords() -> None:
    rules = build_rules(keywords="WIN, 红包", user_keywords=["Hello"])

    assert [p.keyword for p in rules.keyword_patterns] == ["win", "红包"]
    assert rules.keyword_patterns[0].pattern is not None
    assert rules.keyword_patterns[1].pattern is None
    assert [p.keyword for p in rules.user_keyword_patterns] == ["hello"]
    assert match_keywords("大win了 红包", rules.keyword_patterns) == ["win", "红包"]
    assert match_keywords("winner", rules.keyword_patterns) == []


def test_describe_hits() -> None:
    assert describe_hits(["a"], ["b", "c"]) != ""
    assert describe_hits([], []) == ""
