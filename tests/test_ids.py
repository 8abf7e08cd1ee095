from __future__ import annotations

from core.ids import legacy_group_id, normalize_id, parse_id_list


def test_normalize_strips_channel_and_group_markers() -> None:
    assert normalize_id(-1001234567890) == "1234567890"
    assert normalize_id("-1001234567890") == "1234567890"
    assert normalize_id("-4242") == "4242"
    assert normalize_id(" 1234 ") == "1234"
    assert normalize_id("1234567890") == "1234567890"


def test_normalize_is_idempotent() -> None:
    for raw in ["-1001234567890", "-4242", "1234", "1001234", " -100 77 ", "abc"]:
        once = normalize_id(raw)
        assert normalize_id(once) == once


def test_unsigned_100_prefix_is_kept() -> None:
    assert normalize_id("1001234") == "1001234"


def test_normalize_never_raises_and_returns_empty_for_junk() -> None:
    assert normalize_id(None) == ""
    assert normalize_id(True) == ""
    assert normalize_id("") == ""
    assert normalize_id("abc") == ""
    assert normalize_id(object()) == ""


def test_normalize_keeps_leading_digit_run_only() -> None:
    assert normalize_id("-100123abc456") == "123"


def test_parse_id_list_drops_blanks_and_duplicates() -> None:
    assert parse_id_list("-1001, 1, ,abc,-42") == ["1", "42"]
    assert parse_id_list(["-10055", 55, "7"]) == ["55", "7"]
    assert parse_id_list(None) == []


def test_legacy_group_id() -> None:
    assert legacy_group_id(4242) == "4242"
    assert legacy_group_id(None) == ""
