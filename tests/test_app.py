from __future__ import annotations

from app import _build_parser, _chat_argument


def test_members_command_takes_a_chat() -> None:
    args = _build_parser().parse_args(["members", "-1001234"])

    assert args.command == "members"
    assert args.chat == "-1001234"


def test_chat_argument_accepts_ids_and_usernames() -> None:
    assert _chat_argument(" -1001234 ") == -1001234
    assert _chat_argument("somegroup") == "somegroup"


def test_purge_scope_flags() -> None:
    parser = _build_parser()

    assert parser.parse_args(["purge", "--all"]).mode == "all"
    assert parser.parse_args(["purge", "--listed"]).mode == "listed"
    assert parser.parse_args(["purge"]).mode is None
