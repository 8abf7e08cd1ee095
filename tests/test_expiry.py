from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from core.config import ExpiryConfig
from core.errors import EntityResolutionError
from core.expiry import ExpiryScanner, cutoff_for, is_expired, merge_candidates
from core.models import AccountRef, ChatKind, ChatRef, ExpiredMessageCandidate, FetchedMessage
from core.retry import RetryPolicy

NOW = 1_700_000_000
ME = AccountRef(id="1")
CHAT = ChatRef(id=-100100, title="Group", kind=ChatKind.GROUP)


async def _no_sleep(seconds: float) -> None:
    return None


def _msg(message_id: int, age_seconds: int, sender: str = "1", text: bool = True, service: bool = False) -> FetchedMessage:
    return FetchedMessage(
        id=message_id,
        date=datetime.fromtimestamp(NOW - age_seconds, tz=timezone.utc),
        sender_id=sender,
        has_text=text,
        has_media=False,
        is_service=service,
    )


class FakeBackend:
    def __init__(self, recent=(), own_pages=(), recent_error=None) -> None:
        self._recent = list(recent)
        self._pages = [list(page) for page in own_pages]
        self._recent_error = recent_error
        self.search_calls: list[dict] = []

    async def fetch_recent(self, chat: ChatRef, limit: int):
        if self._recent_error is not None:
            raise self._recent_error
        return self._recent[:limit]

    async def search_own(self, chat, me, *, offset_id, limit, max_date=None, min_date=None):
        self.search_calls.append({"offset_id": offset_id, "limit": limit, "max_date": max_date})
        index = len(self.search_calls) - 1
        return self._pages[index] if index < len(self._pages) else []


def _scanner(backend: FakeBackend, **overrides) -> ExpiryScanner:
    config = ExpiryConfig(auto_delete_minutes=10, **overrides)
    return ExpiryScanner(backend, config, RetryPolicy(sleep=_no_sleep), clock=lambda: NOW)


def test_cutoff_is_strict() -> None:
    cutoff = cutoff_for(NOW, 10)
    assert cutoff == NOW - 600
    assert is_expired(NOW - 600, cutoff) is False
    assert is_expired(NOW - 601, cutoff) is True


def test_recent_pass_includes_601_and_excludes_599() -> None:
    backend = FakeBackend(recent=[_msg(3, 599), _msg(2, 600), _msg(1, 601)])

    found = asyncio.run(_scanner(backend).scan(CHAT, ME))

    assert [candidate.message_id for candidate in found] == [1]


def test_recent_pass_filters_other_senders_service_and_empty() -> None:
    backend = FakeBackend(
        recent=[
            _msg(5, 700, sender="9"),
            _msg(4, 700, service=True),
            _msg(3, 700, text=False),
            _msg(2, 700),
        ]
    )

    found = asyncio.run(_scanner(backend).scan(CHAT, ME))

    assert [candidate.message_id for candidate in found] == [2]


def test_recent_pass_stops_past_recency_horizon() -> None:
    backend = FakeBackend(recent=[_msg(3, 700), _msg(2, 1300), _msg(1, 800)])

    found = asyncio.run(_scanner(backend).recent_pass(CHAT, ME, cutoff_for(NOW, 10)))

    assert [candidate.message_id for candidate in found] == [3]


def test_passes_are_merged_by_message_id() -> None:
    backend = FakeBackend(
        recent=[_msg(10, 700), _msg(9, 650)],
        own_pages=[[_msg(10, 700), _msg(8, 5000)]],
    )

    found = asyncio.run(_scanner(backend).scan(CHAT, ME))

    assert sorted(candidate.message_id for candidate in found) == [8, 9, 10]


def test_historical_pass_paginates_until_short_page() -> None:
    pages = [
        [_msg(30, 4000), _msg(29, 4100)],
        [_msg(28, 4200), _msg(27, 4300)],
        [_msg(26, 4400)],
    ]
    backend = FakeBackend(own_pages=pages)

    found = asyncio.run(_scanner(backend, search_page_size=2).historical_pass(CHAT, ME, cutoff_for(NOW, 10), NOW))

    assert [candidate.message_id for candidate in found] == [30, 29, 28, 27, 26]
    assert [call["offset_id"] for call in backend.search_calls] == [0, 29, 27]
    assert backend.search_calls[0]["max_date"] == datetime.fromtimestamp(NOW - 600, tz=timezone.utc)


def test_historical_pass_respects_page_cap() -> None:
    pages = [[_msg(100 - i, 4000 + i)] for i in range(5)]
    backend = FakeBackend(own_pages=pages)

    found = asyncio.run(
        _scanner(backend, search_page_size=1, search_max_pages=3).historical_pass(CHAT, ME, cutoff_for(NOW, 10), NOW)
    )

    assert len(found) == 3
    assert len(backend.search_calls) == 3


def test_failing_pass_does_not_sink_the_other() -> None:
    backend = FakeBackend(
        own_pages=[[_msg(8, 5000)]],
        recent_error=EntityResolutionError("cannot resolve chat"),
    )

    found = asyncio.run(_scanner(backend).scan(CHAT, ME))

    assert [candidate.message_id for candidate in found] == [8]


def test_merge_keeps_first_occurrence() -> None:
    first = ExpiredMessageCandidate(CHAT, 1, 10, "1")
    second = ExpiredMessageCandidate(CHAT, 1, 20, "1")

    merged = merge_candidates([first], [second])

    assert merged == [first]
