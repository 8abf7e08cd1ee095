"""Helpers for working with chat and user identifiers.

Telegram exposes the same chat under several shapes: a bare channel id
(``1234567890``), a "marked" peer id (``-1001234567890``) for channels and
supergroups, and a negative id (``-4242``) for legacy basic groups. Config
files mix all of them, so every comparison goes through ``normalize_id``.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional

# Marked channel ids carry a "-100" marker; basic groups carry a bare "-".
# The sign is required so a normalized value never loses digits on a second pass.
_MARKED_ID = re.compile(r"^(?:-100|-)?(\d*)")
_WHITESPACE = re.compile(r"\s+")


def normalize_id(raw: Any) -> str:
    """Return the canonical digit run for a chat/user id, or "" if none.

    Never raises. The empty string is a sentinel meaning "unknown" and must
    never be treated as matching a configured id.
    """

    if raw is None or isinstance(raw, bool):
        return ""
    try:
        text = _WHITESPACE.sub("", str(raw))
    except Exception:
        return ""
    match = _MARKED_ID.match(text)
    if not match:
        return ""
    return match.group(1)


def parse_id_list(raw: Optional[Iterable[Any] | str]) -> List[str]:
    """Parse a comma-separated string or an iterable into normalized ids.

    Blank and unparsable entries are dropped, order is kept, duplicates removed.
    """

    if raw is None:
        return []
    items: Iterable[Any] = raw.split(",") if isinstance(raw, str) else raw
    result: List[str] = []
    for item in items:
        normalized = normalize_id(item)
        if normalized and normalized not in result:
            result.append(normalized)
    return result


def legacy_group_id(chat_id: Optional[int]) -> str:
    """Return the normalized id a basic group had before it became a supergroup."""

    if chat_id is None:
        return ""
    return normalize_id(f"-{abs(int(chat_id))}")
