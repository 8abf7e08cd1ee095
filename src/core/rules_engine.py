"""Rule compilation and keyword matching logic (core domain).

Keyword policy:
- Matching is case-insensitive.
- Keywords made only of ASCII letters, digits and underscores match on word
  boundaries, where a boundary is any character that is not an ASCII word
  character. ``win`` matches "red win!" and "大win了" but not "winner".
- Every other keyword (CJK text, punctuation, whitespace) matches as a plain
  substring. ``红包`` matches anywhere in the text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union

from core.config import MonitorRules
from core.ids import parse_id_list

_ASCII_WORD = re.compile(r"^[0-9A-Za-z_]+$")
_RETRACT_NEWLINE = "\\n"


@dataclass(frozen=True)
class KeywordPattern:
    """A compiled keyword; ``pattern`` is None for substring keywords."""

    keyword: str
    pattern: Optional[re.Pattern]

    def search(self, lowered_text: str) -> bool:
        if self.pattern is None:
            return self.keyword in lowered_text
        return self.pattern.search(lowered_text) is not None


def compile_keyword(keyword: str) -> KeywordPattern:
    lowered = keyword.strip().lower()
    if _ASCII_WORD.match(lowered):
        pattern = re.compile(rf"(?<![0-9a-z_]){re.escape(lowered)}(?![0-9a-z_])")
        return KeywordPattern(lowered, pattern)
    return KeywordPattern(lowered, None)


def match_keywords(text: str, keywords: Iterable[Union[str, KeywordPattern]]) -> List[str]:
    """Return the configured keywords found in ``text``, in configuration order.

    Accepts precompiled ``KeywordPattern`` objects (as stored on
    ``MonitorRules``) or raw keyword strings.
    """

    lowered = text.lower()
    hits: List[str] = []
    for keyword in keywords:
        if isinstance(keyword, str):
            if not keyword:
                continue
            label, pattern = keyword, compile_keyword(keyword)
        else:
            label, pattern = keyword.keyword, keyword
        if pattern.search(lowered):
            hits.append(label)
    return hits


def _split_words(raw: Optional[Iterable[str] | str]) -> List[str]:
    if raw is None:
        return []
    items = raw.split(",") if isinstance(raw, str) else raw
    return [str(item).strip() for item in items if str(item).strip()]


def _split_retract_keywords(raw: Optional[Iterable[str] | str]) -> List[str]:
    # Env values cannot hold raw newlines, so "\n" escapes are expanded here.
    keywords = []
    for keyword in _split_words(raw):
        keywords.append(keyword.replace(_RETRACT_NEWLINE, "\n"))
    return keywords


def build_rules(
    *,
    monitor_chat_ids: Optional[Iterable[str] | str] = None,
    exclude_chat_ids: Optional[Iterable[str] | str] = None,
    keywords: Optional[Iterable[str] | str] = None,
    user_keywords: Optional[Iterable[str] | str] = None,
    target_user_ids: Optional[Iterable[str] | str] = None,
    notification_chat_ids: Optional[Iterable[str] | str] = None,
    retract_keywords: Optional[Iterable[str] | str] = None,
) -> MonitorRules:
    """Normalize raw rule settings into an immutable ``MonitorRules``.

    This keeps per-message matching minimal and avoids any ambiguity about
    keyword casing or id formats.
    """

    global_keywords = tuple(k.lower() for k in _split_words(keywords))
    own_keywords = tuple(k.lower() for k in _split_words(user_keywords))
    return MonitorRules(
        monitor_chat_ids=tuple(parse_id_list(monitor_chat_ids)),
        exclude_chat_ids=tuple(parse_id_list(exclude_chat_ids)),
        keywords=global_keywords,
        user_keywords=own_keywords,
        keyword_patterns=tuple(compile_keyword(k) for k in global_keywords),
        user_keyword_patterns=tuple(compile_keyword(k) for k in own_keywords),
        target_user_ids=tuple(parse_id_list(target_user_ids)),
        notification_chat_ids=tuple(parse_id_list(notification_chat_ids)),
        retract_keywords=tuple(_split_retract_keywords(retract_keywords)),
    )


def describe_hits(user_hits: Sequence[str], global_hits: Sequence[str]) -> str:
    """Human-readable reason listing the keywords that matched."""

    parts: List[str] = []
    if user_hits:
        parts.append(f"user keyword(s): {', '.join(sorted(set(user_hits)))}")
    if global_hits:
        parts.append(f"keyword(s): {', '.join(sorted(set(global_hits)))}")
    return "\n".join(parts)
