"""Shared notification formatting helpers.

Both delivery adapters send Telegram HTML, so formatting lives here and the
core only sees a ``Formatter`` callable.
"""

from __future__ import annotations

import html
from typing import Callable, Optional

from core.models import ClassifierResult, IncomingMessage, LotteryInfo

DIVIDER = "──────────────"


def format_source_label(message: IncomingMessage) -> str:
    """Return "title (ID: key)", falling back to the bare key for untitled chats."""

    title = (message.chat_title or "").strip()
    if not title:
        return message.chat_key
    return f"{title} (ID: {message.chat_key})"


def build_permalink(message: IncomingMessage) -> Optional[str]:
    if message.permalink:
        return message.permalink
    if not message.chat_key:
        return None
    return f"https://t.me/c/{message.chat_key}/{message.message_id}"


def truncate(text: str, limit: int) -> str:
    if limit <= 0 or len(text) <= limit:
        return text
    return text[: max(0, limit - 1)].rstrip() + "…"


def _link_line(message: IncomingMessage) -> Optional[str]:
    permalink = build_permalink(message)
    if not permalink:
        return None
    safe_link = html.escape(permalink)
    return f"<b>📝 链　接：</b> <a href=\"{safe_link}\">{safe_link}</a>"


def format_lottery_card(message: IncomingMessage, info: LotteryInfo) -> str:
    """Create the structured card used for lottery and red-packet announcements."""

    title = "🧧 红包提醒通知" if info.is_red_packet else "🔔 抽奖提醒通知"
    parts = [
        f"<b>{title}</b>",
        "",
        f"<b>🚩 群　组：</b> {html.escape(format_source_label(message))}",
    ]
    if info.creator:
        parts.append(f"<b>👑 财　神：</b> {html.escape(info.creator)}")
    if info.create_time:
        parts.append(f"<b>🕖 时　间：</b> {html.escape(info.create_time)}")
    if info.auto_open_count is not None:
        parts.append(f"<b>👩‍👧‍👧 参　与：</b> {info.auto_open_count} 人")
    if info.keyword:
        # <code> lets the user tap to copy the keyword.
        parts.append(f"<b>©️ 口　令：</b> <code>{html.escape(info.keyword)}</code>")
    if info.prizes:
        parts.append("<b>🎁 奖　品：</b>")
        parts.extend(f"    {html.escape(prize.name)} × {prize.count}" for prize in info.prizes)

    link = _link_line(message)
    if link:
        parts.append(link)
    return "\n".join(parts)


def format_plain(message: IncomingMessage, result: ClassifierResult, snippet_chars: int = 1000) -> str:
    """Create the generic notification: source, time, reason, excerpt and link."""

    timestamp = html.escape(message.date.astimezone().strftime("%H:%M:%S %d-%m-%Y"))
    excerpt = html.escape(truncate(result.display_text or message.text, snippet_chars))

    parts = [
        f"[{timestamp}]",
        f"<b>🚩 群　组：</b> {html.escape(format_source_label(message))}",
        f"<b>Why:</b> {html.escape(result.reason)}",
        DIVIDER,
        "",
        "<b>消息内容:</b>",
        excerpt,
        "",
    ]
    link = _link_line(message)
    if link:
        parts.append(link)
    parts.append(DIVIDER)
    return "\n".join(parts)


def format_notification(message: IncomingMessage, result: ClassifierResult, snippet_chars: int = 1000) -> str:
    """Return the lottery card when a payload was extracted, otherwise the plain body."""

    if result.payload is not None:
        return format_lottery_card(message, result.payload)
    return format_plain(message, result, snippet_chars)


def build_formatter(snippet_chars: int = 1000) -> Callable[[IncomingMessage, ClassifierResult], str]:
    def _format(message: IncomingMessage, result: ClassifierResult) -> str:
        return format_notification(message, result, snippet_chars)

    return _format
