"""Structured extraction for lottery and red-packet announcements.

Giveaway bots post announcements with labeled lines, for example::

    抽奖创建时间：2024-05-01 12:00
    创建者：Alice
    奖品：
    USDT 10 × 3
    参与设置
    参与关键词：「来了」
    自动开奖人数：50

Red packets ("红包活动已创建") carry a total amount, a share count and a
"发送 <word> 进行领取" instruction instead of a prize list.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from core.models import LotteryInfo, Prize

RED_PACKET_MARKER = "红包活动已创建"

_CREATE_TIME = re.compile(r"抽奖创建时间[：:](.+)")
_CREATOR = re.compile(r"创建者[：:](.+)")
_AUTO_OPEN_COUNT = re.compile(r"自动开奖人数[：:](\d+)")
_KEYWORD = re.compile(r"参与关键词[：:]「(.+?)」")
_RED_PACKET_KEYWORD = re.compile(r"发送\s+(.+?)\s+进行领取")
_PRIZE_HEADER = re.compile(r"奖品[：:]|总金额[:：]")
_PRIZE_LINE = re.compile(r"(\S.*?)\s*[*×x]\s*(\d+)")
_TOTAL_AMOUNT = re.compile(r"总金额[:：]\s*(\d+)")
_SHARE_COUNT = re.compile(r"数量[:：]\s*(\d+)份")
_SECTION_END_MARKERS = ("参与设置", "抽奖设置")


def _first_group(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(1).strip() if match else None


def _parse_red_packet(lines: List[str]) -> List[Prize]:
    amount: Optional[str] = None
    count: Optional[str] = None
    for line in lines:
        amount_match = _TOTAL_AMOUNT.search(line)
        if amount_match:
            amount = amount_match.group(1)
        count_match = _SHARE_COUNT.search(line)
        if count_match:
            count = count_match.group(1)
    if amount is None or count is None:
        return []
    return [Prize(name=f"红包 {amount}", count=int(count))]


def _parse_prizes(lines: List[str], is_red_packet: bool) -> List[Prize]:
    prizes: List[Prize] = []
    in_section = False
    for index, line in enumerate(lines):
        if _PRIZE_HEADER.search(line):
            if is_red_packet:
                return _parse_red_packet(lines[index:])
            in_section = True
            continue
        if not in_section:
            continue
        if not line.strip() or any(marker in line for marker in _SECTION_END_MARKERS):
            in_section = False
            continue
        match = _PRIZE_LINE.search(line)
        if match:
            prizes.append(Prize(name=match.group(1).strip(), count=int(match.group(2))))
    return prizes


def parse_lottery_message(text: str, keywords: Iterable[str]) -> Optional[LotteryInfo]:
    """Extract lottery fields, or return None when no keyword appears in ``text``.

    Extraction is gated on keyword presence: without a configured keyword in
    the text the message is treated as an ordinary match.
    """

    lowered = text.lower()
    if not any(keyword and keyword.lower() in lowered for keyword in keywords):
        return None

    is_red_packet = RED_PACKET_MARKER in text
    prizes = _parse_prizes(text.split("\n"), is_red_packet)

    auto_open = _first_group(_AUTO_OPEN_COUNT, text)
    keyword = _first_group(_KEYWORD, text)
    if is_red_packet:
        keyword = _first_group(_RED_PACKET_KEYWORD, text) or keyword

    return LotteryInfo(
        create_time=_first_group(_CREATE_TIME, text),
        creator=_first_group(_CREATOR, text),
        prizes=prizes,
        keyword=keyword,
        auto_open_count=int(auto_open) if auto_open is not None else None,
        is_red_packet=is_red_packet,
    )
