"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Tuple

if TYPE_CHECKING:
    from core.rules_engine import KeywordPattern

DEFAULT_DEDUP_WINDOW_MINUTES = 10
DEFAULT_AUTO_DELETE_MINUTES = 10
DEFAULT_DELETE_CONCURRENCY = 3
DEFAULT_DELETE_BATCH_SIZE = 100


@dataclass(frozen=True)
class MonitorRules:
    """Immutable monitoring rules, loaded once at startup.

    All ids are normalized (see ``core.ids.normalize_id``) and all keywords
    except the retraction triggers are lower-cased.
    """

    monitor_chat_ids: Tuple[str, ...] = ()
    exclude_chat_ids: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    user_keywords: Tuple[str, ...] = ()
    target_user_ids: Tuple[str, ...] = ()
    notification_chat_ids: Tuple[str, ...] = ()
    # Retraction triggers are matched verbatim, newlines included.
    retract_keywords: Tuple[str, ...] = ()
    # Compiled once by ``build_rules``, in the same order as the keyword lists.
    keyword_patterns: Tuple[KeywordPattern, ...] = field(default=(), compare=False, repr=False)
    user_keyword_patterns: Tuple[KeywordPattern, ...] = field(default=(), compare=False, repr=False)


@dataclass(frozen=True)
class Identity:
    """Normalized ids of the local account and the notification bot."""

    self_id: str
    bot_id: str = ""


@dataclass(frozen=True)
class DedupConfig:
    """Deduplication settings for the classifier."""

    window_minutes: int = DEFAULT_DEDUP_WINDOW_MINUTES
    sweep_interval_seconds: float = 60.0


@dataclass(frozen=True)
class NotificationConfig:
    """Notification settings consumed by the notifier and its delivery adapters."""

    targets: Tuple[str, ...] = ()
    snippet_chars: int = 1000


@dataclass(frozen=True)
class ExpiryConfig:
    """Settings for the periodic expiry sweep.

    A non-positive ``auto_delete_minutes`` disables the whole subsystem.
    """

    auto_delete_minutes: int = DEFAULT_AUTO_DELETE_MINUTES
    exclude_chat_ids: Tuple[str, ...] = ()
    concurrency: int = DEFAULT_DELETE_CONCURRENCY
    batch_size: int = DEFAULT_DELETE_BATCH_SIZE
    recent_limit: int = 200
    recency_horizon_seconds: int = 600
    search_page_size: int = 100
    search_max_pages: int = 10
    search_page_delay: float = 0.2
    item_delay: float = 0.12
    chunk_delay: float = 0.15

    @property
    def enabled(self) -> bool:
        return self.auto_delete_minutes > 0

    @property
    def interval_seconds(self) -> float:
        return max(1, self.auto_delete_minutes) * 60.0


@dataclass(frozen=True)
class PurgeConfig:
    """Settings for the one-shot full-history purge."""

    mode: str = "all"
    chat_ids: Tuple[str, ...] = ()
    exclude_chat_ids: Tuple[str, ...] = ()
    batch_size: int = DEFAULT_DELETE_BATCH_SIZE
    page_size: int = 100
    max_pages: int = 20
    page_delay: float = 1.0
    batch_delay: float = 1.0
    chat_delay: float = 2.0
