"""Configuration loading for warden.

Settings come from an optional flat ``config.json`` and are then overridden
by environment variables (``.env`` is loaded with python-dotenv). The result
is an immutable ``Settings`` object; the core config dataclasses are built
from it once at startup.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from dotenv import load_dotenv

from core.config import (
    DEFAULT_AUTO_DELETE_MINUTES,
    DEFAULT_DEDUP_WINDOW_MINUTES,
    DEFAULT_DELETE_BATCH_SIZE,
    DEFAULT_DELETE_CONCURRENCY,
    DedupConfig,
    ExpiryConfig,
    Identity,
    MonitorRules,
    NotificationConfig,
    PurgeConfig,
)
from core.errors import ConfigError
from core.ids import parse_id_list
from core.rules_engine import build_rules

LOGGER = logging.getLogger(__name__)

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

NOTIFICATION_METHODS = ("bot", "client")
SAVED_MESSAGES = "me"

# Env vars whose values are masked in log output.
SECRET_ENV_VARS = ("API_HASH", "APP_API_HASH", "STRING_SESSION", "TELEGRAM_BOT_TOKEN")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _load_json_config(path: Optional[str]) -> dict:
    """Load config.json with a flat, user-friendly schema; missing file means {}."""

    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def split_list(raw: Any) -> Tuple[str, ...]:
    """Split a comma-separated string (or a JSON list) into trimmed, non-empty items."""

    if raw is None:
        return ()
    items = raw if isinstance(raw, (list, tuple)) else str(raw).split(",")
    return tuple(str(item).strip() for item in items if str(item).strip())


def parse_int(raw: Any, default: int, name: str) -> int:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        LOGGER.warning("%s=%r is not a number, using %s", name, raw, default)
        return default


def parse_float(raw: Any, default: float, name: str) -> float:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    try:
        return float(str(raw).strip())
    except ValueError:
        LOGGER.warning("%s=%r is not a number, using %s", name, raw, default)
        return default


def parse_bool(raw: Any, default: bool = False) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in _TRUE_VALUES


def parse_history_mode(raw: Any) -> str:
    """Map DELETE_HISTORY_MODE to "all" or "listed"; "true" historically meant all chats."""

    value = str(raw or "").strip().lower()
    if value in {"all", "true", "1", "yes"}:
        return "all"
    return "listed"


@dataclass(frozen=True)
class Settings:
    api_id: int
    api_hash: str
    string_session: str = ""
    session_name: str = "warden"
    monitor_chat_ids: Tuple[str, ...] = ()
    exclude_chat_ids: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    user_keywords: Tuple[str, ...] = ()
    target_user_ids: Tuple[str, ...] = ()
    notification_chat_ids: Tuple[str, ...] = ()
    retract_keywords: Tuple[str, ...] = ()
    notification_method: str = "client"
    bot_token: str = ""
    snippet_chars: int = 1000
    dedup_window_minutes: int = DEFAULT_DEDUP_WINDOW_MINUTES
    auto_delete_minutes: int = DEFAULT_AUTO_DELETE_MINUTES
    delete_concurrency: int = DEFAULT_DELETE_CONCURRENCY
    delete_batch_size: int = DEFAULT_DELETE_BATCH_SIZE
    delete_history_mode: str = "listed"
    purge_chat_delay: float = 2.0
    purge_batch_delay: float = 1.0
    debug: bool = False
    logging_config: Mapping[str, Any] = field(default_factory=dict)

    @property
    def notification_targets(self) -> Tuple[str, ...]:
        if self.notification_chat_ids:
            return self.notification_chat_ids
        if self.notification_method == "client":
            return (SAVED_MESSAGES,)
        return ()

    def monitor_rules(self) -> MonitorRules:
        return build_rules(
            monitor_chat_ids=self.monitor_chat_ids,
            exclude_chat_ids=self.exclude_chat_ids,
            keywords=self.keywords,
            user_keywords=self.user_keywords,
            target_user_ids=self.target_user_ids,
            notification_chat_ids=self.notification_chat_ids,
            retract_keywords=self.retract_keywords,
        )

    def dedup_config(self) -> DedupConfig:
        return DedupConfig(window_minutes=self.dedup_window_minutes)

    def notification_config(self) -> NotificationConfig:
        return NotificationConfig(targets=self.notification_targets, snippet_chars=self.snippet_chars)

    def expiry_config(self) -> ExpiryConfig:
        return ExpiryConfig(
            auto_delete_minutes=self.auto_delete_minutes,
            exclude_chat_ids=tuple(parse_id_list(self.exclude_chat_ids)),
            concurrency=self.delete_concurrency,
            batch_size=self.delete_batch_size,
        )

    def purge_config(self, mode: Optional[str] = None) -> PurgeConfig:
        return PurgeConfig(
            mode=mode or self.delete_history_mode,
            chat_ids=tuple(parse_id_list(self.monitor_chat_ids)),
            exclude_chat_ids=tuple(parse_id_list(self.exclude_chat_ids)),
            batch_size=self.delete_batch_size,
            batch_delay=self.purge_batch_delay,
            chat_delay=self.purge_chat_delay,
        )

    def identity(self, self_id: str, bot_id: str = "") -> Identity:
        return Identity(self_id=self_id, bot_id=bot_id)

    def secrets(self) -> list[str]:
        values = [self.api_hash, self.string_session, self.bot_token]
        return sorted({value for value in values if value}, key=len, reverse=True)


def _section(config: Mapping[str, Any], name: str) -> dict:
    section = config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"Config section {name!r} must be a JSON object, got {type(section).__name__}")
    return section


def _pick(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def load_settings(config_path: Optional[str] = CONFIG_PATH, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from config.json plus environment overrides.

    Raises ``ConfigError`` for missing credentials or an unusable notification setup.
    """

    if environ is None:
        load_dotenv()
        environ = os.environ
    env = environ
    config = _load_json_config(config_path)

    monitor = _section(config, "monitor")
    dedup = _section(config, "dedup")
    notifications = _section(config, "notifications")
    auto_delete = _section(config, "auto_delete")
    purge = _section(config, "purge")
    logging_config = _section(config, "logging")
    _section(logging_config, "file")

    raw_api_id = _pick(env, "API_ID", "APP_ID") or config.get("api_id")
    api_hash = _pick(env, "API_HASH", "APP_API_HASH") or config.get("api_hash")
    if not raw_api_id or not api_hash:
        raise ConfigError("Missing API_ID or API_HASH in environment")
    try:
        api_id = int(str(raw_api_id).strip())
    except ValueError as exc:
        raise ConfigError(f"API_ID must be numeric, got {raw_api_id!r}") from exc

    def env_or(name: str, fallback: Any) -> Any:
        value = env.get(name)
        return value if value is not None and value.strip() else fallback

    auto_delete_minutes = parse_int(
        env_or("AUTO_DELETE_MINUTES", auto_delete.get("minutes")),
        DEFAULT_AUTO_DELETE_MINUTES,
        "AUTO_DELETE_MINUTES",
    )
    dedup_default = auto_delete_minutes if auto_delete_minutes > 0 else DEFAULT_DEDUP_WINDOW_MINUTES
    dedup_window = parse_int(
        env_or("DEDUP_WINDOW_MINUTES", dedup.get("window_minutes")),
        dedup_default,
        "DEDUP_WINDOW_MINUTES",
    )

    bot_token = _pick(env, "TELEGRAM_BOT_TOKEN") or notifications.get("bot_token") or ""
    method_default = "bot" if bot_token else "client"
    method = str(env_or("NOTIFICATION_METHOD", notifications.get("method", method_default))).strip().lower()
    if method not in NOTIFICATION_METHODS:
        raise ConfigError(f"NOTIFICATION_METHOD must be one of {', '.join(NOTIFICATION_METHODS)}, got {method!r}")

    notification_chat_ids = split_list(env_or("NOTIFICATION_CHAT_ID", notifications.get("chat_ids")))
    if method == "bot":
        if not bot_token:
            raise ConfigError("TELEGRAM_BOT_TOKEN is required when NOTIFICATION_METHOD=bot")
        if not notification_chat_ids:
            raise ConfigError("NOTIFICATION_CHAT_ID is required for bot notifications")

    settings = Settings(
        api_id=api_id,
        api_hash=str(api_hash),
        string_session=_pick(env, "STRING_SESSION") or "",
        session_name=_pick(env, "SESSION_NAME") or config.get("session_name", "warden"),
        monitor_chat_ids=split_list(env_or("MONITOR_CHAT_IDS", monitor.get("chat_ids"))),
        exclude_chat_ids=split_list(env_or("NOT_MONITOR_CHAT_IDS", monitor.get("exclude_chat_ids"))),
        keywords=split_list(env_or("MONITOR_KEYWORDS", monitor.get("keywords"))),
        user_keywords=split_list(env_or("USER_KEYWORDS", monitor.get("user_keywords"))),
        target_user_ids=split_list(env_or("TARGET_USER_IDS", monitor.get("target_user_ids"))),
        notification_chat_ids=notification_chat_ids,
        retract_keywords=split_list(env_or("DELETE_NOTIFICATION_KEYWORDS", notifications.get("retract_keywords"))),
        notification_method=method,
        bot_token=bot_token,
        snippet_chars=parse_int(notifications.get("snippet_chars"), 1000, "snippet_chars"),
        dedup_window_minutes=dedup_window,
        auto_delete_minutes=auto_delete_minutes,
        delete_concurrency=max(1, parse_int(
            env_or("DELETE_CONCURRENCY", auto_delete.get("concurrency")),
            DEFAULT_DELETE_CONCURRENCY,
            "DELETE_CONCURRENCY",
        )),
        delete_batch_size=max(1, parse_int(
            env_or("DELETE_BATCH_SIZE", auto_delete.get("batch_size")),
            DEFAULT_DELETE_BATCH_SIZE,
            "DELETE_BATCH_SIZE",
        )),
        delete_history_mode=parse_history_mode(env_or("DELETE_HISTORY_MODE", purge.get("mode"))),
        purge_chat_delay=parse_float(purge.get("chat_delay"), 2.0, "purge.chat_delay"),
        purge_batch_delay=parse_float(purge.get("batch_delay"), 1.0, "purge.batch_delay"),
        debug=parse_bool(env_or("DEBUG", config.get("debug")), False),
        logging_config=logging_config,
    )
    LOGGER.debug("Settings loaded (notification method: %s)", settings.notification_method)
    return settings
