"""Application entry point for the warden watcher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, List, Optional, Union

from art import tprint
from telethon import events

import settings as settings_module
from adapters.notification_formatting import build_formatter
from adapters.telegram_backend import TelethonBackend
from adapters.telegram_bot_notifier import TelegramBotDelivery
from adapters.telegram_mapper import MigrationResolver, build_event
from adapters.telegram_notifier import TelegramClientDelivery
from client import build_client
from core.classifier import Classifier
from core.dedup import DedupStore
from core.errors import BackendError, ConfigError
from core.ids import normalize_id
from core.models import ChatKind, InboundEvent
from core.notifier import DispatchRecord, Notifier
from core.orchestrator import PurgeOrchestrator, SweepOrchestrator
from core.processor import MessageProcessor
from core.retraction import RetractionEngine
from core.retry import RetryPolicy
from core.scheduler import PeriodicTask
from settings import Settings

NAME = "WARDEN"
FONT = "tarty-1"

EXIT_OK = 0
EXIT_BACKEND = 1
EXIT_CONFIG = 2

HEARTBEAT_SECONDS = 60.0
SHUTDOWN_GRACE_SECONDS = 10.0

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(settings: Optional[Settings]) -> list[str]:
    values = set(settings.secrets()) if settings else set()
    for name in settings_module.SECRET_ENV_VARS:
        value = os.getenv(name)
        if value:
            values.add(value)
    return sorted(values, key=len, reverse=True)


def _configure_logging(settings: Optional[Settings] = None) -> None:
    config = dict(settings.logging_config) if settings else {}
    if settings and settings.debug:
        level = logging.DEBUG
    else:
        level_name = str(config.get("level", "INFO")).upper()
        level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(settings), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/warden.log")
        if not os.path.isabs(path):
            path = os.path.join(settings_module.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # Telethon is chatty at DEBUG; keep it at INFO unless something breaks.
    logging.getLogger("telethon").setLevel(max(level, logging.INFO))


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            LOGGER.debug("Signal handlers are not supported on this platform")
            return


class Watcher:
    """Composition root for the real-time watcher.

    Owns the dedup store and the dispatch record, wires them into the
    classifier, notifier and retraction engine, and runs the periodic tasks.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._stop = asyncio.Event()
        self._tasks: List[PeriodicTask] = []
        self._client: Any = None
        self._backend: Optional[TelethonBackend] = None
        self._processor: Optional[MessageProcessor] = None
        self._monitor_chat_ids: tuple = ()

    async def _build_delivery(self, retry: RetryPolicy):
        if self._settings.notification_method == "bot":
            delivery = TelegramBotDelivery(self._settings.bot_token, retry)
            return delivery, await delivery.get_bot_id()
        return TelegramClientDelivery(self._client), ""

    async def _build_processor(self, self_id: str) -> MessageProcessor:
        settings = self._settings
        retry = RetryPolicy()
        delivery, bot_id = await self._build_delivery(retry)

        rules = settings.monitor_rules()
        self._monitor_chat_ids = rules.monitor_chat_ids
        dedup = DedupStore(settings.dedup_config().window_minutes)
        record = DispatchRecord()
        notification = settings.notification_config()

        classifier = Classifier(rules, settings.identity(self_id, bot_id), dedup)
        notifier = Notifier(delivery, notification.targets, build_formatter(notification.snippet_chars), record)
        retraction = RetractionEngine(delivery, notification.targets, rules.retract_keywords, record)

        LOGGER.info(
            "Monitoring %s chats (%s excluded), %s keywords, %s user keywords, %s target users",
            len(rules.monitor_chat_ids) or "all",
            len(rules.exclude_chat_ids),
            len(rules.keywords),
            len(rules.user_keywords),
            len(rules.target_user_ids),
        )
        LOGGER.info("Selected notification method - %s", settings.notification_method)

        self._tasks.append(PeriodicTask("dedup-sweep", settings.dedup_config().sweep_interval_seconds, self._dedup_sweep(dedup)))
        return MessageProcessor(classifier, notifier, retraction)

    @staticmethod
    def _dedup_sweep(dedup: DedupStore):
        async def sweep() -> None:
            removed = dedup.sweep()
            if removed:
                LOGGER.debug("Dedup sweep removed %s entries", removed)

        return sweep

    async def _heartbeat(self) -> None:
        connected = True
        try:
            await self._backend.get_me()
        except Exception as exc:
            LOGGER.warning("Heartbeat failed: %s", exc)
            connected = False
        await self._processor.dispatch(InboundEvent.connection_state(connected))

    def _register_handlers(self) -> None:
        client = self._client
        processor = self._processor
        migrations = MigrationResolver(client, self._monitor_chat_ids)

        async def handle(event, edited: bool) -> None:
            try:
                inbound = await build_event(event, edited=edited, migrations=migrations)
                await processor.dispatch(inbound)
            except Exception:
                LOGGER.exception("Error while processing message")

        @client.on(events.NewMessage())
        async def on_new(event) -> None:
            await handle(event, edited=False)

        @client.on(events.MessageEdited())
        async def on_edit(event) -> None:
            await handle(event, edited=True)

    async def run(self) -> int:
        settings = self._settings
        self._client = build_client(settings)
        self._backend = TelethonBackend(self._client)
        _install_signal_handlers(self._stop)

        try:
            await self._backend.connect()
            me = await self._backend.get_me()
        except (BackendError, ConnectionError, OSError) as exc:
            LOGGER.error("Could not connect to Telegram: %s", exc)
            await self._client.disconnect()
            return EXIT_BACKEND

        LOGGER.info("Logged in as %s", me.id)
        try:
            self._processor = await self._build_processor(me.id)
            self._register_handlers()

            self._tasks.append(PeriodicTask("heartbeat", HEARTBEAT_SECONDS, self._heartbeat))
            expiry = settings.expiry_config()
            if expiry.enabled:
                sweeper = SweepOrchestrator(self._backend, expiry)
                self._tasks.append(PeriodicTask("expiry-sweep", expiry.interval_seconds, sweeper.run_sweep, run_first=True))
                LOGGER.info("Auto-delete enabled: messages older than %s minutes", expiry.auto_delete_minutes)
            else:
                LOGGER.info("Auto-delete disabled")

            for task in self._tasks:
                task.start()

            LOGGER.info("Client connected. Listening for incoming messages...")
            stopped = asyncio.ensure_future(self._stop.wait())
            done, _ = await asyncio.wait(
                {self._client.disconnected, stopped},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if stopped in done:
                LOGGER.info("Shutdown requested")
            else:
                stopped.cancel()
                LOGGER.warning("Client disconnected")
        finally:
            await self._shutdown()
        return EXIT_OK

    async def _shutdown(self) -> None:
        for task in self._tasks:
            await task.stop(grace=SHUTDOWN_GRACE_SECONDS)
        self._tasks.clear()
        try:
            await asyncio.wait_for(self._client.disconnect(), timeout=SHUTDOWN_GRACE_SECONDS)
        except asyncio.TimeoutError:
            LOGGER.warning("Client did not disconnect within %ss", SHUTDOWN_GRACE_SECONDS)
        LOGGER.info("Watcher stopped")


async def _purge(settings: Settings, mode: Optional[str]) -> int:
    config = settings.purge_config(mode)
    if config.mode == "listed" and not config.chat_ids:
        LOGGER.warning("Purge mode is 'listed' but MONITOR_CHAT_IDS is empty; nothing to do")
        return EXIT_OK

    backend = TelethonBackend(build_client(settings))
    orchestrator = PurgeOrchestrator(backend, config)
    try:
        await orchestrator.run()
    except (BackendError, ConnectionError, OSError) as exc:
        LOGGER.error("Purge aborted: %s", exc)
        return EXIT_BACKEND
    return EXIT_OK


def _dialog_type(chat_kind: ChatKind) -> str:
    return {ChatKind.GROUP: "group", ChatKind.BROADCAST: "channel", ChatKind.PRIVATE: "user"}[chat_kind]


async def _discover(settings: Settings) -> int:
    backend = TelethonBackend(build_client(settings))
    try:
        await backend.connect()
        chats = await backend.list_chats()
    except (BackendError, ConnectionError, OSError) as exc:
        LOGGER.error("Could not connect to Telegram: %s", exc)
        await backend.disconnect()
        return EXIT_BACKEND

    # Private 1:1 chats are never monitored, so they are left out.
    listed = [chat for chat in chats if chat.kind is not ChatKind.PRIVATE]
    if not listed:
        print("No group chats found.")
    for index, chat in enumerate(listed, start=1):
        print(f"{index}. {_dialog_type(chat.kind)} | {chat.title} | {normalize_id(chat.id)}")
    await backend.disconnect()
    return EXIT_OK


def _chat_argument(raw: str) -> Union[int, str]:
    value = raw.strip()
    try:
        return int(value)
    except ValueError:
        return value


async def _members(settings: Settings, chat: str) -> int:
    backend = TelethonBackend(build_client(settings))
    try:
        await backend.connect()
        members = await backend.list_members(_chat_argument(chat))
    except (BackendError, ConnectionError, OSError) as exc:
        LOGGER.error("Could not list members of %s: %s", chat, exc)
        await backend.disconnect()
        return EXIT_BACKEND

    if not members:
        print("No members found.")
    for index, member in enumerate(members, start=1):
        print(f"{index}. {member.display_name} | @{member.username or 'N/A'} | {member.id}")
    await backend.disconnect()
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="warden")
    parser.add_argument("--config", default=settings_module.CONFIG_PATH, help="Path to config.json")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the watcher")
    purge = subparsers.add_parser("purge", help="Delete all of your own messages in group chats")
    scope = purge.add_mutually_exclusive_group()
    scope.add_argument("--all", dest="mode", action="store_const", const="all", help="Purge every group chat")
    scope.add_argument("--listed", dest="mode", action="store_const", const="listed", help="Purge only MONITOR_CHAT_IDS")
    subparsers.add_parser("discover", help="List group chats with the ids to put in the config")
    members = subparsers.add_parser("members", help="List a group's members with the ids to put in TARGET_USER_IDS")
    members.add_argument("chat", help="Chat id (e.g. -1001234567890) or public username")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _print_banner()

    try:
        settings = settings_module.load_settings(args.config)
    except ConfigError as exc:
        _configure_logging()
        LOGGER.error("Configuration error: %s", exc)
        return EXIT_CONFIG
    _configure_logging(settings)

    if args.command == "purge":
        return asyncio.run(_purge(settings, args.mode))
    if args.command == "discover":
        return asyncio.run(_discover(settings))
    if args.command == "members":
        return asyncio.run(_members(settings, args.chat))
    LOGGER.info("Starting warden")
    return asyncio.run(Watcher(settings).run())


if __name__ == "__main__":
    sys.exit(main())
