"""Multi-chat orchestration for the periodic expiry sweep and the one-shot purge.

The sweep scans eligible chats with bounded concurrency, then deletes the
collected candidates chat by chat. The purge walks chats serially with a
delay between them and records every state it passes through.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from core.config import ExpiryConfig, PurgeConfig
from core.deleter import BulkDeleter
from core.expiry import ExpiryScanner, cutoff_for
from core.ids import normalize_id
from core.models import AccountRef, ChatKind, ChatRef, DeleteResult, ExpiredMessageCandidate
from core.ports import MessageBackend
from core.retry import RetryPolicy

LOGGER = logging.getLogger(__name__)


def _id_set(raw_ids: Iterable[str]) -> set:
    return {key for key in (normalize_id(raw) for raw in raw_ids) if key}


def eligible_chats(chats: Iterable[ChatRef], exclude_chat_ids: Iterable[str]) -> List[ChatRef]:
    """Groups and supergroups that are not excluded."""

    excluded = _id_set(exclude_chat_ids)
    selected = []
    for chat in chats:
        if chat.kind is not ChatKind.GROUP:
            continue
        if normalize_id(chat.id) in excluded:
            continue
        selected.append(chat)
    return selected


@dataclass
class ChatOutcome:
    chat: ChatRef
    found: int = 0
    deleted: int = 0
    failed: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SweepReport:
    enabled: bool = True
    chats_scanned: int = 0
    candidates: int = 0
    deleted: int = 0
    failed: int = 0
    chats: List[ChatOutcome] = field(default_factory=list)


class SweepOrchestrator:
    """Run one expiry sweep across every eligible chat."""

    def __init__(
        self,
        backend: MessageBackend,
        config: ExpiryConfig,
        scanner: Optional[ExpiryScanner] = None,
        deleter: Optional[BulkDeleter] = None,
        retry: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._config = config
        self._retry = retry or RetryPolicy()
        self._clock = clock
        self._scanner = scanner or ExpiryScanner(backend, config, self._retry, clock)
        self._deleter = deleter or BulkDeleter(
            backend,
            self._retry,
            batch_size=config.batch_size,
            item_delay=config.item_delay,
            chunk_delay=config.chunk_delay,
        )
        self._running = False

    async def _scan_all(
        self,
        chats: Sequence[ChatRef],
        me: AccountRef,
        cutoff: int,
    ) -> Dict[int, List[ExpiredMessageCandidate]]:
        semaphore = asyncio.Semaphore(max(1, self._config.concurrency))

        async def scan_one(chat: ChatRef) -> List[ExpiredMessageCandidate]:
            async with semaphore:
                try:
                    return await self._scanner.scan(chat, me, cutoff)
                except Exception as exc:
                    LOGGER.error("Scan failed for %s: %s", chat.label, exc)
                    return []

        results = await asyncio.gather(*(scan_one(chat) for chat in chats))
        return {chat.id: found for chat, found in zip(chats, results)}

    async def run_sweep(self) -> SweepReport:
        if not self._config.enabled:
            LOGGER.debug("Auto-delete disabled, skipping sweep")
            return SweepReport(enabled=False)
        if self._running:
            LOGGER.warning("Previous sweep still running, skipping this one")
            return SweepReport()

        self._running = True
        try:
            return await self._sweep()
        finally:
            self._running = False

    async def _sweep(self) -> SweepReport:
        report = SweepReport()
        cutoff = cutoff_for(self._clock(), self._config.auto_delete_minutes)
        me = await self._retry.call(self._backend.get_me, "get_me")
        chats = await self._retry.call(self._backend.list_chats, "list chats")
        targets = eligible_chats(chats, self._config.exclude_chat_ids)
        LOGGER.info("Expiry sweep: scanning %s chats", len(targets))

        found = await self._scan_all(targets, me, cutoff)
        report.chats_scanned = len(targets)

        for chat in targets:
            candidates = found.get(chat.id, [])
            outcome = ChatOutcome(chat=chat, found=len(candidates))
            report.chats.append(outcome)
            if not candidates:
                continue
            report.candidates += len(candidates)
            try:
                result = await self._deleter.delete_all(chat, [c.message_id for c in candidates])
            except Exception as exc:
                outcome.error = str(exc)
                outcome.failed = len(candidates)
                report.failed += len(candidates)
                LOGGER.error("Delete phase failed for %s: %s", chat.label, exc)
                continue
            outcome.deleted = result.deleted
            outcome.failed = result.failed
            report.deleted += result.deleted
            report.failed += result.failed
            LOGGER.info("%s: deleted %s expired messages", chat.label, result.deleted)

        LOGGER.info(
            "Expiry sweep done: %s candidates, %s deleted, %s failed",
            report.candidates,
            report.deleted,
            report.failed,
        )
        return report


class PurgeState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ENUMERATING = "enumerating"
    FETCHING = "fetching"
    DELETING = "deleting"
    FAILED = "failed"
    REPORTING = "reporting"
    CLOSING = "closing"
    DONE = "done"


@dataclass
class PurgeReport:
    mode: str
    chats: List[ChatOutcome] = field(default_factory=list)

    @property
    def found(self) -> int:
        return sum(outcome.found for outcome in self.chats)

    @property
    def deleted(self) -> int:
        return sum(outcome.deleted for outcome in self.chats)

    @property
    def failed_chats(self) -> List[ChatOutcome]:
        return [outcome for outcome in self.chats if not outcome.ok]


class PurgeOrchestrator:
    """Delete every message we ever sent in the selected chats.

    ``transitions`` records each state entered, per-chat states included, so
    a run can be inspected after the fact.
    """

    def __init__(
        self,
        backend: MessageBackend,
        config: PurgeConfig,
        retry: Optional[RetryPolicy] = None,
        *,
        scanner: Optional[ExpiryScanner] = None,
        deleter: Optional[BulkDeleter] = None,
    ) -> None:
        self._backend = backend
        self._config = config
        self._retry = retry or RetryPolicy()
        self._scanner = scanner or ExpiryScanner(backend, ExpiryConfig(), self._retry)
        self._deleter = deleter or BulkDeleter(
            backend,
            self._retry,
            batch_size=config.batch_size,
        )
        self.state = PurgeState.IDLE
        self.transitions: List[PurgeState] = [PurgeState.IDLE]

    def _enter(self, state: PurgeState) -> None:
        self.state = state
        self.transitions.append(state)
        LOGGER.debug("Purge state: %s", state.value)

    def select_chats(self, chats: Iterable[ChatRef]) -> List[ChatRef]:
        config = self._config
        groups = eligible_chats(chats, config.exclude_chat_ids)
        if config.mode != "listed":
            return groups
        wanted = _id_set(config.chat_ids)
        return [chat for chat in groups if normalize_id(chat.id) in wanted]

    async def _purge_chat(self, chat: ChatRef, me: AccountRef) -> ChatOutcome:
        outcome = ChatOutcome(chat=chat)
        config = self._config
        try:
            self._enter(PurgeState.FETCHING)
            candidates = await self._scanner.search_pass(
                chat,
                me,
                cutoff=None,
                max_date=None,
                max_pages=config.max_pages,
                page_size=config.page_size,
                page_delay=config.page_delay,
            )
            outcome.found = len(candidates)
            if not candidates:
                LOGGER.info("%s: nothing to delete", chat.label)
                return outcome

            self._enter(PurgeState.DELETING)
            result: DeleteResult = await self._deleter.delete_all(
                chat,
                [candidate.message_id for candidate in candidates],
                chunk_delay=config.batch_delay,
            )
        except Exception as exc:
            self._enter(PurgeState.FAILED)
            outcome.error = str(exc)
            outcome.deleted = 0
            LOGGER.error("Purge failed for %s: %s", chat.label, exc)
            return outcome

        outcome.deleted = result.deleted
        outcome.failed = result.failed
        LOGGER.info("%s: deleted %s/%s messages", chat.label, result.deleted, outcome.found)
        return outcome

    async def run(self) -> PurgeReport:
        report = PurgeReport(mode=self._config.mode)
        try:
            self._enter(PurgeState.CONNECTING)
            await self._backend.connect()
            me = await self._retry.call(self._backend.get_me, "get_me")

            self._enter(PurgeState.ENUMERATING)
            chats = self.select_chats(await self._retry.call(self._backend.list_chats, "list chats"))
            LOGGER.info("Purging own messages in %s chats (mode: %s)", len(chats), self._config.mode)

            for index, chat in enumerate(chats):
                if index:
                    await self._retry.sleep(self._config.chat_delay)
                LOGGER.info("[%s/%s] %s", index + 1, len(chats), chat.label)
                report.chats.append(await self._purge_chat(chat, me))

            self._enter(PurgeState.REPORTING)
            log_purge_report(report)
        finally:
            self._enter(PurgeState.CLOSING)
            try:
                await self._backend.disconnect()
            except Exception as exc:
                LOGGER.warning("Disconnect failed: %s", exc)
            self._enter(PurgeState.DONE)
        return report


def log_purge_report(report: PurgeReport) -> None:
    LOGGER.info("Purge finished: %s chats, %s messages found, %s deleted", len(report.chats), report.found, report.deleted)
    for outcome in report.chats:
        if outcome.ok:
            LOGGER.info("  %s: %s/%s", outcome.chat.label, outcome.deleted, outcome.found)
        else:
            LOGGER.info("  %s: failed (%s)", outcome.chat.label, outcome.error)
