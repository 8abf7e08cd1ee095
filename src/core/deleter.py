"""Batch deletion with per-item fallback."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from core.config import DEFAULT_DELETE_BATCH_SIZE
from core.models import ChatRef, DeleteResult
from core.ports import MessageBackend
from core.retry import RetryPolicy

LOGGER = logging.getLogger(__name__)


def chunked(ids: Sequence[int], size: int) -> List[List[int]]:
    size = max(1, size)
    return [list(ids[start:start + size]) for start in range(0, len(ids), size)]


class BulkDeleter:
    """Delete message ids from one chat, one backend call per chunk when possible.

    When a chunk delete fails for any reason, every id in it is retried on its
    own with ``item_delay`` between items, so a single bad id only counts as
    one failure. Every backend call goes through the retry policy.
    """

    def __init__(
        self,
        backend: MessageBackend,
        retry: Optional[RetryPolicy] = None,
        *,
        batch_size: int = DEFAULT_DELETE_BATCH_SIZE,
        item_delay: float = 0.12,
        chunk_delay: float = 0.15,
    ) -> None:
        self._backend = backend
        self._retry = retry or RetryPolicy()
        self._batch_size = max(1, batch_size)
        self._item_delay = item_delay
        self._chunk_delay = chunk_delay

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def _delete(self, chat: ChatRef, ids: Sequence[int]) -> None:
        await self._retry.call(
            lambda: self._backend.delete_messages(chat, ids),
            f"delete {len(ids)} messages in {chat.label}",
        )

    async def delete_batch(self, chat: ChatRef, ids: Sequence[int]) -> DeleteResult:
        if not ids:
            return DeleteResult()
        try:
            await self._delete(chat, ids)
            return DeleteResult(deleted=len(ids))
        except Exception as exc:
            LOGGER.warning("Bulk delete of %s messages in %s failed (%s), falling back to single deletes", len(ids), chat.label, exc)

        deleted = 0
        failed = 0
        for index, message_id in enumerate(ids):
            if index:
                await self._retry.sleep(self._item_delay)
            try:
                await self._delete(chat, [message_id])
            except Exception as exc:
                LOGGER.error("Failed to delete message %s in %s: %s", message_id, chat.label, exc)
                failed += 1
                continue
            deleted += 1
        return DeleteResult(deleted=deleted, failed=failed)

    async def delete_all(
        self,
        chat: ChatRef,
        ids: Sequence[int],
        chunk_delay: Optional[float] = None,
    ) -> DeleteResult:
        """Split ``ids`` into ``batch_size`` chunks and delete them in order."""

        delay = self._chunk_delay if chunk_delay is None else chunk_delay
        total = DeleteResult()
        chunks = chunked(ids, self._batch_size)
        for index, chunk in enumerate(chunks):
            if index:
                await self._retry.sleep(delay)
            result = await self.delete_batch(chat, chunk)
            LOGGER.debug("%s: chunk %s/%s deleted %s, failed %s", chat.label, index + 1, len(chunks), result.deleted, result.failed)
            total = total + result
        return total
