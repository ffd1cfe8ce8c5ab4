"""Offline batch builder for the message search index.

The builder pages through the whole corpus in bounded batches, posts every
index term of every message and publishes the finished index in one atomic
step. Rebuilds are full replacements: nothing is published until the scan
has completed, and a failed scan leaves the previous index in place.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass
import logging
from pathlib import Path
import time

import anyio

from counsel_search.adapters.message_store import AbstractMessageStore
from counsel_search.observability.metrics import INDEX_REBUILDS, INDEX_TERM_COUNT
from counsel_search.observability.tracing import create_span
from counsel_search.search.analyzers import tokenize_for_index
from counsel_search.search.errors import MessageStoreError, RebuildError, RebuildInProgressError
from counsel_search.search.index import IndexHandle, InvertedIndex, JsonIndexStore
from counsel_search.search.models import Posting


logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
_TOP_TERMS = 10


@dataclass(frozen=True)
class IndexBuildResult:
    """Outcome of one rebuild."""

    messages_indexed: int
    batches_read: int
    term_count: int
    posting_count: int
    top_terms: tuple[tuple[str, int], ...]
    index_path: Path
    elapsed_seconds: float

    @property
    def average_postings_per_term(self) -> float:
        if self.term_count == 0:
            return 0.0
        return self.posting_count / self.term_count


@dataclass
class _ScanStats:
    messages_indexed: int = 0
    batches_read: int = 0


class IndexBuilder:
    """Single-writer builder for the persisted inverted index."""

    def __init__(
        self,
        message_store: AbstractMessageStore,
        index_store: JsonIndexStore,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        handle: IndexHandle | None = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.message_store = message_store
        self.index_store = index_store
        self.batch_size = batch_size
        self.handle = handle
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def rebuild(self) -> IndexBuildResult:
        """Rebuild the whole index and publish it atomically.

        Raises:
            RebuildInProgressError: Another rebuild is already running.
            RebuildError: A corpus batch could not be read or the index could
                not be written; the published index is left untouched.
        """
        if self._lock.locked():
            INDEX_REBUILDS.labels(status="rejected").inc()
            raise RebuildInProgressError("A search index rebuild is already running")

        async with self._lock:
            started = time.perf_counter()
            with create_span("search.rebuild_index", attributes={"index.path": str(self.index_store.path)}):
                try:
                    index, stats = await self._scan_corpus()
                    await anyio.to_thread.run_sync(self.index_store.publish, index)
                except RebuildError:
                    INDEX_REBUILDS.labels(status="failed").inc()
                    raise

            if self.handle is not None:
                self.handle.swap(index)

            INDEX_REBUILDS.labels(status="succeeded").inc()
            INDEX_TERM_COUNT.labels(index=self.index_store.path.name).set(index.term_count)

            result = IndexBuildResult(
                messages_indexed=stats.messages_indexed,
                batches_read=stats.batches_read,
                term_count=index.term_count,
                posting_count=index.posting_count,
                top_terms=_top_terms(index),
                index_path=self.index_store.path,
                elapsed_seconds=time.perf_counter() - started,
            )
            _log_build_summary(result)
            return result

    async def _scan_corpus(self) -> tuple[InvertedIndex, _ScanStats]:
        total = await self._count_messages()
        if total is not None:
            logger.info("Indexing %d messages in batches of %d", total, self.batch_size)

        postings: defaultdict[str, list[Posting]] = defaultdict(list)
        seen_message_ids: set[str] = set()
        stats = _ScanStats()
        offset = 0

        while True:
            try:
                batch = await self.message_store.scan_messages(offset, self.batch_size)
            except (MessageStoreError, OSError) as exc:
                raise RebuildError(f"Corpus batch at offset {offset} could not be read: {exc}") from exc

            if not batch:
                break

            stats.batches_read += 1
            for message in batch:
                if message.id in seen_message_ids:
                    logger.warning("Message %s returned twice by the corpus scan; skipping", message.id)
                    continue
                seen_message_ids.add(message.id)

                posting = Posting(thread_id=message.thread_id, message_id=message.id)
                for term in dict.fromkeys(tokenize_for_index(message.text)):
                    postings[term].append(posting)
                stats.messages_indexed += 1

            logger.debug(
                "Processed batch %d (offset %d, %d messages, %d indexed so far)",
                stats.batches_read,
                offset,
                len(batch),
                stats.messages_indexed,
            )

            offset += len(batch)
            if len(batch) < self.batch_size:
                break

        return InvertedIndex(postings), stats

    async def _count_messages(self) -> int | None:
        try:
            return await self.message_store.count_messages()
        except MessageStoreError as exc:
            raise RebuildError(f"Corpus size could not be read: {exc}") from exc


def _top_terms(index: InvertedIndex, limit: int = _TOP_TERMS) -> tuple[tuple[str, int], ...]:
    ranked = sorted(((term, len(postings)) for term, postings in index.items()), key=lambda item: -item[1])
    return tuple(ranked[:limit])


def _log_build_summary(result: IndexBuildResult) -> None:
    logger.info(
        "Search index rebuilt: %d messages, %d terms, %d postings (%.2f per term) in %.2fs",
        result.messages_indexed,
        result.term_count,
        result.posting_count,
        result.average_postings_per_term,
        result.elapsed_seconds,
    )
    if result.top_terms:
        logger.info(
            "Most common terms: %s",
            ", ".join(f"{term} ({count})" for term, count in result.top_terms),
        )
