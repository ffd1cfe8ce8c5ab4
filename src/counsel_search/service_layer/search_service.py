"""Search service orchestration layer.

Runs one query through the whole pipeline:

1. tokenize the query (no terms -> empty response, index never touched)
2. exact index lookups, then spelling correction for the misses
3. synonym expansion when the summed exact posting count is small
4. merge by posting key (exact -> correction -> semantic, first wins)
5. rank by tier, then newest first
6. truncate and hydrate thread names and context windows

An unavailable index is reported through ``SearchResponse.error``; a
failed lookup for one result only degrades that result.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
import logging
import time

import anyio

from counsel_search.adapters.message_store import AbstractMessageStore
from counsel_search.domain.model import Message, Thread
from counsel_search.domain.search import ExactMatch, Hydration, MatchTier, SearchResponse, SemanticMatch
from counsel_search.observability.metrics import (
    CORRECTION_TRUNCATIONS,
    DEGRADED_RESULTS,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
)
from counsel_search.observability.tracing import create_span
from counsel_search.search.analyzers import MIN_TERM_LENGTH, tokenize_query
from counsel_search.search.errors import IndexUnavailableError, MessageStoreError
from counsel_search.search.fuzzy import DEFAULT_MAX_CORRECTIONS, DEFAULT_MAX_DISTANCE, find_corrections
from counsel_search.search.index import IndexHandle, InvertedIndex
from counsel_search.search.models import Posting
from counsel_search.search.synonyms import SynonymTable, expand_query_terms
from counsel_search.service_layer.context_assembler import ContextAssembler, ContextOutcome


logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 100
DEFAULT_EXPANSION_THRESHOLD = 20
DEFAULT_CORRECTION_BUDGET_SECONDS = 0.25

_TIER_RANK = {MatchTier.EXACT: 0, MatchTier.SEMANTIC: 1}


@dataclass
class MatchSets:
    """Postings collected for one query, before ranking."""

    exact: dict[str, Posting] = field(default_factory=dict)
    semantic: dict[str, Posting] = field(default_factory=dict)
    # Summed before deduplication; drives the expansion trigger
    exact_posting_count: int = 0
    corrected_terms: dict[str, list[str]] = field(default_factory=dict)
    expansion_terms: list[str] = field(default_factory=list)
    used_expansion: bool = False
    corrections_truncated: bool = False

    def candidates(self) -> list[tuple[Posting, MatchTier]]:
        merged = [(posting, MatchTier.EXACT) for posting in self.exact.values()]
        merged.extend((posting, MatchTier.SEMANTIC) for posting in self.semantic.values())
        return merged


@dataclass
class _RankedCandidate:
    posting: Posting
    tier: MatchTier
    message: Message | None
    failures: list[str] = field(default_factory=list)

    @property
    def timestamp(self) -> int | None:
        return self.message.timestamp if self.message is not None else None


def collect_matches(
    terms: Sequence[str],
    index: InvertedIndex,
    synonyms: SynonymTable,
    *,
    expansion_threshold: int = DEFAULT_EXPANSION_THRESHOLD,
    max_edit_distance: int = DEFAULT_MAX_DISTANCE,
    max_corrections: int = DEFAULT_MAX_CORRECTIONS,
    correction_budget: float | None = DEFAULT_CORRECTION_BUDGET_SECONDS,
) -> MatchSets:
    """Resolve query terms against the index into exact and semantic posting sets."""

    matches = MatchSets()
    matched_terms: list[str] = []
    missed_terms: list[str] = []

    for term in terms:
        postings = index.get(term)
        if postings:
            matched_terms.append(term)
            matches.exact_posting_count += len(postings)
            _add_postings(matches.exact, postings)
        else:
            missed_terms.append(term)

    if missed_terms:
        deadline = time.monotonic() + correction_budget if correction_budget is not None else None
        for term in missed_terms:
            correction = find_corrections(
                term,
                index.terms,
                max_distance=max_edit_distance,
                limit=max_corrections,
                deadline=deadline,
            )
            if correction.truncated:
                matches.corrections_truncated = True
            if not correction.suggestions:
                continue
            matches.corrected_terms[term] = correction.terms
            for suggestion in correction.terms:
                suggestion_postings = index.get(suggestion)
                matches.exact_posting_count += len(suggestion_postings)
                _add_postings(matches.exact, suggestion_postings)

    if matches.exact_posting_count < expansion_threshold:
        matches.used_expansion = True
        used_terms = [*matched_terms]
        for suggestions in matches.corrected_terms.values():
            used_terms.extend(suggestions)
        matches.expansion_terms = expand_query_terms(
            terms,
            synonyms,
            exclude=used_terms,
            min_length=MIN_TERM_LENGTH,
        )
        for term in matches.expansion_terms:
            for posting in index.get(term):
                if posting.key not in matches.exact:
                    matches.semantic.setdefault(posting.key, posting)

    return matches


def _add_postings(target: dict[str, Posting], postings: Sequence[Posting]) -> None:
    for posting in postings:
        target.setdefault(posting.key, posting)


def rank_candidates(candidates: list[_RankedCandidate]) -> list[_RankedCandidate]:
    """Exact before semantic, then newest first; ties keep merge order.

    Results without a timestamp sort after timestamped ones of the same tier.
    """
    return sorted(
        candidates,
        key=lambda candidate: (
            _TIER_RANK[candidate.tier],
            candidate.timestamp is None,
            -(candidate.timestamp or 0),
        ),
    )


class SearchService:
    """High-level search orchestration service.

    The index handle, message store and synonym table are constructed by the
    process bootstrap and injected here.
    """

    def __init__(
        self,
        index_handle: IndexHandle,
        message_store: AbstractMessageStore,
        synonyms: SynonymTable,
        *,
        context_assembler: ContextAssembler | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
        expansion_threshold: int = DEFAULT_EXPANSION_THRESHOLD,
        max_edit_distance: int = DEFAULT_MAX_DISTANCE,
        max_corrections: int = DEFAULT_MAX_CORRECTIONS,
        correction_budget: float | None = DEFAULT_CORRECTION_BUDGET_SECONDS,
    ):
        self.index_handle = index_handle
        self.message_store = message_store
        self.synonyms = synonyms
        self.context_assembler = context_assembler or ContextAssembler(message_store)
        self.max_results = max_results
        self.expansion_threshold = expansion_threshold
        self.max_edit_distance = max_edit_distance
        self.max_corrections = max_corrections
        self.correction_budget = correction_budget

    async def search(self, query_text: str) -> SearchResponse:
        """Execute a query and return ranked, tier-labeled results.

        Never raises for an unavailable index; the failure is reported in
        ``SearchResponse.error`` with an empty result list.
        """
        started = time.perf_counter()
        outcome = "ok"
        try:
            with create_span("search.query", attributes={"search.query_length": len(query_text or "")}):
                response = await self._search(query_text or "", started)
            if response.error:
                outcome = "unavailable"
            elif not response.results:
                outcome = "empty"
            return response
        except Exception:
            outcome = "error"
            raise
        finally:
            SEARCH_REQUESTS.labels(outcome=outcome).inc()
            SEARCH_LATENCY.labels(outcome=outcome).observe(time.perf_counter() - started)

    async def _search(self, query_text: str, started: float) -> SearchResponse:
        terms = tokenize_query(query_text)
        if not terms:
            logger.debug("Query %r has no searchable terms", query_text)
            return SearchResponse.empty(query_text)

        try:
            index = await anyio.to_thread.run_sync(self.index_handle.current)
        except IndexUnavailableError as exc:
            logger.error("Search unavailable: %s", exc)
            return SearchResponse.unavailable(query_text, f"Search is unavailable: {exc}")

        matches = await anyio.to_thread.run_sync(self._collect_matches, terms, index)
        if matches.corrections_truncated:
            CORRECTION_TRUNCATIONS.labels(analyzer="query").inc()
            logger.warning("Spelling correction for %r stopped at the time budget", query_text)

        logger.debug(
            "Query %r: %d terms, %d exact, %d semantic, corrections=%s, expansion=%s",
            query_text,
            len(terms),
            len(matches.exact),
            len(matches.semantic),
            matches.corrected_terms,
            matches.expansion_terms,
        )

        candidates = matches.candidates()
        ranked = rank_candidates(await self._attach_messages(candidates))[: self.max_results]
        results = await self._hydrate(ranked)

        exact_count = sum(1 for result in results if result.match_tier == MatchTier.EXACT)
        degraded_count = sum(1 for result in results if result.hydration.degraded)

        return SearchResponse(
            query_text=query_text,
            results=results,
            total_results=len(results),
            exact_match_count=exact_count,
            semantic_match_count=len(results) - exact_count,
            corrected_terms=matches.corrected_terms,
            expansion_terms=matches.expansion_terms,
            used_expansion=matches.used_expansion,
            corrections_truncated=matches.corrections_truncated,
            degraded_count=degraded_count,
            took_ms=round((time.perf_counter() - started) * 1000, 3),
        )

    def _collect_matches(self, terms: Sequence[str], index: InvertedIndex) -> MatchSets:
        return collect_matches(
            terms,
            index,
            self.synonyms,
            expansion_threshold=self.expansion_threshold,
            max_edit_distance=self.max_edit_distance,
            max_corrections=self.max_corrections,
            correction_budget=self.correction_budget,
        )

    async def _attach_messages(self, candidates: list[tuple[Posting, MatchTier]]) -> list[_RankedCandidate]:
        """Batch-load matched messages for timestamps and sequence positions."""
        if not candidates:
            return []

        message_ids = list(dict.fromkeys(posting.message_id for posting, _ in candidates))
        lookup_error: str | None = None
        try:
            messages = await self.message_store.get_messages_by_ids(message_ids)
        except MessageStoreError as exc:
            logger.warning("Timestamp lookup failed for %d messages: %s", len(message_ids), exc)
            messages = {}
            lookup_error = f"timestamp: {exc}"

        attached: list[_RankedCandidate] = []
        for posting, tier in candidates:
            message = messages.get(posting.message_id)
            failures: list[str] = []
            if lookup_error is not None:
                failures.append(lookup_error)
            elif message is None:
                failures.append("timestamp: message not found")
            attached.append(_RankedCandidate(posting=posting, tier=tier, message=message, failures=failures))
        return attached

    async def _hydrate(self, ranked: list[_RankedCandidate]) -> list[ExactMatch | SemanticMatch]:
        if not ranked:
            return []

        threads, thread_error = await self._load_threads(ranked)
        outcomes = await asyncio.gather(
            *(
                self.context_assembler.assemble(
                    candidate.posting.thread_id,
                    candidate.message.msg_index if candidate.message is not None else None,
                )
                for candidate in ranked
            ),
            return_exceptions=True,
        )

        results: list[ExactMatch | SemanticMatch] = []
        for candidate, outcome in zip(ranked, outcomes, strict=True):
            failures = list(candidate.failures)

            thread = threads.get(candidate.posting.thread_id)
            if thread_error is not None:
                failures.append(thread_error)
            elif thread is None:
                failures.append("thread_name: thread not found")

            context = self._context_from_outcome(candidate, outcome, failures)

            results.append(self._build_result(candidate, thread, context, failures))

        return results

    async def _load_threads(self, ranked: list[_RankedCandidate]) -> tuple[dict[str, Thread], str | None]:
        thread_ids = list(dict.fromkeys(candidate.posting.thread_id for candidate in ranked))
        try:
            return await self.message_store.get_threads_by_ids(thread_ids), None
        except MessageStoreError as exc:
            logger.warning("Thread title lookup failed for %d threads: %s", len(thread_ids), exc)
            return {}, f"thread_name: {exc}"

    @staticmethod
    def _context_from_outcome(
        candidate: _RankedCandidate,
        outcome: ContextOutcome | BaseException,
        failures: list[str],
    ) -> list[Message] | None:
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            logger.warning(
                "Context hydration failed for %s: %s",
                candidate.posting.key,
                outcome,
                exc_info=outcome,
            )
            failures.append(f"context: {outcome}")
            return None
        if not outcome.ok:
            failures.append(f"context: {outcome.error}")
            return None
        return list(outcome.messages or ())

    @staticmethod
    def _build_result(
        candidate: _RankedCandidate,
        thread: Thread | None,
        context: list[Message] | None,
        failures: list[str],
    ) -> ExactMatch | SemanticMatch:
        for failure in failures:
            DEGRADED_RESULTS.labels(lookup=failure.split(":", 1)[0]).inc()

        hydration = Hydration(status="degraded", failures=failures) if failures else Hydration()
        result_cls = ExactMatch if candidate.tier is MatchTier.EXACT else SemanticMatch
        return result_cls(
            thread_id=candidate.posting.thread_id,
            message_id=candidate.posting.message_id,
            timestamp=candidate.timestamp,
            thread_name=thread.title if thread is not None else None,
            context_window=context,
            hydration=hydration,
        )
