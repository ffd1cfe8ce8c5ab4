"""Process bootstrap: builds the explicitly owned search components.

Nothing here is a module-level singleton. The caller owns the returned
``SearchComponents`` for the lifetime of the process and closes it on
shutdown.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from counsel_search.adapters.message_store import AbstractMessageStore
from counsel_search.adapters.sqlite_message_store import SqliteMessageStore
from counsel_search.config import Settings
from counsel_search.observability.logging import configure_logging
from counsel_search.observability.metrics import INDEX_TERM_COUNT, init_metrics
from counsel_search.observability.tracing import init_tracing
from counsel_search.search.errors import IndexUnavailableError
from counsel_search.search.index import IndexHandle, JsonIndexStore
from counsel_search.search.indexer import IndexBuilder
from counsel_search.search.synonyms import load_synonym_table
from counsel_search.service_layer.context_assembler import ContextAssembler
from counsel_search.service_layer.search_service import SearchService


logger = logging.getLogger(__name__)


@dataclass
class SearchComponents:
    """Wired search stack sharing one index handle and one message store."""

    settings: Settings
    message_store: AbstractMessageStore
    index_handle: IndexHandle
    search_service: SearchService
    index_builder: IndexBuilder

    async def close(self) -> None:
        await self.message_store.close()


def build_components(
    settings: Settings | None = None,
    *,
    message_store: AbstractMessageStore | None = None,
    configure_observability: bool = False,
) -> SearchComponents:
    """Wire the search stack from settings.

    The persisted index is loaded eagerly. A missing or corrupt index does not
    fail startup: queries report the search as unavailable until a rebuild
    publishes one.

    With ``configure_observability`` the process-wide logging, metrics and
    tracing providers are installed too; hosts that manage their own
    providers leave it off.
    """
    settings = settings or Settings()  # type: ignore[call-arg]
    if configure_observability:
        configure_logging(settings.log_level, settings.log_json)
        init_metrics(service_name=settings.service_name)
        init_tracing(service_name=settings.service_name)

    store = message_store or SqliteMessageStore(settings.database_path)
    index_store = JsonIndexStore(settings.index_path)
    handle = IndexHandle(index_store)
    try:
        index = handle.load()
    except IndexUnavailableError as exc:
        logger.warning("Starting without a search index: %s", exc)
    else:
        INDEX_TERM_COUNT.labels(index=settings.index_path.name).set(index.term_count)

    synonyms = load_synonym_table(settings.synonyms_path)

    search_service = SearchService(
        handle,
        store,
        synonyms,
        context_assembler=ContextAssembler(store, radius=settings.context_radius),
        max_results=settings.max_results,
        expansion_threshold=settings.expansion_threshold,
        max_edit_distance=settings.max_edit_distance,
        max_corrections=settings.max_corrections,
        correction_budget=settings.correction_time_budget_seconds,
    )
    index_builder = IndexBuilder(
        store,
        index_store,
        batch_size=settings.index_batch_size,
        handle=handle,
    )

    return SearchComponents(
        settings=settings,
        message_store=store,
        index_handle=handle,
        search_service=search_service,
        index_builder=index_builder,
    )
