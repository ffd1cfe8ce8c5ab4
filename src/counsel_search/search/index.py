"""Inverted index, its JSON persistence and the handle queries read through.

* ``InvertedIndex`` - immutable term -> postings mapping.
* ``JsonIndexStore`` - loads the persisted mapping and publishes new ones by
  writing a staging file and atomically renaming it over the target.
* ``IndexHandle`` - holds the index currently served to queries. A rebuild
  swaps the reference in a single assignment, so readers never need a lock
  and always see one complete index.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
import logging
from pathlib import Path
import threading
from types import MappingProxyType
from typing import Any
from uuid import uuid4

import orjson

from counsel_search.search.errors import IndexUnavailableError, RebuildError
from counsel_search.search.models import Posting


logger = logging.getLogger(__name__)


class InvertedIndex:
    """Read-only term -> ordered postings mapping.

    Terms with no postings are never stored.
    """

    __slots__ = ("_postings", "_posting_count")

    def __init__(self, postings: Mapping[str, Sequence[Posting]] | None = None) -> None:
        frozen: dict[str, tuple[Posting, ...]] = {}
        for term, term_postings in (postings or {}).items():
            if term_postings:
                frozen[term] = tuple(term_postings)
        self._postings = MappingProxyType(frozen)
        self._posting_count = sum(len(values) for values in frozen.values())

    def __contains__(self, term: object) -> bool:
        return term in self._postings

    def __len__(self) -> int:
        return len(self._postings)

    def __iter__(self) -> Iterator[str]:
        return iter(self._postings)

    def get(self, term: str) -> tuple[Posting, ...]:
        """Postings for ``term``; empty when the term is not indexed."""
        return self._postings.get(term, ())

    @property
    def terms(self) -> Sequence[str]:
        """Vocabulary in build order."""
        return tuple(self._postings)

    @property
    def term_count(self) -> int:
        return len(self._postings)

    @property
    def posting_count(self) -> int:
        return self._posting_count

    def items(self) -> Iterator[tuple[str, tuple[Posting, ...]]]:
        return iter(self._postings.items())

    def to_payload(self) -> dict[str, list[str]]:
        """Serializable form: term -> list of ``"threadId:messageId"`` keys."""
        return {term: [posting.key for posting in postings] for term, postings in self._postings.items()}

    @classmethod
    def from_payload(cls, payload: Any) -> InvertedIndex:
        """Decode a persisted payload, raising ``ValueError`` when it is malformed."""
        if not isinstance(payload, dict):
            raise ValueError("Index payload must be a JSON object")

        postings: dict[str, list[Posting]] = {}
        for term, keys in payload.items():
            if not isinstance(keys, list):
                raise ValueError(f"Postings for '{term}' must be a list")
            postings[term] = [Posting.from_key(key) for key in keys if isinstance(key, str)]
            if len(postings[term]) != len(keys):
                raise ValueError(f"Postings for '{term}' contain non-string keys")
        return cls(postings)


class JsonIndexStore:
    """Persists an ``InvertedIndex`` as a single JSON file."""

    STAGING_SUFFIX = ".staging"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> InvertedIndex:
        """Load the published index.

        Raises:
            IndexUnavailableError: The file is missing or cannot be decoded.
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError as exc:
            raise IndexUnavailableError(f"Search index not found at {self.path}") from exc
        except OSError as exc:
            raise IndexUnavailableError(f"Search index at {self.path} could not be read: {exc}") from exc

        try:
            index = InvertedIndex.from_payload(orjson.loads(data))
        except (orjson.JSONDecodeError, ValueError) as exc:
            raise IndexUnavailableError(f"Search index at {self.path} is corrupt: {exc}") from exc

        logger.info(
            "Loaded search index from %s (%d terms, %d postings)",
            self.path,
            index.term_count,
            index.posting_count,
        )
        return index

    def publish(self, index: InvertedIndex) -> Path:
        """Write ``index`` to a staging file, then rename it over the published path.

        Raises:
            RebuildError: The staging file could not be written or renamed. The
                previously published file is left as it was.
        """
        staging_path = self.path.with_name(f"{self.path.name}.{uuid4().hex}{self.STAGING_SUFFIX}")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            staging_path.write_bytes(orjson.dumps(index.to_payload()))
            staging_path.replace(self.path)
        except OSError as exc:
            staging_path.unlink(missing_ok=True)
            raise RebuildError(f"Failed to publish search index to {self.path}: {exc}") from exc

        logger.info("Published search index to %s", self.path)
        return self.path


class IndexHandle:
    """Explicitly constructed holder for the index served to queries.

    The process bootstrap owns the handle and injects it into the search
    service and the index builder.
    """

    def __init__(self, store: JsonIndexStore, index: InvertedIndex | None = None) -> None:
        self.store = store
        self._index = index
        self._load_lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._index is not None

    def load(self) -> InvertedIndex:
        """(Re)load the published index from the store and serve it."""
        with self._load_lock:
            index = self.store.load()
            self._index = index
            return index

    def current(self) -> InvertedIndex:
        """Return the served index, loading it on first use.

        The first load reads the index file and blocks; async callers run it
        in a worker thread.

        Raises:
            IndexUnavailableError: Nothing is loaded and the store has no
                readable index.
        """
        index = self._index
        if index is not None:
            return index
        with self._load_lock:
            if self._index is None:
                self._index = self.store.load()
            return self._index

    def swap(self, index: InvertedIndex) -> None:
        """Serve ``index`` from now on."""
        self._index = index
