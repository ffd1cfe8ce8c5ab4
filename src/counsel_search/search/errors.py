"""Exception hierarchy for the search stack."""

from __future__ import annotations


class SearchError(Exception):
    """Base class for search failures."""


class IndexUnavailableError(SearchError):
    """Raised when the persisted index is missing or cannot be decoded."""


class RebuildError(SearchError):
    """Raised when a rebuild aborts; the previously published index is untouched."""


class RebuildInProgressError(RebuildError):
    """Raised when a rebuild is requested while another one is running."""


class MessageStoreError(SearchError):
    """Raised by message store adapters when a read fails."""
