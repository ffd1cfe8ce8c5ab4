"""Domain models for search results.

Value objects are immutable (frozen) Pydantic models. A result is one of two
tagged variants, ``ExactMatch`` or ``SemanticMatch``, discriminated on
``match_tier`` so callers can always tell how a message was reached.
"""

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from counsel_search.domain.model import Message


class MatchTier(str, Enum):
    """Provenance class of a match."""

    EXACT = "exact"
    SEMANTIC = "semantic"


class Hydration(BaseModel):
    """Outcome of enriching one result from the message store.

    ``status`` is ``degraded`` when any lookup for the result failed; the
    failed lookups are listed in ``failures``.
    """

    model_config = ConfigDict(frozen=True)

    status: Literal["hydrated", "degraded"] = "hydrated"
    failures: list[str] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.status == "degraded"


class _MatchBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    thread_id: str
    message_id: str
    timestamp: int | None = None
    thread_name: str | None = None
    context_window: list[Message] | None = None
    hydration: Hydration = Field(default_factory=Hydration)


class ExactMatch(_MatchBase):
    """Literal or spelling-corrected hit."""

    match_tier: Literal[MatchTier.EXACT] = MatchTier.EXACT


class SemanticMatch(_MatchBase):
    """Hit reached only through synonym expansion."""

    match_tier: Literal[MatchTier.SEMANTIC] = MatchTier.SEMANTIC


QueryResult = Annotated[ExactMatch | SemanticMatch, Field(discriminator="match_tier")]


class SearchResponse(BaseModel):
    """Complete, ranked response for one query.

    Expected non-findings (empty query, no matches) produce the zeroed
    shape. ``error`` is only set when the index is unavailable, in which
    case ``results`` is always empty.
    """

    model_config = ConfigDict(frozen=True)

    query_text: str = ""
    results: list[QueryResult] = Field(default_factory=list)
    total_results: int = 0
    exact_match_count: int = 0
    semantic_match_count: int = 0
    corrected_terms: dict[str, list[str]] = Field(default_factory=dict)
    expansion_terms: list[str] = Field(default_factory=list)
    used_expansion: bool = False
    corrections_truncated: bool = False
    degraded_count: int = 0
    took_ms: float = 0.0
    error: str | None = None

    @classmethod
    def empty(cls, query_text: str = "") -> "SearchResponse":
        return cls(query_text=query_text)

    @classmethod
    def unavailable(cls, query_text: str, error: str) -> "SearchResponse":
        return cls(query_text=query_text, error=error)
