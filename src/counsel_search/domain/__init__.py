"""Domain layer - records and result value objects with no infrastructure dependencies.

- Entities: messages and threads owned by the message store
- Value Objects: tagged search results and the response envelope
"""

from counsel_search.domain.model import Message, Thread
from counsel_search.domain.search import (
    ExactMatch,
    Hydration,
    MatchTier,
    QueryResult,
    SearchResponse,
    SemanticMatch,
)


__all__ = [
    "ExactMatch",
    "Hydration",
    "MatchTier",
    "Message",
    "QueryResult",
    "SearchResponse",
    "SemanticMatch",
    "Thread",
]
