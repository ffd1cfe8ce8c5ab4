"""Service layer - search use-case orchestration.

- ``SearchService`` runs queries against the served index
- ``ContextAssembler`` previews the neighbors of each hit
"""

from .context_assembler import ContextAssembler, ContextOutcome, context_bounds
from .search_service import MatchSets, SearchService, collect_matches


__all__ = [
    "ContextAssembler",
    "ContextOutcome",
    "MatchSets",
    "SearchService",
    "collect_matches",
    "context_bounds",
]
