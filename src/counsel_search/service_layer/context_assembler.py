"""Context windows around search hits.

A hit at sequence position ``p`` is previewed with the neighboring messages
at positions ``[max(0, p - radius), p + radius]`` of the same thread. The
upper bound is not clamped to the thread length; positions past the end
simply return no messages.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from counsel_search.adapters.message_store import AbstractMessageStore
from counsel_search.domain.model import Message
from counsel_search.search.errors import MessageStoreError


logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_RADIUS = 2


def context_bounds(position: int, radius: int = DEFAULT_CONTEXT_RADIUS) -> tuple[int, int]:
    """Inclusive index range previewed around ``position``."""
    return max(0, position - radius), position + radius


@dataclass(frozen=True)
class ContextOutcome:
    """Explicit success/failure value for one context lookup."""

    messages: tuple[Message, ...] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, messages: list[Message]) -> ContextOutcome:
        return cls(messages=tuple(messages))

    @classmethod
    def failure(cls, error: str) -> ContextOutcome:
        return cls(error=error)


class ContextAssembler:
    """Fetches neighbor messages for a hit; stateless and cache-free."""

    def __init__(self, message_store: AbstractMessageStore, *, radius: int = DEFAULT_CONTEXT_RADIUS) -> None:
        if radius < 0:
            raise ValueError("radius must not be negative")
        self.message_store = message_store
        self.radius = radius

    async def assemble(self, thread_id: str, position: int | None) -> ContextOutcome:
        """Return the context window for the message at ``position`` of ``thread_id``."""
        if position is None:
            return ContextOutcome.failure("sequence position unknown")

        start, end = context_bounds(position, self.radius)
        try:
            messages = await self.message_store.get_messages_in_range(thread_id, start, end)
        except MessageStoreError as exc:
            logger.warning("Context lookup failed for thread %s [%d, %d]: %s", thread_id, start, end, exc)
            return ContextOutcome.failure(str(exc))

        return ContextOutcome.success(messages)
