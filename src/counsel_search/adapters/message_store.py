"""Message store abstractions.

The message store owns messages and threads; the search stack only reads
from it. Every read is side-effect free, so callers may issue reads
concurrently.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
import logging

from counsel_search.domain.model import Message, Thread


logger = logging.getLogger(__name__)


class AbstractMessageStore(ABC):
    """Read-only access to the message corpus."""

    @abstractmethod
    async def get_message(self, message_id: str) -> Message | None:
        """Point lookup by message id."""
        raise NotImplementedError

    @abstractmethod
    async def get_messages_in_range(self, thread_id: str, start: int, end: int) -> list[Message]:
        """Messages of ``thread_id`` whose ``msg_index`` lies in ``[start, end]``, ascending."""
        raise NotImplementedError

    @abstractmethod
    async def get_messages_by_ids(self, message_ids: Sequence[str]) -> dict[str, Message]:
        """Batch lookup by id; unknown ids are absent from the result."""
        raise NotImplementedError

    @abstractmethod
    async def get_threads_by_ids(self, thread_ids: Sequence[str]) -> dict[str, Thread]:
        """Batch lookup of threads by id; unknown ids are absent from the result."""
        raise NotImplementedError

    @abstractmethod
    async def scan_messages(self, offset: int, limit: int) -> list[Message]:
        """One page of the corpus in stable order (ascending ``msg_index``, then id)."""
        raise NotImplementedError

    async def count_messages(self) -> int | None:
        """Optional hook returning the corpus size for progress logging."""

        return None

    async def close(self) -> None:
        """Optional hook releasing adapter resources."""

        return


def scan_order_key(message: Message) -> tuple[int, str]:
    """Stable corpus ordering shared by every adapter."""
    return (message.msg_index, message.id)


class InMemoryMessageStore(AbstractMessageStore):
    """Message store backed by plain dictionaries.

    Used for fixtures, tests and small embedded corpora.
    """

    def __init__(self, messages: Iterable[Message] = (), threads: Iterable[Thread] = ()) -> None:
        self._messages: dict[str, Message] = {}
        self._threads: dict[str, Thread] = {thread.id: thread for thread in threads}
        for message in messages:
            if message.id in self._messages:
                raise ValueError(f"Duplicate message id {message.id!r}")
            self._messages[message.id] = message
        self._ordered = sorted(self._messages.values(), key=scan_order_key)

    async def get_message(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    async def get_messages_in_range(self, thread_id: str, start: int, end: int) -> list[Message]:
        window = [
            message
            for message in self._messages.values()
            if message.thread_id == thread_id and start <= message.msg_index <= end
        ]
        window.sort(key=scan_order_key)
        return window

    async def get_messages_by_ids(self, message_ids: Sequence[str]) -> dict[str, Message]:
        return {message_id: self._messages[message_id] for message_id in message_ids if message_id in self._messages}

    async def get_threads_by_ids(self, thread_ids: Sequence[str]) -> dict[str, Thread]:
        return {thread_id: self._threads[thread_id] for thread_id in thread_ids if thread_id in self._threads}

    async def scan_messages(self, offset: int, limit: int) -> list[Message]:
        if offset < 0 or limit <= 0:
            return []
        return self._ordered[offset : offset + limit]

    async def count_messages(self) -> int | None:
        return len(self._messages)
