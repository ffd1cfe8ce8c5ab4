"""Search data models."""

from __future__ import annotations

from dataclasses import dataclass


POSTING_SEPARATOR = ":"


@dataclass(frozen=True, slots=True)
class Posting:
    """Reference from a term to one message inside one thread.

    Postings are presence-only: no frequency or position data is kept.
    """

    thread_id: str
    message_id: str

    @property
    def key(self) -> str:
        """Serialized form, ``"threadId:messageId"``."""
        return f"{self.thread_id}{POSTING_SEPARATOR}{self.message_id}"

    @classmethod
    def from_key(cls, key: str) -> Posting:
        """Parse a serialized posting key.

        Thread ids never contain the separator, so the key is split on its
        first occurrence.
        """
        thread_id, sep, message_id = key.partition(POSTING_SEPARATOR)
        if not sep or not thread_id or not message_id:
            raise ValueError(f"Malformed posting key: {key!r}")
        return cls(thread_id=thread_id, message_id=message_id)
