"""Adapters layer - message store implementations.

Following Cosmic Python Chapter 2: Repository Pattern
Abstracts read access to the message corpus behind ``AbstractMessageStore``.
"""

from .message_store import (
    AbstractMessageStore,
    InMemoryMessageStore,
)
from .sqlite_message_store import SqliteMessageStore


__all__ = [
    "AbstractMessageStore",
    "InMemoryMessageStore",
    "SqliteMessageStore",
]
