"""Domain model - records owned by the message store.

Uses Pydantic dataclasses so rows coming from any store adapter are
validated at construction. Both records are immutable value objects from
the search stack's point of view.
"""

from typing import Annotated

from pydantic import Field
from pydantic.dataclasses import dataclass


@dataclass(frozen=True)
class Message:
    """One chat message inside a thread.

    ``msg_index`` is the message's sequence position within its thread and
    ``timestamp`` is epoch milliseconds.
    """

    id: Annotated[str, Field(min_length=1)]
    thread_id: Annotated[str, Field(min_length=1)]
    user_id: str
    text: str
    timestamp: int
    msg_index: Annotated[int, Field(ge=0)]


@dataclass(frozen=True)
class Thread:
    """A conversation between a patient and one or more physicians."""

    id: Annotated[str, Field(min_length=1)]
    title: str = ""
    users: tuple[str, ...] = ()
    date_created: int = 0
