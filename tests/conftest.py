"""Shared test fixtures and configuration."""

import os
from pathlib import Path

import pytest

from counsel_search.adapters.message_store import InMemoryMessageStore
from counsel_search.domain.model import Message, Thread
from counsel_search.search.index import IndexHandle, JsonIndexStore
from counsel_search.search.indexer import IndexBuilder
from counsel_search.search.synonyms import SynonymTable


# Complete test environment that overrides ALL possible config values
TEST_ENV = {
    "DATABASE_PATH": "counsel_db.sqlite",
    "INDEX_PATH": "searchIndex.json",
    "INDEX_BATCH_SIZE": "1000",
    "MAX_RESULTS": "100",
    "EXPANSION_THRESHOLD": "20",
    "MAX_EDIT_DISTANCE": "2",
    "MAX_CORRECTIONS": "5",
    "CORRECTION_TIME_BUDGET_MS": "250",
    "CONTEXT_RADIUS": "2",
    "LOG_LEVEL": "info",
    "LOG_JSON": "true",
}


# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value
os.environ.pop("SYNONYMS_PATH", None)


def pytest_collection_modifyitems(config, items):
    """Mark tests by the directory they live in."""
    for item in items:
        parts = Path(str(item.fspath)).parts
        if "unit" in parts:
            item.add_marker(pytest.mark.unit)
        elif "integration" in parts:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset environment variables before each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("SYNONYMS_PATH", raising=False)


def make_message(
    message_id: str,
    thread_id: str,
    text: str,
    *,
    msg_index: int,
    timestamp: int = 1_700_000_000_000,
    user_id: str = "user1",
) -> Message:
    return Message(
        id=message_id,
        thread_id=thread_id,
        user_id=user_id,
        text=text,
        timestamp=timestamp,
        msg_index=msg_index,
    )


@pytest.fixture
def back_pain_store() -> InMemoryMessageStore:
    """Thread A holds "My back pain is severe" at sequence index 5 among filler messages."""
    filler = [
        "Hello doctor, thanks for seeing me",
        "Good morning, how can I help today?",
        "I have been feeling unwell lately",
        "Can you describe where it hurts?",
        "Since last Tuesday",
    ]
    messages = [
        make_message(f"a{i}", "threadA", text, msg_index=i, timestamp=1_000 + i) for i, text in enumerate(filler)
    ]
    messages.append(make_message("a5", "threadA", "My back pain is severe", msg_index=5, timestamp=5_000))
    messages.extend(
        make_message(f"a{i}", "threadA", text, msg_index=i, timestamp=1_000 + i)
        for i, text in [(6, "Let us book an appointment"), (7, "Please bring your previous reports")]
    )
    threads = [Thread(id="threadA", title="Back pain follow-up", users=("user1", "user2"))]
    return InMemoryMessageStore(messages, threads)


@pytest.fixture
def index_store(tmp_path: Path) -> JsonIndexStore:
    return JsonIndexStore(tmp_path / "index" / "searchIndex.json")


@pytest.fixture
def synonym_table() -> SynonymTable:
    return SynonymTable(
        {
            "pain": {"ache", "sore"},
            "tired": {"fatigue", "exhausted"},
        }
    )


@pytest.fixture
def message_factory():
    return make_message


@pytest.fixture
def build_index(index_store: JsonIndexStore):
    """Rebuild a store into ``index_store`` and return a handle serving the result."""

    async def _build(store: InMemoryMessageStore, *, batch_size: int = 3) -> IndexHandle:
        handle = IndexHandle(index_store)
        await IndexBuilder(store, index_store, batch_size=batch_size, handle=handle).rebuild()
        return handle

    return _build
