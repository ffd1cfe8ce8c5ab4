"""Integration tests: SQLite message store, index rebuild and queries end to end."""

from pathlib import Path
import sqlite3

import orjson
import pytest

from counsel_search.adapters.message_store import InMemoryMessageStore
from counsel_search.adapters.sqlite_message_store import SqliteMessageStore
from counsel_search.bootstrap import build_components
from counsel_search.config import Settings
from counsel_search.domain.search import MatchTier
from counsel_search.search.errors import MessageStoreError, RebuildError
from counsel_search.search.index import IndexHandle, InvertedIndex, JsonIndexStore
from counsel_search.search.models import Posting
from counsel_search.search.synonyms import SynonymTable
from counsel_search.service_layer.search_service import SearchService


SCHEMA = """
CREATE TABLE threads (
    id TEXT PRIMARY KEY,
    users TEXT,
    title TEXT,
    date_created INTEGER
);
CREATE TABLE messages (
    id TEXT PRIMARY KEY,
    userId TEXT,
    threadId TEXT,
    message TEXT,
    timestamp INTEGER,
    msgIndex INTEGER
);
"""


async def _write_database(path: Path, store) -> Path:
    messages = await store.scan_messages(0, 1000)
    threads = await store.get_threads_by_ids(sorted({message.thread_id for message in messages}))
    conn = sqlite3.connect(path)
    try:
        conn.executescript(SCHEMA)
        conn.executemany(
            "INSERT INTO threads (id, users, title, date_created) VALUES (?, ?, ?, ?)",
            [
                (thread.id, orjson.dumps(list(thread.users)).decode(), thread.title, thread.date_created)
                for thread in threads.values()
            ],
        )
        conn.executemany(
            "INSERT INTO messages (id, userId, threadId, message, timestamp, msgIndex) VALUES (?, ?, ?, ?, ?, ?)",
            [
                (message.id, message.user_id, message.thread_id, message.text, message.timestamp, message.msg_index)
                for message in messages
            ],
        )
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.mark.integration
class TestSqliteMessageStore:
    """Tests for SqliteMessageStore against the counsel schema."""

    @pytest.mark.asyncio
    async def test_reads(self, tmp_path, back_pain_store):
        db_path = await _write_database(tmp_path / "counsel_db.sqlite", back_pain_store)
        store = SqliteMessageStore(db_path)
        try:
            message = await store.get_message("a5")
            assert message.text == "My back pain is severe"
            assert (message.thread_id, message.msg_index, message.timestamp) == ("threadA", 5, 5_000)
            assert await store.get_message("missing") is None

            window = await store.get_messages_in_range("threadA", 3, 7)
            assert [m.msg_index for m in window] == [3, 4, 5, 6, 7]

            ids = ["a1", "a7"] + [f"missing{i}" for i in range(600)]
            assert sorted(await store.get_messages_by_ids(ids)) == ["a1", "a7"]

            threads = await store.get_threads_by_ids(["threadA"])
            assert threads["threadA"].title == "Back pain follow-up"
            assert threads["threadA"].users == ("user1", "user2")

            page = await store.scan_messages(0, 3)
            rest = await store.scan_messages(3, 10)
            assert [m.id for m in page + rest] == [f"a{i}" for i in range(8)]
            assert await store.count_messages() == 8
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_malformed_users_column(self, tmp_path, back_pain_store):
        db_path = await _write_database(tmp_path / "counsel_db.sqlite", back_pain_store)
        conn = sqlite3.connect(db_path)
        conn.execute("UPDATE threads SET users = 'not json' WHERE id = 'threadA'")
        conn.commit()
        conn.close()

        store = SqliteMessageStore(db_path)
        try:
            threads = await store.get_threads_by_ids(["threadA"])
            assert threads["threadA"].users == ()
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_missing_database(self, tmp_path):
        store = SqliteMessageStore(tmp_path / "absent.sqlite")

        with pytest.raises(MessageStoreError, match="not found"):
            await store.get_message("a1")

    @pytest.mark.asyncio
    async def test_query_errors_are_wrapped(self, tmp_path):
        db_path = tmp_path / "empty.sqlite"
        sqlite3.connect(db_path).close()
        store = SqliteMessageStore(db_path)
        try:
            with pytest.raises(MessageStoreError, match="scan_messages failed"):
                await store.scan_messages(0, 10)
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_connection_is_read_only(self, tmp_path, back_pain_store):
        db_path = await _write_database(tmp_path / "counsel_db.sqlite", back_pain_store)
        store = SqliteMessageStore(db_path)
        try:
            await store.count_messages()
            with pytest.raises(MessageStoreError):
                await store._run("delete", lambda conn: conn.execute("DELETE FROM messages"))
        finally:
            await store.close()


@pytest.mark.integration
class TestEndToEnd:
    """Rebuild from SQLite, then query through the wired components."""

    @pytest.mark.asyncio
    async def test_rebuild_then_search(self, tmp_path, back_pain_store):
        db_path = await _write_database(tmp_path / "counsel_db.sqlite", back_pain_store)
        settings = Settings(database_path=db_path, index_path=tmp_path / "searchIndex.json", index_batch_size=3)
        components = build_components(settings)
        try:
            before = await components.search_service.search("back pian")
            assert before.results == []
            assert before.error.startswith("Search is unavailable")

            result = await components.index_builder.rebuild()
            assert result.messages_indexed == 8
            assert result.batches_read == 3
            assert settings.index_path.is_file()

            response = await components.search_service.search("back pian")

            assert response.error is None
            assert response.corrected_terms == {"pian": ["pain"]}
            (hit,) = response.results
            assert hit.match_tier == MatchTier.EXACT
            assert (hit.thread_id, hit.message_id, hit.thread_name) == ("threadA", "a5", "Back pain follow-up")
            assert [m.msg_index for m in hit.context_window] == [3, 4, 5, 6, 7]
        finally:
            await components.close()

    @pytest.mark.asyncio
    async def test_published_index_loaded_at_startup(self, tmp_path, back_pain_store):
        db_path = await _write_database(tmp_path / "counsel_db.sqlite", back_pain_store)
        settings = Settings(database_path=db_path, index_path=tmp_path / "searchIndex.json")

        first = build_components(settings)
        try:
            await first.index_builder.rebuild()
        finally:
            await first.close()

        second = build_components(settings)
        try:
            assert second.index_handle.loaded is True
            response = await second.search_service.search("severe")
            assert [hit.message_id for hit in response.results] == ["a5"]
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_rebuild_against_missing_database_fails(self, tmp_path):
        settings = Settings(database_path=tmp_path / "absent.sqlite", index_path=tmp_path / "searchIndex.json")
        components = build_components(settings)
        try:
            with pytest.raises(RebuildError):
                await components.index_builder.rebuild()
            assert not settings.index_path.exists()
        finally:
            await components.close()

    @pytest.mark.asyncio
    async def test_custom_synonym_file(self, tmp_path, message_factory):
        synonyms_path = tmp_path / "synonyms.json"
        synonyms_path.write_bytes(orjson.dumps({"tummy": ["stomach"]}))
        store = InMemoryMessageStore([message_factory("m1", "t1", "My stomach is upset", msg_index=0)])
        settings = Settings(index_path=tmp_path / "searchIndex.json", synonyms_path=synonyms_path)

        components = build_components(settings, message_store=store)
        try:
            await components.index_builder.rebuild()
            response = await components.search_service.search("tummy")
        finally:
            await components.close()

        (hit,) = response.results
        assert hit.match_tier == MatchTier.SEMANTIC
        assert response.expansion_terms == ["stomach"]


def _write_fever_database(path: Path) -> Path:
    conn = sqlite3.connect(path)
    try:
        conn.executescript(SCHEMA)
        conn.execute("INSERT INTO threads (id, users, title, date_created) VALUES ('t1', '[\"u\"]', 'Fever', 1)")
        conn.executemany(
            "INSERT INTO messages (id, userId, threadId, message, timestamp, msgIndex) VALUES (?, ?, ?, ?, ?, ?)",
            [("m1", "u", "t1", "fever since monday", 10, 0), ("m2", "u", "t1", "fever", 20, None)],
        )
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.mark.integration
class TestUndecodableRows:
    """A row with a NULL msgIndex never escapes as a raw decode error."""

    @pytest.mark.asyncio
    async def test_batch_lookup_skips_bad_row(self, tmp_path):
        store = SqliteMessageStore(_write_fever_database(tmp_path / "counsel_db.sqlite"))
        try:
            found = await store.get_messages_by_ids(["m1", "m2"])
            assert list(found) == ["m1"]
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_point_and_scan_reads_raise_store_error(self, tmp_path):
        store = SqliteMessageStore(_write_fever_database(tmp_path / "counsel_db.sqlite"))
        try:
            with pytest.raises(MessageStoreError, match="undecodable row"):
                await store.get_message("m2")
            with pytest.raises(MessageStoreError, match="undecodable row"):
                await store.scan_messages(0, 10)
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_search_degrades_bad_row(self, tmp_path):
        store = SqliteMessageStore(_write_fever_database(tmp_path / "counsel_db.sqlite"))
        index = InvertedIndex({"fever": [Posting("t1", "m1"), Posting("t1", "m2")]})
        handle = IndexHandle(JsonIndexStore(tmp_path / "searchIndex.json"), index)
        try:
            response = await SearchService(handle, store, SynonymTable({})).search("fever")
        finally:
            await store.close()

        assert response.error is None
        assert [hit.message_id for hit in response.results] == ["m1", "m2"]
        good, bad = response.results
        assert good.hydration.degraded is False
        assert good.thread_name == "Fever"
        assert bad.timestamp is None
        assert "timestamp: message not found" in bad.hydration.failures

    @pytest.mark.asyncio
    async def test_rebuild_reports_bad_row(self, tmp_path):
        db_path = _write_fever_database(tmp_path / "counsel_db.sqlite")
        settings = Settings(database_path=db_path, index_path=tmp_path / "searchIndex.json")
        components = build_components(settings)
        try:
            with pytest.raises(RebuildError):
                await components.index_builder.rebuild()
            assert not settings.index_path.exists()
        finally:
            await components.close()
