from __future__ import annotations

import os
import sqlite3
import unittest

from db.migrate import apply_sqlite_migrations
from ingestion.models import MessageRecord
from ingestion.store import count_messages_sync
from ingestion.store import fetch_last_activity_by_channel_sync
from ingestion.store import fetch_random_message_sync
from ingestion.store import fetch_recent_messages_sync
from ingestion.store import find_last_message_by_name_sync
from ingestion.store import insert_message_sync
from ingestion.store import trim_messages_sync
from ingestion.store import update_message_content_sync
from misc.errors import StorageError


def _repo_root() -> str:
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _conn() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    apply_sqlite_migrations(conn, os.path.join(_repo_root(), "migrations"))
    return conn


def _record(msg_id: int, channel_id: int = 100, content: str | None = None, **kwargs) -> MessageRecord:
    return MessageRecord(
        external_message_id=str(msg_id),
        channel_id=str(channel_id),
        author_id=kwargs.pop("author_id", "42"),
        author_name=kwargs.pop("author_name", "alice"),
        content=content if content is not None else f"message {msg_id}",
        timestamp=kwargs.pop("timestamp", 1_700_000_000 + msg_id),
        **kwargs,
    )


class MessageRecordTests(unittest.TestCase):
    def test_empty_channel_id_is_rejected(self):
        with self.assertRaises(ValueError):
            MessageRecord(
                external_message_id="1",
                channel_id="",
                author_id="2",
                author_name="a",
                content="x",
                timestamp=1,
            )

    def test_speaker_prefers_display_name(self):
        self.assertEqual(_record(1, display_name="Ally").speaker, "Ally")
        self.assertEqual(_record(2).speaker, "alice")
        self.assertEqual(_record(3, author_name="").speaker, "someone")


class MessageStoreTests(unittest.TestCase):
    def test_append_assigns_increasing_ids(self):
        conn = _conn()
        first = insert_message_sync(conn, _record(1))
        second = insert_message_sync(conn, _record(2))
        self.assertGreater(second, first)
        self.assertEqual(count_messages_sync(conn), 2)

    def test_duplicate_platform_id_is_an_edit(self):
        conn = _conn()
        first = insert_message_sync(conn, _record(1, content="hello"))
        again = insert_message_sync(conn, _record(1, content="hello (edited)"))
        self.assertEqual(first, again)
        self.assertEqual(count_messages_sync(conn), 1)
        rows = fetch_recent_messages_sync(conn, 100, 5)
        self.assertEqual(rows[0].content, "hello (edited)")

    def test_same_platform_id_in_other_channel_is_separate(self):
        conn = _conn()
        insert_message_sync(conn, _record(1, channel_id=100))
        insert_message_sync(conn, _record(1, channel_id=200))
        self.assertEqual(count_messages_sync(conn), 2)

    def test_update_content_is_idempotent(self):
        conn = _conn()
        insert_message_sync(conn, _record(1, content="v1"))
        self.assertTrue(update_message_content_sync(conn, "1", "100", "v2"))
        self.assertTrue(update_message_content_sync(conn, "1", "100", "v2"))
        self.assertEqual(fetch_recent_messages_sync(conn, 100, 1)[0].content, "v2")
        self.assertEqual(count_messages_sync(conn), 1)

    def test_update_unknown_message_reports_false(self):
        conn = _conn()
        self.assertFalse(update_message_content_sync(conn, "999", "100", "nope"))

    def test_recent_messages_are_newest_first_and_channel_scoped(self):
        conn = _conn()
        insert_message_sync(conn, _record(1, channel_id=100))
        insert_message_sync(conn, _record(2, channel_id=200))
        insert_message_sync(conn, _record(3, channel_id=100))
        insert_message_sync(conn, _record(4, channel_id=100))

        rows = fetch_recent_messages_sync(conn, 100, 2)
        self.assertEqual([r.external_message_id for r in rows], ["4", "3"])
        all_rows = fetch_recent_messages_sync(conn, None, 10)
        self.assertEqual([r.external_message_id for r in all_rows], ["4", "3", "2", "1"])

    def test_recent_messages_zero_limit_is_empty(self):
        conn = _conn()
        insert_message_sync(conn, _record(1))
        self.assertEqual(fetch_recent_messages_sync(conn, 100, 0), [])

    def test_trim_keeps_newest_rows_across_channels(self):
        conn = _conn()
        for i in range(1, 11):
            insert_message_sync(conn, _record(i, channel_id=100 if i % 2 else 200))

        removed = trim_messages_sync(conn, 4)
        self.assertEqual(removed, 6)
        self.assertEqual(count_messages_sync(conn), 4)
        kept = fetch_recent_messages_sync(conn, None, 10)
        self.assertEqual([r.external_message_id for r in kept], ["10", "9", "8", "7"])

    def test_trim_is_idempotent_and_zero_clears(self):
        conn = _conn()
        for i in range(1, 6):
            insert_message_sync(conn, _record(i))
        trim_messages_sync(conn, 3)
        self.assertEqual(trim_messages_sync(conn, 3), 0)
        self.assertEqual(trim_messages_sync(conn, 10), 0)
        self.assertEqual(trim_messages_sync(conn, 0), 3)
        self.assertEqual(count_messages_sync(conn), 0)

    def test_ids_are_not_reused_after_trim(self):
        conn = _conn()
        for i in range(1, 4):
            insert_message_sync(conn, _record(i))
        top = fetch_recent_messages_sync(conn, None, 1)[0].id
        trim_messages_sync(conn, 0)
        new_id = insert_message_sync(conn, _record(10))
        self.assertGreater(new_id, top)

    def test_context_scenario_after_edit(self):
        conn = _conn()
        for i, text in enumerate(["A", "B", "C", "D"], start=1):
            insert_message_sync(conn, _record(i, content=text))
        update_message_content_sync(conn, "2", "100", "B2")
        rows = list(reversed(fetch_recent_messages_sync(conn, 100, 3)))
        self.assertEqual([r.content for r in rows], ["B2", "C", "D"])

    def test_random_message_skips_excluded_author_and_blank_content(self):
        conn = _conn()
        insert_message_sync(conn, _record(1, author_id="999", content="bot line"))
        insert_message_sync(conn, _record(2, content="   "))
        insert_message_sync(conn, _record(3, content="human line"))
        for _ in range(5):
            row = fetch_random_message_sync(conn, 100, exclude_author_id=999)
            self.assertEqual(row.content, "human line")
        self.assertIsNone(fetch_random_message_sync(conn, 555))

    def test_last_activity_by_channel(self):
        conn = _conn()
        insert_message_sync(conn, _record(1, channel_id=100, timestamp=50))
        insert_message_sync(conn, _record(2, channel_id=100, timestamp=80))
        insert_message_sync(conn, _record(3, channel_id=200, timestamp=60))
        self.assertEqual(fetch_last_activity_by_channel_sync(conn), {100: 80, 200: 60})

    def test_find_last_message_by_name_matches_display_name(self):
        conn = _conn()
        insert_message_sync(conn, _record(1, author_name="bob", display_name="Bobby", timestamp=10))
        insert_message_sync(conn, _record(2, author_name="bob", display_name="Bobby", content="latest", timestamp=20))
        insert_message_sync(conn, _record(3, author_name="carol", timestamp=30))
        row = find_last_message_by_name_sync(conn, "BOBBY")
        self.assertEqual(row.content, "latest")
        self.assertIsNone(find_last_message_by_name_sync(conn, "zed"))
        self.assertIsNone(find_last_message_by_name_sync(conn, "   "))

    def test_sqlite_failure_surfaces_as_storage_error(self):
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        with self.assertRaises(StorageError):
            insert_message_sync(conn, _record(1))
        with self.assertRaises(StorageError):
            fetch_recent_messages_sync(conn, 100, 5)


if __name__ == "__main__":
    unittest.main()
