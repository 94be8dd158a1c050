from __future__ import annotations

import os
import sqlite3
import unittest
from datetime import datetime
from datetime import timezone
from types import SimpleNamespace

from db.migrate import apply_sqlite_migrations
from ingestion.service import log_message
from ingestion.service import log_message_edit
from ingestion.service import message_record_from_discord
from ingestion.store import fetch_recent_messages_sync
from ingestion.store import insert_message_sync
from ingestion.store import update_message_content_sync
from misc.errors import StorageError


class _NoopAsyncLock:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


def _message(content: str = "hello", *, message_id: int = 900, attachments=None, reference=None):
    return SimpleNamespace(
        id=message_id,
        content=content,
        channel=SimpleNamespace(id=100),
        guild=SimpleNamespace(id=1),
        author=SimpleNamespace(id=7, name="alice_01", display_name="Alice"),
        created_at=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        attachments=attachments or [],
        reference=reference,
    )


def _conn() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    apply_sqlite_migrations(conn, os.path.join(root, "migrations"))
    return conn


class MessageRecordFromDiscordTests(unittest.TestCase):
    def test_fields_are_copied(self):
        record = message_record_from_discord(_message(reference=SimpleNamespace(message_id=800)))
        self.assertEqual(record.external_message_id, "900")
        self.assertEqual(record.channel_id, "100")
        self.assertEqual(record.guild_id, "1")
        self.assertEqual(record.author_name, "alice_01")
        self.assertEqual(record.display_name, "Alice")
        self.assertEqual(record.referenced_message_id, "800")
        self.assertEqual(record.timestamp, int(datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc).timestamp()))

    def test_attachment_urls_are_appended(self):
        record = message_record_from_discord(
            _message("look", attachments=[SimpleNamespace(url="https://cdn.example/a.png")])
        )
        self.assertEqual(record.content, "look https://cdn.example/a.png")


class LogMessageTests(unittest.IsolatedAsyncioTestCase):
    async def test_log_then_edit(self):
        conn = _conn()
        row_id = await log_message(
            _message("first"), db_lock=_NoopAsyncLock(), db_conn=conn, insert_message_sync=insert_message_sync
        )
        self.assertIsNotNone(row_id)
        changed = await log_message_edit(
            _message("first, edited"),
            db_lock=_NoopAsyncLock(),
            db_conn=conn,
            update_message_content_sync=update_message_content_sync,
        )
        self.assertTrue(changed)
        self.assertEqual(fetch_recent_messages_sync(conn, 100, 1)[0].content, "first, edited")

    async def test_edit_keeps_attachment_urls(self):
        conn = _conn()
        attachments = [SimpleNamespace(url="https://cdn.example/a.png")]
        await log_message(
            _message("look", attachments=attachments),
            db_lock=_NoopAsyncLock(),
            db_conn=conn,
            insert_message_sync=insert_message_sync,
        )
        await log_message_edit(
            _message("look at this", attachments=attachments),
            db_lock=_NoopAsyncLock(),
            db_conn=conn,
            update_message_content_sync=update_message_content_sync,
        )
        self.assertEqual(
            fetch_recent_messages_sync(conn, 100, 1)[0].content,
            "look at this https://cdn.example/a.png",
        )

    async def test_storage_failure_is_swallowed_and_logged(self):
        def _broken(conn, record):
            raise StorageError("disk full")

        out = await log_message(_message(), db_lock=_NoopAsyncLock(), db_conn=object(), insert_message_sync=_broken)
        self.assertIsNone(out)


if __name__ == "__main__":
    unittest.main()
