from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator

from ingestion.models import MessageRecord
from ingestion.schema import PLACEHOLDER_ID
from misc.errors import StorageError

_SELECT_COLUMNS = (
    "id, message_id, channel_id, guild_id, author_id, author, "
    "display_name, content, timestamp, referenced_message_id"
)

_REPLY_SELECT_COLUMNS = ", ".join(f"m.{c.strip()}" for c in _SELECT_COLUMNS.split(",")) + (
    ", ref.display_name, ref.author, ref.content"
)

# Replies only resolve against a real id in the same channel.
_REPLY_JOIN = (
    "LEFT JOIN messages AS ref "
    "ON ref.message_id = m.referenced_message_id "
    "AND ref.channel_id = m.channel_id "
    f"AND ref.message_id != '{PLACEHOLDER_ID}'"
)


@contextmanager
def _storage_errors(conn: sqlite3.Connection, action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        try:
            if conn.in_transaction:
                conn.rollback()
        except sqlite3.Error:
            pass
        raise StorageError(f"message store {action} failed: {exc}") from exc


def _row_to_record(row: tuple) -> MessageRecord:
    (row_id, message_id, channel_id, guild_id, author_id, author, display_name, content, ts, ref_id) = row[:10]
    reply_to_speaker = None
    reply_to_content = None
    if len(row) > 10 and row[12] is not None:
        reply_to_speaker = str(row[10] or row[11] or "someone")
        reply_to_content = str(row[12])
    return MessageRecord(
        id=int(row_id),
        external_message_id=str(message_id),
        channel_id=str(channel_id),
        guild_id=guild_id,
        author_id=str(author_id),
        author_name=str(author or ""),
        display_name=display_name,
        content=str(content or ""),
        timestamp=int(ts),
        referenced_message_id=ref_id,
        reply_to_speaker=reply_to_speaker,
        reply_to_content=reply_to_content,
    )


def insert_message_sync(conn: sqlite3.Connection, record: MessageRecord) -> int:
    """
    Append a message and return its internal id.

    A record whose (external_message_id, channel_id) is already stored is
    treated as an edit: only content changes and the existing id comes back.
    """
    with _storage_errors(conn, "append"):
        cur = conn.cursor()
        if record.external_message_id and record.external_message_id != PLACEHOLDER_ID:
            cur.execute(
                "SELECT id FROM messages WHERE message_id = ? AND channel_id = ? LIMIT 1",
                (record.external_message_id, record.channel_id),
            )
            row = cur.fetchone()
            if row:
                cur.execute("UPDATE messages SET content = ? WHERE id = ?", (record.content, int(row[0])))
                conn.commit()
                return int(row[0])

        cur.execute(
            """
            INSERT INTO messages (
                message_id, channel_id, guild_id,
                author_id, author, display_name,
                content, timestamp, referenced_message_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.external_message_id,
                record.channel_id,
                record.guild_id,
                record.author_id,
                record.author_name,
                record.display_name,
                record.content,
                int(record.timestamp),
                record.referenced_message_id,
            ),
        )
        conn.commit()
        return int(cur.lastrowid)


def update_message_content_sync(
    conn: sqlite3.Connection,
    external_message_id: str,
    channel_id: str,
    content: str,
) -> bool:
    with _storage_errors(conn, "edit"):
        cur = conn.cursor()
        cur.execute(
            "UPDATE messages SET content = ? WHERE message_id = ? AND channel_id = ?",
            (content, str(external_message_id), str(channel_id)),
        )
        conn.commit()
        return cur.rowcount > 0


def fetch_recent_messages_sync(
    conn: sqlite3.Connection,
    channel_id: str | int | None,
    limit: int,
) -> list[MessageRecord]:
    """Most recent first, with the replied-to message attached. channel_id=None reads across every channel."""
    if int(limit) <= 0:
        return []
    with _storage_errors(conn, "read"):
        cur = conn.cursor()
        if channel_id is None:
            cur.execute(
                f"SELECT {_REPLY_SELECT_COLUMNS} FROM messages AS m {_REPLY_JOIN} ORDER BY m.id DESC LIMIT ?",
                (int(limit),),
            )
        else:
            cur.execute(
                f"SELECT {_REPLY_SELECT_COLUMNS} FROM messages AS m {_REPLY_JOIN} "
                "WHERE m.channel_id = ? ORDER BY m.id DESC LIMIT ?",
                (str(channel_id), int(limit)),
            )
        return [_row_to_record(r) for r in cur.fetchall()]


def trim_messages_sync(conn: sqlite3.Connection, retain_count: int) -> int:
    """Keep only the retain_count newest rows across all channels. Returns rows removed."""
    retain = max(0, int(retain_count))
    with _storage_errors(conn, "trim"):
        cur = conn.cursor()
        if retain == 0:
            cur.execute("DELETE FROM messages")
        else:
            cur.execute("SELECT id FROM messages ORDER BY id DESC LIMIT 1 OFFSET ?", (retain - 1,))
            row = cur.fetchone()
            if not row:
                return 0
            cur.execute("DELETE FROM messages WHERE id < ?", (int(row[0]),))
        removed = max(0, int(cur.rowcount))
        conn.commit()
        return removed


def count_messages_sync(conn: sqlite3.Connection, channel_id: str | int | None = None) -> int:
    with _storage_errors(conn, "count"):
        cur = conn.cursor()
        if channel_id is None:
            cur.execute("SELECT COUNT(*) FROM messages")
        else:
            cur.execute("SELECT COUNT(*) FROM messages WHERE channel_id = ?", (str(channel_id),))
        return int(cur.fetchone()[0])


def fetch_random_message_sync(
    conn: sqlite3.Connection,
    channel_id: str | int,
    exclude_author_id: str | int | None = None,
) -> MessageRecord | None:
    with _storage_errors(conn, "read"):
        cur = conn.cursor()
        cur.execute(
            f"""
            SELECT {_SELECT_COLUMNS}
            FROM messages
            WHERE channel_id = ?
              AND author_id != ?
              AND TRIM(content) != ''
            ORDER BY RANDOM()
            LIMIT 1
            """,
            (str(channel_id), "" if exclude_author_id is None else str(exclude_author_id)),
        )
        row = cur.fetchone()
        return _row_to_record(row) if row else None


def fetch_last_activity_by_channel_sync(conn: sqlite3.Connection) -> dict[int, int]:
    with _storage_errors(conn, "read"):
        cur = conn.cursor()
        cur.execute("SELECT channel_id, MAX(timestamp) FROM messages GROUP BY channel_id")
        out: dict[int, int] = {}
        for channel_id, ts in cur.fetchall():
            text = str(channel_id or "")
            if not text.isdigit() or text == PLACEHOLDER_ID or ts is None:
                continue
            out[int(text)] = int(ts)
        return out


def find_last_message_by_name_sync(conn: sqlite3.Connection, name: str) -> MessageRecord | None:
    needle = (name or "").strip().lower()
    if not needle:
        return None
    pattern = f"%{needle}%"
    with _storage_errors(conn, "read"):
        cur = conn.cursor()
        cur.execute(
            f"""
            SELECT {_SELECT_COLUMNS}
            FROM messages
            WHERE LOWER(author) LIKE ? OR LOWER(COALESCE(display_name, '')) LIKE ?
            ORDER BY timestamp DESC, id DESC
            LIMIT 1
            """,
            (pattern, pattern),
        )
        row = cur.fetchone()
        return _row_to_record(row) if row else None
