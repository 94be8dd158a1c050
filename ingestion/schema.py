from __future__ import annotations

import sqlite3
from typing import Iterable, Sequence

MESSAGE_COLUMNS: tuple[str, ...] = (
    "id",
    "message_id",
    "channel_id",
    "guild_id",
    "author_id",
    "author",
    "display_name",
    "content",
    "timestamp",
    "referenced_message_id",
)

# A table missing any of these predates per-message metadata and is rebuilt.
REQUIRED_COLUMNS: tuple[str, ...] = ("message_id", "channel_id", "author_id")

# Stand-in for ids that the legacy schema never recorded.
PLACEHOLDER_ID = "0"

CREATE_MESSAGES_SQL = """
CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    message_id TEXT NOT NULL,
    channel_id TEXT NOT NULL,
    guild_id TEXT,
    author_id TEXT NOT NULL,
    author TEXT NOT NULL,
    display_name TEXT,
    content TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    referenced_message_id TEXT
)
"""

MESSAGE_INDEX_SQL: tuple[str, ...] = (
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_messages_edit_key
    ON messages (message_id, channel_id)
    WHERE message_id != '0'
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_channel_id ON messages (channel_id, id)",
    "CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON messages (timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_messages_author ON messages (author, id)",
)


def table_columns_sync(conn: sqlite3.Connection, table: str) -> list[str]:
    cur = conn.cursor()
    cur.execute(f"PRAGMA table_info({table})")
    # rows: (cid, name, type, notnull, dflt_value, pk)
    return [str(r[1]) for r in cur.fetchall()]


def needs_legacy_rebuild(columns: Sequence[str]) -> bool:
    if not columns:
        return False
    present = set(columns)
    return any(col not in present for col in REQUIRED_COLUMNS)


def _text_or(value, default: str | None) -> str | None:
    if value is None:
        return default
    text = str(value)
    return text if text.strip() else default


def _int_or_zero(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def upgrade_rows(old_columns: Sequence[str], rows: Iterable[Sequence]) -> list[tuple]:
    """
    Map rows of an older messages table onto MESSAGE_COLUMNS order.

    Fields the old schema never had are left NULL where the column allows it,
    and get placeholder values ('0', '', 0) where it does not. Rows that share
    a real (message_id, channel_id) collapse into the first one, carrying the
    later content forward the same way a platform edit would.
    """
    out: list[list] = []
    seen: dict[tuple[str, str], int] = {}
    for raw in rows:
        old = dict(zip(old_columns, raw))
        row_id = old.get("id")
        new = [
            int(row_id) if row_id is not None else None,
            _text_or(old.get("message_id"), PLACEHOLDER_ID),
            _text_or(old.get("channel_id"), PLACEHOLDER_ID),
            _text_or(old.get("guild_id"), None),
            _text_or(old.get("author_id"), PLACEHOLDER_ID),
            _text_or(old.get("author"), None) or _text_or(old.get("author_name"), "") or "",
            _text_or(old.get("display_name"), None),
            "" if old.get("content") is None else str(old.get("content")),
            _int_or_zero(old.get("timestamp")),
            _text_or(old.get("referenced_message_id"), None),
        ]
        key = (new[1], new[2])
        if new[1] != PLACEHOLDER_ID and key in seen:
            out[seen[key]][7] = new[7]
            continue
        if new[1] != PLACEHOLDER_ID:
            seen[key] = len(out)
        out.append(new)
    return [tuple(r) for r in out]


def rebuild_legacy_messages_sync(conn: sqlite3.Connection) -> int:
    """Rebuild a pre-metadata messages table in place. Caller owns the transaction."""
    old_columns = table_columns_sync(conn, "messages")
    cur = conn.cursor()
    cur.execute("ALTER TABLE messages RENAME TO messages_legacy")
    cur.execute(f"SELECT {', '.join(old_columns)} FROM messages_legacy ORDER BY rowid ASC")
    new_rows = upgrade_rows(old_columns, cur.fetchall())

    cur.execute(CREATE_MESSAGES_SQL)
    placeholders = ", ".join("?" for _ in MESSAGE_COLUMNS)
    cur.executemany(
        f"INSERT INTO messages ({', '.join(MESSAGE_COLUMNS)}) VALUES ({placeholders})",
        new_rows,
    )
    cur.execute("DROP TABLE messages_legacy")
    return len(new_rows)


def collapse_duplicate_messages_sync(conn: sqlite3.Connection) -> int:
    """
    Fold rows sharing a real (message_id, channel_id) into the oldest one,
    keeping the newest content. Returns the number of rows removed.
    """
    cur = conn.cursor()
    cur.execute(
        f"""
        UPDATE messages
        SET content = (
            SELECT newer.content FROM messages AS newer
            WHERE newer.message_id = messages.message_id
              AND newer.channel_id = messages.channel_id
            ORDER BY newer.id DESC
            LIMIT 1
        )
        WHERE id IN (
            SELECT MIN(id) FROM messages
            WHERE message_id != '{PLACEHOLDER_ID}'
            GROUP BY message_id, channel_id
            HAVING COUNT(*) > 1
        )
        """
    )
    cur.execute(
        f"""
        DELETE FROM messages
        WHERE message_id != '{PLACEHOLDER_ID}'
          AND id NOT IN (
            SELECT MIN(id) FROM messages
            WHERE message_id != '{PLACEHOLDER_ID}'
            GROUP BY message_id, channel_id
          )
        """
    )
    return max(0, int(cur.rowcount))


def ensure_messages_schema_sync(conn: sqlite3.Connection) -> int:
    """Create or upgrade the messages table. Returns the number of legacy rows carried over."""
    migrated = 0
    if needs_legacy_rebuild(table_columns_sync(conn, "messages")):
        migrated = rebuild_legacy_messages_sync(conn)
        print(f"[DB] Rebuilt legacy messages table ({migrated} rows carried over)")
    cur = conn.cursor()
    cur.execute(CREATE_MESSAGES_SQL)
    removed = collapse_duplicate_messages_sync(conn)
    if removed:
        print(f"[DB] Collapsed {removed} duplicate message rows")
    for stmt in MESSAGE_INDEX_SQL:
        cur.execute(stmt)
    return migrated
