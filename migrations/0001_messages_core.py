from __future__ import annotations

import sqlite3

from ingestion.schema import ensure_messages_schema_sync


def upgrade(conn: sqlite3.Connection) -> None:
    ensure_messages_schema_sync(conn)
