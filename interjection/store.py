from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

from interjection.rate_limiter import RateBudget
from misc.errors import StorageError


def save_rate_budgets_sync(conn: sqlite3.Connection, budgets: dict[str, RateBudget]) -> None:
    now_iso = datetime.now(timezone.utc).isoformat()
    try:
        cur = conn.cursor()
        for category, b in budgets.items():
            cur.execute(
                """
                INSERT INTO rate_budget_usage (
                    category,
                    minute_window_count, minute_window_started_at,
                    day_window_count, day_window_started_at,
                    exhausted_until, updated_at_utc
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(category) DO UPDATE SET
                    minute_window_count=excluded.minute_window_count,
                    minute_window_started_at=excluded.minute_window_started_at,
                    day_window_count=excluded.day_window_count,
                    day_window_started_at=excluded.day_window_started_at,
                    exhausted_until=excluded.exhausted_until,
                    updated_at_utc=excluded.updated_at_utc
                """,
                (
                    category,
                    int(b.minute_window_count),
                    float(b.minute_window_started_at),
                    int(b.day_window_count),
                    float(b.day_window_started_at),
                    b.exhausted_until,
                    now_iso,
                ),
            )
        conn.commit()
    except sqlite3.Error as exc:
        if conn.in_transaction:
            conn.rollback()
        raise StorageError(f"saving rate budgets failed: {exc}") from exc


def load_rate_budgets_sync(conn: sqlite3.Connection) -> dict[str, RateBudget]:
    try:
        cur = conn.cursor()
        cur.execute(
            """
            SELECT category, minute_window_count, minute_window_started_at,
                   day_window_count, day_window_started_at, exhausted_until
            FROM rate_budget_usage
            """
        )
        rows = cur.fetchall()
    except sqlite3.Error as exc:
        raise StorageError(f"loading rate budgets failed: {exc}") from exc

    out: dict[str, RateBudget] = {}
    for category, m_count, m_start, d_count, d_start, exhausted_until in rows:
        # Limits are not persisted; RateLimiter.restore keeps the configured ones.
        out[str(category)] = RateBudget(
            minute_limit=0,
            day_limit=0,
            minute_window_count=int(m_count or 0),
            minute_window_started_at=float(m_start or 0.0),
            day_window_count=int(d_count or 0),
            day_window_started_at=float(d_start or 0.0),
            exhausted_until=float(exhausted_until) if exhausted_until is not None else None,
        )
    return out
