from __future__ import annotations

import asyncio

from ingestion.models import MessageRecord
from misc.errors import StorageError


def _clip_line(text: str, max_line_chars: int) -> str:
    clean = " ".join((text or "").split())
    if len(clean) <= max_line_chars:
        return clean
    head_len = int(max_line_chars * 0.65)
    tail_len = max_line_chars - head_len - 3
    head = clean[:head_len].rstrip()
    tail = clean[-tail_len:].lstrip() if tail_len > 0 else ""
    return f"{head}...{tail}"


def format_context(records: list[MessageRecord], max_chars: int, max_line_chars: int) -> str:
    """
    Render an oldest-first context window as "Name: text" lines. A reply reads
    "Name (replying to Other: quoted text): text", with the quote clipped short.
    When over max_chars, the oldest lines are dropped first.
    """
    if not records:
        return ""

    lines: list[str] = []
    total = 0
    for record in reversed(records):
        clean = _clip_line(record.content, max_line_chars)
        if not clean:
            continue
        speaker = record.speaker
        if record.reply_to_content:
            quoted = _clip_line(record.reply_to_content, max(20, max_line_chars // 4))
            if quoted:
                speaker = f"{speaker} (replying to {record.reply_to_speaker}: {quoted})"
        line = f"{speaker}: {clean}"
        if total + len(line) + 1 > max_chars:
            break
        lines.append(line)
        total += len(line) + 1

    return "\n".join(reversed(lines))


async def get_context(
    channel_id: int | str,
    count: int,
    *,
    db_lock,
    db_conn,
    fetch_recent_messages_sync,
) -> list[MessageRecord]:
    """Oldest-first slice of the last `count` messages in a channel. Empty when there is no history."""
    try:
        async with db_lock:
            recent = await asyncio.to_thread(fetch_recent_messages_sync, db_conn, str(channel_id), int(count))
    except StorageError as e:
        print(f"[Context] Could not read history for channel {channel_id}: {e}")
        return []
    return list(reversed(recent))


async def get_context_text(
    channel_id: int | str,
    count: int,
    *,
    db_lock,
    db_conn,
    fetch_recent_messages_sync,
    max_chars: int,
    max_line_chars: int,
) -> tuple[str, int]:
    records = await get_context(
        channel_id,
        count,
        db_lock=db_lock,
        db_conn=db_conn,
        fetch_recent_messages_sync=fetch_recent_messages_sync,
    )
    return format_context(records, max_chars, max_line_chars), len(records)
