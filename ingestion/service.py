from __future__ import annotations

import asyncio
from typing import Any

from ingestion.models import MessageRecord
from misc.errors import StorageError


def _best_display_name(author: Any) -> str | None:
    for attr in ("display_name", "global_name", "nick"):
        value = getattr(author, attr, None)
        if value:
            return str(value)
    return None


def message_record_from_discord(message: Any) -> MessageRecord:
    author = message.author
    guild = getattr(message, "guild", None)
    reference = getattr(message, "reference", None)
    created_at = getattr(message, "created_at", None)
    attachments = ""
    if getattr(message, "attachments", None):
        attachments = " | ".join(a.url for a in message.attachments if getattr(a, "url", None))
    content = message.content or ""
    if attachments:
        content = f"{content} {attachments}".strip()

    return MessageRecord(
        external_message_id=str(message.id),
        channel_id=str(message.channel.id),
        guild_id=str(guild.id) if guild else None,
        author_id=str(author.id),
        author_name=str(getattr(author, "name", None) or author),
        display_name=_best_display_name(author),
        content=content,
        timestamp=int(created_at.timestamp()) if created_at else 0,
        referenced_message_id=(
            str(reference.message_id) if reference is not None and getattr(reference, "message_id", None) else None
        ),
    )


async def log_message(
    message: Any,
    *,
    db_lock,
    db_conn,
    insert_message_sync,
) -> int | None:
    """Store an observed message. Storage failures are logged, never raised."""
    record = message_record_from_discord(message)
    try:
        async with db_lock:
            return await asyncio.to_thread(insert_message_sync, db_conn, record)
    except StorageError as e:
        print(f"[Ingest] Failed to store message {record.external_message_id} in {record.channel_id}: {e}")
        return None


async def log_message_edit(
    message: Any,
    *,
    db_lock,
    db_conn,
    update_message_content_sync,
) -> bool:
    record = message_record_from_discord(message)
    try:
        async with db_lock:
            return await asyncio.to_thread(
                update_message_content_sync,
                db_conn,
                record.external_message_id,
                record.channel_id,
                record.content,
            )
    except StorageError as e:
        print(f"[Ingest] Failed to apply edit for message {message.id}: {e}")
        return False
