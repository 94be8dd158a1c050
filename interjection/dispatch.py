from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Callable

from config.defaults import TEXT_CATEGORY
from interjection.content import LocalContent
from interjection.models import GENERATED_TYPES
from interjection.models import InterjectionType
from interjection.prompts import interjection_prompt
from interjection.prompts import is_pass_reply
from interjection.prompts import looks_like_prompt_echo
from interjection.quota import QuotaManager
from misc.errors import QuotaExhaustedError
from misc.errors import StorageError
from misc.errors import UpstreamGenerationError
from retrieval.service import format_context
from retrieval.service import get_context

MEMORY_QUOTE_MAX_CHARS = 300


@dataclass(frozen=True)
class InterjectionDeps:
    db_lock: Any
    db_conn: Any
    fetch_recent_messages_sync: Callable
    fetch_random_message_sync: Callable
    quota: QuotaManager
    generator: Any
    content: LocalContent
    context_message_count: int
    context_max_chars: int
    context_line_chars: int
    rng: random.Random


def _pick(rng: random.Random, lines: list[str]) -> str | None:
    return rng.choice(lines) if lines else None


async def _memory_line(channel_id: int, *, deps: InterjectionDeps, bot_user_id: int | None) -> str | None:
    try:
        async with deps.db_lock:
            record = await asyncio.to_thread(deps.fetch_random_message_sync, deps.db_conn, str(channel_id), bot_user_id)
    except StorageError as e:
        print(f"[Interject] memory lookup failed for channel {channel_id}: {e}")
        return None
    if record is None:
        return None

    quote = " ".join(record.content.split())
    if len(quote) > MEMORY_QUOTE_MAX_CHARS:
        quote = quote[: MEMORY_QUOTE_MAX_CHARS - 3].rstrip() + "..."
    template = _pick(deps.rng, deps.content.memory_templates) or 'Remember when {speaker} said "{content}"?'
    try:
        return template.format(speaker=record.speaker, content=quote)
    except (KeyError, IndexError, ValueError):
        return f'Remember when {record.speaker} said "{quote}"?'


async def _generated_line(kind: InterjectionType, channel_id: int, *, deps: InterjectionDeps) -> str | None:
    records = await get_context(
        channel_id,
        deps.context_message_count,
        db_lock=deps.db_lock,
        db_conn=deps.db_conn,
        fetch_recent_messages_sync=deps.fetch_recent_messages_sync,
    )
    context_text = format_context(records, deps.context_max_chars, deps.context_line_chars)
    prompt = interjection_prompt(kind)

    try:
        reply, admission = await deps.quota.run_metered(
            TEXT_CATEGORY,
            lambda: deps.generator.generate(prompt, context_text),
        )
    except QuotaExhaustedError:
        return None
    except UpstreamGenerationError as e:
        print(f"[Interject] {kind.value} generation failed in channel {channel_id}: {e}")
        return None

    if not admission:
        print(f"[RateLimit] {kind.value} interjection skipped in channel {channel_id}: {admission.reason.value}")
        return None
    if is_pass_reply(reply):
        print(f"[Interject] {kind.value} passed in channel {channel_id}")
        return None
    if looks_like_prompt_echo(reply, prompt):
        print(f"[Interject] {kind.value} reply looked like a prompt echo; dropped")
        return None
    return reply


async def build_interjection(
    kind: InterjectionType,
    *,
    channel_id: int,
    deps: InterjectionDeps,
    bot_user_id: int | None = None,
) -> str | None:
    """
    Produce the text for a fired interjection, or None when it should stay silent.
    A denied or failed generation is a miss; no other type is tried instead.
    """
    if kind == InterjectionType.MST3K:
        return _pick(deps.rng, deps.content.mst3k_quotes)
    if kind == InterjectionType.PONDERING:
        return _pick(deps.rng, deps.content.pondering_lines)
    if kind == InterjectionType.MEMORY:
        return await _memory_line(channel_id, deps=deps, bot_user_id=bot_user_id)
    if kind in GENERATED_TYPES:
        return await _generated_line(kind, channel_id, deps=deps)
    return None
