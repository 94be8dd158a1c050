from __future__ import annotations

import asyncio
import random

from config.settings import Settings
from generation.service import answer_direct_address as answer_direct_address_service
from generation.service import generate_image_for_user as generate_image_for_user_service
from interjection.dispatch import InterjectionDeps
from interjection.dispatch import build_interjection
from jobs.service import run_trim_pass as run_trim_pass_service
from jobs.service import trim_loop as trim_loop_service
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_generation import register as register_generation
from misc.commands.commands_owner import register as register_owner
from misc.discord_gates import message_in_followed_channels
from misc.events_runtime import register_runtime_events
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps
from retrieval.service import get_context_text as get_context_text_service


def wire_bot_runtime(
    bot,
    *,
    settings: Settings,
    db_lock,
    db_conn,
    clock,
    send_chunked,
    user_is_owner,
    log_message_func,
    log_message_edit_func,
    fetch_recent_messages_sync,
    fetch_random_message_sync,
    fetch_last_activity_by_channel_sync,
    find_last_message_by_name_sync,
    count_messages_sync,
    trim_messages_sync,
    list_schema_migrations_sync,
    save_rate_budgets_sync,
    load_rate_budgets_sync,
    rate_limiter,
    quota,
    generator,
    scheduler,
    activity,
    content,
    rng: random.Random,
) -> None:
    followed_ids = settings.followed_channel_ids
    followed_names = settings.followed_channel_names

    def in_followed_channel(ctx) -> bool:
        try:
            return message_in_followed_channels(ctx.message, followed_ids, followed_names)
        except AttributeError:
            return False

    async def get_context_text(channel_id):
        return await get_context_text_service(
            channel_id,
            settings.context_message_count,
            db_lock=db_lock,
            db_conn=db_conn,
            fetch_recent_messages_sync=fetch_recent_messages_sync,
            max_chars=settings.context_max_chars,
            max_line_chars=settings.context_line_chars,
        )

    async def answer_direct_address(prompt, *, author_name, context_text):
        return await answer_direct_address_service(
            prompt,
            author_name=author_name,
            context_text=context_text,
            quota=quota,
            generator=generator,
        )

    async def generate_image(prompt):
        return await generate_image_for_user_service(prompt, quota=quota, generator=generator)

    async def run_trim_pass():
        return await run_trim_pass_service(
            db_lock=db_lock,
            db_conn=db_conn,
            trim_messages_sync=trim_messages_sync,
            retain_count=settings.message_history_limit,
        )

    async def seed_activity() -> int:
        async with db_lock:
            last_seen = await asyncio.to_thread(fetch_last_activity_by_channel_sync, db_conn)
        return activity.seed(last_seen)

    async def restore_rate_budgets() -> int:
        async with db_lock:
            saved = await asyncio.to_thread(load_rate_budgets_sync, db_conn)
        restored = 0
        for category, state in saved.items():
            if category not in rate_limiter.categories():
                continue
            rate_limiter.restore(category, state)
            restored += 1
        return restored

    async def trim_loop():
        await trim_loop_service(
            db_lock=db_lock,
            db_conn=db_conn,
            trim_messages_sync=trim_messages_sync,
            retain_count=settings.message_history_limit,
            interval_seconds=settings.db_trim_interval_secs,
            rate_limiter=rate_limiter,
            save_rate_budgets_sync=save_rate_budgets_sync,
        )

    command_deps = CommandDeps(
        db_lock=db_lock,
        db_conn=db_conn,
        send_chunked=send_chunked,
        clock=clock,
        rate_limiter=rate_limiter,
        generate_image_func=generate_image,
        find_last_message_by_name_sync=find_last_message_by_name_sync,
        count_messages_sync=count_messages_sync,
        list_schema_migrations_sync=list_schema_migrations_sync,
        run_trim_pass_func=run_trim_pass,
        message_history_limit=settings.message_history_limit,
    )
    command_gates = CommandGates(
        in_followed_channel=in_followed_channel,
        user_is_owner=user_is_owner,
    )

    register_owner(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_generation(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    interjection_deps = InterjectionDeps(
        db_lock=db_lock,
        db_conn=db_conn,
        fetch_recent_messages_sync=fetch_recent_messages_sync,
        fetch_random_message_sync=fetch_random_message_sync,
        quota=quota,
        generator=generator,
        content=content,
        context_message_count=settings.context_message_count,
        context_max_chars=settings.context_max_chars,
        context_line_chars=settings.context_line_chars,
        rng=rng,
    )

    register_runtime_events(
        bot,
        deps=RuntimeDeps(
            send_chunked=send_chunked,
            clock=clock,
            followed_channel_ids=followed_ids,
            followed_channel_names=followed_names,
            log_message_func=log_message_func,
            log_message_edit_func=log_message_edit_func,
            scheduler=scheduler,
            activity=activity,
            interjection_deps=interjection_deps,
            build_interjection_func=build_interjection,
            get_context_text_func=get_context_text,
            answer_direct_address_func=answer_direct_address,
            generate_image_func=generate_image,
            quota=quota,
        ),
        boot=RuntimeBootDeps(
            seed_activity_func=seed_activity,
            restore_rate_budgets_func=restore_rate_budgets,
            trim_loop_func=trim_loop,
        ),
    )

