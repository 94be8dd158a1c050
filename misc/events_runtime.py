from __future__ import annotations

import asyncio
import io

import discord
from config.defaults import TEXT_CATEGORY
from discord.ext import commands
from misc.discord_gates import is_command
from misc.discord_gates import is_direct_address
from misc.discord_gates import message_in_followed_channels
from misc.mention_routes import classify_mention_route
from misc.mention_routes import extract_imagine_payload
from misc.mention_routes import strip_bot_mention
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps

MAX_PROMPT_CHARS = 1900


async def _reply_to_direct_address(message: discord.Message, *, bot_user, deps: RuntimeDeps) -> None:
    prompt = strip_bot_mention(message.content or "", bot_user.id)[:MAX_PROMPT_CHARS]
    route = classify_mention_route(prompt)

    if route == "empty":
        await message.channel.send("Yep?")
        return

    if route == "imagine":
        outcome = await deps.generate_image_func(extract_imagine_payload(prompt) or "")
        if outcome.image is None:
            await message.reply(outcome.message, mention_author=False)
            return
        await message.reply(
            outcome.message,
            file=discord.File(io.BytesIO(outcome.image), filename="imagine.png"),
            mention_author=False,
        )
        return

    notice = deps.quota.take_notice(TEXT_CATEGORY)
    if notice and deps.quota.rate_limiter.is_exhausted(TEXT_CATEGORY):
        await message.reply(notice, mention_author=False)
        return

    context_text, _n = await deps.get_context_text_func(message.channel.id)
    author_name = getattr(message.author, "display_name", None) or str(message.author)
    reply = await deps.answer_direct_address_func(prompt, author_name=author_name, context_text=context_text)

    text = "\n\n".join(part for part in (notice, reply) if part)
    if text:
        await deps.send_chunked(message.channel, text)


async def handle_inbound_message(
    message: discord.Message,
    *,
    bot_user,
    deps: RuntimeDeps,
    process_commands,
) -> str:
    """
    Route one inbound message. Returns a short outcome label
    (ignored, bot, command, direct, silent, interjected).
    """
    if not message_in_followed_channels(message, deps.followed_channel_ids, deps.followed_channel_names):
        return "ignored"

    now = deps.clock()
    channel_id = int(message.channel.id)
    await deps.log_message_func(message)

    if message.author.bot:
        deps.activity.touch(channel_id, now)
        return "bot"

    if is_command(message.content):
        deps.activity.touch(channel_id, now)
        await process_commands(message)
        return "command"

    if is_direct_address(message, bot_user):
        deps.activity.touch(channel_id, now)
        await _reply_to_direct_address(message, bot_user=bot_user, deps=deps)
        return "direct"

    # Silence is measured before this message counts as activity.
    picked = deps.scheduler.decide(channel_id, getattr(message.channel, "name", None), now)
    deps.activity.touch(channel_id, now)
    if picked is None:
        return "silent"

    text = await deps.build_interjection_func(
        picked,
        channel_id=channel_id,
        deps=deps.interjection_deps,
        bot_user_id=int(bot_user.id) if bot_user else None,
    )
    if not text:
        return "silent"

    try:
        await deps.send_chunked(message.channel, text)
    except discord.HTTPException as e:
        print(f"[Interject] send failed in channel {channel_id}: {e}")
        return "silent"
    return "interjected"


def register_runtime_events(
    bot: commands.Bot,
    *,
    deps: RuntimeDeps,
    boot: RuntimeBootDeps,
) -> None:
    @bot.event
    async def on_ready():
        print(f"[Bot] online as {bot.user}")

        if not getattr(bot, "_runtime_booted", False):
            seeded = await boot.seed_activity_func()
            print(f"[Interject] seeded activity for {seeded} channels")
            restored = await boot.restore_rate_budgets_func()
            print(f"[RateLimit] restored {restored} budget(s) from disk")
            bot._runtime_booted = True

        if not getattr(bot, "_trim_task", None):
            bot._trim_task = asyncio.create_task(boot.trim_loop_func())
            print("[Trim] retention loop started")

    @bot.event
    async def on_message(message: discord.Message):
        await handle_inbound_message(
            message,
            bot_user=bot.user,
            deps=deps,
            process_commands=bot.process_commands,
        )

    @bot.event
    async def on_message_edit(before: discord.Message, after: discord.Message):
        if not message_in_followed_channels(after, deps.followed_channel_ids, deps.followed_channel_names):
            return
        if (before.content or "") == (after.content or ""):
            return
        await deps.log_message_edit_func(after)
