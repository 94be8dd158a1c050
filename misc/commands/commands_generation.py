from __future__ import annotations

import asyncio
import io

import discord
from discord.ext import commands
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.discord_timestamps import epoch_timestamp_tag
from misc.discord_timestamps import format_time_ago
from misc.errors import StorageError
from interjection.rate_limiter import DAY_SECONDS
from interjection.rate_limiter import MINUTE_SECONDS


def format_budget_lines(rate_limiter, now: float) -> list[str]:
    lines: list[str] = []
    for category, b in rate_limiter.snapshot_all().items():
        minute_used = b.minute_window_count if now - b.minute_window_started_at < MINUTE_SECONDS else 0
        day_used = b.day_window_count if now - b.day_window_started_at < DAY_SECONDS else 0
        line = f"- {category}: {minute_used}/{b.minute_limit} this minute, {day_used}/{b.day_limit} today"
        if b.exhausted_until is not None and now < b.exhausted_until:
            line += f" (quota exhausted, back {epoch_timestamp_tag(b.exhausted_until, 'R')})"
        lines.append(line)
    return lines


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @bot.command(name="imagine")
    async def cmd_imagine(ctx: commands.Context, *, prompt: str = ""):
        if not gates.in_followed_channel(ctx):
            return
        outcome = await deps.generate_image_func(prompt)
        if outcome.image is None:
            await ctx.reply(outcome.message, mention_author=False)
            return
        await ctx.reply(
            outcome.message,
            file=discord.File(io.BytesIO(outcome.image), filename="imagine.png"),
            mention_author=False,
        )

    @bot.command(name="lastseen")
    async def cmd_lastseen(ctx: commands.Context, *, name: str = ""):
        if not gates.in_followed_channel(ctx):
            return
        name = (name or "").strip()
        if not name:
            await ctx.reply("Usage: `!lastseen <name>`", mention_author=False)
            return

        try:
            async with deps.db_lock:
                record = await asyncio.to_thread(deps.find_last_message_by_name_sync, deps.db_conn, name)
        except StorageError as e:
            print(f"[Commands] lastseen lookup failed: {e}")
            await ctx.reply("I couldn't check the message log just now.", mention_author=False)
            return

        if record is None:
            await ctx.reply(f"I haven't seen anyone matching `{name}`.", mention_author=False)
            return

        ago = format_time_ago(deps.clock() - record.timestamp)
        excerpt = " ".join(record.content.split())
        if len(excerpt) > 200:
            excerpt = excerpt[:199] + "..."
        await ctx.reply(
            f"Last saw **{record.speaker}** {ago} in <#{record.channel_id}>: \"{excerpt}\"",
            mention_author=False,
        )

    @bot.command(name="ratelimits")
    async def cmd_ratelimits(ctx: commands.Context):
        if not gates.in_followed_channel(ctx):
            return
        lines = ["Generation budgets:"] + format_budget_lines(deps.rate_limiter, deps.clock())
        await ctx.reply("\n".join(lines), mention_author=False)
