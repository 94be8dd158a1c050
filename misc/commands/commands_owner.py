from __future__ import annotations

import asyncio

from discord.ext import commands
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.errors import StorageError


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @bot.command(name="dbmigrations")
    async def cmd_dbmigrations(ctx: commands.Context, limit: int = 30):
        if not gates.in_followed_channel(ctx):
            return
        if not gates.user_is_owner(ctx.author):
            await ctx.send("This command is owner-only.")
            return

        lim = max(1, min(int(limit or 30), 200))
        async with deps.db_lock:
            rows = await asyncio.to_thread(deps.list_schema_migrations_sync, deps.db_conn, lim)

        if not rows:
            await ctx.send("No schema migrations found.")
            return

        lines = [f"Applied schema migrations (latest {len(rows)}):"]
        for version, name, applied_at in rows:
            lines.append(f"- {version}_{name} @ {applied_at}")

        await deps.send_chunked(ctx.channel, "```\n" + "\n".join(lines)[:7000] + "\n```")

    @bot.command(name="dbstats")
    async def cmd_dbstats(ctx: commands.Context):
        if not gates.in_followed_channel(ctx):
            return
        if not gates.user_is_owner(ctx.author):
            await ctx.send("This command is owner-only.")
            return

        try:
            async with deps.db_lock:
                total = await asyncio.to_thread(deps.count_messages_sync, deps.db_conn)
                here = await asyncio.to_thread(deps.count_messages_sync, deps.db_conn, str(ctx.channel.id))
        except StorageError as e:
            await ctx.send(f"Message store unavailable: {e}")
            return

        await ctx.send(
            f"Stored messages: {total} total (cap {deps.message_history_limit}), {here} in this channel."
        )

    @bot.command(name="trimnow")
    async def cmd_trimnow(ctx: commands.Context):
        if not gates.in_followed_channel(ctx):
            return
        if not gates.user_is_owner(ctx.author):
            await ctx.send("This command is owner-only.")
            return

        try:
            removed = await deps.run_trim_pass_func()
        except StorageError as e:
            await ctx.send(f"Trim failed: {e}")
            return
        await ctx.send(f"Trimmed {removed} message(s); keeping the newest {deps.message_history_limit}.")
