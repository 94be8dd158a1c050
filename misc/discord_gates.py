from __future__ import annotations

import discord

from config.defaults import COMMAND_PREFIX


def _channel_matches(channel, channel_ids: set[int] | frozenset[int], channel_names: set[str] | frozenset[str]) -> bool:
    channel_id = int(getattr(channel, "id", 0) or 0)
    if channel_id in channel_ids:
        return True
    name = str(getattr(channel, "name", "") or "").strip().lower()
    return bool(name) and name in channel_names


def message_in_followed_channels(
    message: discord.Message,
    followed_channel_ids: set[int] | frozenset[int],
    followed_channel_names: set[str] | frozenset[str] = frozenset(),
) -> bool:
    # Only guild traffic is observed; DMs never reach the store or the scheduler.
    if getattr(message, "guild", None) is None:
        return False
    if not followed_channel_ids and not followed_channel_names:
        return True

    channel = message.channel
    if _channel_matches(channel, followed_channel_ids, followed_channel_names):
        return True
    # thread: follow if parent is followed
    if isinstance(channel, discord.Thread) and channel.parent:
        return _channel_matches(channel.parent, followed_channel_ids, followed_channel_names)
    return False


def is_command(content: str | None, prefix: str = COMMAND_PREFIX) -> bool:
    return (content or "").lstrip().startswith(prefix)


def is_direct_address(message: discord.Message, bot_user) -> bool:
    if bot_user is None:
        return False
    bot_id = int(bot_user.id)
    for user in getattr(message, "mentions", None) or []:
        if int(getattr(user, "id", 0) or 0) == bot_id:
            return True
    reference = getattr(message, "reference", None)
    resolved = getattr(reference, "resolved", None) if reference is not None else None
    author = getattr(resolved, "author", None)
    return author is not None and int(getattr(author, "id", 0) or 0) == bot_id
