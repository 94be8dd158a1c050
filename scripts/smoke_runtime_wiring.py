from __future__ import annotations

import asyncio
import importlib
import os
import random
import sqlite3
from types import SimpleNamespace

# Run from the repo root: python -m scripts.smoke_runtime_wiring
REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class _DummyCompletions:
    def create(self, *args, **kwargs):
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="pass"))]
        )


class _DummyClient:
    def __init__(self):
        self.chat = SimpleNamespace(completions=_DummyCompletions())
        self.images = SimpleNamespace(generate=lambda **kwargs: SimpleNamespace(data=[]))


async def _noop_async(*args, **kwargs):
    return None


def _try_import_or_skip(module_name: str, pip_name: str | None = None) -> bool:
    try:
        importlib.import_module(module_name)
        return True
    except ModuleNotFoundError:
        install_name = pip_name or module_name
        print(
            f"Smoke wiring check skipped: missing dependency '{module_name}'. "
            f"Install requirements and retry (e.g. `pip install {install_name}` "
            f"or `pip install -e .`)."
        )
        return False


def _main() -> int:
    if not _try_import_or_skip("discord", "discord.py"):
        return 0

    import discord
    from discord.ext import commands
    from config.settings import load_settings
    from db.migrate import apply_sqlite_migrations
    from db.migrate import list_schema_migrations_sync
    from generation.client import GenerationClient
    from ingestion import store
    from interjection.activity import ChannelActivityTracker
    from interjection.content import default_local_content
    from interjection.quota import QuotaManager
    from interjection.rate_limiter import RateLimiter
    from interjection.scheduler import InterjectionScheduler
    from interjection.store import load_rate_budgets_sync
    from interjection.store import save_rate_budgets_sync
    from misc.runtime_wiring import wire_bot_runtime

    settings = load_settings({"FOLLOWED_CHANNEL_IDS": "123456789012345678"})
    db_conn = sqlite3.connect(":memory:", check_same_thread=False)
    apply_sqlite_migrations(db_conn, os.path.join(REPO_ROOT, "migrations"))

    rate_limiter = RateLimiter(settings.rate_budgets())
    activity = ChannelActivityTracker(unknown_silence=0.0)
    bot = commands.Bot(command_prefix="!", intents=discord.Intents.none())

    wire_bot_runtime(
        bot,
        settings=settings,
        db_lock=asyncio.Lock(),
        db_conn=db_conn,
        clock=lambda: 1_700_000_000.0,
        send_chunked=_noop_async,
        user_is_owner=lambda user: True,
        log_message_func=_noop_async,
        log_message_edit_func=_noop_async,
        fetch_recent_messages_sync=store.fetch_recent_messages_sync,
        fetch_random_message_sync=store.fetch_random_message_sync,
        fetch_last_activity_by_channel_sync=store.fetch_last_activity_by_channel_sync,
        find_last_message_by_name_sync=store.find_last_message_by_name_sync,
        count_messages_sync=store.count_messages_sync,
        trim_messages_sync=store.trim_messages_sync,
        list_schema_migrations_sync=list_schema_migrations_sync,
        save_rate_budgets_sync=save_rate_budgets_sync,
        load_rate_budgets_sync=load_rate_budgets_sync,
        rate_limiter=rate_limiter,
        quota=QuotaManager(rate_limiter),
        generator=GenerationClient(_DummyClient(), model="m", image_model="i", persona="p"),
        scheduler=InterjectionScheduler(settings.interjection_config(), activity, rng=random.Random(0)),
        activity=activity,
        content=default_local_content(),
        rng=random.Random(0),
    )

    expected_commands = {
        "dbmigrations",
        "dbstats",
        "trimnow",
        "imagine",
        "lastseen",
        "ratelimits",
    }
    existing_commands = set(bot.all_commands.keys())
    missing = sorted(expected_commands - existing_commands)
    if missing:
        raise RuntimeError(f"Missing expected commands: {missing}")

    for event_name in ("on_ready", "on_message", "on_message_edit"):
        handler = getattr(bot, event_name, None)
        if handler is None or getattr(handler, "__module__", "") != "misc.events_runtime":
            raise RuntimeError(f"Runtime event {event_name} was not registered")

    print("Smoke wiring check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
