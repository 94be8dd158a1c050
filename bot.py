import os
import sqlite3
import asyncio
import random
import time
import discord
from discord.ext import commands
from openai import OpenAI
from config.defaults import COMMAND_PREFIX
from config.settings import load_settings
from config.settings import parse_id_set
from config.settings import parse_name_set
from db.migrate import apply_sqlite_migrations
from db.migrate import list_schema_migrations_sync
from generation.client import GenerationClient
from ingestion.schema import MESSAGE_COLUMNS
from ingestion.service import log_message as log_message_service
from ingestion.service import log_message_edit as log_message_edit_service
from ingestion.store import count_messages_sync
from ingestion.store import fetch_last_activity_by_channel_sync
from ingestion.store import fetch_random_message_sync
from ingestion.store import fetch_recent_messages_sync
from ingestion.store import find_last_message_by_name_sync
from ingestion.store import insert_message_sync
from ingestion.store import trim_messages_sync
from ingestion.store import update_message_content_sync
from interjection.activity import ChannelActivityTracker
from interjection.content import load_local_content
from interjection.quota import QuotaManager
from interjection.rate_limiter import RateLimiter
from interjection.scheduler import InterjectionScheduler
from interjection.store import load_rate_budgets_sync
from interjection.store import save_rate_budgets_sync
from jobs.service import schedule_budget_persist
from misc.errors import ConfigError
from misc.runtime_wiring import wire_bot_runtime

REPO_ROOT = os.path.dirname(os.path.abspath(__file__))

# =========================
# ENV
# =========================
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")

if not DISCORD_TOKEN:
    raise RuntimeError("Missing DISCORD_TOKEN env var")
if not GEMINI_API_KEY:
    raise RuntimeError("Missing GEMINI_API_KEY env var")

try:
    SETTINGS = load_settings(os.environ)
    OWNER_USER_IDS = parse_id_set(os.getenv("OWNER_USER_IDS", ""))
except ConfigError as e:
    raise SystemExit(f"[Bot] Invalid configuration: {e}")

OWNER_USERNAMES = parse_name_set(os.getenv("OWNER_USERNAMES", ""))

print(
    "[Bot] config "
    f"model={SETTINGS.gemini_model} image_model={SETTINGS.gemini_image_model} "
    f"context={SETTINGS.context_message_count} history_limit={SETTINGS.message_history_limit} "
    f"fill_silence={SETTINGS.fill_silence_enabled} "
    f"({SETTINGS.fill_silence_start_hours}h..{SETTINGS.fill_silence_max_hours}h) "
    f"followed_ids={len(SETTINGS.followed_channel_ids)} followed_names={len(SETTINGS.followed_channel_names)} "
    f"quiet={len(SETTINGS.quiet_channel_ids) + len(SETTINGS.quiet_channel_names)} "
    f"owner_ids={len(OWNER_USER_IDS)}"
)

# =========================
# DISCORD OUTPUT
# =========================
DISCORD_MAX_MESSAGE_LEN = 1900  # keep under 2000 hard limit


def chunk_text(text: str, limit: int = DISCORD_MAX_MESSAGE_LEN) -> list[str]:
    text = text or ""
    if len(text) <= limit:
        return [text]

    chunks = []
    remaining = text

    while len(remaining) > limit:
        # Prefer splitting on paragraph, then newline, then space
        split_at = remaining.rfind("\n\n", 0, limit)
        if split_at == -1:
            split_at = remaining.rfind("\n", 0, limit)
        if split_at == -1:
            split_at = remaining.rfind(" ", 0, limit)
        if split_at == -1:
            split_at = limit

        chunk = remaining[:split_at].strip()
        if chunk:
            chunks.append(chunk)

        remaining = remaining[split_at:].strip()

    if remaining:
        chunks.append(remaining)

    return chunks


async def send_chunked(channel: discord.abc.Messageable, text: str) -> None:
    for part in chunk_text(text, DISCORD_MAX_MESSAGE_LEN):
        await channel.send(part)


def user_is_owner(user: discord.abc.User) -> bool:
    uid = int(getattr(user, "id", 0) or 0)
    if uid and uid in OWNER_USER_IDS:
        return True
    if OWNER_USER_IDS:
        return False

    names = {
        str(getattr(user, "name", "") or "").strip().lower(),
        str(getattr(user, "global_name", "") or "").strip().lower(),
        str(getattr(user, "display_name", "") or "").strip().lower(),
    }
    tag = str(user).strip().lower()
    if tag:
        names.add(tag)
        names.add(tag.split("#", 1)[0])
    return any(n in OWNER_USERNAMES for n in names if n)


# =========================
# DB
# =========================
def _safe_table_info(cur, table: str) -> list[str]:
    try:
        cur.execute(f"PRAGMA table_info({table})")
        return [r[1] for r in cur.fetchall()]
    except sqlite3.Error:
        return []


def _schema_has_columns(cur, table: str, required: list[str]) -> tuple[bool, list[str]]:
    cols = set(_safe_table_info(cur, table))
    missing = [c for c in required if c not in cols]
    return (len(missing) == 0), missing


def init_db(db_path: str) -> sqlite3.Connection:
    # check_same_thread=False because discord.py event loop + to_thread usage
    conn = sqlite3.connect(db_path, check_same_thread=False)
    cur = conn.cursor()

    cur.execute("PRAGMA journal_mode=WAL;")
    cur.execute("PRAGMA synchronous=NORMAL;")
    applied = apply_sqlite_migrations(conn, os.path.join(REPO_ROOT, "migrations"))
    if applied:
        print(f"[DB] applied migrations: {', '.join(applied)}")

    ok_m, missing_m = _schema_has_columns(cur, "messages", list(MESSAGE_COLUMNS))
    ok_r, missing_r = _schema_has_columns(
        cur, "rate_budget_usage", ["category", "minute_window_count", "day_window_count", "exhausted_until"]
    )
    print(f"[DB] messages schema OK={ok_m} missing={missing_m}")
    print(f"[DB] rate_budget_usage schema OK={ok_r} missing={missing_r}")

    conn.commit()
    return conn


db_conn = init_db(SETTINGS.db_path)
print(f"[DB] Using BOT_DB_PATH={SETTINGS.db_path}")
db_lock = asyncio.Lock()

# =========================
# ENGINE
# =========================
content_path = SETTINGS.interjection_content_path
if not os.path.isabs(content_path):
    content_path = os.path.join(REPO_ROOT, content_path)
LOCAL_CONTENT, content_warning = load_local_content(content_path)
if content_warning:
    print(f"[Interject] {content_warning}")

generator = GenerationClient(
    OpenAI(api_key=GEMINI_API_KEY, base_url=SETTINGS.gemini_base_url),
    model=SETTINGS.gemini_model,
    image_model=SETTINGS.gemini_image_model,
    persona=SETTINGS.persona,
)
rate_limiter = RateLimiter(SETTINGS.rate_budgets(), clock=time.time)


_background_tasks: set[asyncio.Task] = set()


def _persist_on_lockout(category: str, until_time: float) -> None:
    schedule_budget_persist(
        _background_tasks,
        db_lock=db_lock,
        db_conn=db_conn,
        rate_limiter=rate_limiter,
        save_rate_budgets_sync=save_rate_budgets_sync,
    )


quota = QuotaManager(rate_limiter, clock=time.time, on_lockout=_persist_on_lockout)
# Channels with no recorded history start at zero silence.
activity = ChannelActivityTracker(unknown_silence=0.0)
scheduler = InterjectionScheduler(SETTINGS.interjection_config(), activity, rng=random.Random(), clock=time.time)


async def log_message(message: discord.Message):
    return await log_message_service(
        message,
        db_lock=db_lock,
        db_conn=db_conn,
        insert_message_sync=insert_message_sync,
    )


async def log_message_edit(message: discord.Message):
    return await log_message_edit_service(
        message,
        db_lock=db_lock,
        db_conn=db_conn,
        update_message_content_sync=update_message_content_sync,
    )


# =========================
# BOT
# =========================
intents = discord.Intents.default()
intents.message_content = True

bot = commands.Bot(command_prefix=COMMAND_PREFIX, intents=intents)

wire_bot_runtime(
    bot,
    settings=SETTINGS,
    db_lock=db_lock,
    db_conn=db_conn,
    clock=time.time,
    send_chunked=send_chunked,
    user_is_owner=user_is_owner,
    log_message_func=log_message,
    log_message_edit_func=log_message_edit,
    fetch_recent_messages_sync=fetch_recent_messages_sync,
    fetch_random_message_sync=fetch_random_message_sync,
    fetch_last_activity_by_channel_sync=fetch_last_activity_by_channel_sync,
    find_last_message_by_name_sync=find_last_message_by_name_sync,
    count_messages_sync=count_messages_sync,
    trim_messages_sync=trim_messages_sync,
    list_schema_migrations_sync=list_schema_migrations_sync,
    save_rate_budgets_sync=save_rate_budgets_sync,
    load_rate_budgets_sync=load_rate_budgets_sync,
    rate_limiter=rate_limiter,
    quota=quota,
    generator=generator,
    scheduler=scheduler,
    activity=activity,
    content=LOCAL_CONTENT,
    rng=random.Random(),
)


if __name__ == "__main__":
    bot.run(DISCORD_TOKEN)
