from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Mapping

from config.defaults import DEFAULT_BOT_PERSONA
from config.defaults import DEFAULT_CONTEXT_LINE_CHARS
from config.defaults import DEFAULT_CONTEXT_MAX_CHARS
from config.defaults import DEFAULT_CONTEXT_MESSAGES
from config.defaults import DEFAULT_DB_PATH
from config.defaults import DEFAULT_DB_TRIM_INTERVAL_SECS
from config.defaults import DEFAULT_FILL_SILENCE_ENABLED
from config.defaults import DEFAULT_FILL_SILENCE_MAX_HOURS
from config.defaults import DEFAULT_FILL_SILENCE_START_HOURS
from config.defaults import DEFAULT_GEMINI_BASE_URL
from config.defaults import DEFAULT_GEMINI_IMAGE_MODEL
from config.defaults import DEFAULT_GEMINI_MODEL
from config.defaults import DEFAULT_IMAGE_RATE_LIMIT_DAY
from config.defaults import DEFAULT_IMAGE_RATE_LIMIT_MINUTE
from config.defaults import DEFAULT_INTERJECTION_CONTENT_PATH
from config.defaults import DEFAULT_INTERJECTION_PROBABILITY
from config.defaults import DEFAULT_MESSAGE_HISTORY_LIMIT
from config.defaults import DEFAULT_TEXT_RATE_LIMIT_DAY
from config.defaults import DEFAULT_TEXT_RATE_LIMIT_MINUTE
from config.defaults import FALSE_WORDS
from config.defaults import IMAGE_CATEGORY
from config.defaults import TEXT_CATEGORY
from config.defaults import TRUE_WORDS
from interjection.models import CANONICAL_ORDER
from interjection.models import InterjectionConfig
from interjection.models import InterjectionType
from interjection.models import build_candidates
from misc.errors import ConfigError


def parse_id_set(raw: str | None) -> set[int]:
    if not raw:
        return set()
    out: set[int] = set()
    for tok in re.split(r"[\s,;]+", raw.strip()):
        if not tok:
            continue
        if not re.fullmatch(r"\d{8,22}", tok):
            raise ConfigError(f"Invalid channel id {tok!r}; expected a Discord snowflake.")
        out.add(int(tok))
    return out


def parse_name_set(raw: str | None) -> set[str]:
    if not raw:
        return set()
    out: set[str] = set()
    for tok in re.split(r"[\s,;]+", raw):
        name = tok.strip().lstrip("#").lower()
        if name:
            out.add(name)
    return out


def parse_bool(key: str, raw: str | None, default: bool) -> bool:
    text = (raw or "").strip().lower()
    if not text:
        return default
    if text in TRUE_WORDS:
        return True
    if text in FALSE_WORDS:
        return False
    raise ConfigError(f"{key}={raw!r} is not a boolean (use true/false, yes/no, on/off, 1/0).")


def parse_probability(key: str, raw: str | None, default: float) -> float:
    text = (raw or "").strip()
    if not text:
        return default
    try:
        value = float(text)
    except ValueError:
        raise ConfigError(f"{key}={raw!r} is not a decimal probability.") from None
    if not 0.0 <= value <= 1.0:
        raise ConfigError(f"{key}={raw!r} is outside [0, 1].")
    return value


def parse_positive_int(key: str, raw: str | None, default: int) -> int:
    text = (raw or "").strip()
    if not text:
        return default
    try:
        value = int(text)
    except ValueError:
        raise ConfigError(f"{key}={raw!r} is not an integer.") from None
    if value < 1:
        raise ConfigError(f"{key}={raw!r} must be at least 1.")
    return value


def parse_hours(key: str, raw: str | None, default: float) -> float:
    text = (raw or "").strip()
    if not text:
        return default
    try:
        value = float(text)
    except ValueError:
        raise ConfigError(f"{key}={raw!r} is not a number of hours.") from None
    if not math.isfinite(value) or value < 0:
        raise ConfigError(f"{key}={raw!r} must be a finite, non-negative number of hours.")
    return value


def probability_env_key(kind: InterjectionType) -> str:
    return f"INTERJECTION_{kind.value.upper()}_PROBABILITY"


@dataclass(frozen=True)
class Settings:
    db_path: str = DEFAULT_DB_PATH
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_image_model: str = DEFAULT_GEMINI_IMAGE_MODEL
    persona: str = DEFAULT_BOT_PERSONA
    interjection_content_path: str = DEFAULT_INTERJECTION_CONTENT_PATH

    context_message_count: int = DEFAULT_CONTEXT_MESSAGES
    context_max_chars: int = DEFAULT_CONTEXT_MAX_CHARS
    context_line_chars: int = DEFAULT_CONTEXT_LINE_CHARS
    message_history_limit: int = DEFAULT_MESSAGE_HISTORY_LIMIT
    db_trim_interval_secs: int = DEFAULT_DB_TRIM_INTERVAL_SECS

    probabilities: dict[InterjectionType, float] = field(
        default_factory=lambda: {kind: DEFAULT_INTERJECTION_PROBABILITY for kind in CANONICAL_ORDER}
    )
    fill_silence_enabled: bool = DEFAULT_FILL_SILENCE_ENABLED
    fill_silence_start_hours: float = DEFAULT_FILL_SILENCE_START_HOURS
    fill_silence_max_hours: float = DEFAULT_FILL_SILENCE_MAX_HOURS

    text_rate_limit_minute: int = DEFAULT_TEXT_RATE_LIMIT_MINUTE
    text_rate_limit_day: int = DEFAULT_TEXT_RATE_LIMIT_DAY
    image_rate_limit_minute: int = DEFAULT_IMAGE_RATE_LIMIT_MINUTE
    image_rate_limit_day: int = DEFAULT_IMAGE_RATE_LIMIT_DAY

    quiet_channel_ids: frozenset[int] = frozenset()
    quiet_channel_names: frozenset[str] = frozenset()
    target_channel_ids: frozenset[int] = frozenset()
    target_channel_names: frozenset[str] = frozenset()
    followed_channel_ids: frozenset[int] = frozenset()
    followed_channel_names: frozenset[str] = frozenset()

    def interjection_config(self) -> InterjectionConfig:
        return InterjectionConfig(
            candidates=build_candidates(self.probabilities),
            context_message_count=self.context_message_count,
            fill_silence_enabled=self.fill_silence_enabled,
            fill_silence_start_hours=self.fill_silence_start_hours,
            fill_silence_max_hours=self.fill_silence_max_hours,
            quiet_channel_ids=self.quiet_channel_ids,
            quiet_channel_names=self.quiet_channel_names,
            target_channel_ids=self.target_channel_ids,
            target_channel_names=self.target_channel_names,
        )

    def rate_budgets(self) -> dict[str, tuple[int, int]]:
        return {
            TEXT_CATEGORY: (self.text_rate_limit_minute, self.text_rate_limit_day),
            IMAGE_CATEGORY: (self.image_rate_limit_minute, self.image_rate_limit_day),
        }


def load_settings(env: Mapping[str, str]) -> Settings:
    """
    Parse bot settings from string key/value pairs (normally os.environ).
    Raises ConfigError on the first malformed value.
    """

    def get(key: str) -> str | None:
        value = env.get(key)
        return value.strip() if isinstance(value, str) else None

    probabilities = {
        kind: parse_probability(probability_env_key(kind), get(probability_env_key(kind)), DEFAULT_INTERJECTION_PROBABILITY)
        for kind in CANONICAL_ORDER
    }

    start_hours = parse_hours("FILL_SILENCE_START_HOURS", get("FILL_SILENCE_START_HOURS"), DEFAULT_FILL_SILENCE_START_HOURS)
    max_hours = parse_hours("FILL_SILENCE_MAX_HOURS", get("FILL_SILENCE_MAX_HOURS"), DEFAULT_FILL_SILENCE_MAX_HOURS)
    if max_hours <= start_hours:
        raise ConfigError(
            f"FILL_SILENCE_MAX_HOURS ({max_hours}) must be greater than FILL_SILENCE_START_HOURS ({start_hours})."
        )

    quiet_names = parse_name_set(get("QUIET_CHANNEL_NAMES")) | parse_name_set(get("QUIET_CHANNEL_NAME"))

    return Settings(
        db_path=get("BOT_DB_PATH") or DEFAULT_DB_PATH,
        gemini_base_url=get("GEMINI_BASE_URL") or DEFAULT_GEMINI_BASE_URL,
        gemini_model=get("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
        gemini_image_model=get("GEMINI_IMAGE_MODEL") or DEFAULT_GEMINI_IMAGE_MODEL,
        persona=get("BOT_PERSONA") or DEFAULT_BOT_PERSONA,
        interjection_content_path=get("INTERJECTION_CONTENT_PATH") or DEFAULT_INTERJECTION_CONTENT_PATH,
        context_message_count=parse_positive_int(
            "GEMINI_CONTEXT_MESSAGES", get("GEMINI_CONTEXT_MESSAGES"), DEFAULT_CONTEXT_MESSAGES
        ),
        context_max_chars=parse_positive_int("CONTEXT_MAX_CHARS", get("CONTEXT_MAX_CHARS"), DEFAULT_CONTEXT_MAX_CHARS),
        context_line_chars=parse_positive_int(
            "CONTEXT_LINE_CHARS", get("CONTEXT_LINE_CHARS"), DEFAULT_CONTEXT_LINE_CHARS
        ),
        message_history_limit=parse_positive_int(
            "MESSAGE_HISTORY_LIMIT", get("MESSAGE_HISTORY_LIMIT"), DEFAULT_MESSAGE_HISTORY_LIMIT
        ),
        db_trim_interval_secs=parse_positive_int(
            "DB_TRIM_INTERVAL_SECS", get("DB_TRIM_INTERVAL_SECS"), DEFAULT_DB_TRIM_INTERVAL_SECS
        ),
        probabilities=probabilities,
        fill_silence_enabled=parse_bool(
            "FILL_SILENCE_ENABLED", get("FILL_SILENCE_ENABLED"), DEFAULT_FILL_SILENCE_ENABLED
        ),
        fill_silence_start_hours=start_hours,
        fill_silence_max_hours=max_hours,
        text_rate_limit_minute=parse_positive_int(
            "GEMINI_RATE_LIMIT_MINUTE", get("GEMINI_RATE_LIMIT_MINUTE"), DEFAULT_TEXT_RATE_LIMIT_MINUTE
        ),
        text_rate_limit_day=parse_positive_int(
            "GEMINI_RATE_LIMIT_DAY", get("GEMINI_RATE_LIMIT_DAY"), DEFAULT_TEXT_RATE_LIMIT_DAY
        ),
        image_rate_limit_minute=parse_positive_int(
            "GEMINI_IMAGE_RATE_LIMIT_MINUTE", get("GEMINI_IMAGE_RATE_LIMIT_MINUTE"), DEFAULT_IMAGE_RATE_LIMIT_MINUTE
        ),
        image_rate_limit_day=parse_positive_int(
            "GEMINI_IMAGE_RATE_LIMIT_DAY", get("GEMINI_IMAGE_RATE_LIMIT_DAY"), DEFAULT_IMAGE_RATE_LIMIT_DAY
        ),
        quiet_channel_ids=frozenset(parse_id_set(get("QUIET_CHANNEL_IDS"))),
        quiet_channel_names=frozenset(quiet_names),
        target_channel_ids=frozenset(parse_id_set(get("INTERJECTION_CHANNEL_IDS"))),
        target_channel_names=frozenset(parse_name_set(get("INTERJECTION_CHANNEL_NAMES"))),
        followed_channel_ids=frozenset(parse_id_set(get("FOLLOWED_CHANNEL_IDS"))),
        followed_channel_names=frozenset(parse_name_set(get("FOLLOWED_CHANNEL_NAMES"))),
    )
