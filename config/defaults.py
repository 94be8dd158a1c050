from __future__ import annotations

# Generation backend (OpenAI-compatible Gemini endpoint)
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_GEMINI_IMAGE_MODEL = "imagen-3.0-generate-002"

DEFAULT_DB_PATH = "bot.db"
DEFAULT_INTERJECTION_CONTENT_PATH = "config/interjections.yml"

# Context + retention
DEFAULT_CONTEXT_MESSAGES = 5
DEFAULT_MESSAGE_HISTORY_LIMIT = 10000
DEFAULT_DB_TRIM_INTERVAL_SECS = 3600
DEFAULT_CONTEXT_MAX_CHARS = 1900
DEFAULT_CONTEXT_LINE_CHARS = 400

# Interjections
DEFAULT_INTERJECTION_PROBABILITY = 0.0025
DEFAULT_FILL_SILENCE_ENABLED = True
DEFAULT_FILL_SILENCE_START_HOURS = 1.5
DEFAULT_FILL_SILENCE_MAX_HOURS = 12.0

# Rate budgets: (per minute, per day)
DEFAULT_TEXT_RATE_LIMIT_MINUTE = 15
DEFAULT_TEXT_RATE_LIMIT_DAY = 1500
DEFAULT_IMAGE_RATE_LIMIT_MINUTE = 5
DEFAULT_IMAGE_RATE_LIMIT_DAY = 100

TEXT_CATEGORY = "text"
IMAGE_CATEGORY = "image"

COMMAND_PREFIX = "!"

DEFAULT_BOT_PERSONA = (
    "You are a dry, well-read regular in this Discord server. "
    "You speak casually, keep it short (one to three sentences), and never use hashtags or emoji spam. "
    "You are not an assistant here; you are just another person in the channel."
)

TRUE_WORDS = frozenset({"true", "1", "yes", "enabled", "on"})
FALSE_WORDS = frozenset({"false", "0", "no", "disabled", "off"})
