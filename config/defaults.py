from __future__ import annotations

# Discord
DEFAULT_CHANNEL_NAME_ALLOWLIST = "bot-test"
DEFAULT_TIMEZONE = "Europe/London"
DEFAULT_LANGUAGE = "en-GB"

# Chat behaviour
DEFAULT_REPLY_CHANCE = 0.30
DEFAULT_REPLY_CHANCE_QUESTION = 0.85
DEFAULT_IDLE_MINUTES = 25
DEFAULT_STARTER_COOLDOWN_MINUTES = 45
DEFAULT_IDLE_TICK_SECONDS = 60
BUSY_THREAD_MEMBER_COUNT = 2
CANNED_REPLY = "Got you. 👍"

# Model (OpenAI-compatible, OpenRouter by default)
DEFAULT_OPENAI_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "openrouter/auto"
DEFAULT_MAX_INPUT_TOKENS = 900
DEFAULT_MAX_RESPONSE_TOKENS = 160
DEFAULT_MIN_RESPONSE_TOKENS = 60
DEFAULT_THROTTLE_MS = 6000
DEFAULT_MODEL_TIMEOUT_SECONDS = 30.0
STARTER_MAX_CHARS = 140

# Knowledge base
DEFAULT_KNOWLEDGE_MAX_MESSAGES = 1500
DEFAULT_KNOWLEDGE_GLOBAL_BUDGET = 6000
DEFAULT_KNOWLEDGE_MAX_DOC_CHARS = 1000
DEFAULT_KNOWLEDGE_REFRESH_MINUTES = 0
KNOWLEDGE_FETCH_BATCH = 100
BOT_AUTHOR_SENTINEL = "bot"

# Retrieval
DEFAULT_KB_MAX_SNIPPETS = 2
DEFAULT_KB_MIN_SCORE = 1.5
DEFAULT_KB_SNIPPET_CHARS = 150
DEFAULT_KB_TOTAL_CHARS = 400
DEFAULT_KB_RECENCY_DAYS = 14
DEFAULT_KB_RECENCY_BONUS = 0.5

# Prompt budgeting
CHARS_PER_TOKEN = 4
BUDGET_TRIM_CHUNK_CHARS = 200
BUDGET_MIN_KEEP_CHARS = 40
BUDGET_MAX_TRIM_PASSES = 64
NOTES_MARKER = "Knowledge:"
NOTES_PLACEHOLDER = "(notes trimmed to fit)"

# Media
DEFAULT_STICKER_DAILY_LIMIT = 3
DEFAULT_STICKER_IDLE_CHANCE = 0.05
DEFAULT_STICKER_DAY_START_HOUR = 9
DEFAULT_STICKER_DAY_END_HOUR = 21
TENOR_SEARCH_URL = "https://tenor.googleapis.com/v2/search"
TENOR_CLIENT_KEY = "oukii_discord_bot"
TENOR_COUNTRY = "GB"

# Magic Eden
DEFAULT_MAGIC_EDEN_SYMBOL = "oukii"
MAGIC_EDEN_API_BASE = "https://api-mainnet.magiceden.dev/v2"
