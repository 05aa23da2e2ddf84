import discord
from discord.ext import commands
from config.defaults import DEFAULT_IDLE_TICK_SECONDS
from config.persona import load_persona
from config.settings import load_settings
from controller.llm_client import ChatModelClient
from controller.llm_client import ModelThrottle
from controller.llm_client import build_openai_client
from misc.adhoc_modules.magic_eden import MagicEdenClient
from misc.adhoc_modules.tenor import TenorClient
from misc.discord_source import DiscordChannelSource
from misc.runtime_wiring import wire_bot_runtime
from retrieval.knowledge_index import KnowledgeIndex

# =========================
# CONFIG
# =========================
SETTINGS = load_settings()

DISCORD_TOKEN = SETTINGS.discord_token
if not DISCORD_TOKEN:
    raise RuntimeError("Missing DISCORD_TOKEN env var.")

PERSONA, PERSONA_WARNING = load_persona(SETTINGS.persona_path)
if PERSONA_WARNING:
    print(f"[CFG] {PERSONA_WARNING}")
print(f"[CFG] persona={PERSONA.version} {SETTINGS.summary()}")

# =========================
# MODEL CLIENT
# =========================
llm = None
if SETTINGS.model.enabled:
    llm = ChatModelClient(
        build_openai_client(
            api_key=SETTINGS.model.api_key,
            base_url=SETTINGS.model.base_url,
            timeout_seconds=SETTINGS.model.timeout_seconds,
        ),
        throttle=ModelThrottle(SETTINGS.model.throttle_seconds),
    )
else:
    print("[CFG] OPENAI_API_KEY not set; replies fall back to canned text.")

# =========================
# KNOWLEDGE + MEDIA
# =========================
knowledge_source = DiscordChannelSource()
knowledge_index = KnowledgeIndex(
    knowledge_source,
    max_document_chars=SETTINGS.knowledge.max_document_chars,
)
tenor = TenorClient(api_key=SETTINGS.media.tenor_api_key, locale=SETTINGS.media.locale)
market_client = MagicEdenClient(
    symbol=SETTINGS.market.collection_symbol,
    api_key=SETTINGS.market.api_key,
)

# =========================
# DISCORD BOT
# =========================
intents = discord.Intents.default()
intents.message_content = True
intents.members = True

bot = commands.Bot(command_prefix="!", intents=intents)

wire_bot_runtime(
    bot,
    settings=SETTINGS,
    persona=PERSONA,
    knowledge_index=knowledge_index,
    knowledge_source=knowledge_source,
    llm=llm,
    tenor=tenor,
    market_client=market_client,
    idle_tick_seconds=DEFAULT_IDLE_TICK_SECONDS,
)

bot.run(DISCORD_TOKEN)
