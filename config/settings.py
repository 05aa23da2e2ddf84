from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Mapping

from config import defaults
from retrieval.service import RetrievalSettings


def parse_id_set(raw: str | None) -> set[int]:
    if not raw:
        return set()
    out: set[int] = set()
    for tok in re.split(r"[\s,;]+", raw.strip()):
        if not tok:
            continue
        if re.fullmatch(r"\d{8,22}", tok):
            out.add(int(tok))
    return out


def parse_str_list(raw: str | None) -> list[str]:
    """Comma-separated names, order kept, blanks and duplicates dropped."""
    if not raw:
        return []
    out: list[str] = []
    for tok in raw.split(","):
        clean = tok.strip()
        if clean and clean not in out:
            out.append(clean)
    return out


def _env_str(env: Mapping[str, str], key: str, default: str) -> str:
    raw = env.get(key)
    if raw is None:
        return default
    return raw.strip() or default


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        print(f"[CFG] invalid {key}={raw!r}; falling back to {default!r}")
        return default


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        print(f"[CFG] invalid {key}={raw!r}; falling back to {default!r}")
        return default


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class KnowledgeSettings:
    channel_ids: list[int] = field(default_factory=list)
    channel_names: list[str] = field(default_factory=list)
    max_messages_per_source: int = defaults.DEFAULT_KNOWLEDGE_MAX_MESSAGES
    global_budget: int = defaults.DEFAULT_KNOWLEDGE_GLOBAL_BUDGET
    max_document_chars: int = defaults.DEFAULT_KNOWLEDGE_MAX_DOC_CHARS
    refresh_minutes: int = defaults.DEFAULT_KNOWLEDGE_REFRESH_MINUTES
    retrieval: RetrievalSettings = field(default_factory=RetrievalSettings)

    @property
    def configured(self) -> bool:
        return bool(self.channel_ids or self.channel_names)


@dataclass(frozen=True)
class ModelSettings:
    api_key: str = ""
    base_url: str = defaults.DEFAULT_OPENAI_BASE_URL
    model: str = defaults.DEFAULT_MODEL
    fallback_model: str = defaults.DEFAULT_MODEL
    max_input_tokens: int = defaults.DEFAULT_MAX_INPUT_TOKENS
    max_response_tokens: int = defaults.DEFAULT_MAX_RESPONSE_TOKENS
    min_response_tokens: int = defaults.DEFAULT_MIN_RESPONSE_TOKENS
    retry_on_quota: bool = True
    throttle_seconds: float = defaults.DEFAULT_THROTTLE_MS / 1000.0
    timeout_seconds: float = defaults.DEFAULT_MODEL_TIMEOUT_SECONDS
    language: str = defaults.DEFAULT_LANGUAGE
    system_persona: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class BehaviourSettings:
    channel_name_allowlist: set[str] = field(default_factory=set)
    reply_chance: float = defaults.DEFAULT_REPLY_CHANCE
    reply_chance_question: float = defaults.DEFAULT_REPLY_CHANCE_QUESTION
    idle_minutes: int = defaults.DEFAULT_IDLE_MINUTES
    starter_cooldown_minutes: int = defaults.DEFAULT_STARTER_COOLDOWN_MINUTES
    starter_use_ai: bool = False
    timezone: str = defaults.DEFAULT_TIMEZONE
    owner_user_ids: set[int] = field(default_factory=set)

    @property
    def idle_after(self) -> timedelta:
        return timedelta(minutes=max(0, self.idle_minutes))

    @property
    def starter_cooldown(self) -> timedelta:
        return timedelta(minutes=max(0, self.starter_cooldown_minutes))


@dataclass(frozen=True)
class MediaSettings:
    tenor_api_key: str = ""
    locale: str = defaults.DEFAULT_LANGUAGE
    sticker_daily_limit: int = defaults.DEFAULT_STICKER_DAILY_LIMIT
    sticker_idle_chance: float = defaults.DEFAULT_STICKER_IDLE_CHANCE
    sticker_day_start_hour: int = defaults.DEFAULT_STICKER_DAY_START_HOUR
    sticker_day_end_hour: int = defaults.DEFAULT_STICKER_DAY_END_HOUR


@dataclass(frozen=True)
class MarketSettings:
    collection_symbol: str = defaults.DEFAULT_MAGIC_EDEN_SYMBOL
    api_key: str = ""


@dataclass(frozen=True)
class Settings:
    discord_token: str = ""
    persona_path: str = ""
    knowledge: KnowledgeSettings = field(default_factory=KnowledgeSettings)
    model: ModelSettings = field(default_factory=ModelSettings)
    behaviour: BehaviourSettings = field(default_factory=BehaviourSettings)
    media: MediaSettings = field(default_factory=MediaSettings)
    market: MarketSettings = field(default_factory=MarketSettings)

    def summary(self) -> str:
        k = self.knowledge
        r = k.retrieval
        return (
            f"model={self.model.model} fallback={self.model.fallback_model} ai={self.model.enabled} "
            f"allowlist={sorted(self.behaviour.channel_name_allowlist) or '(all)'} "
            f"kb_ids={len(k.channel_ids)} kb_names={len(k.channel_names)} "
            f"kb_cap={k.max_messages_per_source} kb_budget={k.global_budget} "
            f"snippets={r.max_snippets} min_score={r.min_score} "
            f"chars={r.snippet_char_limit}/{r.total_char_limit} tz={self.behaviour.timezone}"
        )


def default_persona_path() -> str:
    return str(Path(__file__).resolve().parent / "persona.yml")


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    retrieval = RetrievalSettings(
        max_snippets=_env_int(env, "KB_MAX_SNIPPETS", defaults.DEFAULT_KB_MAX_SNIPPETS),
        min_score=_env_float(env, "KB_MIN_SCORE", defaults.DEFAULT_KB_MIN_SCORE),
        snippet_char_limit=_env_int(env, "KB_SNIPPET_CHARS", defaults.DEFAULT_KB_SNIPPET_CHARS),
        total_char_limit=_env_int(env, "KB_TOTAL_CHARS", defaults.DEFAULT_KB_TOTAL_CHARS),
        recency_window=timedelta(days=_env_float(env, "KB_RECENCY_DAYS", defaults.DEFAULT_KB_RECENCY_DAYS)),
        recency_bonus=_env_float(env, "KB_RECENCY_BONUS", defaults.DEFAULT_KB_RECENCY_BONUS),
    )
    knowledge = KnowledgeSettings(
        channel_ids=sorted(parse_id_set(env.get("KNOWLEDGE_CHANNEL_IDS"))),
        channel_names=parse_str_list(env.get("KNOWLEDGE_CHANNELS")),
        max_messages_per_source=_env_int(env, "KNOWLEDGE_MAX_MESSAGES", defaults.DEFAULT_KNOWLEDGE_MAX_MESSAGES),
        global_budget=_env_int(env, "KNOWLEDGE_GLOBAL_BUDGET", defaults.DEFAULT_KNOWLEDGE_GLOBAL_BUDGET),
        max_document_chars=_env_int(env, "KNOWLEDGE_MAX_DOC_CHARS", defaults.DEFAULT_KNOWLEDGE_MAX_DOC_CHARS),
        refresh_minutes=_env_int(env, "KNOWLEDGE_REFRESH_MINUTES", defaults.DEFAULT_KNOWLEDGE_REFRESH_MINUTES),
        retrieval=retrieval,
    )

    model_name = _env_str(env, "MODEL", defaults.DEFAULT_MODEL)
    model = ModelSettings(
        api_key=(env.get("OPENAI_API_KEY") or env.get("OPENROUTER_API_KEY") or "").strip(),
        base_url=_env_str(env, "OPENAI_BASE_URL", defaults.DEFAULT_OPENAI_BASE_URL),
        model=model_name,
        fallback_model=_env_str(env, "MODEL_FALLBACK", defaults.DEFAULT_MODEL),
        max_input_tokens=_env_int(env, "AI_MAX_INPUT_TOKENS", defaults.DEFAULT_MAX_INPUT_TOKENS),
        max_response_tokens=_env_int(env, "AI_MAX_RESPONSE_TOKENS", defaults.DEFAULT_MAX_RESPONSE_TOKENS),
        min_response_tokens=_env_int(env, "AI_MIN_RESPONSE_TOKENS", defaults.DEFAULT_MIN_RESPONSE_TOKENS),
        retry_on_quota=_env_bool(env, "AI_RETRY_ON_402", True),
        throttle_seconds=_env_int(env, "AI_THROTTLE_MS", defaults.DEFAULT_THROTTLE_MS) / 1000.0,
        timeout_seconds=_env_float(env, "AI_TIMEOUT_SECONDS", defaults.DEFAULT_MODEL_TIMEOUT_SECONDS),
        language=_env_str(env, "LANGUAGE", defaults.DEFAULT_LANGUAGE),
        system_persona=(env.get("SYSTEM_PERSONA") or "").strip(),
    )

    allowlist_raw = env.get("CHANNEL_NAME_ALLOWLIST")
    if allowlist_raw is None:
        allowlist_raw = defaults.DEFAULT_CHANNEL_NAME_ALLOWLIST
    behaviour = BehaviourSettings(
        channel_name_allowlist=set(parse_str_list(allowlist_raw)),
        reply_chance=_env_float(env, "REPLY_CHANCE", defaults.DEFAULT_REPLY_CHANCE),
        reply_chance_question=_env_float(env, "REPLY_CHANCE_QUESTION", defaults.DEFAULT_REPLY_CHANCE_QUESTION),
        idle_minutes=_env_int(env, "IDLE_MINUTES", defaults.DEFAULT_IDLE_MINUTES),
        starter_cooldown_minutes=_env_int(
            env, "STARTER_COOLDOWN_MINUTES", defaults.DEFAULT_STARTER_COOLDOWN_MINUTES
        ),
        starter_use_ai=_env_bool(env, "STARTER_USE_AI", False),
        timezone=_env_str(env, "TIMEZONE", defaults.DEFAULT_TIMEZONE),
        owner_user_ids=parse_id_set(env.get("OWNER_USER_IDS")),
    )

    media = MediaSettings(
        tenor_api_key=(env.get("TENOR_API_KEY") or "").strip(),
        locale=_env_str(env, "LANGUAGE", defaults.DEFAULT_LANGUAGE),
        sticker_daily_limit=_env_int(env, "STICKER_DAILY_LIMIT", defaults.DEFAULT_STICKER_DAILY_LIMIT),
        sticker_idle_chance=_env_float(env, "STICKER_IDLE_CHANCE", defaults.DEFAULT_STICKER_IDLE_CHANCE),
        sticker_day_start_hour=_env_int(env, "STICKER_DAY_START_HOUR", defaults.DEFAULT_STICKER_DAY_START_HOUR),
        sticker_day_end_hour=_env_int(env, "STICKER_DAY_END_HOUR", defaults.DEFAULT_STICKER_DAY_END_HOUR),
    )

    market = MarketSettings(
        collection_symbol=_env_str(env, "MAGIC_EDEN_COLLECTION_SYMBOL", defaults.DEFAULT_MAGIC_EDEN_SYMBOL),
        api_key=(env.get("MAGICEDEN_API_KEY") or "").strip(),
    )

    return Settings(
        discord_token=(env.get("DISCORD_TOKEN") or "").strip(),
        persona_path=_env_str(env, "PERSONA_PATH", default_persona_path()),
        knowledge=knowledge,
        model=model,
        behaviour=behaviour,
        media=media,
        market=market,
    )
