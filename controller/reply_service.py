from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from config.defaults import CANNED_REPLY
from config.defaults import STARTER_MAX_CHARS
from config.persona import Persona
from config.settings import ModelSettings
from controller.llm_client import ChatModelClient
from controller.llm_client import ModelQuotaExceeded
from controller.llm_client import ModelUnavailable
from controller.prompt_assembly import budget_prompt_messages
from controller.prompt_assembly import build_chat_messages
from controller.prompt_assembly import language_directive
from misc.discord_text import scrub_mass_mentions
from retrieval.knowledge_index import KnowledgeSnapshot
from retrieval.service import RetrievalSettings
from retrieval.service import format_knowledge_block
from retrieval.service import retrieve_with_settings


@dataclass(frozen=True, slots=True)
class GroundedReply:
    text: str
    snippets: list[str]
    used_model: bool


def clamp(n: int, low: int, high: int) -> int:
    return min(high, max(low, n))


def quota_retry_tokens(affordable: int | None, *, min_tokens: int, max_tokens: int) -> int | None:
    """Ceiling for a single retry after a quota error, or None when not worth retrying."""
    if not affordable or affordable >= max_tokens:
        return None
    adjusted = clamp(int(affordable) - 5, int(min_tokens), int(max_tokens))
    if adjusted < min_tokens:
        return None
    return adjusted


async def _try_model(
    llm: ChatModelClient,
    messages: list[dict],
    *,
    model: str,
    settings: ModelSettings,
) -> str | None:
    """Text from one model (possibly empty), or None when every attempt on it failed."""
    max_tokens = settings.max_response_tokens
    try:
        return await llm.complete(messages, model=model, max_tokens=max_tokens)
    except ModelUnavailable as e:
        print(f"[AI] model={model} unavailable: {e}")
        return None
    except ModelQuotaExceeded as e:
        print(f"[AI] model={model} quota exceeded affordable={e.affordable_tokens}")
        if not settings.retry_on_quota:
            return None
        adjusted = quota_retry_tokens(
            e.affordable_tokens,
            min_tokens=settings.min_response_tokens,
            max_tokens=max_tokens,
        )
        if adjusted is None:
            return None
        print(f"[AI] Retrying model={model} with max_tokens={adjusted}")
        try:
            return await llm.complete(messages, model=model, max_tokens=adjusted)
        except (ModelQuotaExceeded, ModelUnavailable) as e2:
            print(f"[AI] model={model} retry failed: {e2}")
            return None


async def ask_model(
    llm: ChatModelClient,
    *,
    system: str,
    user: str,
    settings: ModelSettings,
) -> str:
    """
    Budget the prompt and ask the primary model. The fallback model is only
    tried when the primary call failed; an empty answer is returned as is.

    Returns "" when every attempt failed.
    """
    if not settings.enabled:
        return ""
    messages = build_chat_messages(
        system_prompt=settings.system_persona or system,
        user_prompt=user,
        directive=language_directive(settings.language),
    )
    messages = budget_prompt_messages(messages, settings.max_input_tokens)

    text = await _try_model(llm, messages, model=settings.model, settings=settings)
    if text is not None:
        return text
    if settings.fallback_model and settings.fallback_model != settings.model:
        print(f"[AI] Primary model={settings.model} failed; trying fallback={settings.fallback_model}")
        text = await _try_model(llm, messages, model=settings.fallback_model, settings=settings)
    return text or ""


def build_user_prompt(text: str, snippets: list[str], *, reply_rules: str) -> str:
    # Notes stay last; budget trimming cuts from the end.
    prompt = f'User said: "{text}"'
    if reply_rules:
        prompt += f"\n\n{reply_rules}"
    return prompt + format_knowledge_block(snippets)


async def build_grounded_reply(
    text: str,
    *,
    snapshot: KnowledgeSnapshot,
    retrieval: RetrievalSettings,
    persona: Persona,
    llm: ChatModelClient | None,
    model_settings: ModelSettings,
    format_timestamp: Callable[[datetime], str],
    last_reply: str | None = None,
    now: datetime | None = None,
) -> GroundedReply:
    # Retrieval is finished and folded into the prompt before the model is called.
    snippets = retrieve_with_settings(snapshot, text, retrieval, format_timestamp=format_timestamp, now=now)
    user_prompt = build_user_prompt(text, snippets, reply_rules=persona.reply_rules)

    ai_reply = ""
    if llm is not None and model_settings.enabled:
        ai_reply = await ask_model(llm, system=persona.system_prompt, user=user_prompt, settings=model_settings)

    reply = scrub_mass_mentions(ai_reply)
    if not reply or (last_reply is not None and reply == last_reply):
        reply = CANNED_REPLY
    return GroundedReply(text=reply, snippets=snippets, used_model=bool(ai_reply))


async def build_starter_text(
    *,
    persona: Persona,
    llm: ChatModelClient | None,
    model_settings: ModelSettings,
    use_ai: bool,
    pick: Callable[[list[str]], str],
) -> str:
    text = pick(persona.fallback_starters)
    if use_ai and llm is not None and model_settings.enabled:
        ai = await ask_model(llm, system=persona.system_prompt, user=persona.starter_prompt, settings=model_settings)
        ai = scrub_mass_mentions(ai)[:STARTER_MAX_CHARS]
        if ai:
            text = ai
    return text
